"""
NPC Schemas
Pydantic models for NPC generation requests, generated content and API responses.

Wire format is camelCase (``storyFit``, ``includeStats``); Python code uses the
snake_case field names. Models that accept caller input forbid unknown fields.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model: camelCase aliases, population by field name allowed."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    def to_document(self) -> Dict[str, Any]:
        """Serialize for storage in a JSON column."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


def _strip(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


# --- Generation settings ---

class CreativityLevel(str, Enum):
    """How adventurous the provider should be; maps to sampling temperature."""
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    CREATIVE = "creative"

    @property
    def temperature(self) -> float:
        return _TEMPERATURES[self]


_TEMPERATURES = {
    CreativityLevel.CONSERVATIVE: 0.3,
    CreativityLevel.BALANCED: 0.6,
    CreativityLevel.CREATIVE: 0.9,
}


class SettingStyle(str, Enum):
    HIGH_FANTASY = "high-fantasy"
    LOW_FANTASY = "low-fantasy"
    MODERN = "modern"
    SCI_FI = "sci-fi"
    CUSTOM = "custom"


class Tone(str, Enum):
    SERIOUS = "serious"
    LIGHTHEARTED = "lighthearted"
    DARK = "dark"
    COMEDIC = "comedic"
    NEUTRAL = "neutral"


class GenerationSettings(CamelModel):
    """Style knobs for a generation."""
    creativity_level: CreativityLevel = CreativityLevel.BALANCED
    setting_style: SettingStyle = SettingStyle.HIGH_FANTASY
    tone: Tone = Tone.NEUTRAL


# --- Generation request ---

class DesiredTraits(CamelModel):
    """Optional free-text hints for the generated NPC."""
    race: Optional[str] = None
    name: Optional[str] = None
    class_: Optional[str] = Field(None, alias="class")
    personality_traits: Optional[str] = None
    appearance: Optional[str] = None
    other: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def strip_values(cls, v):
        return _strip(v)

    def present(self) -> Dict[str, str]:
        """Non-empty traits keyed by field name, in declaration order."""
        return {k: v for k, v in self.model_dump().items() if v}


class GenerationRequest(CamelModel):
    """What the Dungeon Master asked for."""
    role: str
    story_fit: str
    desired_traits: DesiredTraits = Field(default_factory=DesiredTraits)
    include_stats: bool = False
    campaign_context: Optional[str] = None

    @field_validator("role", "story_fit", mode="before")
    @classmethod
    def strip_required(cls, v):
        if isinstance(v, str):
            v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("campaign_context", mode="before")
    @classmethod
    def strip_context(cls, v):
        return _strip(v)


class NPCGenerateRequest(CamelModel):
    """
    Body of POST /generate.

    ``role`` and ``storyFit`` are optional here so that a missing value is
    reported by the service as a 400 rather than a schema error.
    """
    role: Optional[str] = None
    story_fit: Optional[str] = None
    desired_traits: Optional[DesiredTraits] = None
    include_stats: bool = False
    campaign_context: Optional[str] = None
    campaign_id: Optional[str] = None
    generation_settings: Optional[GenerationSettings] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "role": "merchant",
                "storyFit": "quest giver",
                "desiredTraits": {"race": "Dwarf"},
                "includeStats": False,
                "generationSettings": {"creativityLevel": "balanced", "tone": "lighthearted"},
            }
        }
    )


# --- Generated content ---

class AbilityScores(CamelModel):
    strength: Optional[int] = Field(None, ge=1, le=30)
    dexterity: Optional[int] = Field(None, ge=1, le=30)
    constitution: Optional[int] = Field(None, ge=1, le=30)
    intelligence: Optional[int] = Field(None, ge=1, le=30)
    wisdom: Optional[int] = Field(None, ge=1, le=30)
    charisma: Optional[int] = Field(None, ge=1, le=30)


ABILITIES = list(AbilityScores.model_fields)


class SavingThrow(CamelModel):
    ability: str
    modifier: int


class Skill(CamelModel):
    name: str
    modifier: int


class NPCStats(CamelModel):
    """Tabletop statistics block."""
    ability_scores: AbilityScores = Field(default_factory=AbilityScores)
    armor_class: Optional[int] = None
    hit_points: Optional[int] = None
    speed: Optional[str] = None
    proficiency_bonus: Optional[int] = None
    saving_throws: List[SavingThrow] = []
    skills: List[Skill] = []
    languages: List[str] = []
    challenge_rating: Optional[str] = None
    equipment: List[str] = []


class NPCDraft(CamelModel):
    """NPC content as produced by the provider (no provenance)."""
    name: Optional[str] = None
    alternative_names: List[str] = []
    race: Optional[str] = None
    class_: Optional[str] = Field(None, alias="class")
    background: Optional[str] = None
    occupation: Optional[str] = None
    location: Optional[str] = None
    role_in_story: Optional[str] = None
    personality_traits: List[str] = []
    ideals: Optional[str] = None
    bonds: Optional[str] = None
    flaws: Optional[str] = None
    appearance: Optional[str] = None
    mannerisms: Optional[str] = None


class NPCDraftWithStats(NPCDraft):
    """Provider output when full statistics were requested."""
    stats: Optional[NPCStats] = None


class GeneratedNPC(NPCDraftWithStats):
    """Stored NPC content plus generation provenance."""
    ai_prompt_used: Optional[str] = None
    ai_response: Optional[str] = None
    generation_timestamp: Optional[datetime] = None


PROVENANCE_FIELDS = ("aiPromptUsed", "aiResponse")


# --- Update ---

class NPCUpdate(CamelModel):
    """
    Partial update of an NPC.

    Sub-documents are merged key by key into the stored document and the
    merged result is validated against its full schema.
    """
    generation_request: Optional[Dict[str, Any]] = None
    generated_npc: Optional[Dict[str, Any]] = Field(None, alias="generatedNPC")
    generation_settings: Optional[Dict[str, Any]] = None
    campaign_id: Optional[str] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v):
        if v is None:
            return v
        return [t.strip() for t in v if t and t.strip()]


# --- Responses ---

class NPCResponse(CamelModel):
    """Full NPC record."""
    id: str
    created_by: str
    campaign_id: Optional[str] = None
    campaign_name: Optional[str] = None
    generation_request: GenerationRequest
    # GeneratedNPC document; unset fields are left out
    generated_npc: Dict[str, Any] = Field(alias="generatedNPC")
    generation_settings: GenerationSettings
    is_active: bool
    deleted_at: Optional[datetime] = None
    permanent_delete_at: Optional[datetime] = None
    tags: List[str] = []
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record, include_provenance: bool = True) -> "NPCResponse":
        generated = dict(record.generated_npc or {})
        if not include_provenance:
            for key in PROVENANCE_FIELDS:
                generated.pop(key, None)
        return cls(
            id=record.id,
            created_by=record.created_by,
            campaign_id=record.campaign_id,
            campaign_name=record.campaign_name,
            generation_request=GenerationRequest.model_validate(record.generation_request),
            generated_npc=GeneratedNPC.model_validate(generated).to_document(),
            generation_settings=GenerationSettings.model_validate(record.generation_settings),
            is_active=record.is_active,
            deleted_at=record.deleted_at,
            permanent_delete_at=record.permanent_delete_at,
            tags=list(record.tags or []),
            notes=record.notes,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class DeletedNPCResponse(NPCResponse):
    """NPC in the trash."""
    days_until_permanent_delete: Optional[int] = None


class Pagination(CamelModel):
    current: int
    total: int
    total_items: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total_items: int, returned: int) -> "Pagination":
        skip = (page - 1) * limit
        return cls(
            current=page,
            total=-(-total_items // limit) if limit else 0,
            total_items=total_items,
            has_next=skip + returned < total_items,
            has_prev=page > 1,
        )


class NPCListResponse(CamelModel):
    npcs: List[NPCResponse]
    pagination: Pagination


class DeletedNPCListResponse(CamelModel):
    npcs: List[DeletedNPCResponse]
    pagination: Pagination


class NPCSearchResponse(NPCListResponse):
    search_term: str


class CampaignNPCItem(CamelModel):
    """Compact projection used by the campaign roster."""
    id: str
    name: Optional[str] = None
    race: Optional[str] = None
    occupation: Optional[str] = None
    role: str
    created_at: datetime


class RoleCount(CamelModel):
    role: str
    count: int


class CampaignCount(CamelModel):
    campaign_id: str
    campaign_name: Optional[str] = None
    count: int


class NPCSummary(CamelModel):
    total_npcs: int
    npcs_by_role: List[RoleCount]
    npcs_by_campaign: List[CampaignCount]
    npcs_with_stats: int
    npcs_without_stats: int


class FavoriteResponse(CamelModel):
    id: str
    is_favorite: bool
    tags: List[str]


class DeleteResponse(CamelModel):
    success: bool = True
    message: str
    permanent: bool
    permanent_delete_at: Optional[datetime] = None


class CleanupResponse(CamelModel):
    success: bool = True
    message: str
    deleted_count: int


class CleanupJobResponse(CamelModel):
    job_id: str
    status: str
    message: str


class JobStatusResponse(CamelModel):
    """State of a queued maintenance job."""
    job_id: str
    status: str
    type: Optional[str] = None
    requested_by: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
