"""
NPC Lifecycle Service
Orchestrates NPC generation and the record lifecycle:
generate -> update / regenerate -> soft delete -> restore | permanent delete.

Every read is scoped to the owning user. Records in the trash stay
restorable until ``permanent_delete_at``; after that the cleanup sweep
removes them.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, Query

from app.core.config import settings
from app.core.exceptions import ExpiredError, NotFoundError, ValidationError
from app.models.campaign import Campaign
from app.models.npc import NPCRecord, FAVORITE_TAG
from app.schemas.npc import (
    GenerationRequest, GenerationSettings, GeneratedNPC, NPCGenerateRequest, NPCUpdate,
    CampaignNPCItem, RoleCount, CampaignCount, NPCSummary,
)
from app.services.groq_llm import GenerationClient
from app.services.npc_parser import ResponseNormalizer, get_normalizer
from app.services.prompt_builder import build_npc_prompt

logger = logging.getLogger(__name__)

# Merged sub-documents and their wire names
SUB_DOCUMENTS = {
    "generation_request": "generationRequest",
    "generated_npc": "generatedNPC",
    "generation_settings": "generationSettings",
}


def cleanup_expired_npcs(db: Session, now: Optional[datetime] = None) -> int:
    """
    Permanently delete trashed NPCs whose restore window has passed.

    A single bulk DELETE, so overlapping runs are safe: a second run finds
    nothing left to remove.

    Returns:
        Number of records removed
    """
    now = now or datetime.utcnow()
    deleted = (
        db.query(NPCRecord)
        .filter(
            NPCRecord.is_active.is_(False),
            NPCRecord.permanent_delete_at.isnot(None),
            NPCRecord.permanent_delete_at <= now,
        )
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info(f"NPC cleanup removed {deleted} expired record(s)")
    return deleted


class NPCService:
    """
    NPC generation and lifecycle operations for one database session.

    The generation client is injected; the response normalizer defaults to
    the strategy matching the client's ``structured_output`` capability.
    """

    def __init__(
        self,
        db: Session,
        client: Optional[GenerationClient] = None,
        normalizer: Optional[ResponseNormalizer] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.client = client
        self.normalizer = normalizer
        self.clock = clock

    # --- Generation ---

    async def generate(self, body: NPCGenerateRequest, owner_id: str) -> NPCRecord:
        """
        Generate and persist a new NPC.

        Raises:
            ValidationError: role/storyFit missing or unknown campaign
            ConfigurationError, ProviderError: generation failed (nothing is saved)
        """
        if not (body.role or "").strip() or not (body.story_fit or "").strip():
            raise ValidationError("Role and story fit are required fields")

        try:
            request = GenerationRequest(
                role=body.role,
                story_fit=body.story_fit,
                desired_traits=body.desired_traits or {},
                include_stats=body.include_stats,
                campaign_context=body.campaign_context,
            )
        except PydanticValidationError as e:
            raise ValidationError("Invalid generation request", details={"errors": e.errors()}) from e
        generation_settings = body.generation_settings or GenerationSettings()
        campaign_id = self._check_campaign(body.campaign_id, owner_id)

        generated = await self._run_generation(request, generation_settings)

        record = NPCRecord(
            id=f"npc_{uuid.uuid4().hex[:12]}",
            created_by=owner_id,
            campaign_id=campaign_id,
            generation_settings=generation_settings.to_document(),
            tags=[],
            is_active=True,
        )
        record.set_generation_request(request.to_document())
        record.set_generated_npc(generated)
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)

        logger.info(f"Generated NPC {record.id} ({record.name or 'unnamed'}) for user {owner_id}")
        return record

    async def regenerate(self, npc_id: str, owner_id: str) -> NPCRecord:
        """Re-run generation with the stored request and settings, replacing the NPC in place."""
        record = self._get_active(npc_id, owner_id)
        request = GenerationRequest.model_validate(record.generation_request)
        generation_settings = GenerationSettings.model_validate(record.generation_settings)

        generated = await self._run_generation(request, generation_settings)

        record.set_generated_npc(generated)
        self.db.commit()
        self.db.refresh(record)

        logger.info(f"Regenerated NPC {record.id} for user {owner_id}")
        return record

    async def _run_generation(self, request: GenerationRequest, generation_settings: GenerationSettings) -> Dict[str, Any]:
        """Prompt -> provider -> normalized ``generatedNPC`` document with provenance."""
        if self.client is None:
            raise RuntimeError("NPCService was created without a generation client")

        prompt = build_npc_prompt(request, generation_settings)
        temperature = generation_settings.creativity_level.temperature
        logger.info(
            f"Requesting NPC generation (role={request.role!r}, stats={request.include_stats}, "
            f"temperature={temperature}, structured={self.client.structured_output})"
        )

        result = await self.client.generate(prompt, include_stats=request.include_stats, temperature=temperature)

        normalizer = self.normalizer or get_normalizer(self.client.structured_output)
        document = normalizer.normalize(result, include_stats=request.include_stats)
        document.update(
            GeneratedNPC(
                ai_prompt_used=prompt,
                ai_response=result.text,
                generation_timestamp=self.clock(),
            ).to_document()
        )
        return document

    # --- Reads ---

    def get(self, npc_id: str, owner_id: str) -> NPCRecord:
        """Return an active NPC owned by the user."""
        return self._get_active(npc_id, owner_id)

    def list_npcs(
        self,
        owner_id: str,
        campaign_id: Optional[str] = None,
        role: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[NPCRecord], int]:
        """Active NPCs of the user, newest first. Returns (page of records, total count)."""
        query = self._owned(owner_id).filter(NPCRecord.is_active.is_(True))
        if campaign_id:
            query = query.filter(NPCRecord.campaign_id == campaign_id)
        if role:
            query = query.filter(NPCRecord.role.ilike(f"%{escape_like(role)}%", escape="\\"))
        return self._paginate(query.order_by(NPCRecord.created_at.desc()), page, limit)

    def list_deleted(self, owner_id: str, page: int = 1, limit: int = 10) -> Tuple[List[NPCRecord], int]:
        """Trashed NPCs that can still be restored, most recently deleted first."""
        query = self._owned(owner_id).filter(
            NPCRecord.is_active.is_(False),
            NPCRecord.permanent_delete_at > self.clock(),
        )
        return self._paginate(query.order_by(NPCRecord.deleted_at.desc()), page, limit)

    def list_by_campaign(self, owner_id: str, campaign_id: str) -> List[CampaignNPCItem]:
        """Compact roster of the user's active NPCs in a campaign."""
        records = (
            self._owned(owner_id)
            .filter(NPCRecord.is_active.is_(True), NPCRecord.campaign_id == campaign_id)
            .order_by(NPCRecord.created_at.desc())
            .all()
        )
        return [
            CampaignNPCItem(
                id=r.id, name=r.name, race=r.race, occupation=r.occupation,
                role=r.role, created_at=r.created_at,
            )
            for r in records
        ]

    def search(
        self,
        owner_id: str,
        q: str,
        campaign_id: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[NPCRecord], int]:
        """Case-insensitive search over name, role, race, occupation and location."""
        term = (q or "").strip()
        if not term:
            raise ValidationError("Search query is required")

        pattern = f"%{escape_like(term)}%"
        query = self._owned(owner_id).filter(
            NPCRecord.is_active.is_(True),
            or_(*(
                column.ilike(pattern, escape="\\")
                for column in (
                    NPCRecord.name, NPCRecord.role, NPCRecord.race,
                    NPCRecord.occupation, NPCRecord.location,
                )
            )),
        )
        if campaign_id:
            query = query.filter(NPCRecord.campaign_id == campaign_id)
        return self._paginate(query.order_by(NPCRecord.created_at.desc()), page, limit)

    def summary(self, owner_id: str) -> NPCSummary:
        """Counts of the user's active NPCs by role, campaign and stats."""
        active = self._owned(owner_id).filter(NPCRecord.is_active.is_(True))
        total = active.count()
        with_stats = active.filter(NPCRecord.has_stats.is_(True)).count()

        count = func.count(NPCRecord.id)
        by_role = (
            self.db.query(NPCRecord.role, count)
            .filter(NPCRecord.created_by == owner_id, NPCRecord.is_active.is_(True))
            .group_by(NPCRecord.role)
            .order_by(count.desc())
            .limit(10)
            .all()
        )
        by_campaign = (
            self.db.query(Campaign.id, Campaign.name, count)
            .join(NPCRecord, NPCRecord.campaign_id == Campaign.id)
            .filter(NPCRecord.created_by == owner_id, NPCRecord.is_active.is_(True))
            .group_by(Campaign.id, Campaign.name)
            .order_by(count.desc())
            .all()
        )

        return NPCSummary(
            total_npcs=total,
            npcs_by_role=[RoleCount(role=r, count=c) for r, c in by_role],
            npcs_by_campaign=[
                CampaignCount(campaign_id=cid, campaign_name=name, count=c) for cid, name, c in by_campaign
            ],
            npcs_with_stats=with_stats,
            npcs_without_stats=total - with_stats,
        )

    # --- Mutations ---

    def update(self, npc_id: str, owner_id: str, patch: NPCUpdate) -> NPCRecord:
        """
        Merge a partial update into an active NPC.

        Sub-documents are merged key by key and re-validated as a whole, so a
        patch can change one trait without resending the rest.
        """
        record = self._get_active(npc_id, owner_id)
        changes = patch.model_dump(exclude_unset=True)
        for key, wire_name in SUB_DOCUMENTS.items():
            if key in changes and changes[key] is None:
                raise ValidationError(f"{wire_name} cannot be null", details={"field": wire_name})
        if "campaign_id" in changes:
            campaign_id = self._check_campaign(changes["campaign_id"], owner_id)

        try:
            if "generation_request" in changes:
                merged = _merge(record.generation_request, changes["generation_request"])
                record.set_generation_request(GenerationRequest.model_validate(merged).to_document())
            if "generated_npc" in changes:
                merged = _merge(record.generated_npc, changes["generated_npc"])
                record.set_generated_npc(GeneratedNPC.model_validate(merged).to_document())
            if "generation_settings" in changes:
                merged = _merge(record.generation_settings, changes["generation_settings"])
                record.generation_settings = GenerationSettings.model_validate(merged).to_document()
        except PydanticValidationError as e:
            self.db.rollback()
            raise ValidationError("Invalid NPC update", details={"errors": e.errors()}) from e

        if "campaign_id" in changes:
            record.campaign_id = campaign_id
        if "tags" in changes:
            record.tags = list(changes["tags"] or [])
        if "notes" in changes:
            record.notes = changes["notes"]

        record.updated_at = self.clock()
        self.db.commit()
        self.db.refresh(record)
        logger.info(f"Updated NPC {record.id} fields={sorted(changes)}")
        return record

    def toggle_favorite(self, npc_id: str, owner_id: str) -> NPCRecord:
        """Add or remove the favorite tag."""
        record = self._get_active(npc_id, owner_id)
        tags = list(record.tags or [])
        if FAVORITE_TAG in tags:
            tags = [t for t in tags if t != FAVORITE_TAG]
        else:
            tags.append(FAVORITE_TAG)
        record.tags = tags
        self.db.commit()
        self.db.refresh(record)
        return record

    def soft_delete(self, npc_id: str, owner_id: str) -> NPCRecord:
        """Move an NPC to the trash for NPC_RETENTION_DAYS."""
        record = self._get_active(npc_id, owner_id)
        now = self.clock()
        record.is_active = False
        record.deleted_at = now
        record.permanent_delete_at = now + timedelta(days=settings.NPC_RETENTION_DAYS)
        self.db.commit()
        self.db.refresh(record)
        logger.info(f"Soft-deleted NPC {record.id}; permanent delete at {record.permanent_delete_at.isoformat()}")
        return record

    def hard_delete(self, npc_id: str, owner_id: str) -> None:
        """Permanently remove an active NPC right away."""
        record = self._get_active(npc_id, owner_id)
        self.db.delete(record)
        self.db.commit()
        logger.info(f"Permanently deleted NPC {npc_id}")

    def restore(self, npc_id: str, owner_id: str) -> NPCRecord:
        """
        Take an NPC out of the trash.

        Raises:
            NotFoundError: no trashed NPC with this id for the user
            ExpiredError: the restore window has closed
        """
        record = (
            self._owned(owner_id)
            .filter(NPCRecord.id == npc_id, NPCRecord.is_active.is_(False))
            .first()
        )
        if record is None:
            raise NotFoundError("Deleted NPC not found", details={"id": npc_id})
        if record.permanent_delete_at is None or record.permanent_delete_at <= self.clock():
            raise ExpiredError(details={"id": npc_id})

        record.is_active = True
        record.deleted_at = None
        record.permanent_delete_at = None
        self.db.commit()
        self.db.refresh(record)
        logger.info(f"Restored NPC {record.id}")
        return record

    def cleanup_expired(self) -> int:
        """Remove every trashed NPC past its restore window (all users)."""
        return cleanup_expired_npcs(self.db, now=self.clock())

    # --- Helpers ---

    def _owned(self, owner_id: str) -> Query:
        return self.db.query(NPCRecord).filter(NPCRecord.created_by == owner_id)

    def _get_active(self, npc_id: str, owner_id: str) -> NPCRecord:
        record = (
            self._owned(owner_id)
            .filter(NPCRecord.id == npc_id, NPCRecord.is_active.is_(True))
            .first()
        )
        if record is None:
            raise NotFoundError(details={"id": npc_id})
        return record

    def _check_campaign(self, campaign_id: Optional[str], owner_id: str) -> Optional[str]:
        if not campaign_id:
            return None
        owned = (
            self.db.query(Campaign.id)
            .filter(Campaign.id == campaign_id, Campaign.dungeon_master_id == owner_id)
            .first()
        )
        if owned is None:
            raise ValidationError("Campaign not found", details={"campaign_id": campaign_id})
        return campaign_id

    @staticmethod
    def _paginate(query: Query, page: int, limit: int) -> Tuple[List[NPCRecord], int]:
        total = query.order_by(None).count()
        records = query.offset((page - 1) * limit).limit(limit).all()
        return records, total


def _merge(stored: Optional[Dict[str, Any]], patch: Dict[str, Any]) -> Dict[str, Any]:
    """Recursive dict merge; patch values win, nested dicts are merged."""
    merged = dict(stored or {})
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally (escape char ``\\``)."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
