"""
Groq LLM Service
Generation client adapter: sends NPC prompts to Groq and returns either the
free-text character sheet or a schema-validated JSON object.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type

from groq import AsyncGroq, APIError
from pydantic import BaseModel, ValidationError as PydanticValidationError

from app.core.config import settings
from app.core.exceptions import ConfigurationError, ProviderError
from app.schemas.npc import NPCDraft, NPCDraftWithStats
from app.services.prompt_builder import SYSTEM_PROMPT

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Raw provider output plus the parsed object in structured mode."""
    text: str
    data: Optional[Dict[str, Any]] = None
    model: str = ""


class GenerationClient(ABC):
    """Interface the NPC service depends on; one implementation per provider."""

    #: True when ``generate`` returns schema-validated ``data``
    structured_output: bool = False

    @abstractmethod
    async def generate(self, prompt: str, include_stats: bool, temperature: float) -> GenerationResult:
        """Run one generation."""

    def max_tokens(self, include_stats: bool) -> int:
        return settings.NPC_MAX_TOKENS_WITH_STATS if include_stats else settings.NPC_MAX_TOKENS


class GroqLLMService(GenerationClient):
    """Groq chat-completions adapter for NPC generation."""

    STRUCTURED_INSTRUCTIONS = """

Respond with a single JSON object and nothing else. It must validate against this JSON schema:
{schema}
Use plain text values without markdown. Leave out fields you have nothing for."""

    FREE_TEXT_INSTRUCTIONS = """

Write every field on its own line as "Label: value" using these labels: Name, Alternative Names, Race, Class, Background, Occupation, Location, Role in Story, Personality Traits, Ideals, Bonds, Flaws, Appearance, Mannerisms. Separate list values with commas."""

    FREE_TEXT_STATS_INSTRUCTIONS = """ For statistics add the lines Strength, Dexterity, Constitution, Intelligence, Wisdom, Charisma, Armor Class, Hit Points, Speed, Proficiency Bonus, Challenge Rating, Languages, Equipment."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        structured_output: Optional[bool] = None,
        client: Optional[AsyncGroq] = None,
    ):
        self.api_key = settings.GROQ_API_KEY if api_key is None else api_key
        self.model = model or settings.GROQ_MODEL
        self.structured_output = (
            settings.NPC_STRUCTURED_OUTPUT if structured_output is None else structured_output
        )
        self._client = client

    @property
    def client(self) -> AsyncGroq:
        """Groq client, created on first use."""
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError("GROQ_API_KEY environment variable is not set")
            self._client = AsyncGroq(api_key=self.api_key)
        return self._client

    @staticmethod
    def draft_schema(include_stats: bool) -> Type[BaseModel]:
        return NPCDraftWithStats if include_stats else NPCDraft

    def _system_prompt(self, include_stats: bool) -> str:
        if self.structured_output:
            schema = self.draft_schema(include_stats).model_json_schema(by_alias=True)
            return SYSTEM_PROMPT + self.STRUCTURED_INSTRUCTIONS.format(schema=json.dumps(schema))
        instructions = self.FREE_TEXT_INSTRUCTIONS
        if include_stats:
            instructions += self.FREE_TEXT_STATS_INSTRUCTIONS
        return SYSTEM_PROMPT + instructions

    async def generate(self, prompt: str, include_stats: bool, temperature: float) -> GenerationResult:
        """
        Generate an NPC.

        Args:
            prompt: User prompt from the prompt builder
            include_stats: Whether a statistics block was requested
            temperature: Sampling temperature for the creativity level

        Returns:
            GenerationResult; ``data`` is set in structured mode

        Raises:
            ConfigurationError: No API key configured
            ProviderError: API failure, empty output, or output that is not
                valid JSON / does not match the schema (structured mode)
        """
        client = self.client
        request: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self._system_prompt(include_stats)},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "max_tokens": self.max_tokens(include_stats),
        }
        if self.structured_output:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await client.chat.completions.create(**request)
        except APIError as e:
            logger.error(f"Groq request failed: {type(e).__name__}: {e}")
            raise ProviderError("Generation provider request failed", details={"error": str(e)}) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise ProviderError("Generation provider returned an empty response")
        content = content.strip()

        if not self.structured_output:
            return GenerationResult(text=content, model=self.model)

        return GenerationResult(text=content, data=self.parse_structured(content, include_stats), model=self.model)

    def parse_structured(self, content: str, include_stats: bool) -> Dict[str, Any]:
        """Parse and validate a structured response against the draft schema."""
        try:
            payload = json.loads(content)
        except json.JSONDecodeError as e:
            raise ProviderError("Provider response is not valid JSON", details={"error": str(e)}) from e

        if not isinstance(payload, dict):
            raise ProviderError("Provider response is not a JSON object")

        schema = self.draft_schema(include_stats)
        known = {field.alias or name for name, field in schema.model_fields.items()}

        # Providers sometimes wrap the object, e.g. {"npc": {...}}
        if len(payload) == 1:
            (key, only), = payload.items()
            if key not in known and isinstance(only, dict):
                payload = only

        dropped = sorted(set(payload) - known)
        if dropped:
            logger.debug(f"Ignoring unrequested NPC fields: {dropped}")
            payload = {k: v for k, v in payload.items() if k in known}

        try:
            draft = schema.model_validate(payload)
        except PydanticValidationError as e:
            logger.warning(f"Structured NPC failed schema validation: {e.error_count()} error(s)")
            raise ProviderError("Provider response does not match the NPC schema", details={"errors": e.errors()}) from e

        return draft.model_dump(by_alias=True, exclude_none=True)
