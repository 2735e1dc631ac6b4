"""
NPC Response Normalizers
Turn provider output into the stored ``generatedNPC`` document.

Two strategies share one interface and are picked by the client's
``structured_output`` capability:

- StructuredResponseNormalizer: output already matches the JSON schema;
  fields are copied across with stray markdown emphasis removed.
- FreeTextResponseNormalizer: labeled ``Label: value`` lines are pulled out
  with regular expressions.

Both work field by field. A field that is missing or fails to parse is left
unset and never aborts the rest of the document.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import ProviderError
from app.schemas.npc import ABILITIES, AbilityScores, NPCDraft, NPCStats
from app.services.groq_llm import GenerationResult

logger = logging.getLogger(__name__)

_EMPHASIS = re.compile(r"\*\*|__")


def clean_text(value: Any) -> Optional[str]:
    """Strip bold markers and whitespace; empty becomes None."""
    if value is None:
        return None
    value = _EMPHASIS.sub("", str(value)).strip()
    return value or None


def clean_list(values: Any) -> List[str]:
    """Clean each entry and drop the empty ones."""
    if isinstance(values, str):
        values = values.split(",")
    elif not isinstance(values, (list, tuple)):
        values = [values] if values is not None else []
    return [v for v in (clean_text(item) for item in values or []) if v]


class ResponseNormalizer(ABC):
    """Strategy interface for provider-output normalization."""

    def normalize(self, result: GenerationResult, include_stats: bool) -> Dict[str, Any]:
        """
        Build the ``generatedNPC`` document (without provenance fields).

        Statistics are only kept when ``include_stats`` is true.

        Raises:
            ProviderError: the output cannot be read as text/JSON at all
        """
        document = self._extract(result, include_stats)
        if not include_stats:
            document.pop("stats", None)
        return document

    @abstractmethod
    def _extract(self, result: GenerationResult, include_stats: bool) -> Dict[str, Any]:
        ...

    @staticmethod
    def _validated(document: Dict[str, Any], model) -> Dict[str, Any]:
        """Validate each field on its own so one bad value only loses itself."""
        kept = {}
        for key, value in document.items():
            if value in (None, [], {}):
                continue
            try:
                validated = model.model_validate({key: value})
            except PydanticValidationError as e:
                logger.warning(f"Dropping unparseable NPC field {key!r}: {e.errors()[0]['msg']}")
                continue
            dumped = validated.model_dump(by_alias=True, mode="json", exclude_none=True)
            if key in dumped:
                kept[key] = dumped[key]
        return kept


class StructuredResponseNormalizer(ResponseNormalizer):
    """Normalizer for schema-constrained JSON output."""

    TEXT_FIELDS = [
        "name", "race", "class", "background", "occupation", "location",
        "roleInStory", "ideals", "bonds", "flaws", "appearance", "mannerisms",
    ]
    LIST_FIELDS = ["alternativeNames", "personalityTraits"]

    def _extract(self, result: GenerationResult, include_stats: bool) -> Dict[str, Any]:
        payload = result.data
        if payload is None:
            try:
                payload = json.loads(result.text)
            except (TypeError, json.JSONDecodeError) as e:
                raise ProviderError("Provider response is not valid JSON") from e
        if not isinstance(payload, dict):
            raise ProviderError("Provider response is not a JSON object")

        document: Dict[str, Any] = {}
        for key in self.TEXT_FIELDS:
            if key in payload:
                document[key] = clean_text(payload[key])
        for key in self.LIST_FIELDS:
            if key in payload:
                document[key] = clean_list(payload[key])
        document = self._validated(document, NPCDraft)

        if include_stats and isinstance(payload.get("stats"), dict):
            stats = self._stats(payload["stats"])
            if stats:
                document["stats"] = stats
        return document

    def _stats(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        stats: Dict[str, Any] = {}
        scores = raw.get("abilityScores")
        if isinstance(scores, dict):
            stats["abilityScores"] = self._validated(
                {k: scores.get(k) for k in ABILITIES}, AbilityScores
            )
        for key in ("armorClass", "hitPoints", "proficiencyBonus"):
            if key in raw:
                stats[key] = raw[key]
        for key in ("savingThrows", "skills"):
            if isinstance(raw.get(key), list):
                stats[key] = [self._modifier_entry(entry) for entry in raw[key]]
        for key in ("speed", "challengeRating"):
            if key in raw:
                stats[key] = clean_text(raw[key])
        for key in ("languages", "equipment"):
            if key in raw:
                stats[key] = clean_list(raw[key])
        return self._validated(stats, NPCStats)

    @staticmethod
    def _modifier_entry(entry: Any) -> Any:
        # Some models answer with "bonus" instead of "modifier"
        if isinstance(entry, dict) and "modifier" not in entry and "bonus" in entry:
            entry = {k: v for k, v in entry.items() if k != "bonus"} | {"modifier": entry["bonus"]}
        return entry


# (field, pattern, converter) for the free-text sheet; patterns match within one line
def _line(labels: str) -> re.Pattern:
    return re.compile(rf"^[ \t>*#\-\d.]*(?:{labels})[ \t]*:[ \t]*(.+?)[ \t]*$", re.IGNORECASE | re.MULTILINE)


def _number(labels: str) -> re.Pattern:
    return re.compile(rf"\b(?:{labels})[ \t]*:[ \t]*\+?(\d+)", re.IGNORECASE)


FIELD_PATTERNS: List[tuple] = [
    ("name", _line(r"Primary Name|Name"), clean_text),
    ("alternativeNames", _line(r"Alternative Names?|Other Names?"), clean_list),
    ("race", _line(r"Race"), clean_text),
    ("class", _line(r"Class"), clean_text),
    ("background", _line(r"Background"), clean_text),
    ("occupation", _line(r"Occupation"), clean_text),
    ("location", _line(r"Location|Where to find"), clean_text),
    ("roleInStory", _line(r"Role in (?:the )?Story|Story Integration"), clean_text),
    ("personalityTraits", _line(r"Personality Traits?|Personality"), clean_list),
    ("ideals", _line(r"Ideals?"), clean_text),
    ("bonds", _line(r"Bonds?"), clean_text),
    ("flaws", _line(r"Flaws?"), clean_text),
    ("appearance", _line(r"Appearance|Physical Description"), clean_text),
    ("mannerisms", _line(r"Mannerisms?"), clean_text),
]

ABILITY_ABBREVIATIONS = {
    "strength": "STR", "dexterity": "DEX", "constitution": "CON",
    "intelligence": "INT", "wisdom": "WIS", "charisma": "CHA",
}

STAT_PATTERNS: List[tuple] = [
    ("armorClass", _number(r"Armor Class|AC"), int),
    ("hitPoints", _number(r"Hit Points|HP"), int),
    ("proficiencyBonus", _number(r"Proficiency Bonus"), int),
    ("speed", _line(r"Speed"), clean_text),
    ("challengeRating", _line(r"Challenge Rating|CR"), clean_text),
    ("languages", _line(r"Languages?"), clean_list),
    ("equipment", _line(r"Equipment"), clean_list),
]


class FreeTextResponseNormalizer(ResponseNormalizer):
    """Normalizer for labeled free-text character sheets."""

    def _extract(self, result: GenerationResult, include_stats: bool) -> Dict[str, Any]:
        if not isinstance(result.text, str):
            raise ProviderError("Provider response is not text")
        text = _EMPHASIS.sub("", result.text)

        document = self._validated(self._match_all(text, FIELD_PATTERNS), NPCDraft)
        if include_stats:
            stats = self._stats(text)
            if stats:
                document["stats"] = stats
        return document

    @staticmethod
    def _match_all(text: str, patterns: List[tuple]) -> Dict[str, Any]:
        found: Dict[str, Any] = {}
        for key, pattern, convert in patterns:
            try:
                match = pattern.search(text)
                if match:
                    found[key] = convert(match.group(1))
            except Exception as e:  # one bad field must not lose the others
                logger.warning(f"Failed to parse NPC field {key!r}: {e}")
        return found

    def _stats(self, text: str) -> Dict[str, Any]:
        scores = self._match_all(
            text,
            [(ability, _number(rf"{ability}|{abbr}"), int) for ability, abbr in ABILITY_ABBREVIATIONS.items()],
        )
        stats = self._match_all(text, STAT_PATTERNS)
        stats["abilityScores"] = self._validated(scores, AbilityScores)
        return self._validated(stats, NPCStats)


def get_normalizer(structured: bool) -> ResponseNormalizer:
    """Pick the normalizer matching a client's output capability."""
    return StructuredResponseNormalizer() if structured else FreeTextResponseNormalizer()

