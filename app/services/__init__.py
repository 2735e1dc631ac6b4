# Services package - business logic and external integrations
from app.services.groq_llm import GenerationClient, GenerationResult, GroqLLMService
from app.services.prompt_builder import build_npc_prompt
from app.services.npc_parser import (
    ResponseNormalizer, StructuredResponseNormalizer, FreeTextResponseNormalizer, get_normalizer
)
from app.services.npc_service import NPCService, cleanup_expired_npcs
from app.services.user_service import UserAdminService

__all__ = [
    "GenerationClient",
    "GenerationResult",
    "GroqLLMService",
    "build_npc_prompt",
    "ResponseNormalizer",
    "StructuredResponseNormalizer",
    "FreeTextResponseNormalizer",
    "get_normalizer",
    "NPCService",
    "cleanup_expired_npcs",
    "UserAdminService",
]
