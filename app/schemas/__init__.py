# Pydantic schemas package
from app.schemas.npc import (
    CreativityLevel, SettingStyle, Tone, GenerationSettings,
    DesiredTraits, GenerationRequest, NPCGenerateRequest,
    AbilityScores, SavingThrow, Skill, NPCStats,
    NPCDraft, NPCDraftWithStats, GeneratedNPC, NPCUpdate,
    NPCResponse, DeletedNPCResponse, Pagination, NPCListResponse, DeletedNPCListResponse,
    NPCSearchResponse, CampaignNPCItem, NPCSummary, FavoriteResponse,
    DeleteResponse, CleanupResponse, CleanupJobResponse, JobStatusResponse
)
from app.schemas.user import (
    Role, UserResponse, UserListResponse, UserDetailResponse, AdminUserCreate,
    RoleUpdate, UserActionResponse, UserCounts, NPCCounts, SystemStats
)

__all__ = [
    "CreativityLevel", "SettingStyle", "Tone", "GenerationSettings",
    "DesiredTraits", "GenerationRequest", "NPCGenerateRequest",
    "AbilityScores", "SavingThrow", "Skill", "NPCStats",
    "NPCDraft", "NPCDraftWithStats", "GeneratedNPC", "NPCUpdate",
    "NPCResponse", "DeletedNPCResponse", "Pagination", "NPCListResponse", "DeletedNPCListResponse",
    "NPCSearchResponse", "CampaignNPCItem", "NPCSummary", "FavoriteResponse",
    "DeleteResponse", "CleanupResponse", "CleanupJobResponse", "JobStatusResponse",
    "Role", "UserResponse", "UserListResponse", "UserDetailResponse", "AdminUserCreate",
    "RoleUpdate", "UserActionResponse", "UserCounts", "NPCCounts", "SystemStats",
]
