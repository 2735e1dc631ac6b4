"""
User Schemas
Pydantic models for the admin user-management and system statistics routes.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict
from pydantic import ConfigDict, Field

from app.schemas.npc import CamelModel, Pagination


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class UserResponse(CamelModel):
    """User account as returned to administrators."""
    id: str
    username: str
    email: str
    role: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UserListResponse(CamelModel):
    users: List[UserResponse]
    pagination: Pagination
    # Count of all users per role, independent of the filters
    stats: Dict[str, int]


class UserDetailResponse(CamelModel):
    user: UserResponse
    npc_count: int


class AdminUserCreate(CamelModel):
    """New administrator account."""
    username: str = Field(..., pattern=r"^[a-zA-Z0-9_-]{3,30}$")
    email: str = Field(..., pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "username": "dm_admin",
                "email": "admin@example.com",
            }
        }
    )


class RoleUpdate(CamelModel):
    role: Role


class UserActionResponse(CamelModel):
    success: bool = True
    message: str
    user: Optional[UserResponse] = None


class UserCounts(CamelModel):
    total: int
    active: int
    inactive: int
    recent: int
    by_role: Dict[str, int]


class NPCCounts(CamelModel):
    total: int
    deleted: int
    recent: int


class SystemStats(CamelModel):
    """Instance-wide counts; ``recent`` covers the last 30 days."""
    users: UserCounts
    npcs: NPCCounts
