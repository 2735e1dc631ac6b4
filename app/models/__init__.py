# Database models package
from app.models.user import User, UserRole
from app.models.campaign import Campaign
from app.models.npc import NPCRecord, FAVORITE_TAG

__all__ = [
    "User",
    "UserRole",
    "Campaign",
    "NPCRecord",
    "FAVORITE_TAG",
]
