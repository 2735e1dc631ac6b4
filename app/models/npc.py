"""
NPC Record Model
Database model for a generated NPC: the generation request, the provider's
result and the soft-delete lifecycle fields.

The request, result and settings sub-documents are stored as JSON in their
camelCase wire form. The handful of fields used for filtering and search are
copied into plain columns whenever the sub-documents change.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship

from app.core.database import Base


FAVORITE_TAG = "favorite"


class NPCRecord(Base):
    """Generated NPC owned by a single user."""

    __tablename__ = "npc_records"

    id = Column(String, primary_key=True)  # npc_xxxx format
    created_by = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    campaign_id = Column(String, ForeignKey("campaigns.id"), nullable=True, index=True)

    # Embedded documents
    generation_request = Column(JSON, nullable=False)
    generated_npc = Column(JSON, default=dict)
    generation_settings = Column(JSON, nullable=False)

    # Search / filter columns (mirrors of the JSON documents)
    role = Column(String, nullable=False, index=True)
    name = Column(String, nullable=True, index=True)
    race = Column(String, nullable=True)
    occupation = Column(String, nullable=True)
    location = Column(String, nullable=True)
    has_stats = Column(Boolean, default=False)

    # Usage & management
    tags = Column(JSON, default=list)
    notes = Column(Text, nullable=True)

    # Soft delete: is_active=False means the record is in the trash
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    deleted_at = Column(DateTime, nullable=True)
    permanent_delete_at = Column(DateTime, nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    campaign = relationship("Campaign", back_populates="npcs")

    __table_args__ = (
        Index("ix_npc_records_owner_active", "created_by", "is_active"),
    )

    def __repr__(self):
        return f"<NPCRecord {self.id} {self.name or '?'} ({'active' if self.is_active else 'deleted'})>"

    def set_generation_request(self, request: Dict[str, Any]):
        """Store the request document and refresh the role column."""
        self.generation_request = request
        self.role = request.get("role")

    def set_generated_npc(self, npc: Dict[str, Any]):
        """Store the generated document and refresh the search columns."""
        self.generated_npc = npc
        self.name = npc.get("name")
        self.race = npc.get("race")
        self.occupation = npc.get("occupation")
        self.location = npc.get("location")
        ability_scores = (npc.get("stats") or {}).get("abilityScores") or {}
        self.has_stats = any(v is not None for v in ability_scores.values())

    @property
    def is_favorite(self) -> bool:
        return FAVORITE_TAG in (self.tags or [])

    @property
    def campaign_name(self) -> Optional[str]:
        return self.campaign.name if self.campaign else None

    def days_until_permanent_delete(self, now: datetime) -> Optional[int]:
        """Whole days left in the restore window (rounded up)."""
        if self.permanent_delete_at is None:
            return None
        remaining = (self.permanent_delete_at - now).total_seconds()
        return max(0, -(-int(remaining) // 86400))
