"""
Campaign Model
A Dungeon Master's campaign; NPCs may be associated with one.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from app.core.database import Base


class Campaign(Base):
    """Campaign record."""

    __tablename__ = "campaigns"

    id = Column(String, primary_key=True)  # cmp_xxxx format
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    dungeon_master_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    dungeon_master = relationship("User", back_populates="campaigns")
    npcs = relationship("NPCRecord", back_populates="campaign")
