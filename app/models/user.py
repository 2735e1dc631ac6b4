"""
User Model
Account that owns campaigns and generated NPCs.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean
from sqlalchemy.orm import relationship

from app.core.database import Base


class UserRole:
    """User role constants."""
    USER = "user"
    ADMIN = "admin"


class User(Base):
    """Application user."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)  # usr_xxxx format
    username = Column(String(30), nullable=False, unique=True)
    email = Column(String, nullable=False, unique=True)
    role = Column(String, default=UserRole.USER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    campaigns = relationship("Campaign", back_populates="dungeon_master", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User {self.id} {self.username} ({self.role})>"

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
