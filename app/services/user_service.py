"""
User Administration Service
Account management for administrators: listing, role changes, activation,
deletion and instance-wide statistics.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.exceptions import UserNotFoundError, ValidationError
from app.models.campaign import Campaign
from app.models.npc import NPCRecord
from app.models.user import User, UserRole
from app.schemas.user import NPCCounts, SystemStats, UserCounts
from app.services.npc_service import escape_like

logger = logging.getLogger(__name__)

RECENT_DAYS = 30


class UserAdminService:
    """User management operations for one database session."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.clock = clock

    def list_users(
        self,
        role: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[User], int]:
        """Users newest first, optionally filtered by role and username/email substring."""
        query = self.db.query(User)
        if role and role != "all":
            query = query.filter(User.role == role)
        term = (search or "").strip()
        if term:
            pattern = f"%{escape_like(term)}%"
            query = query.filter(or_(
                User.username.ilike(pattern, escape="\\"),
                User.email.ilike(pattern, escape="\\"),
            ))
        total = query.count()
        users = (
            query.order_by(User.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return users, total

    def role_counts(self) -> Dict[str, int]:
        rows = self.db.query(User.role, func.count(User.id)).group_by(User.role).all()
        return {role: count for role, count in rows}

    def get_user(self, user_id: str) -> Tuple[User, int]:
        """A user and their number of active NPCs."""
        user = self._get(user_id)
        npc_count = (
            self.db.query(NPCRecord)
            .filter(NPCRecord.created_by == user_id, NPCRecord.is_active.is_(True))
            .count()
        )
        return user, npc_count

    def create_admin(self, username: str, email: str) -> User:
        """
        Create an administrator account.

        Raises:
            ValidationError: username or email already taken
        """
        email = email.lower()
        existing = (
            self.db.query(User.id)
            .filter(or_(User.username == username, User.email == email))
            .first()
        )
        if existing is not None:
            raise ValidationError("User with this email or username already exists")

        user = User(
            id=f"usr_{uuid.uuid4().hex[:12]}",
            username=username,
            email=email,
            role=UserRole.ADMIN,
            is_active=True,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Created admin user {user.id} ({user.username})")
        return user

    def update_role(self, user_id: str, role: str, acting_user: User) -> User:
        """Change a user's role; an admin cannot demote themselves."""
        if acting_user.id == user_id and acting_user.is_admin and role != UserRole.ADMIN:
            raise ValidationError("Cannot demote yourself from admin role")
        user = self._get(user_id)
        user.role = role
        user.updated_at = self.clock()
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User {user.id} role set to {role} by {acting_user.id}")
        return user

    def toggle_status(self, user_id: str, acting_user: User) -> User:
        """Deactivate an active user or reactivate an inactive one."""
        if acting_user.id == user_id:
            raise ValidationError("Cannot deactivate your own account")
        user = self._get(user_id)
        user.is_active = not user.is_active
        user.updated_at = self.clock()
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User {user.id} {'activated' if user.is_active else 'deactivated'} by {acting_user.id}")
        return user

    def delete_user(self, user_id: str, acting_user: User, confirm: bool = False) -> None:
        """
        Delete a user together with their campaigns and NPCs.

        NPCs of other users that were filed under the deleted campaigns are
        kept and detached from them.

        Raises:
            ValidationError: not confirmed, self-deletion, or last admin
            UserNotFoundError: unknown user id
        """
        if not confirm:
            raise ValidationError("Deletion confirmation required")
        if acting_user.id == user_id:
            raise ValidationError("Cannot delete your own account")
        user = self._get(user_id)
        if user.is_admin:
            admins = self.db.query(User).filter(User.role == UserRole.ADMIN).count()
            if admins <= 1:
                raise ValidationError("Cannot delete the last admin user")

        campaign_ids = [cid for (cid,) in self.db.query(Campaign.id).filter(Campaign.dungeon_master_id == user_id)]
        removed = (
            self.db.query(NPCRecord)
            .filter(NPCRecord.created_by == user_id)
            .delete(synchronize_session=False)
        )
        if campaign_ids:
            (
                self.db.query(NPCRecord)
                .filter(NPCRecord.campaign_id.in_(campaign_ids))
                .update({NPCRecord.campaign_id: None}, synchronize_session=False)
            )
        self.db.delete(user)
        self.db.commit()
        logger.info(f"Deleted user {user_id} with {len(campaign_ids)} campaign(s) and {removed} NPC(s)")

    def system_stats(self) -> SystemStats:
        since = self.clock() - timedelta(days=RECENT_DAYS)

        total_users = self.db.query(User).count()
        active_users = self.db.query(User).filter(User.is_active.is_(True)).count()
        recent_users = self.db.query(User).filter(User.created_at >= since).count()

        active_npcs = self.db.query(NPCRecord).filter(NPCRecord.is_active.is_(True))
        return SystemStats(
            users=UserCounts(
                total=total_users,
                active=active_users,
                inactive=total_users - active_users,
                recent=recent_users,
                by_role=self.role_counts(),
            ),
            npcs=NPCCounts(
                total=active_npcs.count(),
                deleted=self.db.query(NPCRecord).filter(NPCRecord.is_active.is_(False)).count(),
                recent=active_npcs.filter(NPCRecord.created_at >= since).count(),
            ),
        )

    def _get(self, user_id: str) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise UserNotFoundError(details={"id": user_id})
        return user
