"""
API Dependencies
Common dependencies for FastAPI routes (database sessions, caller identity, services).
"""

import logging
from functools import lru_cache
from typing import Generator, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.database import SessionLocal
from app.core.security import decode_access_token
from app.models.user import User
from app.services.groq_llm import GenerationClient, GroqLLMService
from app.services.npc_service import NPCService
from app.services.user_service import UserAdminService
from app.workers.queue import QueueManager, get_queue_manager

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token to an active user."""
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Access denied. No token provided.")

    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token expired. Please login again.")
    except jwt.InvalidTokenError as e:
        logger.info(f"Token verification failed: {e}")
        raise _unauthorized("Invalid token. Please login again.")

    user = db.query(User).filter(User.id == payload.user_id).first()
    if user is None or not user.is_active:
        raise _unauthorized("User no longer exists. Please login again.")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    """Only let administrators through."""
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions."
        )
    return user


@lru_cache()
def get_generation_client() -> GenerationClient:
    """Process-wide generation client built from settings."""
    return GroqLLMService()


def get_npc_service(
    db: Session = Depends(get_db),
    client: GenerationClient = Depends(get_generation_client),
) -> NPCService:
    """NPC service bound to the request's session."""
    return NPCService(db=db, client=client)


def get_user_admin_service(db: Session = Depends(get_db)) -> UserAdminService:
    """User administration bound to the request's session."""
    return UserAdminService(db=db)


def get_queue() -> QueueManager:
    """RQ queue manager."""
    return get_queue_manager()
