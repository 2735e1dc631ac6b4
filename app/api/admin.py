"""
Admin API Routes
User management, system statistics and NPC maintenance (inline cleanup,
queued cleanup and job status) for administrators.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from redis.exceptions import RedisError

from app.api.deps import get_npc_service, get_queue, get_user_admin_service, require_admin
from app.core.config import settings
from app.models.user import User
from app.schemas.npc import CleanupResponse, CleanupJobResponse, JobStatusResponse, Pagination
from app.schemas.user import (
    AdminUserCreate, RoleUpdate, SystemStats, UserActionResponse, UserDetailResponse,
    UserListResponse, UserResponse,
)
from app.services.npc_service import NPCService
from app.services.user_service import UserAdminService
from app.workers.queue import QueueManager

logger = logging.getLogger(__name__)

router = APIRouter()


# --- System ---

@router.get("/stats", response_model=SystemStats)
async def get_system_stats(
    admin: User = Depends(require_admin),
    service: UserAdminService = Depends(get_user_admin_service),
):
    """User and NPC counts across the whole instance."""
    return service.system_stats()


# --- Users ---

@router.get("/users", response_model=UserListResponse)
async def list_users(
    role: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.NPC_DEFAULT_PAGE_SIZE, ge=1, le=settings.NPC_MAX_PAGE_SIZE),
    admin: User = Depends(require_admin),
    service: UserAdminService = Depends(get_user_admin_service),
):
    """List users, newest first, with per-role totals."""
    users, total = service.list_users(role=role, search=search, page=page, limit=limit)
    return UserListResponse(
        users=[UserResponse.from_user(u) for u in users],
        pagination=Pagination.build(page, limit, total, len(users)),
        stats=service.role_counts(),
    )


@router.post("/users/admin", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_admin_user(
    body: AdminUserCreate,
    admin: User = Depends(require_admin),
    service: UserAdminService = Depends(get_user_admin_service),
):
    """Create another administrator account."""
    user = service.create_admin(body.username, body.email)
    logger.info(f"Admin {admin.id} created admin user {user.id}")
    return UserResponse.from_user(user)


@router.get("/users/{user_id}", response_model=UserDetailResponse)
async def get_user(
    user_id: str,
    admin: User = Depends(require_admin),
    service: UserAdminService = Depends(get_user_admin_service),
):
    user, npc_count = service.get_user(user_id)
    return UserDetailResponse(user=UserResponse.from_user(user), npc_count=npc_count)


@router.put("/users/{user_id}/role", response_model=UserActionResponse)
async def update_user_role(
    user_id: str,
    body: RoleUpdate,
    admin: User = Depends(require_admin),
    service: UserAdminService = Depends(get_user_admin_service),
):
    user = service.update_role(user_id, body.role.value, acting_user=admin)
    return UserActionResponse(message=f"User role updated to {user.role}", user=UserResponse.from_user(user))


@router.put("/users/{user_id}/toggle-status", response_model=UserActionResponse)
async def toggle_user_status(
    user_id: str,
    admin: User = Depends(require_admin),
    service: UserAdminService = Depends(get_user_admin_service),
):
    """Deactivate or reactivate a user. Inactive users can no longer authenticate."""
    user = service.toggle_status(user_id, acting_user=admin)
    state = "activated" if user.is_active else "deactivated"
    return UserActionResponse(message=f"User {state} successfully", user=UserResponse.from_user(user))


@router.delete("/users/{user_id}", response_model=UserActionResponse)
async def delete_user(
    user_id: str,
    confirm: bool = False,
    admin: User = Depends(require_admin),
    service: UserAdminService = Depends(get_user_admin_service),
):
    """Delete a user with their campaigns and NPCs. Requires ``?confirm=true``."""
    service.delete_user(user_id, acting_user=admin, confirm=confirm)
    return UserActionResponse(message="User deleted successfully")


# --- NPC maintenance ---


@router.post("/npcs/cleanup", response_model=CleanupResponse)
async def cleanup_expired_npcs(
    admin: User = Depends(require_admin),
    service: NPCService = Depends(get_npc_service),
):
    """Run the expired-NPC cleanup now and report how many were removed."""
    deleted = service.cleanup_expired()
    logger.info(f"Admin {admin.id} ran NPC cleanup: {deleted} removed")
    return CleanupResponse(message=f"Removed {deleted} expired NPC(s)", deleted_count=deleted)


@router.post("/npcs/auto-cleanup", response_model=CleanupJobResponse, status_code=status.HTTP_202_ACCEPTED)
async def enqueue_cleanup(
    admin: User = Depends(require_admin),
    queue: QueueManager = Depends(get_queue),
):
    """Queue the cleanup on the RQ maintenance queue."""
    try:
        job = queue.enqueue_cleanup(requested_by=admin.id)
    except RedisError as e:
        logger.error(f"Could not enqueue NPC cleanup: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Background queue unavailable"
        )
    return CleanupJobResponse(job_id=job.id, status="queued", message="NPC cleanup queued")


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(
    job_id: str,
    admin: User = Depends(require_admin),
    queue: QueueManager = Depends(get_queue),
):
    """Status of a queued maintenance job."""
    try:
        report = queue.job_status(job_id)
    except RedisError as e:
        logger.error(f"Could not read job {job_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Background queue unavailable"
        )
    if report is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return report
