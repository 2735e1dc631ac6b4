"""
NPC Generator API Routes
Generation, listing, editing and the trash (soft delete / restore) for NPCs.
All routes act on the authenticated caller's own NPCs.
"""

import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_current_user, get_npc_service, require_admin
from app.core.config import settings
from app.models.user import User
from app.schemas.npc import (
    NPCGenerateRequest, NPCUpdate, NPCResponse, DeletedNPCResponse, Pagination,
    NPCListResponse, DeletedNPCListResponse, NPCSearchResponse, CampaignNPCItem,
    NPCSummary, FavoriteResponse, DeleteResponse, CleanupResponse,
)
from app.services.npc_service import NPCService

logger = logging.getLogger(__name__)

router = APIRouter()

PageQuery = Query(1, ge=1)
LimitQuery = Query(settings.NPC_DEFAULT_PAGE_SIZE, ge=1, le=settings.NPC_MAX_PAGE_SIZE)


@router.post("/generate", response_model=NPCResponse, status_code=status.HTTP_201_CREATED)
async def generate_npc(
    body: NPCGenerateRequest,
    user: User = Depends(get_current_user),
    service: NPCService = Depends(get_npc_service),
):
    """Generate a new NPC with the LLM and save it."""
    record = await service.generate(body, owner_id=user.id)
    return NPCResponse.from_record(record)


@router.get("/my-npcs", response_model=NPCListResponse)
async def list_my_npcs(
    campaign_id: Optional[str] = Query(None, alias="campaignId"),
    role: Optional[str] = None,
    page: int = PageQuery,
    limit: int = LimitQuery,
    user: User = Depends(get_current_user),
    service: NPCService = Depends(get_npc_service),
):
    """List the caller's active NPCs, newest first. Prompt/response text is left out."""
    records, total = service.list_npcs(user.id, campaign_id=campaign_id, role=role, page=page, limit=limit)
    return NPCListResponse(
        npcs=[NPCResponse.from_record(r, include_provenance=False) for r in records],
        pagination=Pagination.build(page, limit, total, len(records)),
    )


@router.get("/trash/deleted", response_model=DeletedNPCListResponse)
async def list_deleted_npcs(
    page: int = PageQuery,
    limit: int = LimitQuery,
    user: User = Depends(get_current_user),
    service: NPCService = Depends(get_npc_service),
):
    """List NPCs in the trash that can still be restored."""
    records, total = service.list_deleted(user.id, page=page, limit=limit)
    now = service.clock()
    npcs = []
    for record in records:
        item = DeletedNPCResponse.from_record(record, include_provenance=False)
        item.days_until_permanent_delete = record.days_until_permanent_delete(now)
        npcs.append(item)
    return DeletedNPCListResponse(npcs=npcs, pagination=Pagination.build(page, limit, total, len(records)))


@router.get("/search", response_model=NPCSearchResponse)
async def search_npcs(
    q: str = "",
    campaign_id: Optional[str] = Query(None, alias="campaignId"),
    page: int = PageQuery,
    limit: int = LimitQuery,
    user: User = Depends(get_current_user),
    service: NPCService = Depends(get_npc_service),
):
    """Search the caller's NPCs by name, role, race, occupation or location."""
    records, total = service.search(user.id, q, campaign_id=campaign_id, page=page, limit=limit)
    return NPCSearchResponse(
        npcs=[NPCResponse.from_record(r, include_provenance=False) for r in records],
        search_term=q,
        pagination=Pagination.build(page, limit, total, len(records)),
    )


@router.get("/stats/summary", response_model=NPCSummary)
async def npc_summary(
    user: User = Depends(get_current_user),
    service: NPCService = Depends(get_npc_service),
):
    """Summary statistics about the caller's NPCs."""
    return service.summary(user.id)


@router.get("/campaign/{campaign_id}", response_model=List[CampaignNPCItem])
async def list_campaign_npcs(
    campaign_id: str,
    user: User = Depends(get_current_user),
    service: NPCService = Depends(get_npc_service),
):
    """Compact list of the caller's NPCs in a campaign."""
    return service.list_by_campaign(user.id, campaign_id)


@router.post("/admin/cleanup", response_model=CleanupResponse)
async def cleanup_expired(
    admin: User = Depends(require_admin),
    service: NPCService = Depends(get_npc_service),
):
    """Permanently remove every NPC whose restore window has passed (admin only)."""
    deleted = service.cleanup_expired()
    logger.info(f"Manual NPC cleanup by {admin.id}: {deleted} removed")
    return CleanupResponse(message=f"Removed {deleted} expired NPC(s)", deleted_count=deleted)


@router.get("/{npc_id}", response_model=NPCResponse)
async def get_npc(
    npc_id: str,
    user: User = Depends(get_current_user),
    service: NPCService = Depends(get_npc_service),
):
    """Get one of the caller's active NPCs."""
    return NPCResponse.from_record(service.get(npc_id, user.id))


@router.put("/{npc_id}", response_model=NPCResponse)
async def update_npc(
    npc_id: str,
    patch: NPCUpdate,
    user: User = Depends(get_current_user),
    service: NPCService = Depends(get_npc_service),
):
    """Partially update an NPC."""
    return NPCResponse.from_record(service.update(npc_id, user.id, patch))


@router.delete("/{npc_id}", response_model=DeleteResponse)
async def delete_npc(
    npc_id: str,
    permanent: bool = False,
    user: User = Depends(get_current_user),
    service: NPCService = Depends(get_npc_service),
):
    """Move an NPC to the trash, or delete it for good with ``?permanent=true``."""
    if permanent:
        service.hard_delete(npc_id, user.id)
        return DeleteResponse(message="NPC permanently deleted", permanent=True)

    record = service.soft_delete(npc_id, user.id)
    return DeleteResponse(
        message=f"NPC moved to trash. It can be restored for {settings.NPC_RETENTION_DAYS} days.",
        permanent=False,
        permanent_delete_at=record.permanent_delete_at,
    )


@router.post("/{npc_id}/restore", response_model=NPCResponse)
async def restore_npc(
    npc_id: str,
    user: User = Depends(get_current_user),
    service: NPCService = Depends(get_npc_service),
):
    """Restore an NPC from the trash."""
    return NPCResponse.from_record(service.restore(npc_id, user.id))


@router.post("/{npc_id}/regenerate", response_model=NPCResponse)
async def regenerate_npc(
    npc_id: str,
    user: User = Depends(get_current_user),
    service: NPCService = Depends(get_npc_service),
):
    """Generate the NPC again from its stored request, replacing the old result."""
    return NPCResponse.from_record(await service.regenerate(npc_id, user.id))


@router.post("/{npc_id}/favorite", response_model=FavoriteResponse)
async def toggle_favorite(
    npc_id: str,
    user: User = Depends(get_current_user),
    service: NPCService = Depends(get_npc_service),
):
    """Toggle the favorite tag on an NPC."""
    record = service.toggle_favorite(npc_id, user.id)
    return FavoriteResponse(id=record.id, is_favorite=record.is_favorite, tags=list(record.tags or []))
