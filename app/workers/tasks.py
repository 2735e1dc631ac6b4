"""
RQ Task Definitions
Maintenance tasks executed by RQ workers.
"""

import logging
from datetime import datetime
from typing import Any, Dict

from app.workers.base import with_retry

logger = logging.getLogger(__name__)


@with_retry(max_retries=2, retry_delay=5.0)
def run_npc_cleanup_task() -> Dict[str, Any]:
    """
    Permanently delete NPCs whose restore window has expired.

    Returns:
        Dict with the number of records removed
    """
    from app.core.database import SessionLocal
    from app.services.npc_service import cleanup_expired_npcs

    logger.info("[Task] Starting expired NPC cleanup")
    started = datetime.utcnow()

    db = SessionLocal()
    try:
        deleted = cleanup_expired_npcs(db)
    finally:
        db.close()

    return {
        "deleted_count": deleted,
        "started_at": started.isoformat(),
        "finished_at": datetime.utcnow().isoformat(),
    }
