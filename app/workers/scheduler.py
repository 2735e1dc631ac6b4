"""
Cleanup Scheduler
Runs the expired-NPC sweep inside the API process on a fixed interval.
"""

import asyncio
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import SessionLocal
from app.services.npc_service import cleanup_expired_npcs

logger = logging.getLogger(__name__)


class CleanupScheduler:
    """
    Periodic asyncio task calling ``cleanup_expired_npcs``.

    Runs once on start and then every ``interval_seconds``. A failed run is
    logged and the next tick tries again.
    """

    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None
            else settings.NPC_CLEANUP_INTERVAL_HOURS * 3600
        )
        self.session_factory = session_factory
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> Optional[int]:
        """Run one sweep; returns the count removed, or None if it failed."""
        db = None
        try:
            db = self.session_factory()
            return cleanup_expired_npcs(db)
        except Exception:
            logger.exception("Scheduled NPC cleanup failed; will retry next interval")
            if db is not None:
                db.rollback()
            return None
        finally:
            if db is not None:
                db.close()

    async def _loop(self):
        while True:
            # Sweep runs in a thread so the event loop keeps serving requests
            await asyncio.to_thread(self.run_once)
            await asyncio.sleep(self.interval_seconds)

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="npc-cleanup-scheduler")
        logger.info(f"NPC cleanup scheduler started (every {self.interval_seconds / 3600:g}h)")

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("NPC cleanup scheduler stopped")
