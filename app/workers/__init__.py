# Workers package - background maintenance (RQ jobs and the in-process scheduler)

from app.workers.base import with_retry
from app.workers.queue import QueueManager, get_queue_manager
from app.workers.tasks import run_npc_cleanup_task
from app.workers.scheduler import CleanupScheduler

__all__ = [
    "with_retry",
    "QueueManager",
    "get_queue_manager",
    "run_npc_cleanup_task",
    "CleanupScheduler",
]
