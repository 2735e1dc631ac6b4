"""
Maintenance Queue
Enqueues the expired-NPC cleanup on RQ and reports on queued jobs.
"""

import logging
from datetime import datetime
from typing import Optional

from redis import Redis
from rq import Queue, Retry
from rq.exceptions import NoSuchJobError
from rq.job import Job, JobStatus

from app.core.config import settings
from app.core.redis import Queues, get_redis
from app.schemas.npc import JobStatusResponse

logger = logging.getLogger(__name__)

CLEANUP_JOB_TYPE = "npc_cleanup"


class QueueManager:
    """Thin wrapper over the RQ queues this service uses."""

    def __init__(self, redis: Optional[Redis] = None):
        self._redis = redis
        self._queues = {}

    @property
    def redis(self) -> Redis:
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

    def get_queue(self, name: str = Queues.MAINTENANCE) -> Queue:
        if name not in self._queues:
            self._queues[name] = Queue(name, connection=self.redis, default_timeout=settings.JOB_TIMEOUT_CLEANUP)
        return self._queues[name]

    def enqueue_cleanup(self, requested_by: Optional[str] = None) -> Job:
        """
        Queue one cleanup run.

        Args:
            requested_by: Id of the admin who asked for it, kept in the job meta

        Raises:
            redis.exceptions.RedisError: Redis is unreachable
        """
        from app.workers.tasks import run_npc_cleanup_task

        job = self.get_queue(Queues.MAINTENANCE).enqueue(
            run_npc_cleanup_task,
            job_timeout=settings.JOB_TIMEOUT_CLEANUP,
            retry=Retry(max=2, interval=[30, 120]),
            meta={
                "type": CLEANUP_JOB_TYPE,
                "requested_by": requested_by,
                "requested_at": datetime.utcnow().isoformat(),
            },
        )
        logger.info(f"Queued NPC cleanup job {job.id} (requested by {requested_by or 'system'})")
        return job

    def job_status(self, job_id: str) -> Optional[JobStatusResponse]:
        """Status of a job, or None when Redis has no such job."""
        try:
            job = Job.fetch(job_id, connection=self.redis)
        except NoSuchJobError:
            return None

        status = job.get_status()
        report = JobStatusResponse(
            job_id=job.id,
            status=str(getattr(status, "value", status)),
            type=job.meta.get("type"),
            requested_by=job.meta.get("requested_by"),
            created_at=job.created_at,
            started_at=job.started_at,
            ended_at=job.ended_at,
        )
        if status == JobStatus.FINISHED:
            report.result = job.return_value()
        elif status == JobStatus.FAILED:
            # Tracebacks stay in the worker log
            report.error = "Cleanup job failed"
        return report


_queue_manager: Optional[QueueManager] = None


def get_queue_manager() -> QueueManager:
    """Process-wide QueueManager."""
    global _queue_manager
    if _queue_manager is None:
        _queue_manager = QueueManager()
    return _queue_manager


__all__ = [
    "CLEANUP_JOB_TYPE",
    "QueueManager",
    "get_queue_manager",
]
