#!/usr/bin/env python3
"""
RQ Worker Startup Script
Runs a worker for the maintenance queue, or the expired-NPC cleanup inline.

Usage:
    python scripts/run_workers.py                  # Worker on all queues
    python scripts/run_workers.py -q maintenance   # Worker on one queue
    python scripts/run_workers.py --burst          # Drain the queues and exit
    python scripts/run_workers.py --cleanup-now    # Run the cleanup here, no Redis needed
    python scripts/run_workers.py --check          # Report Redis status and exit
"""

import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rq import Queue, Worker

from app.core.config import settings
from app.core.redis import Queues, get_redis, redis_health_check

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger("npcforge.worker")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="NPC Forge background worker")
    parser.add_argument("--queues", "-q", nargs="+", default=Queues.ALL, choices=Queues.ALL,
                        help="Queues to listen on, highest priority first")
    parser.add_argument("--name", "-n", default=None, help="Worker name (RQ generates one by default)")
    parser.add_argument("--burst", "-b", action="store_true", help="Exit once the queues are empty")

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--check", action="store_true", help="Report Redis status and exit")
    mode.add_argument("--cleanup-now", action="store_true",
                      help="Delete expired NPCs in this process and exit")
    return parser


def run_cleanup_now() -> int:
    from app.workers.tasks import run_npc_cleanup_task

    result = run_npc_cleanup_task()
    logger.info(f"Cleanup finished: {result['deleted_count']} expired NPC(s) removed")
    return 0


def run_worker(queue_names, name=None, burst=False) -> int:
    health = redis_health_check()
    if not health["connected"]:
        logger.error(f"Redis is not reachable at startup ({health.get('error')}); worker not started")
        return 1

    connection = get_redis()
    worker = Worker(
        [Queue(queue_name, connection=connection) for queue_name in queue_names],
        connection=connection,
        name=name,
    )
    logger.info(f"Worker {name or '(auto)'} on {', '.join(queue_names)} (Redis {health['redis_version']})")
    worker.work(burst=burst, with_scheduler=True)
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.check:
        health = redis_health_check()
        print(f"Redis: {health}")
        return 0 if health["connected"] else 1

    if args.cleanup_now:
        return run_cleanup_now()

    return run_worker(args.queues, name=args.name, burst=args.burst)


if __name__ == "__main__":
    sys.exit(main())
