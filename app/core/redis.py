"""
Redis Connection
Shared Redis client for the RQ maintenance queue.

Redis is optional: the API serves every NPC route without it and only the
queued cleanup and job status endpoints need it.
"""

import logging
from functools import lru_cache
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError

from app.core.config import settings

logger = logging.getLogger(__name__)


class Queues:
    """Queue names, highest priority first."""
    MAINTENANCE = "maintenance"
    DEFAULT = "default"

    ALL = [MAINTENANCE, DEFAULT]


def mask_url(url: str) -> str:
    """Hide credentials in a Redis URL before it is logged."""
    if "@" not in url:
        return url
    scheme, _, rest = url.partition("://")
    return f"{scheme}://***@{rest.rsplit('@', 1)[-1]}"


@lru_cache()
def get_redis() -> Redis:
    """
    Process-wide Redis client.

    Connecting is deferred to the first command, so this never fails while
    Redis is down. RQ stores pickled payloads, hence no response decoding.
    """
    client = Redis.from_url(
        settings.REDIS_URL,
        socket_connect_timeout=5,
        socket_timeout=5,
        retry_on_timeout=True,
        decode_responses=False,
    )
    logger.info(f"Redis client configured for {mask_url(settings.REDIS_URL)}")
    return client


def redis_health_check(client: Optional[Redis] = None) -> dict:
    """
    Ping Redis.

    Returns:
        dict with ``connected`` and, when reachable, the server version
    """
    if client is None:
        client = get_redis()
    try:
        client.ping()
        version = client.info("server").get("redis_version", "unknown")
    except RedisError as e:
        logger.warning(f"Redis unavailable at {mask_url(settings.REDIS_URL)}: {e}")
        return {"connected": False, "error": "unreachable"}
    return {"connected": True, "redis_version": version}


__all__ = [
    "Queues",
    "mask_url",
    "get_redis",
    "redis_health_check",
]
