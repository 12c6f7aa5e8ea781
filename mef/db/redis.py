"""Redis client for the ``redis`` worker lock backend.

Only initialized when ``WORKER_LOCK_BACKEND=redis``; the PostgreSQL advisory
lock backend never touches it.
"""

import redis.asyncio as redis
import structlog

from mef.core.config import get_settings

logger = structlog.get_logger(__name__)

_redis: redis.Redis | None = None


async def init_redis(url: str | None = None) -> None:
    global _redis

    if _redis is not None:
        return

    settings = get_settings()
    client = redis.from_url(
        url or settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout_seconds,
        socket_connect_timeout=settings.redis_socket_timeout_seconds,
    )
    # Fail startup rather than the first lock acquisition
    await client.ping()
    _redis = client
    logger.info("redis_connected")


async def close_redis() -> None:
    global _redis

    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> redis.Redis:
    """The shared client. Raises RuntimeError before ``init_redis``."""
    if _redis is None:
        raise RuntimeError("Redis not initialized; WORKER_LOCK_BACKEND=redis requires init_redis() at startup")
    return _redis


async def redis_ready() -> bool:
    """True when the shared client exists and answers PING."""
    if _redis is None:
        return False
    try:
        return bool(await _redis.ping())
    except redis.RedisError as exc:
        logger.error("redis_health_check_failed", error=str(exc))
        return False
