"""Worker mutual exclusion: non-blocking try-acquire locks keyed by job.

Two backends share one interface:
- PostgresAdvisoryLock: session-level ``pg_try_advisory_lock`` held on a
  dedicated connection; released with the connection if the process dies
- RedisJobLock: ``SET NX EX`` with an owner token, extended on every
  heartbeat tick; expires by TTL if the process dies
"""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import redis.asyncio as redis
import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

logger = structlog.get_logger(__name__)


class JobLock:
    """Base class for job locks. Subclasses implement try_acquire/release/extend."""

    def __init__(self, key: str) -> None:
        self.key = key

    async def try_acquire(self) -> bool:
        raise NotImplementedError

    async def release(self) -> None:
        raise NotImplementedError

    async def extend(self) -> None:
        """Refresh the lock lease. No-op for backends without expiry."""
        return None

    @asynccontextmanager
    async def hold(self) -> AsyncGenerator[bool, None]:
        """Try to take the lock without waiting.

        Yields:
            True if the lock was acquired, False if another holder has it

        Example:
            async with lock.hold() as acquired:
                if not acquired:
                    return
                ...
        """
        acquired = await self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                await self.release()


class PostgresAdvisoryLock(JobLock):
    """PostgreSQL session-level advisory lock on ``hashtext(key)``."""

    def __init__(self, engine: AsyncEngine, key: str) -> None:
        super().__init__(key)
        self.engine = engine
        self._conn: AsyncConnection | None = None

    async def try_acquire(self) -> bool:
        if self._conn is not None:
            return True

        conn = await self.engine.connect()
        try:
            result = await conn.execute(
                text("SELECT pg_try_advisory_lock(hashtext(:key))"), {"key": self.key}
            )
            acquired = bool(result.scalar())
            await conn.commit()
        except Exception:
            await conn.close()
            raise

        if not acquired:
            await conn.close()
            return False

        self._conn = conn
        return True

    async def release(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            await conn.execute(text("SELECT pg_advisory_unlock(hashtext(:key))"), {"key": self.key})
            await conn.commit()
        except Exception:
            # Still holding the session lock: drop the connection instead of pooling it
            logger.error("advisory_unlock_failed", key=self.key, exc_info=True)
            await conn.invalidate()
            raise
        await conn.close()


class RedisJobLock(JobLock):
    """Redis lock with owner token and TTL."""

    LOCK_PREFIX = "mef:worker-lock:"
    DEFAULT_TTL = 60  # seconds; refreshed by heartbeat ticks

    def __init__(self, client: redis.Redis, key: str, owner: str | None = None, ttl: int | None = None) -> None:
        super().__init__(key)
        self.redis = client
        self.owner = owner or str(uuid.uuid4())
        self.ttl = ttl or self.DEFAULT_TTL

    @property
    def redis_key(self) -> str:
        return f"{self.LOCK_PREFIX}{self.key}"

    async def try_acquire(self) -> bool:
        lock_value = f"{self.owner}:{datetime.now(UTC).isoformat()}"
        if await self.redis.set(self.redis_key, lock_value, nx=True, ex=self.ttl):
            return True

        # Re-entrant for the same owner
        current = await self.redis.get(self.redis_key)
        if current and current.startswith(f"{self.owner}:"):
            await self.redis.expire(self.redis_key, self.ttl)
            return True

        return False

    async def release(self) -> None:
        current = await self.redis.get(self.redis_key)
        if current and current.startswith(f"{self.owner}:"):
            await self.redis.delete(self.redis_key)

    async def extend(self) -> None:
        current = await self.redis.get(self.redis_key)
        if current and current.startswith(f"{self.owner}:"):
            await self.redis.expire(self.redis_key, self.ttl)
        else:
            logger.warning("worker_lock_lost", key=self.key, owner=self.owner)


def build_job_lock(key: str, backend: str = "postgres") -> JobLock:
    """Create a lock for ``key`` on the configured backend."""
    if backend == "redis":
        from mef.db.redis import get_redis

        return RedisJobLock(get_redis(), key)

    from mef.db.base import get_engine

    return PostgresAdvisoryLock(get_engine(), key)
