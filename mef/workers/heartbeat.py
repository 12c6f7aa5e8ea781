"""Worker heartbeat registry and the locked-job runner.

Every job execution writes one WorkerHeartbeat row:
- RUNNING at start, ``last_heartbeat`` refreshed by a HeartbeatTicker
- COMPLETED or FAILED (with metadata) when the job ends
- force-marked FAILED by ``cleanup_stale`` if the process died and the row
  stopped being refreshed
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime, timedelta
from enum import StrEnum

import structlog
from pydantic import BaseModel
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mef.core.exceptions import JobCancelledError
from mef.db.models.worker_heartbeat import WorkerHeartbeat
from mef.workers.locking import JobLock
from mef.workers.metadata import dump_metadata

logger = structlog.get_logger(__name__)


class WorkerStatus(StrEnum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    NOT_STARTED = "NOT_STARTED"


SORTABLE_FIELDS = {
    "created_at": WorkerHeartbeat.created_at,
    "last_heartbeat": WorkerHeartbeat.last_heartbeat,
    "status": WorkerHeartbeat.status,
    "name": WorkerHeartbeat.name,
}


class HeartbeatRegistry:
    """Persisted heartbeat rows. Each call uses its own short-lived session.

    Ticks run concurrently with the job body, so the registry never shares
    the job's session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def start(
        self,
        name: str,
        metadata: BaseModel | dict | None = None,
        now: datetime | None = None,
    ) -> uuid.UUID:
        """Create a RUNNING row for a new execution and return its id."""
        now = now or datetime.now(UTC)
        heartbeat = WorkerHeartbeat(
            id=uuid.uuid4(),
            name=name,
            status=WorkerStatus.RUNNING.value,
            last_heartbeat=now,
            job_metadata=dump_metadata(metadata),
            created_at=now,
        )
        async with self.session_factory() as session:
            session.add(heartbeat)
            await session.commit()
        return heartbeat.id

    async def beat(self, heartbeat_id: uuid.UUID, now: datetime | None = None) -> bool:
        """Refresh ``last_heartbeat`` on a RUNNING row. Returns False if the row is no longer RUNNING."""
        now = now or datetime.now(UTC)
        async with self.session_factory() as session:
            result = await session.execute(
                update(WorkerHeartbeat)
                .where(
                    WorkerHeartbeat.id == heartbeat_id,
                    WorkerHeartbeat.status == WorkerStatus.RUNNING.value,
                )
                .values(last_heartbeat=now)
            )
            await session.commit()
            return result.rowcount > 0

    async def complete(self, heartbeat_id: uuid.UUID, metadata: BaseModel | dict | None = None) -> None:
        await self._finish(heartbeat_id, WorkerStatus.COMPLETED, metadata)

    async def fail(self, heartbeat_id: uuid.UUID, metadata: BaseModel | dict | None = None) -> None:
        await self._finish(heartbeat_id, WorkerStatus.FAILED, metadata)

    async def _finish(
        self,
        heartbeat_id: uuid.UUID,
        status: WorkerStatus,
        metadata: BaseModel | dict | None,
    ) -> None:
        values: dict = {"status": status.value, "last_heartbeat": datetime.now(UTC)}
        if metadata is not None:
            values["job_metadata"] = dump_metadata(metadata)

        async with self.session_factory() as session:
            await session.execute(
                update(WorkerHeartbeat).where(WorkerHeartbeat.id == heartbeat_id).values(**values)
            )
            await session.commit()

    async def get(self, heartbeat_id: uuid.UUID) -> WorkerHeartbeat | None:
        async with self.session_factory() as session:
            return await session.get(WorkerHeartbeat, heartbeat_id)

    async def find_fresh_running(
        self,
        name: str,
        within: timedelta,
        now: datetime | None = None,
    ) -> WorkerHeartbeat | None:
        """Return a RUNNING row for ``name`` refreshed within ``within``, if any."""
        now = now or datetime.now(UTC)
        async with self.session_factory() as session:
            result = await session.execute(
                select(WorkerHeartbeat)
                .where(
                    WorkerHeartbeat.name == name,
                    WorkerHeartbeat.status == WorkerStatus.RUNNING.value,
                    WorkerHeartbeat.last_heartbeat >= now - within,
                )
                .order_by(WorkerHeartbeat.last_heartbeat.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def running(self, name: str) -> list[WorkerHeartbeat]:
        """All RUNNING rows for ``name``, fresh or not."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(WorkerHeartbeat).where(
                    WorkerHeartbeat.name == name,
                    WorkerHeartbeat.status == WorkerStatus.RUNNING.value,
                )
            )
            return list(result.scalars().all())

    async def latest(
        self,
        name: str,
        statuses: Sequence[WorkerStatus] | None = None,
    ) -> WorkerHeartbeat | None:
        """Most recently started row for ``name``, optionally filtered by status."""
        query = select(WorkerHeartbeat).where(WorkerHeartbeat.name == name)
        if statuses:
            query = query.where(WorkerHeartbeat.status.in_([s.value for s in statuses]))
        query = query.order_by(WorkerHeartbeat.created_at.desc()).limit(1)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def fail_running(self, name: str, metadata: BaseModel | dict | None = None) -> int:
        """Force every RUNNING row for ``name`` to FAILED.

        ``metadata`` is merged over each row's existing payload so the job's
        own fields (round id, start time) survive.

        Returns:
            Number of rows changed
        """
        extra = dump_metadata(metadata) or {}
        now = datetime.now(UTC)

        async with self.session_factory() as session:
            result = await session.execute(
                select(WorkerHeartbeat).where(
                    WorkerHeartbeat.name == name,
                    WorkerHeartbeat.status == WorkerStatus.RUNNING.value,
                )
            )
            rows = list(result.scalars().all())
            for row in rows:
                row.status = WorkerStatus.FAILED.value
                row.last_heartbeat = now
                row.job_metadata = {**(row.job_metadata or {}), **extra}
            await session.commit()
            return len(rows)

    async def cleanup_stale(
        self,
        stale_after: timedelta,
        names: Sequence[str] | None = None,
        exclude_id: uuid.UUID | None = None,
        now: datetime | None = None,
    ) -> list[tuple[uuid.UUID, str]]:
        """Mark RUNNING rows not refreshed within ``stale_after`` as FAILED.

        This is the crash-recovery path: a dead process releases its lock but
        leaves its row RUNNING. Rows refreshed within the threshold are left
        untouched.

        Args:
            stale_after: Age of ``last_heartbeat`` beyond which a row is abandoned
            names: Restrict to these job names (all jobs when None)
            exclude_id: Row to skip, typically the cleanup job's own row
            now: Current time (for deterministic testing)

        Returns:
            (id, name) of every row that was failed
        """
        now = now or datetime.now(UTC)
        cutoff = now - stale_after

        query = select(WorkerHeartbeat.id, WorkerHeartbeat.name).where(
            WorkerHeartbeat.status == WorkerStatus.RUNNING.value,
            WorkerHeartbeat.last_heartbeat < cutoff,
        )
        if names:
            query = query.where(WorkerHeartbeat.name.in_(list(names)))
        if exclude_id is not None:
            query = query.where(WorkerHeartbeat.id != exclude_id)

        async with self.session_factory() as session:
            stale = [(row.id, row.name) for row in (await session.execute(query)).all()]
            if stale:
                await session.execute(
                    update(WorkerHeartbeat)
                    .where(
                        WorkerHeartbeat.id.in_([hid for hid, _ in stale]),
                        WorkerHeartbeat.status == WorkerStatus.RUNNING.value,
                    )
                    .values(status=WorkerStatus.FAILED.value)
                )
                await session.commit()

        if stale:
            logger.info("stale_heartbeats_failed", count=len(stale), cutoff=cutoff.isoformat())
        return stale

    async def list_page(
        self,
        page: int = 1,
        page_size: int = 25,
        sort_field: str = "created_at",
        sort_order: str = "desc",
    ) -> tuple[list[WorkerHeartbeat], int]:
        """Paginated, sorted heartbeat rows plus the total row count."""
        column = SORTABLE_FIELDS[sort_field]
        ordering = column.asc() if sort_order == "asc" else column.desc()

        async with self.session_factory() as session:
            total = (await session.execute(select(func.count()).select_from(WorkerHeartbeat))).scalar_one()
            result = await session.execute(
                select(WorkerHeartbeat).order_by(ordering).offset((page - 1) * page_size).limit(page_size)
            )
            return list(result.scalars().all()), total


class HeartbeatTicker:
    """Background task refreshing a heartbeat row (and the job lock) on an interval.

    Usage:
        async with HeartbeatTicker(registry, heartbeat_id, interval=5, lock=lock):
            await do_work()

    Tick failures are logged and the ticker keeps going.
    """

    def __init__(
        self,
        registry: HeartbeatRegistry,
        heartbeat_id: uuid.UUID,
        interval: float,
        lock: JobLock | None = None,
    ) -> None:
        self.registry = registry
        self.heartbeat_id = heartbeat_id
        self.interval = interval
        self.lock = lock
        self.ticks = 0
        self._task: asyncio.Task | None = None

    async def __aenter__(self) -> "HeartbeatTicker":
        self._task = asyncio.create_task(self._run())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.registry.beat(self.heartbeat_id)
                if self.lock is not None:
                    await self.lock.extend()
                self.ticks += 1
            except Exception as exc:
                logger.warning(
                    "heartbeat_tick_failed",
                    heartbeat_id=str(self.heartbeat_id),
                    error=str(exc),
                    error_type=type(exc).__name__,
                )


def default_failure_metadata(exc: BaseException) -> dict:
    """Failure payload recorded on the heartbeat row when a job ends badly."""
    now = datetime.now(UTC).isoformat()
    if isinstance(exc, JobCancelledError | asyncio.CancelledError):
        return {"error": "Job was cancelled", "killed_at": now}
    return {"error": str(exc) or type(exc).__name__}


async def run_locked_job(
    name: str,
    lock: JobLock,
    registry: HeartbeatRegistry,
    body: Callable[[uuid.UUID], Awaitable[BaseModel | dict | None]],
    *,
    heartbeat_interval: float,
    heartbeat_id: uuid.UUID | None = None,
    on_failure: Callable[[BaseException], BaseModel | dict] = default_failure_metadata,
) -> BaseModel | dict | None:
    """Run ``body`` under ``lock`` with a heartbeat row.

    Steps:
    1. Try the lock without waiting; if busy, log and return None (not a failure)
    2. Create the RUNNING row, or adopt ``heartbeat_id`` if the caller made one
    3. Tick the row and the lock while ``body`` runs
    4. Mark COMPLETED with the body's metadata, or FAILED with ``on_failure(exc)``
    5. Release the lock

    Exceptions from ``body`` (including cancellation) are recorded and re-raised.

    Args:
        name: Job name stored on the heartbeat row
        lock: Lock shared by every instance of this job
        registry: Heartbeat persistence
        body: Coroutine function receiving the heartbeat id and returning metadata
        heartbeat_interval: Seconds between ticks
        heartbeat_id: Pre-created RUNNING row to adopt instead of creating one
        on_failure: Builds the FAILED row's metadata from the exception

    Returns:
        The body's metadata, or None if the lock was busy
    """
    log = logger.bind(job=name)

    async with lock.hold() as acquired:
        if not acquired:
            log.info("worker_lock_busy", lock_key=lock.key)
            if heartbeat_id is not None:
                await registry.fail(heartbeat_id, {"error": "Another instance holds the job lock"})
            return None

        if heartbeat_id is None:
            heartbeat_id = await registry.start(name)
        log = log.bind(heartbeat_id=str(heartbeat_id))
        log.info("job_started")

        try:
            async with HeartbeatTicker(registry, heartbeat_id, heartbeat_interval, lock=lock):
                metadata = await body(heartbeat_id)
        except BaseException as exc:
            await registry.fail(heartbeat_id, on_failure(exc))
            log.info("job_marked_failed", error_type=type(exc).__name__)
            raise

        await registry.complete(heartbeat_id, metadata)
        log.info("job_completed")
        return metadata
