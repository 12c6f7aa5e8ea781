"""In-process asyncio job scheduler.

One JobScheduler is built at process start and held on ``app.state``.
Recurring jobs fire every ``interval`` (first run immediately on start);
on-demand jobs run only through ``run()``. Each execution is one asyncio
task with its own CancellationToken.

Cancellation is two-stage: ``cancel()`` sets the token so the job can stop
at its next checkpoint, waits the grace period, then cancels the task.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from mef.core.exceptions import JobAlreadyRunningError, JobCancelledError
from mef.workers.cancellation import CancellationToken

logger = structlog.get_logger(__name__)


@dataclass
class JobContext:
    name: str
    payload: dict
    cancel_token: CancellationToken
    heartbeat_id: uuid.UUID | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))


JobHandler = Callable[[JobContext], Awaitable[None]]


@dataclass
class JobDefinition:
    """A named job.

    ``interval`` (seconds) makes the job recurring. ``timeout`` (seconds) is
    the hard limit per execution. ``concurrent`` jobs may have several
    executions in flight (one-shot notifications); others run one at a time.
    """

    name: str
    handler: JobHandler
    interval: float | None = None
    timeout: float | None = None
    concurrent: bool = False


@dataclass
class _Execution:
    context: JobContext
    task: asyncio.Task


class JobScheduler:
    def __init__(
        self,
        definitions: list[JobDefinition] | None = None,
        cancel_grace_seconds: float = 1.0,
    ) -> None:
        self.definitions: dict[str, JobDefinition] = {}
        self.cancel_grace_seconds = cancel_grace_seconds
        self._active: dict[str, list[_Execution]] = {}
        self._loops: list[asyncio.Task] = []
        self._started = False
        for definition in definitions or []:
            self.add(definition)

    def add(self, definition: JobDefinition) -> None:
        self.definitions[definition.name] = definition

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        """Start one loop task per recurring job."""
        if self._started:
            return
        self._started = True
        for definition in self.definitions.values():
            if definition.interval is not None:
                self._loops.append(asyncio.create_task(self._recurring(definition)))
        logger.info("job_scheduler_started", recurring=len(self._loops), jobs=sorted(self.definitions))

    async def _recurring(self, definition: JobDefinition) -> None:
        while True:
            if self.is_running(definition.name):
                logger.info("job_tick_skipped_still_running", job=definition.name)
            else:
                self.run(definition.name)
            await asyncio.sleep(definition.interval)

    def is_running(self, name: str) -> bool:
        return bool(self._active.get(name))

    def active_context(self, name: str) -> JobContext | None:
        executions = self._active.get(name)
        return executions[0].context if executions else None

    def run(
        self,
        name: str,
        payload: dict | None = None,
        heartbeat_id: uuid.UUID | None = None,
    ) -> asyncio.Task:
        """Launch one execution of ``name`` and return its task.

        Raises:
            KeyError: Unknown job name
            JobAlreadyRunningError: A non-concurrent job already has an
                execution in this process
        """
        definition = self.definitions[name]
        if self.is_running(name) and not definition.concurrent:
            raise JobAlreadyRunningError(name)

        context = JobContext(
            name=name,
            payload=payload or {},
            cancel_token=CancellationToken(name),
            heartbeat_id=heartbeat_id,
        )
        task = asyncio.create_task(self._execute(definition, context), name=f"job:{name}")
        execution = _Execution(context=context, task=task)
        self._active.setdefault(name, []).append(execution)
        task.add_done_callback(lambda _t: self._forget(name, execution))
        return task

    def _forget(self, name: str, execution: _Execution) -> None:
        executions = self._active.get(name, [])
        if execution in executions:
            executions.remove(execution)
        if not executions:
            self._active.pop(name, None)

    async def _execute(self, definition: JobDefinition, context: JobContext) -> None:
        log = logger.bind(job=definition.name)
        log.info("job_execution_started", payload_keys=sorted(context.payload))
        try:
            if definition.timeout is not None:
                await asyncio.wait_for(definition.handler(context), definition.timeout)
            else:
                await definition.handler(context)
        except JobCancelledError as exc:
            log.info("job_execution_cancelled", checkpoint=exc.checkpoint)
        except TimeoutError:
            log.error("job_execution_timed_out", timeout_seconds=definition.timeout)
        except asyncio.CancelledError:
            log.warning("job_execution_terminated")
            raise
        except Exception as exc:
            log.error(
                "job_execution_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
        else:
            log.info("job_execution_completed")

    async def cancel(self, name: str, grace: float | None = None) -> bool | None:
        """Cancel every active execution of ``name``.

        Returns:
            True if all executions stopped within the grace period, False if
            any had to be force-cancelled, None if nothing was running
        """
        executions = list(self._active.get(name, []))
        if not executions:
            return None

        grace = self.cancel_grace_seconds if grace is None else grace
        for execution in executions:
            execution.context.cancel_token.cancel()

        tasks = [execution.task for execution in executions]
        _, pending = await asyncio.wait(tasks, timeout=grace)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning("job_force_cancelled", job=name, count=len(pending))
            return False

        logger.info("job_cancelled_cooperatively", job=name)
        return True

    async def stop(self) -> None:
        """Cancel the recurring loops and every active execution."""
        for loop in self._loops:
            loop.cancel()
        tasks = [execution.task for executions in self._active.values() for execution in executions]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*self._loops, *tasks, return_exceptions=True)
        self._loops.clear()
        self._started = False
        logger.info("job_scheduler_stopped")
