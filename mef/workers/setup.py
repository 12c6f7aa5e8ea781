"""Scheduler factory shared by the API process and the standalone worker."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mef.core.config import Settings
from mef.workers.deps import Notifier, WorkerDeps
from mef.workers.heartbeat import HeartbeatRegistry
from mef.workers.jobs.discord_notify import discord_notify_job
from mef.workers.jobs.gpt_survey_processing import gpt_survey_processing_job
from mef.workers.jobs.ocv_vote_counting import ocv_vote_counting_job
from mef.workers.scheduler import JobScheduler


def build_worker_deps(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    notifier: Notifier | None = None,
) -> WorkerDeps:
    deps = WorkerDeps(
        settings=settings,
        session_factory=session_factory,
        registry=HeartbeatRegistry(session_factory),
    )
    if notifier is not None:
        deps.notifier = notifier
    return deps


def create_scheduler(deps: WorkerDeps, include_recurring: bool = True) -> JobScheduler:
    """Build the scheduler with every job registered.

    Args:
        deps: Shared job collaborators
        include_recurring: Register the OCV vote counting loop. The API
            process skips it when a dedicated worker process runs it.
    """
    scheduler = JobScheduler(cancel_grace_seconds=deps.settings.worker_cancel_grace_seconds)
    scheduler.add(gpt_survey_processing_job(deps))
    scheduler.add(discord_notify_job(deps))
    if include_recurring:
        scheduler.add(ocv_vote_counting_job(deps))
    return scheduler
