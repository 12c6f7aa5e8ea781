"""GPT Survey processing job and its admin controls.

Started on demand by an admin for one funding round. The RUNNING heartbeat
row is created by ``start_gpt_survey`` before the job is scheduled so the
409 check and the status endpoint see it immediately.
"""

import uuid
from datetime import UTC, datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from mef.core.exceptions import AppError, JobAlreadyRunningError, JobCancelledError
from mef.db.models.worker_heartbeat import WorkerHeartbeat
from mef.services.gpt_survey import GptSurveyRunner, GptSurveyService
from mef.workers.deps import WorkerDeps
from mef.workers.heartbeat import run_locked_job
from mef.workers.metadata import (
    GPT_SURVEY_PROCESSING,
    GPT_SURVEY_PROCESSING_LOCK,
    GptSurveyWorkerMetadata,
    ProcessedProposal,
)
from mef.workers.scheduler import JobContext, JobDefinition, JobScheduler

logger = structlog.get_logger(__name__)

KILLED_ERROR = "Job was forcefully terminated"


async def process_gpt_survey(deps: WorkerDeps, ctx: JobContext) -> GptSurveyWorkerMetadata | None:
    """Run the GPT Survey sync for the round named in ``ctx.payload``."""
    token = ctx.cancel_token
    metadata = GptSurveyWorkerMetadata(
        round_id=ctx.payload["round_id"],
        force_summary=bool(ctx.payload.get("force_summary", False)),
        started_at=ctx.started_at,
    )

    async def body(heartbeat_id: uuid.UUID) -> GptSurveyWorkerMetadata:
        token.raise_if_cancelled("before_processing")

        client = deps.gpt_survey_client_factory()
        async with deps.session_factory() as session:
            runner = GptSurveyRunner(client, GptSurveyService(session), checkpoint=token.raise_if_cancelled)
            results = await runner.process_funding_round(uuid.UUID(metadata.round_id), metadata.force_summary)

        token.raise_if_cancelled("after_processing")
        metadata.processed_proposals = [
            ProcessedProposal(id=result.proposal_id, has_summary=bool(result.summary)) for result in results
        ]
        logger.info(
            "gpt_survey_processed",
            heartbeat_id=str(heartbeat_id),
            round_id=metadata.round_id,
            proposal_count=len(results),
        )
        return metadata

    def on_failure(exc: BaseException) -> GptSurveyWorkerMetadata:
        killed = isinstance(exc, JobCancelledError) or token.cancelled
        return metadata.model_copy(
            update={
                "error": KILLED_ERROR if killed else (str(exc) or type(exc).__name__),
                "killed_at": datetime.now(UTC) if killed else None,
            }
        )

    return await run_locked_job(
        GPT_SURVEY_PROCESSING,
        deps.lock(GPT_SURVEY_PROCESSING_LOCK),
        deps.registry,
        body,
        heartbeat_interval=deps.heartbeat_interval,
        heartbeat_id=ctx.heartbeat_id,
        on_failure=on_failure,
    )


def gpt_survey_processing_job(deps: WorkerDeps) -> JobDefinition:
    async def handler(ctx: JobContext) -> None:
        await process_gpt_survey(deps, ctx)

    return JobDefinition(
        name=GPT_SURVEY_PROCESSING,
        handler=handler,
        timeout=deps.settings.worker_job_timeout_minutes * 60,
    )


async def start_gpt_survey(
    deps: WorkerDeps,
    scheduler: JobScheduler,
    round_id: uuid.UUID,
    force_summary: bool = False,
) -> WorkerHeartbeat:
    """Create the RUNNING heartbeat and schedule the job.

    Returns:
        The new heartbeat row (the "last execution")

    Raises:
        JobAlreadyRunningError: A fresh RUNNING row exists or the job is
            already active in this process
    """
    fresh = await deps.registry.find_fresh_running(GPT_SURVEY_PROCESSING, deps.fresh_window)
    if fresh is not None or scheduler.is_running(GPT_SURVEY_PROCESSING):
        raise JobAlreadyRunningError(GPT_SURVEY_PROCESSING)

    metadata = GptSurveyWorkerMetadata(
        round_id=str(round_id),
        force_summary=force_summary,
        started_at=datetime.now(UTC),
    )
    heartbeat_id = await deps.registry.start(GPT_SURVEY_PROCESSING, metadata)
    scheduler.run(
        GPT_SURVEY_PROCESSING,
        payload={"round_id": str(round_id), "force_summary": force_summary},
        heartbeat_id=heartbeat_id,
    )
    logger.info("gpt_survey_started", heartbeat_id=str(heartbeat_id), round_id=str(round_id))
    return await deps.registry.get(heartbeat_id)


async def kill_gpt_survey(deps: WorkerDeps, scheduler: JobScheduler) -> dict:
    """Cancel the in-process job and fail every RUNNING row.

    Raises:
        AppError(404): Nothing is running
    """
    running_rows = await deps.registry.running(GPT_SURVEY_PROCESSING)
    active = scheduler.is_running(GPT_SURVEY_PROCESSING)
    if not running_rows and not active:
        raise AppError.not_found("No running GPT survey job found")

    cooperative = await scheduler.cancel(GPT_SURVEY_PROCESSING, deps.settings.worker_cancel_grace_seconds)
    failed = await deps.registry.fail_running(
        GPT_SURVEY_PROCESSING,
        {"error": KILLED_ERROR, "killed_at": datetime.now(UTC).isoformat()},
    )
    logger.info("gpt_survey_killed", failed_rows=failed, cooperative=cooperative)
    return {"message": "Job terminated successfully", "failed_rows": failed, "cooperative": cooperative}


async def gpt_survey_status(
    deps: WorkerDeps,
    scheduler: JobScheduler,
    session: AsyncSession,
    round_id: uuid.UUID | None = None,
) -> dict:
    """Last execution, running flag and per-proposal state for a round."""
    last_execution = await deps.registry.latest(GPT_SURVEY_PROCESSING)
    fresh = await deps.registry.find_fresh_running(GPT_SURVEY_PROCESSING, deps.fresh_window)
    results = await GptSurveyService(session).proposal_states(round_id) if round_id else []

    return {
        "last_execution": last_execution,
        "is_running": fresh is not None or scheduler.is_running(GPT_SURVEY_PROCESSING),
        "results": results,
    }
