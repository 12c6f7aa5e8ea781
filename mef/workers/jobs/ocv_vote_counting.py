"""OCV vote counting: refresh community tallies and move proposals.

Each run:
1. Stale cleanup (``ocv-worker-cleanup``): RUNNING rows whose heartbeat
   stopped more than ``worker_stale_after_minutes`` ago are marked FAILED
2. Vote counting (``ocv-vote-counter``): for every CONSIDERATION or
   DELIBERATION proposal, fetch the OCV tally over its round's consideration
   window, cache it, and re-check the status move

Both passes run under the same lock so only one instance works at a time.
"""

import uuid

import structlog
from sqlalchemy import select

from mef.db.models.funding_round import ConsiderationPhase
from mef.db.models.proposal import Proposal
from mef.domain.proposal_status import MOVABLE_STATUSES, ProposalStatus
from mef.services.ocv_votes import OCVVotesService
from mef.services.proposal_status_move import ProposalStatusMoveService
from mef.workers.deps import WorkerDeps
from mef.workers.heartbeat import run_locked_job
from mef.workers.metadata import (
    OCV_VOTE_COUNTING,
    OCV_VOTE_COUNTING_LOCK,
    STALE_JOB_CLEANUP,
    CleanupWorkerMetadata,
    OCVWorkerMetadata,
    ProposalVoteInfo,
    UpdatedJob,
)
from mef.workers.scheduler import JobContext, JobDefinition

logger = structlog.get_logger(__name__)


async def cleanup_stale_jobs(deps: WorkerDeps) -> CleanupWorkerMetadata | None:
    """Fail abandoned RUNNING heartbeats. Errors are logged, never raised."""

    async def body(heartbeat_id: uuid.UUID) -> CleanupWorkerMetadata:
        stale = await deps.registry.cleanup_stale(deps.stale_after, exclude_id=heartbeat_id)
        return CleanupWorkerMetadata(updated_jobs=[UpdatedJob(id=str(hid), name=name) for hid, name in stale])

    try:
        return await run_locked_job(
            STALE_JOB_CLEANUP,
            deps.lock(OCV_VOTE_COUNTING_LOCK),
            deps.registry,
            body,
            heartbeat_interval=deps.heartbeat_interval,
        )
    except Exception as exc:
        logger.error("stale_job_cleanup_failed", error=str(exc), error_type=type(exc).__name__)
        return None


async def count_votes(deps: WorkerDeps, ctx: JobContext, heartbeat_id: uuid.UUID) -> OCVWorkerMetadata:
    metadata = OCVWorkerMetadata()
    client = deps.ocv_client_factory()
    required = deps.settings.consideration_reviewer_approval_threshold

    async with deps.session_factory() as session:
        result = await session.execute(
            select(Proposal.id, Proposal.funding_round_id, ConsiderationPhase.start_date, ConsiderationPhase.end_date)
            .outerjoin(ConsiderationPhase, ConsiderationPhase.funding_round_id == Proposal.funding_round_id)
            .where(Proposal.status.in_([s.value for s in MOVABLE_STATUSES]))
            .order_by(Proposal.id.asc())
        )
        proposals = result.all()

    log = logger.bind(heartbeat_id=str(heartbeat_id))
    log.info("ocv_vote_counting_started", proposal_count=len(proposals))

    for proposal_id, funding_round_id, start_date, end_date in proposals:
        ctx.cancel_token.raise_if_cancelled(f"proposal:{proposal_id}")

        if start_date is None:
            log.warning(
                "proposal_round_missing_consideration_phase",
                proposal_id=proposal_id,
                funding_round_id=str(funding_round_id) if funding_round_id else None,
            )
            continue

        try:
            vote_data = await client.get_consideration_votes(proposal_id, start_date, end_date)
            async with deps.session_factory() as session:
                await OCVVotesService(session).upsert(proposal_id, vote_data)
                move = await ProposalStatusMoveService(session, required).check_and_move_proposal(proposal_id)
        except Exception as exc:
            log.error("ocv_proposal_failed", proposal_id=proposal_id, error=str(exc), error_type=type(exc).__name__)
            continue

        if move is None:
            continue

        info = ProposalVoteInfo(
            ocv_eligible=move.ocv_eligible,
            reviewer_votes_given=move.reviewer_votes_given,
            reviewer_votes_required=move.reviewer_votes_required,
        )
        key = str(proposal_id)
        if move.old_status == ProposalStatus.CONSIDERATION and move.new_status == ProposalStatus.DELIBERATION:
            metadata.moved_from_consideration_to_deliberation[key] = info
        elif move.old_status == ProposalStatus.DELIBERATION and move.new_status == ProposalStatus.CONSIDERATION:
            metadata.moved_from_deliberation_to_consideration[key] = info
        metadata.project_vote_status[key] = info

    return metadata


async def run_ocv_vote_counting(deps: WorkerDeps, ctx: JobContext) -> OCVWorkerMetadata | None:
    """Cleanup pass, then the vote counting pass. Returns None when another instance holds the lock."""
    await cleanup_stale_jobs(deps)
    ctx.cancel_token.raise_if_cancelled("after_cleanup")

    return await run_locked_job(
        OCV_VOTE_COUNTING,
        deps.lock(OCV_VOTE_COUNTING_LOCK),
        deps.registry,
        lambda heartbeat_id: count_votes(deps, ctx, heartbeat_id),
        heartbeat_interval=deps.heartbeat_interval,
    )


def ocv_vote_counting_job(deps: WorkerDeps) -> JobDefinition:
    settings = deps.settings

    async def handler(ctx: JobContext) -> None:
        await run_ocv_vote_counting(deps, ctx)

    return JobDefinition(
        name=OCV_VOTE_COUNTING,
        handler=handler,
        interval=settings.ocv_vote_counting_interval_minutes * 60,
        timeout=settings.worker_job_timeout_minutes * 60,
    )
