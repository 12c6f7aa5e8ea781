"""Proposal submission notification, fired once per submitted proposal."""

import structlog

from mef.workers.deps import WorkerDeps
from mef.workers.metadata import DISCORD_NOTIFY, DiscordNotifyMetadata
from mef.workers.scheduler import JobContext, JobDefinition

logger = structlog.get_logger(__name__)


async def notify_proposal_submission(deps: WorkerDeps, ctx: JobContext) -> None:
    metadata = DiscordNotifyMetadata(
        proposal_id=ctx.payload.get("proposal_id"),
        funding_round_id=ctx.payload.get("funding_round_id"),
    )
    heartbeat_id = await deps.registry.start(DISCORD_NOTIFY, metadata)

    try:
        await deps.notifier.notify_proposal_submitted(metadata.proposal_id, metadata.funding_round_id)
    except Exception as exc:
        await deps.registry.fail(heartbeat_id, metadata.model_copy(update={"error": str(exc)}))
        raise

    await deps.registry.complete(heartbeat_id, metadata)


def discord_notify_job(deps: WorkerDeps) -> JobDefinition:
    async def handler(ctx: JobContext) -> None:
        await notify_proposal_submission(deps, ctx)

    return JobDefinition(
        name=DISCORD_NOTIFY,
        handler=handler,
        timeout=60,
        concurrent=True,
    )
