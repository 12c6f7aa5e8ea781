"""Tests for the proposal submission notification job."""

import pytest

from mef.workers.cancellation import CancellationToken
from mef.workers.heartbeat import WorkerStatus
from mef.workers.jobs.discord_notify import discord_notify_job, notify_proposal_submission
from mef.workers.metadata import DISCORD_NOTIFY
from mef.workers.scheduler import JobContext

pytestmark = pytest.mark.integration


def context(proposal_id: int = 7) -> JobContext:
    return JobContext(
        name=DISCORD_NOTIFY,
        payload={"proposal_id": proposal_id, "funding_round_id": "round-1"},
        cancel_token=CancellationToken(DISCORD_NOTIFY),
    )


async def test_notification_sent_and_recorded(deps, notifier):
    await notify_proposal_submission(deps, context())

    assert notifier.calls == [(7, "round-1")]
    row = await deps.registry.latest(DISCORD_NOTIFY)
    assert row.status == WorkerStatus.COMPLETED
    assert row.job_metadata == {"proposal_id": 7, "funding_round_id": "round-1"}


async def test_notifier_failure_marks_row_failed(deps, failing_notifier):
    deps.notifier = failing_notifier

    with pytest.raises(RuntimeError):
        await notify_proposal_submission(deps, context())

    row = await deps.registry.latest(DISCORD_NOTIFY)
    assert row.status == WorkerStatus.FAILED
    assert row.job_metadata["error"] == "webhook unreachable"


def test_notifications_may_overlap(deps):
    definition = discord_notify_job(deps)
    assert definition.concurrent
    assert definition.interval is None
