"""Tests for the GPT Survey processing job and its start/kill/status controls."""

import asyncio
import uuid

import httpx
import pytest

from mef.core.exceptions import AppError, JobAlreadyRunningError, JobCancelledError
from mef.db.models import DeliberationVote
from mef.domain.proposal_status import ProposalStatus
from mef.integrations.gpt_survey import GptSurveyClient
from mef.workers.cancellation import CancellationToken
from mef.workers.heartbeat import WorkerStatus
from mef.workers.jobs.gpt_survey_processing import (
    KILLED_ERROR,
    gpt_survey_status,
    kill_gpt_survey,
    process_gpt_survey,
    start_gpt_survey,
)
from mef.workers.metadata import GPT_SURVEY_PROCESSING
from mef.workers.scheduler import JobContext, JobDefinition, JobScheduler

pytestmark = pytest.mark.integration


class SurveyApi:
    """Records requests and answers like the summarizer."""

    def __init__(self):
        self.requests: list[httpx.Request] = []

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/feedbacks/summary"):
            return httpx.Response(201, json={"feedbackSummary": "Community likes it"})
        return httpx.Response(200, json={"ok": True})

    def client(self) -> GptSurveyClient:
        return GptSurveyClient(
            base_url="https://gpt-survey.test",
            auth_secret="secret",
            dry_run=False,
            transport=httpx.MockTransport(self.handler),
        )


def context(round_id, force_summary=False, heartbeat_id=None) -> JobContext:
    return JobContext(
        name=GPT_SURVEY_PROCESSING,
        payload={"round_id": str(round_id), "force_summary": force_summary},
        cancel_token=CancellationToken(GPT_SURVEY_PROCESSING),
        heartbeat_id=heartbeat_id,
    )


@pytest.fixture
async def deliberating_round(session_factory, make_user, make_round, make_proposal):
    author = await make_user("author")
    reviewer = await make_user("reviewer")
    funding_round = await make_round(active="deliberation", reviewers=[reviewer])
    proposal = await make_proposal(author, funding_round, ProposalStatus.DELIBERATION)

    commenters = [await make_user("community"), await make_user("community")]
    async with session_factory() as session:
        for commenter in commenters:
            session.add(DeliberationVote(proposal_id=proposal.id, user_id=commenter.id, feedback="Great idea"))
        session.add(
            DeliberationVote(proposal_id=proposal.id, user_id=reviewer.id, feedback="Solid", recommendation=True)
        )
        await session.commit()

    return funding_round, proposal


def blocking_scheduler(deps, honour_cancel: bool = True) -> JobScheduler:
    """Scheduler whose GPT job parks until cancelled, without touching the database."""

    async def handler(ctx: JobContext) -> None:
        if honour_cancel:
            await ctx.cancel_token.wait()
            ctx.cancel_token.raise_if_cancelled("before_processing")
        else:
            await asyncio.sleep(60)

    return JobScheduler(
        [JobDefinition(name=GPT_SURVEY_PROCESSING, handler=handler)],
        cancel_grace_seconds=deps.settings.worker_cancel_grace_seconds,
    )


async def test_process_pushes_proposal_feedback_and_stores_summary(deps, deliberating_round):
    funding_round, proposal = deliberating_round
    api = SurveyApi()
    deps.gpt_survey_client_factory = api.client

    metadata = await process_gpt_survey(deps, context(funding_round.id))

    assert api.paths() == [
        "/api/govbot/proposals",
        f"/api/govbot/proposals/{proposal.id}/feedbacks",
        f"/api/govbot/proposals/{proposal.id}/feedbacks",
        f"/api/govbot/proposals/{proposal.id}/feedbacks/summary",
    ]
    assert api.requests[0].headers["Authorization"] == "Bearer secret"
    assert [p.model_dump() for p in metadata.processed_proposals] == [{"id": proposal.id, "has_summary": True}]

    row = await deps.registry.latest(GPT_SURVEY_PROCESSING)
    assert row.status == WorkerStatus.COMPLETED
    assert row.job_metadata["round_id"] == str(funding_round.id)


async def test_second_run_sends_nothing_new(deps, deliberating_round):
    funding_round, proposal = deliberating_round
    api = SurveyApi()
    deps.gpt_survey_client_factory = api.client

    await process_gpt_survey(deps, context(funding_round.id))
    api.requests.clear()
    await process_gpt_survey(deps, context(funding_round.id))

    assert api.paths() == []


async def test_force_summary_resummarizes_without_new_feedback(deps, deliberating_round):
    funding_round, proposal = deliberating_round
    api = SurveyApi()
    deps.gpt_survey_client_factory = api.client

    await process_gpt_survey(deps, context(funding_round.id))
    api.requests.clear()
    await process_gpt_survey(deps, context(funding_round.id, force_summary=True))

    assert api.paths() == [f"/api/govbot/proposals/{proposal.id}/feedbacks/summary"]


async def test_unknown_round_fails_the_heartbeat(deps):
    deps.gpt_survey_client_factory = SurveyApi().client

    with pytest.raises(AppError) as exc_info:
        await process_gpt_survey(deps, context(uuid.uuid4()))

    assert exc_info.value.status_code == 404
    row = await deps.registry.latest(GPT_SURVEY_PROCESSING)
    assert row.status == WorkerStatus.FAILED


async def test_cancel_before_processing_records_kill(deps, deliberating_round):
    funding_round, _ = deliberating_round
    api = SurveyApi()
    deps.gpt_survey_client_factory = api.client
    ctx = context(funding_round.id)
    ctx.cancel_token.cancel()

    with pytest.raises(JobCancelledError):
        await process_gpt_survey(deps, ctx)

    row = await deps.registry.latest(GPT_SURVEY_PROCESSING)
    assert row.status == WorkerStatus.FAILED
    assert row.job_metadata["error"] == KILLED_ERROR
    assert "killed_at" in row.job_metadata
    assert api.paths() == []


async def test_start_rejects_second_run_while_first_is_fresh(deps):
    scheduler = blocking_scheduler(deps)
    round_id = uuid.uuid4()

    row = await start_gpt_survey(deps, scheduler, round_id)
    assert row.status == WorkerStatus.RUNNING
    assert row.job_metadata["round_id"] == str(round_id)

    with pytest.raises(JobAlreadyRunningError) as exc_info:
        await start_gpt_survey(deps, scheduler, round_id)
    assert exc_info.value.code == "ALREADY_RUNNING"

    await scheduler.stop()


async def test_start_allowed_after_previous_run_completed(deps):
    previous = await deps.registry.start(GPT_SURVEY_PROCESSING)
    await deps.registry.complete(previous)
    scheduler = blocking_scheduler(deps)

    row = await start_gpt_survey(deps, scheduler, uuid.uuid4())

    assert row.id != previous
    await scheduler.stop()


async def test_kill_cancels_job_and_fails_rows(deps):
    scheduler = blocking_scheduler(deps)
    row = await start_gpt_survey(deps, scheduler, uuid.uuid4(), force_summary=True)
    await asyncio.sleep(0)

    result = await kill_gpt_survey(deps, scheduler)

    assert result["failed_rows"] == 1
    assert result["cooperative"] is True
    killed = await deps.registry.get(row.id)
    assert killed.status == WorkerStatus.FAILED
    assert killed.job_metadata["error"] == KILLED_ERROR
    assert killed.job_metadata["force_summary"] is True
    assert not scheduler.is_running(GPT_SURVEY_PROCESSING)

    # the slot is free again
    await start_gpt_survey(deps, scheduler, uuid.uuid4())
    await scheduler.stop()


async def test_kill_force_cancels_unresponsive_job(deps):
    scheduler = blocking_scheduler(deps, honour_cancel=False)
    await start_gpt_survey(deps, scheduler, uuid.uuid4())
    await asyncio.sleep(0)

    result = await kill_gpt_survey(deps, scheduler)

    assert result["cooperative"] is False
    assert not scheduler.is_running(GPT_SURVEY_PROCESSING)


async def test_kill_with_nothing_running_is_not_found(deps):
    with pytest.raises(AppError) as exc_info:
        await kill_gpt_survey(deps, blocking_scheduler(deps))
    assert exc_info.value.status_code == 404


async def test_status_reports_running_and_proposal_state(deps, session_factory, deliberating_round):
    funding_round, proposal = deliberating_round
    scheduler = blocking_scheduler(deps)
    started = await start_gpt_survey(deps, scheduler, funding_round.id)

    async with session_factory() as session:
        status = await gpt_survey_status(deps, scheduler, session, funding_round.id)

    assert status["is_running"] is True
    assert status["last_execution"].id == started.id
    assert status["results"][0]["proposal_id"] == proposal.id
    assert status["results"][0]["feedback_count"] == 2
    assert status["results"][0]["submitted"] is False
    await scheduler.stop()
