"""Tests for the admin worker endpoints: heartbeat listing and GPT Survey controls."""

import pytest

from mef.services.ocv_votes import OCVVotesService
from mef.workers.heartbeat import WorkerStatus
from mef.workers.metadata import GPT_SURVEY_PROCESSING, OCV_VOTE_COUNTING, GptSurveyWorkerMetadata
from mef.workers.scheduler import JobContext, JobDefinition, JobScheduler
from tests.helpers import auth_headers

pytestmark = pytest.mark.integration


@pytest.fixture
async def scheduler(app, deps):
    """Scheduler whose GPT job parks until cancelled, attached to the app."""

    async def handler(ctx: JobContext) -> None:
        await ctx.cancel_token.wait()
        ctx.cancel_token.raise_if_cancelled("before_processing")

    job_scheduler = JobScheduler(
        [JobDefinition(name=GPT_SURVEY_PROCESSING, handler=handler)],
        cancel_grace_seconds=deps.settings.worker_cancel_grace_seconds,
    )
    app.state.worker_deps = deps
    app.state.scheduler = job_scheduler
    yield job_scheduler
    await job_scheduler.stop()


@pytest.fixture
async def admin_headers(make_user):
    return auth_headers(await make_user("admin", is_admin=True))


async def test_routes_unavailable_without_scheduler(client, admin_headers):
    response = await client.get("/api/admin/worker-heartbeats", headers=admin_headers)
    assert response.status_code == 503


async def test_heartbeat_page(client, scheduler, registry, admin_headers):
    for _ in range(3):
        await registry.start(OCV_VOTE_COUNTING, {"processed": 0})
    await registry.start(GPT_SURVEY_PROCESSING, GptSurveyWorkerMetadata(round_id="r-1"))

    response = await client.get(
        "/api/admin/worker-heartbeats",
        params={"page": 2, "pageSize": 3, "sortBy": "name", "sortOrder": "asc"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"] == {"current_page": 2, "total_pages": 2, "page_size": 3, "total_count": 4}
    assert body["sort"] == {"field": "name", "order": "asc"}
    assert [row["name"] for row in body["data"]] == [OCV_VOTE_COUNTING]


async def test_heartbeat_page_rejects_unknown_sort_field(client, scheduler, admin_headers):
    response = await client.get("/api/admin/worker-heartbeats", params={"sortBy": "job_metadata"}, headers=admin_headers)
    assert response.status_code == 400


async def test_heartbeats_require_admin(client, scheduler, make_user):
    response = await client.get("/api/admin/worker-heartbeats", headers=auth_headers(await make_user()))
    assert response.status_code == 403


async def test_process_then_conflict_then_kill(client, scheduler, registry, admin_headers, make_round):
    funding_round = await make_round(active="deliberation")
    body = {"round_id": str(funding_round.id)}

    started = await client.post("/api/admin/gpt-survey/process", json=body, headers=admin_headers)
    conflict = await client.post("/api/admin/gpt-survey/process", json=body, headers=admin_headers)
    status = await client.get(
        "/api/admin/gpt-survey/status", params={"round_id": str(funding_round.id)}, headers=admin_headers
    )
    killed = await client.post("/api/admin/gpt-survey/kill", headers=admin_headers)

    assert started.status_code == 202
    execution = started.json()["last_execution"]
    assert execution["status"] == "RUNNING"
    assert execution["metadata"]["round_id"] == str(funding_round.id)

    assert conflict.status_code == 409
    assert conflict.json()["code"] == "ALREADY_RUNNING"

    assert status.json()["is_running"] is True

    assert killed.status_code == 200
    assert killed.json() == {"message": "Job terminated successfully", "failed_rows": 1, "cooperative": True}
    row = await registry.latest(GPT_SURVEY_PROCESSING)
    assert row.status == WorkerStatus.FAILED


async def test_kill_with_nothing_running_is_404(client, scheduler, admin_headers):
    response = await client.post("/api/admin/gpt-survey/kill", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


async def test_ocv_votes_listing(client, admin_headers, session_factory, make_user, make_round, make_proposal):
    proposal = await make_proposal(await make_user(), await make_round(active="consideration"))
    async with session_factory() as session:
        await OCVVotesService(session).upsert(proposal.id, {"eligible": True, "total_community_votes": 7})

    response = await client.get("/api/admin/ocv-votes", headers=admin_headers)

    assert response.status_code == 200
    row = response.json()["data"][0]
    assert row["proposal_id"] == proposal.id
    assert row["vote_data"]["total_community_votes"] == 7
    assert row["proposal"]["funding_round_name"] == "Test Round"
    assert response.json()["pagination"]["total_count"] == 1
