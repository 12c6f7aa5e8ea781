"""Tests for the voting endpoints: reviewer votes, deliberation feedback, ranked ballot, ranked results and memos."""

import httpx
import pytest

from mef.api.deps import get_ocv_client
from mef.domain.proposal_status import ProposalStatus
from mef.services.ocv_api import OCVApiClient
from mef.services.ocv_votes import OCVVotesService
from tests.helpers import auth_headers

pytestmark = pytest.mark.integration


@pytest.fixture
async def considered(session_factory, make_user, make_round, make_proposal):
    author = await make_user("author")
    reviewers = [await make_user("reviewer"), await make_user("reviewer")]
    funding_round = await make_round(active="consideration", reviewers=reviewers)
    proposal = await make_proposal(author, funding_round, ProposalStatus.CONSIDERATION)
    async with session_factory() as session:
        await OCVVotesService(session).upsert(proposal.id, {"eligible": True, "total_community_votes": 4})
    return proposal, reviewers, author


async def test_second_approval_reports_status_move(client, considered):
    proposal, reviewers, _ = considered
    url = f"/api/proposals/{proposal.id}/consideration-vote"
    vote = {"decision": "APPROVED", "feedback": "Well scoped"}

    first = await client.post(url, json=vote, headers=auth_headers(reviewers[0]))
    second = await client.post(url, json=vote, headers=auth_headers(reviewers[1]))

    assert first.status_code == 200
    assert first.json()["status_move"] is None
    move = second.json()["status_move"]
    assert move["old_status"] == "CONSIDERATION"
    assert move["new_status"] == "DELIBERATION"
    assert move["ocv_eligible"] is True
    assert move["reviewer_votes_given"] == 2
    assert move["reviewer_votes_required"] == 2


async def test_non_reviewer_vote_is_403(client, considered):
    proposal, _, author = considered

    response = await client.post(
        f"/api/proposals/{proposal.id}/consideration-vote",
        json={"decision": "APPROVED", "feedback": "mine"},
        headers=auth_headers(author),
    )

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


async def test_invalid_decision_is_422(client, considered):
    proposal, reviewers, _ = considered

    response = await client.post(
        f"/api/proposals/{proposal.id}/consideration-vote",
        json={"decision": "MAYBE", "feedback": "hmm"},
        headers=auth_headers(reviewers[0]),
    )

    assert response.status_code == 422


@pytest.fixture
async def deliberating(make_user, make_round, make_proposal):
    author = await make_user("author")
    reviewer = await make_user("reviewer")
    funding_round = await make_round(active="deliberation", reviewers=[reviewer], mef_id=9)
    first = await make_proposal(author, funding_round, ProposalStatus.DELIBERATION, name="First proposal")
    second = await make_proposal(author, funding_round, ProposalStatus.DELIBERATION, name="Second proposal")
    return funding_round, reviewer, first, second


async def test_reviewer_must_recommend_during_deliberation(client, deliberating):
    _, reviewer, proposal, _ = deliberating
    url = f"/api/proposals/{proposal.id}/deliberation-vote"

    missing = await client.post(url, json={"feedback": "Looks good"}, headers=auth_headers(reviewer))
    recorded = await client.post(
        url, json={"feedback": "Looks good", "recommendation": True}, headers=auth_headers(reviewer)
    )

    assert missing.status_code == 400
    assert missing.json()["code"] == "RECOMMENDATION_REQUIRED"
    assert recorded.status_code == 200
    assert recorded.json()["recommendation"] is True


async def test_community_feedback_drops_recommendation(client, deliberating, make_user):
    _, _, proposal, _ = deliberating
    member = await make_user("community")

    response = await client.post(
        f"/api/proposals/{proposal.id}/deliberation-vote",
        json={"feedback": "Would use this", "recommendation": True},
        headers=auth_headers(member),
    )

    assert response.status_code == 200
    assert response.json()["recommendation"] is None


async def test_ranked_ballot_orders_by_reviewer_recommendations(client, deliberating):
    funding_round, reviewer, first, second = deliberating
    await client.post(
        f"/api/proposals/{second.id}/deliberation-vote",
        json={"feedback": "Strong", "recommendation": True},
        headers=auth_headers(reviewer),
    )

    response = await client.get(
        "/api/voting/ranked",
        params={"funding_round_id": str(funding_round.id)},
        headers=auth_headers(reviewer),
    )

    assert response.status_code == 200
    body = response.json()
    assert [p["id"] for p in body["proposals"]] == [second.id, first.id]
    assert body["proposals"][0]["reviewer_votes"] == {"approved": 1, "rejected": 0, "total": 1}
    assert body["funding_round"]["mef_id"] == 9


async def test_memo_endpoints(client, deliberating):
    funding_round, reviewer, first, second = deliberating

    ranked = await client.post(
        "/api/voting/ranked/memo",
        json={"funding_round_id": str(funding_round.id), "proposal_ids": [second.id, first.id]},
        headers=auth_headers(reviewer),
    )
    consideration = await client.post(
        "/api/voting/consideration/memo",
        json={"proposal_ids": [first.id, second.id]},
        headers=auth_headers(reviewer),
    )
    empty = await client.post("/api/voting/consideration/memo", json={"proposal_ids": []}, headers=auth_headers(reviewer))

    assert ranked.json() == {"memo": f"MEF 9 {second.id} {first.id}"}
    assert consideration.json() == {"memo": f"YES {first.id} {second.id}"}
    assert empty.status_code == 422


def ocv_client_returning(payload: dict, status_code: int = 200) -> OCVApiClient:
    transport = httpx.MockTransport(lambda request: httpx.Response(status_code, json=payload))
    return OCVApiClient(base_url="https://ocv.test", timeout=5, transport=transport)


async def test_ranked_vote_results_follow_winner_order(app, client, make_user, make_round, make_proposal):
    author = await make_user("author")
    funding_round = await make_round(active="voting", mef_id=21)
    first = await make_proposal(author, funding_round, ProposalStatus.DELIBERATION, name="First")
    second = await make_proposal(author, funding_round, ProposalStatus.DELIBERATION, name="Second")
    app.dependency_overrides[get_ocv_client] = lambda: ocv_client_returning(
        {"round_id": 21, "total_votes": 6, "winners": [second.id, 99999, first.id, second.id]}
    )

    response = await client.get(
        "/api/voting/ranked-votes",
        params={"funding_round_id": str(funding_round.id)},
        headers=auth_headers(author),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["funding_round"]["mef_id"] == 21
    assert body["total_votes"] == 6
    assert [(p["rank"], p["id"], p["proposal_name"]) for p in body["ranked_proposals"]] == [
        (1, second.id, "Second"),
        (2, first.id, "First"),
    ]


async def test_ranked_vote_results_need_voting_phase(app, client, make_user, make_round):
    user = await make_user()
    funding_round = await make_round(with_phases=False)
    app.dependency_overrides[get_ocv_client] = lambda: ocv_client_returning({"round_id": 1})

    response = await client.get(
        "/api/voting/ranked-votes",
        params={"funding_round_id": str(funding_round.id)},
        headers=auth_headers(user),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INCOMPLETE_PHASES"


async def test_ranked_vote_results_report_ocv_outage(app, client, make_user, make_round):
    user = await make_user()
    funding_round = await make_round(active="voting")
    app.dependency_overrides[get_ocv_client] = lambda: ocv_client_returning({}, status_code=503)

    response = await client.get(
        "/api/voting/ranked-votes",
        params={"funding_round_id": str(funding_round.id)},
        headers=auth_headers(user),
    )

    assert response.status_code == 502
    assert response.json()["code"] == "EXTERNAL_SERVICE_ERROR"
