"""Tests for the public and admin funding round endpoints."""

import pytest

from mef.domain.round_status import FundingRoundStatus
from tests.helpers import auth_headers, round_payload

pytestmark = pytest.mark.integration


@pytest.fixture
async def admin(make_user):
    return await make_user("admin", is_admin=True)


async def test_public_listing_hides_drafts_and_puts_active_first(client, make_round):
    completed = await make_round(active="completed", status=FundingRoundStatus.COMPLETED)
    active = await make_round(active="consideration")
    await make_round(active="upcoming", status=FundingRoundStatus.DRAFT)

    response = await client.get("/api/funding-rounds")

    assert response.status_code == 200
    body = response.json()
    assert [r["id"] for r in body] == [str(active.id), str(completed.id)]
    assert body[0]["phase"] == "CONSIDERATION"
    assert body[0]["time_remaining"]
    assert body[1]["phase"] == "COMPLETED"


async def test_get_round_includes_proposal_count(client, make_round, make_user, make_proposal):
    funding_round = await make_round(active="submission")
    author = await make_user()
    await make_proposal(author, funding_round)
    await make_proposal(author, funding_round)

    response = await client.get(f"/api/funding-rounds/{funding_round.id}")

    assert response.status_code == 200
    assert response.json()["proposals_count"] == 2
    assert response.json()["phases"]["submission"] is not None


async def test_unknown_round_is_404(client):
    response = await client.get("/api/funding-rounds/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


async def test_admin_creates_draft_round(client, admin, now):
    response = await client.post(
        "/api/admin/funding-rounds",
        json=round_payload(now, "upcoming", name="MEF 7"),
        headers=auth_headers(admin),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "DRAFT"
    assert body["name"] == "MEF 7"
    assert body["phase"] == "UPCOMING"
    assert set(body["phases"]) == {"submission", "consideration", "deliberation", "voting"}


async def test_create_with_out_of_sequence_phases_is_400(client, admin, now):
    payload = round_payload(now, "upcoming")
    payload["consideration"], payload["deliberation"] = payload["deliberation"], payload["consideration"]

    response = await client.post("/api/admin/funding-rounds", json=payload, headers=auth_headers(admin))

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "OUT_OF_SEQUENCE"
    assert body["debug_id"]


async def test_create_requires_auth(client, now):
    response = await client.post("/api/admin/funding-rounds", json=round_payload(now))
    assert response.status_code == 401


async def test_status_patch_activates_then_rejects_terminal_change(client, admin, make_round):
    funding_round = await make_round(active="submission", status=FundingRoundStatus.DRAFT)
    url = f"/api/admin/funding-rounds/{funding_round.id}/status"

    activated = await client.patch(url, json={"status": "ACTIVE"}, headers=auth_headers(admin))
    completed = await client.patch(url, json={"status": "COMPLETED"}, headers=auth_headers(admin))
    reopened = await client.patch(url, json={"status": "ACTIVE"}, headers=auth_headers(admin))

    assert activated.status_code == 200
    assert activated.json()["status"] == "ACTIVE"
    assert completed.json()["status"] == "COMPLETED"
    assert reopened.status_code == 400
    assert reopened.json()["code"] == "INVALID_TRANSITION"


async def test_activating_round_without_phases_is_400(client, admin, make_round):
    funding_round = await make_round(status=FundingRoundStatus.DRAFT, with_phases=False)

    response = await client.patch(
        f"/api/admin/funding-rounds/{funding_round.id}/status",
        json={"status": "ACTIVE"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INCOMPLETE_PHASES"


async def test_delete_draft_round(client, admin, make_round):
    funding_round = await make_round(status=FundingRoundStatus.DRAFT)

    deleted = await client.delete(f"/api/admin/funding-rounds/{funding_round.id}", headers=auth_headers(admin))
    missing = await client.get(f"/api/funding-rounds/{funding_round.id}")

    assert deleted.status_code == 204
    assert missing.status_code == 404


async def test_active_round_cannot_be_deleted(client, admin, make_round):
    funding_round = await make_round(status=FundingRoundStatus.ACTIVE)

    response = await client.delete(f"/api/admin/funding-rounds/{funding_round.id}", headers=auth_headers(admin))

    assert response.status_code == 400
    assert response.json()["code"] == "ROUND_ACTIVE"


async def test_update_to_taken_mef_id_is_409(client, admin, now):
    headers = auth_headers(admin)
    await client.post("/api/admin/funding-rounds", json=round_payload(now, "upcoming", mef_id=7), headers=headers)
    second = await client.post("/api/admin/funding-rounds", json=round_payload(now, "upcoming", mef_id=8), headers=headers)

    response = await client.put(
        f"/api/admin/funding-rounds/{second.json()['id']}",
        json=round_payload(now, "upcoming", mef_id=7),
        headers=headers,
    )

    assert response.status_code == 409
    assert response.json()["code"] == "DUPLICATE_MEF_ID"
