"""Tests for the admin reviewer group endpoints and round attachments."""

import uuid

import pytest

from mef.domain.proposal_status import ProposalStatus
from mef.domain.round_status import FundingRoundStatus
from tests.helpers import auth_headers

pytestmark = pytest.mark.integration

GROUPS = "/api/admin/reviewer-groups"


@pytest.fixture
async def admin(make_user):
    return await make_user("admin", is_admin=True)


async def create_group(client, admin, name: str = "Core reviewers", member_ids=()):
    response = await client.post(
        GROUPS,
        json={"name": name, "description": "Reviews infra", "member_ids": [str(m) for m in member_ids]},
        headers=auth_headers(admin),
    )
    assert response.status_code == 201
    return response.json()


async def test_create_list_and_get_group(client, admin, make_user):
    alice = await make_user("alice")
    bob = await make_user("bob")

    created = await create_group(client, admin, member_ids=[bob.id, alice.id, bob.id])
    listed = await client.get(GROUPS, headers=auth_headers(admin))
    fetched = await client.get(f"{GROUPS}/{created['id']}", headers=auth_headers(admin))

    assert created["name"] == "Core reviewers"
    assert [m["username"] for m in created["members"]] == [alice.username, bob.username]
    assert [g["id"] for g in listed.json()] == [created["id"]]
    assert fetched.json()["members"] == created["members"]


async def test_duplicate_group_name_is_409(client, admin):
    await create_group(client, admin)

    response = await client.post(GROUPS, json={"name": "Core reviewers"}, headers=auth_headers(admin))

    assert response.status_code == 409
    assert response.json()["code"] == "DUPLICATE_GROUP_NAME"


async def test_unknown_member_is_404(client, admin):
    response = await client.post(
        GROUPS,
        json={"name": "Ghosts", "member_ids": [str(uuid.uuid4())]},
        headers=auth_headers(admin),
    )

    assert response.status_code == 404
    listed = await client.get(GROUPS, headers=auth_headers(admin))
    assert listed.json() == []


async def test_update_replaces_members(client, admin, make_user):
    alice = await make_user("alice")
    carol = await make_user("carol")
    group = await create_group(client, admin, member_ids=[alice.id])

    response = await client.put(
        f"{GROUPS}/{group['id']}",
        json={"name": "Renamed", "description": "", "member_ids": [str(carol.id)]},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Renamed"
    assert [m["user_id"] for m in body["members"]] == [str(carol.id)]


async def test_add_and_remove_member(client, admin, make_user):
    alice = await make_user("alice")
    group = await create_group(client, admin)
    members_url = f"{GROUPS}/{group['id']}/members"

    added = await client.post(members_url, json={"user_id": str(alice.id)}, headers=auth_headers(admin))
    again = await client.post(members_url, json={"user_id": str(alice.id)}, headers=auth_headers(admin))
    removed = await client.delete(f"{members_url}/{alice.id}", headers=auth_headers(admin))
    removed_twice = await client.delete(f"{members_url}/{alice.id}", headers=auth_headers(admin))

    assert added.status_code == 201
    assert [m["user_id"] for m in added.json()["members"]] == [str(alice.id)]
    assert again.status_code == 409
    assert again.json()["code"] == "ALREADY_MEMBER"
    assert removed.status_code == 204
    assert removed_twice.status_code == 404


async def test_attach_and_detach_round_group(client, admin, make_round):
    funding_round = await make_round(status=FundingRoundStatus.DRAFT)
    group = await create_group(client, admin)
    url = f"/api/admin/funding-rounds/{funding_round.id}/reviewer-groups"

    attached = await client.post(url, json={"reviewer_group_id": group["id"]}, headers=auth_headers(admin))
    duplicate = await client.post(url, json={"reviewer_group_id": group["id"]}, headers=auth_headers(admin))
    detached = await client.delete(f"{url}/{group['id']}", headers=auth_headers(admin))
    listed = await client.get(url, headers=auth_headers(admin))

    assert attached.status_code == 201
    assert [g["id"] for g in attached.json()] == [group["id"]]
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "ALREADY_ATTACHED"
    assert detached.status_code == 204
    assert listed.json() == []


async def test_deleting_group_removes_round_attachment(client, admin, make_round):
    funding_round = await make_round(status=FundingRoundStatus.DRAFT)
    group = await create_group(client, admin)
    url = f"/api/admin/funding-rounds/{funding_round.id}/reviewer-groups"
    await client.post(url, json={"reviewer_group_id": group["id"]}, headers=auth_headers(admin))

    deleted = await client.delete(f"{GROUPS}/{group['id']}", headers=auth_headers(admin))

    assert deleted.status_code == 204
    assert (await client.get(f"{GROUPS}/{group['id']}", headers=auth_headers(admin))).status_code == 404
    assert (await client.get(url, headers=auth_headers(admin))).json() == []


async def test_group_endpoints_require_admin(client, make_user):
    user = await make_user()

    response = await client.post(GROUPS, json={"name": "Mine"}, headers=auth_headers(user))

    assert response.status_code == 403


async def test_member_of_attached_group_can_vote_in_consideration(
    client, admin, make_user, make_round, make_proposal
):
    author = await make_user("author")
    reviewer = await make_user("reviewer")
    funding_round = await make_round(active="consideration")
    proposal = await make_proposal(author, funding_round, ProposalStatus.CONSIDERATION)
    vote_url = f"/api/proposals/{proposal.id}/consideration-vote"
    vote = {"decision": "APPROVED", "feedback": "Looks good"}

    before = await client.post(vote_url, json=vote, headers=auth_headers(reviewer))

    group = await create_group(client, admin, member_ids=[reviewer.id])
    await client.post(
        f"/api/admin/funding-rounds/{funding_round.id}/reviewer-groups",
        json={"reviewer_group_id": group["id"]},
        headers=auth_headers(admin),
    )
    after = await client.post(vote_url, json=vote, headers=auth_headers(reviewer))

    assert before.status_code == 403
    assert after.status_code == 200
