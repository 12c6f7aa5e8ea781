"""Tests for the funding round status state machine."""

import pytest

from mef.domain.round_status import (
    ANOTHER_ROUND_ACTIVE,
    INCOMPLETE_PHASES,
    INVALID_TRANSITION,
    FundingRoundStatus,
    check_status_transition,
)

pytestmark = pytest.mark.unit

S = FundingRoundStatus

ALLOWED = {
    (S.DRAFT, S.ACTIVE),
    (S.DRAFT, S.CANCELLED),
    (S.ACTIVE, S.COMPLETED),
    (S.ACTIVE, S.CANCELLED),
}


@pytest.mark.parametrize("current", list(S))
@pytest.mark.parametrize("requested", list(S))
def test_transition_table(current, requested):
    result = check_status_transition(current, requested, phases_complete=True)
    assert result.valid == ((current, requested) in ALLOWED)
    if not result.valid:
        assert result.code == INVALID_TRANSITION
        assert result.error == f"Cannot transition from {current.value} to {requested.value}"


@pytest.mark.parametrize("current", list(S))
def test_activation_without_phases_always_reports_incomplete_phases(current):
    result = check_status_transition(current, S.ACTIVE, phases_complete=False)
    assert not result.valid
    assert result.code == INCOMPLETE_PHASES


def test_missing_phases_do_not_block_other_transitions():
    assert check_status_transition(S.DRAFT, S.CANCELLED, phases_complete=False).valid


def test_second_active_round_allowed_by_default():
    result = check_status_transition(S.DRAFT, S.ACTIVE, phases_complete=True, other_active_round=True)
    assert result.valid


def test_second_active_round_rejected_when_policy_forbids():
    result = check_status_transition(
        S.DRAFT,
        S.ACTIVE,
        phases_complete=True,
        other_active_round=True,
        allow_multiple_active_rounds=False,
    )
    assert result.code == ANOTHER_ROUND_ACTIVE


def test_accepts_plain_strings():
    assert check_status_transition("DRAFT", "ACTIVE", phases_complete=True).valid
