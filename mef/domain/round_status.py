"""Funding round status state machine.

Pure domain logic; the DB lookups that feed it live in
``mef.services.funding_round``.
"""

from enum import StrEnum

from mef.domain.validation import ValidationResult

INVALID_TRANSITION = "INVALID_TRANSITION"
INCOMPLETE_PHASES = "INCOMPLETE_PHASES"
ANOTHER_ROUND_ACTIVE = "ANOTHER_ROUND_ACTIVE"


class FundingRoundStatus(StrEnum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# COMPLETED and CANCELLED are terminal
TRANSITIONS: dict[FundingRoundStatus, frozenset[FundingRoundStatus]] = {
    FundingRoundStatus.DRAFT: frozenset({FundingRoundStatus.ACTIVE, FundingRoundStatus.CANCELLED}),
    FundingRoundStatus.ACTIVE: frozenset({FundingRoundStatus.COMPLETED, FundingRoundStatus.CANCELLED}),
    FundingRoundStatus.COMPLETED: frozenset(),
    FundingRoundStatus.CANCELLED: frozenset(),
}


def is_allowed(current: FundingRoundStatus, requested: FundingRoundStatus) -> bool:
    return requested in TRANSITIONS[FundingRoundStatus(current)]


def check_status_transition(
    current: FundingRoundStatus,
    requested: FundingRoundStatus,
    *,
    phases_complete: bool,
    other_active_round: bool = False,
    allow_multiple_active_rounds: bool = True,
) -> ValidationResult:
    """Validate a funding round status change.

    Args:
        current: Status the round holds now
        requested: Status the admin asked for
        phases_complete: True when all four phase sub-records exist
        other_active_round: True when a different round is already ACTIVE
        allow_multiple_active_rounds: Policy flag; when False a second ACTIVE
            round is rejected

    Returns:
        ValidationResult with INCOMPLETE_PHASES, ANOTHER_ROUND_ACTIVE or
        INVALID_TRANSITION on failure

    Rules:
        - Activating without all phases always fails with INCOMPLETE_PHASES,
          whatever the current status.
        - Otherwise the request must appear in TRANSITIONS.
        - Activating while another round is ACTIVE fails only when the
          policy forbids concurrent active rounds.
    """
    current = FundingRoundStatus(current)
    requested = FundingRoundStatus(requested)

    if requested == FundingRoundStatus.ACTIVE and not phases_complete:
        return ValidationResult.fail(
            INCOMPLETE_PHASES,
            "Funding round must have all phases defined before activation",
        )

    if not is_allowed(current, requested):
        return ValidationResult.fail(
            INVALID_TRANSITION,
            f"Cannot transition from {current.value} to {requested.value}",
        )

    if requested == FundingRoundStatus.ACTIVE and other_active_round and not allow_multiple_active_rounds:
        return ValidationResult.fail(
            ANOTHER_ROUND_ACTIVE,
            "Another funding round is already active",
        )

    return ValidationResult.ok()
