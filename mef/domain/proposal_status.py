"""Proposal lifecycle states and the consideration/deliberation move rule.

Pure domain functions. No DB access.
"""

from enum import StrEnum


class ProposalStatus(StrEnum):
    DRAFT = "DRAFT"
    CONSIDERATION = "CONSIDERATION"
    DELIBERATION = "DELIBERATION"
    VOTING = "VOTING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"


class ConsiderationDecision(StrEnum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


TERMINAL_STATUSES = frozenset({ProposalStatus.APPROVED, ProposalStatus.REJECTED, ProposalStatus.WITHDRAWN})
MOVABLE_STATUSES = frozenset({ProposalStatus.CONSIDERATION, ProposalStatus.DELIBERATION})
WITHDRAWABLE_STATUSES = frozenset({ProposalStatus.CONSIDERATION, ProposalStatus.DELIBERATION})


def is_eligible_for_deliberation(ocv_eligible: bool, reviewer_approvals: int, required_approvals: int) -> bool:
    """A proposal qualifies when the community vote is eligible and enough reviewers approved."""
    return ocv_eligible and reviewer_approvals >= required_approvals


def decide_move(
    status: ProposalStatus,
    ocv_eligible: bool,
    reviewer_approvals: int,
    required_approvals: int,
) -> ProposalStatus | None:
    """Return the status a proposal should move to, or None to stay put.

    Rules:
        - CONSIDERATION and eligible -> DELIBERATION
        - DELIBERATION and no longer eligible -> CONSIDERATION
        - anything else -> None

    Idempotent by construction: applying the returned status and asking
    again with the same inputs yields None.
    """
    eligible = is_eligible_for_deliberation(ocv_eligible, reviewer_approvals, required_approvals)

    if status == ProposalStatus.CONSIDERATION and eligible:
        return ProposalStatus.DELIBERATION
    if status == ProposalStatus.DELIBERATION and not eligible:
        return ProposalStatus.CONSIDERATION
    return None
