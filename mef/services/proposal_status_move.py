"""ProposalStatusMoveService: moves proposals between CONSIDERATION and DELIBERATION.

Reads the cached OCV tally and the reviewer approvals, asks
``decide_move`` for the target status, and persists it. Called after every
consideration vote and by the OCV vote counting job.
"""

from dataclasses import asdict, dataclass

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mef.core.exceptions import AppError
from mef.db.models.ocv_vote import OCVConsiderationVote
from mef.db.models.proposal import Proposal
from mef.db.models.reviewer_group import FundingRoundReviewerGroup, ReviewerGroupMember
from mef.db.models.vote import ConsiderationVote
from mef.domain.proposal_status import MOVABLE_STATUSES, ConsiderationDecision, ProposalStatus, decide_move

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MoveResult:
    proposal_id: int
    old_status: ProposalStatus
    new_status: ProposalStatus
    ocv_eligible: bool
    community_positive_votes: int
    positive_stake_weight: str
    reviewer_votes_given: int
    reviewer_votes_required: int

    def to_dict(self) -> dict:
        return asdict(self)


def reviewer_ids_for_round(funding_round_id):
    """Subquery of user ids that review for ``funding_round_id``."""
    return (
        select(ReviewerGroupMember.user_id)
        .join(
            FundingRoundReviewerGroup,
            FundingRoundReviewerGroup.reviewer_group_id == ReviewerGroupMember.reviewer_group_id,
        )
        .where(FundingRoundReviewerGroup.funding_round_id == funding_round_id)
    )


class ProposalStatusMoveService:
    def __init__(self, session: AsyncSession, required_approvals: int):
        """Initialize with dependency-injected session.

        Args:
            session: SQLAlchemy async session
            required_approvals: Reviewer approvals needed to reach deliberation
        """
        self.session = session
        self.required_approvals = required_approvals

    async def count_reviewer_approvals(self, proposal: Proposal) -> int:
        """APPROVED consideration votes cast by reviewers of the proposal's round."""
        if proposal.funding_round_id is None:
            return 0

        result = await self.session.execute(
            select(func.count(ConsiderationVote.id)).where(
                ConsiderationVote.proposal_id == proposal.id,
                ConsiderationVote.decision == ConsiderationDecision.APPROVED.value,
                ConsiderationVote.voter_id.in_(reviewer_ids_for_round(proposal.funding_round_id)),
            )
        )
        return result.scalar_one()

    async def get_ocv_vote_data(self, proposal_id: int) -> dict | None:
        result = await self.session.execute(
            select(OCVConsiderationVote.vote_data).where(OCVConsiderationVote.proposal_id == proposal_id)
        )
        return result.scalar_one_or_none()

    async def check_and_move_proposal(self, proposal_id: int) -> MoveResult | None:
        """Re-evaluate a proposal and apply the status move it qualifies for.

        Args:
            proposal_id: Proposal to evaluate

        Returns:
            MoveResult when the status changed, None when it stays put
            (not in CONSIDERATION/DELIBERATION, or already where it belongs)

        Raises:
            AppError(404): Proposal not found
        """
        proposal = await self.session.get(Proposal, proposal_id)
        if proposal is None:
            raise AppError.not_found(f"Proposal {proposal_id} not found")

        current = ProposalStatus(proposal.status)
        if current not in MOVABLE_STATUSES:
            return None

        # No cached tally means the community vote has not made it eligible
        vote_data = await self.get_ocv_vote_data(proposal_id) or {}
        ocv_eligible = bool(vote_data.get("eligible", False))
        approvals = await self.count_reviewer_approvals(proposal)

        target = decide_move(current, ocv_eligible, approvals, self.required_approvals)
        if target is None:
            return None

        proposal.status = target.value
        await self.session.commit()

        result = MoveResult(
            proposal_id=proposal_id,
            old_status=current,
            new_status=target,
            ocv_eligible=ocv_eligible,
            community_positive_votes=int(vote_data.get("total_positive_community_votes", 0) or 0),
            positive_stake_weight=str(vote_data.get("positive_stake_weight", "0") or "0"),
            reviewer_votes_given=approvals,
            reviewer_votes_required=self.required_approvals,
        )
        logger.info(
            "proposal_status_moved",
            proposal_id=proposal_id,
            old_status=current.value,
            new_status=target.value,
            ocv_eligible=ocv_eligible,
            reviewer_votes_given=approvals,
            reviewer_votes_required=self.required_approvals,
        )
        return result
