"""ConsiderationVotingService: reviewer votes during the consideration phase.

Each vote is upserted and immediately followed by a status move check, so a
proposal reaches deliberation as soon as the last required approval lands.
"""

import uuid
from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mef.core.exceptions import AppError
from mef.db.models.funding_round import FundingRound
from mef.db.models.proposal import Proposal
from mef.db.models.reviewer_group import ReviewerGroupMember
from mef.db.models.vote import ConsiderationVote
from mef.domain.phases import RoundPhase
from mef.domain.proposal_status import ConsiderationDecision, ProposalStatus
from mef.services.funding_round import round_current_phase
from mef.services.proposal_status_move import MoveResult, ProposalStatusMoveService, reviewer_ids_for_round

logger = structlog.get_logger(__name__)


async def is_round_reviewer(session: AsyncSession, funding_round_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    result = await session.execute(
        reviewer_ids_for_round(funding_round_id).where(ReviewerGroupMember.user_id == user_id).limit(1)
    )
    return result.first() is not None


async def require_round_in_phase(
    session: AsyncSession,
    proposal: Proposal,
    phase: RoundPhase,
    now: datetime | None = None,
) -> FundingRound:
    """Return the proposal's round, or raise 400 unless it is currently in ``phase``."""
    if proposal.funding_round_id is None:
        raise AppError.bad_request("Proposal is not part of a funding round", "NO_FUNDING_ROUND")

    funding_round = await session.get(FundingRound, proposal.funding_round_id)
    if funding_round is None:
        raise AppError.not_found("Funding round not found")

    current = round_current_phase(funding_round, now)
    if current is None:
        raise AppError.bad_request("Funding round is not properly configured", "INCOMPLETE_PHASES")
    if current != phase:
        raise AppError.bad_request(
            f"Voting is only allowed during the {phase.value.lower()} phase",
            "WRONG_PHASE",
        )
    return funding_round


class ConsiderationVotingService:
    def __init__(self, session: AsyncSession, required_approvals: int):
        self.session = session
        self.status_move = ProposalStatusMoveService(session, required_approvals)

    async def submit_vote(
        self,
        proposal_id: int,
        voter_id: uuid.UUID,
        decision: ConsiderationDecision,
        feedback: str,
        now: datetime | None = None,
    ) -> tuple[ConsiderationVote, MoveResult | None]:
        """Record (or replace) a reviewer's consideration vote.

        Returns:
            The stored vote and the status move it triggered, if any

        Raises:
            AppError(404): Proposal not found
            AppError(400): Proposal not in CONSIDERATION/DELIBERATION, or the
                round is outside its consideration phase
            AppError(403): Voter is not a reviewer for the round
        """
        now = now or datetime.now(UTC)
        proposal = await self.session.get(Proposal, proposal_id)
        if proposal is None:
            raise AppError.not_found("Proposal not found")
        if proposal.status not in (ProposalStatus.CONSIDERATION.value, ProposalStatus.DELIBERATION.value):
            raise AppError.bad_request("Proposal is not open for consideration votes", "WRONG_STATUS")

        await require_round_in_phase(self.session, proposal, RoundPhase.CONSIDERATION, now)
        if not await is_round_reviewer(self.session, proposal.funding_round_id, voter_id):
            raise AppError.forbidden("Only reviewers can vote during consideration")

        result = await self.session.execute(
            select(ConsiderationVote).where(
                ConsiderationVote.proposal_id == proposal_id,
                ConsiderationVote.voter_id == voter_id,
            )
        )
        vote = result.scalar_one_or_none()
        if vote is None:
            vote = ConsiderationVote(proposal_id=proposal_id, voter_id=voter_id)
            self.session.add(vote)
        vote.decision = ConsiderationDecision(decision).value
        vote.feedback = feedback
        await self.session.commit()

        logger.info(
            "consideration_vote_recorded",
            proposal_id=proposal_id,
            voter_id=str(voter_id),
            decision=vote.decision,
        )

        move = await self.status_move.check_and_move_proposal(proposal_id)
        return vote, move

    async def list_votes(self, proposal_id: int) -> list[ConsiderationVote]:
        result = await self.session.execute(
            select(ConsiderationVote)
            .where(ConsiderationVote.proposal_id == proposal_id)
            .order_by(ConsiderationVote.created_at.asc())
        )
        return list(result.scalars().all())
