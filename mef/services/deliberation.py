"""DeliberationService: feedback on proposals during the deliberation phase.

Reviewers of the round attach a recommendation; community members leave
feedback only.
"""

import uuid
from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mef.core.exceptions import AppError
from mef.db.models.proposal import Proposal
from mef.db.models.vote import DeliberationVote
from mef.domain.phases import RoundPhase
from mef.domain.proposal_status import ProposalStatus
from mef.services.consideration_voting import is_round_reviewer, require_round_in_phase

logger = structlog.get_logger(__name__)


class DeliberationService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def submit_deliberation(
        self,
        proposal_id: int,
        user_id: uuid.UUID,
        feedback: str,
        recommendation: bool | None = None,
        now: datetime | None = None,
    ) -> DeliberationVote:
        """Record (or replace) a user's deliberation feedback.

        Raises:
            AppError(404): Proposal not found
            AppError(400): Proposal not in DELIBERATION, round outside its
                deliberation phase, or a reviewer omitted the recommendation
        """
        now = now or datetime.now(UTC)
        proposal = await self.session.get(Proposal, proposal_id)
        if proposal is None:
            raise AppError.not_found("Proposal not found")
        if proposal.status != ProposalStatus.DELIBERATION.value:
            raise AppError.bad_request("Proposal is not in deliberation", "WRONG_STATUS")

        await require_round_in_phase(self.session, proposal, RoundPhase.DELIBERATION, now)

        reviewer = await is_round_reviewer(self.session, proposal.funding_round_id, user_id)
        if reviewer and recommendation is None:
            raise AppError.bad_request("Reviewers must include a recommendation", "RECOMMENDATION_REQUIRED")
        if not reviewer:
            recommendation = None

        result = await self.session.execute(
            select(DeliberationVote).where(
                DeliberationVote.proposal_id == proposal_id,
                DeliberationVote.user_id == user_id,
            )
        )
        vote = result.scalar_one_or_none()
        if vote is None:
            vote = DeliberationVote(proposal_id=proposal_id, user_id=user_id)
            self.session.add(vote)
        vote.feedback = feedback
        vote.recommendation = recommendation
        await self.session.commit()

        logger.info(
            "deliberation_vote_recorded",
            proposal_id=proposal_id,
            user_id=str(user_id),
            is_reviewer=reviewer,
        )
        return vote

    async def community_feedback(self, proposal_id: int) -> list[DeliberationVote]:
        """Deliberation rows without a recommendation (community members)."""
        result = await self.session.execute(
            select(DeliberationVote)
            .where(
                DeliberationVote.proposal_id == proposal_id,
                DeliberationVote.recommendation.is_(None),
            )
            .order_by(DeliberationVote.created_at.asc())
        )
        return list(result.scalars().all())
