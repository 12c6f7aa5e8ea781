"""RankedVotingService: the ranked voting ballot, its memo and the on-chain result."""

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mef.core.exceptions import AppError
from mef.db.models.funding_round import FundingRound
from mef.db.models.ocv_vote import OCVConsiderationVote
from mef.db.models.proposal import Proposal
from mef.db.models.user import User
from mef.db.models.vote import DeliberationVote
from mef.domain.proposal_status import ProposalStatus
from mef.domain.ranked_vote import format_ranked_vote_memo_voting
from mef.services.funding_round import phase_window
from mef.services.ocv_api import OCVApiClient

logger = structlog.get_logger(__name__)


class RankedVotingService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_eligible_proposals(self, funding_round_id: uuid.UUID) -> dict:
        """DELIBERATION proposals of a round with reviewer and community tallies.

        Ordered by number of reviewer recommendations, most first.

        Raises:
            AppError(404): Funding round not found
        """
        funding_round = await self.session.get(FundingRound, funding_round_id)
        if funding_round is None:
            raise AppError.not_found("Funding round not found")

        result = await self.session.execute(
            select(Proposal, User, OCVConsiderationVote.vote_data)
            .join(User, User.id == Proposal.user_id)
            .outerjoin(OCVConsiderationVote, OCVConsiderationVote.proposal_id == Proposal.id)
            .where(
                Proposal.funding_round_id == funding_round_id,
                Proposal.status == ProposalStatus.DELIBERATION.value,
            )
            .order_by(Proposal.id.asc())
        )
        rows = result.all()

        recommendations: dict[int, list[bool]] = {}
        if rows:
            votes = await self.session.execute(
                select(DeliberationVote.proposal_id, DeliberationVote.recommendation).where(
                    DeliberationVote.proposal_id.in_([proposal.id for proposal, _, _ in rows]),
                    DeliberationVote.recommendation.is_not(None),
                )
            )
            for proposal_id, recommendation in votes.all():
                recommendations.setdefault(proposal_id, []).append(recommendation)

        proposals = []
        for proposal, author, vote_data in rows:
            given = recommendations.get(proposal.id, [])
            approved = sum(1 for r in given if r)
            ocv = vote_data or {}
            proposals.append(
                {
                    "id": proposal.id,
                    "proposal_name": proposal.proposal_name,
                    "reviewer_vote_count": len(given),
                    "status": proposal.status,
                    "budget_request": proposal.budget_request,
                    "author": {
                        "id": str(author.id),
                        "username": author.username,
                        "auth_type": author.auth_source or "wallet",
                    },
                    "reviewer_votes": {
                        "approved": approved,
                        "rejected": len(given) - approved,
                        "total": len(given),
                    },
                    "community_votes": {
                        "positive_stake_weight": str(ocv.get("positive_stake_weight") or "0"),
                        "total_votes": int(ocv.get("total_community_votes") or 0),
                    },
                }
            )

        proposals.sort(key=lambda p: p["reviewer_vote_count"], reverse=True)
        return {
            "proposals": proposals,
            "funding_round": {"id": funding_round.id, "mef_id": funding_round.mef_id, "name": funding_round.name},
        }

    async def build_memo(self, funding_round_id: uuid.UUID, ranked_proposal_ids: list[int]) -> str:
        """Ranked vote memo for a round, keyed by the round's on-chain number."""
        funding_round = await self.session.get(FundingRound, funding_round_id)
        if funding_round is None:
            raise AppError.not_found("Funding round not found")
        return format_ranked_vote_memo_voting(funding_round.mef_id, ranked_proposal_ids)

    async def get_ranked_results(self, funding_round_id: uuid.UUID, client: OCVApiClient) -> dict:
        """On-chain ranked vote result for a round, winners matched to its proposals.

        Winner ids that are not proposals of the round are logged and skipped;
        duplicates keep their first (highest) rank.

        Raises:
            AppError(404): Funding round not found
            AppError(400): Round has no voting phase
            ExternalServiceError: OCV API failure
        """
        funding_round = await self.session.get(FundingRound, funding_round_id)
        if funding_round is None:
            raise AppError.not_found("Funding round not found")
        window = phase_window(funding_round, "voting")
        if window is None:
            raise AppError.bad_request("Funding round has no voting phase", "INCOMPLETE_PHASES")

        data = await client.get_ranked_votes(funding_round.mef_id, window.start, window.end)

        result = await self.session.execute(select(Proposal).where(Proposal.funding_round_id == funding_round_id))
        proposals = {proposal.id: proposal for proposal in result.scalars().all()}

        ranked = []
        for winner_id in data.winners:
            proposal = proposals.get(winner_id)
            if proposal is None:
                logger.warning("ranked_vote_winner_unknown", mef_id=funding_round.mef_id, proposal_id=winner_id)
                continue
            if any(entry["id"] == winner_id for entry in ranked):
                continue
            ranked.append(
                {
                    "rank": len(ranked) + 1,
                    "id": proposal.id,
                    "proposal_name": proposal.proposal_name,
                    "status": proposal.status,
                    "budget_request": proposal.budget_request,
                }
            )

        return {
            "funding_round": {"id": funding_round.id, "mef_id": funding_round.mef_id, "name": funding_round.name},
            "total_votes": data.total_votes,
            "winners": data.winners,
            "ranked_proposals": ranked,
        }
