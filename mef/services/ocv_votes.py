"""OCV vote cache: one row per proposal, overwritten on every refresh."""

import math

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mef.db.models.funding_round import FundingRound
from mef.db.models.ocv_vote import OCVConsiderationVote
from mef.db.models.proposal import Proposal
from mef.services.ocv_api import OCVVoteResponse

SORTABLE_FIELDS = {
    "updated_at": OCVConsiderationVote.updated_at,
    "created_at": OCVConsiderationVote.created_at,
    "proposal_id": OCVConsiderationVote.proposal_id,
}


class OCVVotesService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert(self, proposal_id: int, vote_data: OCVVoteResponse | dict) -> OCVConsiderationVote:
        """Store the latest tally for a proposal (last write wins)."""
        if isinstance(vote_data, OCVVoteResponse):
            vote_data = vote_data.model_dump(mode="json")

        result = await self.session.execute(
            select(OCVConsiderationVote).where(OCVConsiderationVote.proposal_id == proposal_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = OCVConsiderationVote(proposal_id=proposal_id, vote_data=vote_data)
            self.session.add(row)
        else:
            row.vote_data = vote_data

        await self.session.commit()
        return row

    async def list_votes(
        self,
        page: int = 1,
        page_size: int = 25,
        sort_field: str = "updated_at",
        sort_order: str = "desc",
        reviewer_count: int = 0,
    ) -> dict:
        """Paginated cache rows with proposal and round names.

        Args:
            page: 1-based page number
            page_size: Rows per page
            sort_field: One of SORTABLE_FIELDS
            sort_order: "asc" or "desc"
            reviewer_count: Configured reviewer approval threshold, echoed per row

        Returns:
            Dict with data, pagination and sort keys
        """
        column = SORTABLE_FIELDS[sort_field]
        ordering = column.asc() if sort_order == "asc" else column.desc()

        total = (await self.session.execute(select(func.count(OCVConsiderationVote.id)))).scalar_one()
        result = await self.session.execute(
            select(OCVConsiderationVote, Proposal.proposal_name, Proposal.status, FundingRound.name)
            .join(Proposal, Proposal.id == OCVConsiderationVote.proposal_id)
            .outerjoin(FundingRound, FundingRound.id == Proposal.funding_round_id)
            .order_by(ordering)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )

        data = [
            {
                "id": vote.id,
                "proposal_id": vote.proposal_id,
                "vote_data": vote.vote_data,
                "created_at": vote.created_at,
                "updated_at": vote.updated_at,
                "proposal": {
                    "proposal_name": proposal_name,
                    "reviewer_count": reviewer_count,
                    "funding_round_name": round_name or "N/A",
                    "status": status,
                },
            }
            for vote, proposal_name, status, round_name in result.all()
        ]

        return {
            "data": data,
            "pagination": {
                "current_page": page,
                "total_pages": math.ceil(total / page_size) if page_size else 0,
                "page_size": page_size,
                "total_count": total,
            },
            "sort": {"field": sort_field, "order": sort_order},
        }
