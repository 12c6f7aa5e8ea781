"""ProposalService: proposal drafting, submission and withdrawal.

Owners edit and delete only while DRAFT. Submission attaches the proposal
to a funding round that is ACTIVE and in its submission phase.
"""

import uuid
from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mef.core.exceptions import AppError
from mef.db.models.funding_round import FundingRound
from mef.db.models.proposal import Proposal
from mef.domain.proposal_status import WITHDRAWABLE_STATUSES, ProposalStatus
from mef.domain.round_status import FundingRoundStatus
from mef.schemas.proposal import ProposalInput
from mef.services.funding_round import phase_window

logger = structlog.get_logger(__name__)


class ProposalService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, proposal_id: int) -> Proposal:
        proposal = await self.session.get(Proposal, proposal_id)
        if proposal is None:
            raise AppError.not_found("Proposal not found")
        return proposal

    async def get_owned(self, proposal_id: int, user_id: uuid.UUID) -> Proposal:
        """Fetch a proposal the user owns.

        Raises:
            AppError(404): Proposal not found
            AppError(403): Caller is not the owner
        """
        proposal = await self.get(proposal_id)
        if proposal.user_id != user_id:
            raise AppError.forbidden("You don't have permission to access this proposal")
        return proposal

    @staticmethod
    def permissions(proposal: Proposal, user_id: uuid.UUID) -> dict:
        editable = proposal.user_id == user_id and proposal.status == ProposalStatus.DRAFT.value
        return {"can_edit": editable, "can_delete": editable}

    async def create_draft(self, user_id: uuid.UUID, data: ProposalInput) -> Proposal:
        proposal = Proposal(user_id=user_id, status=ProposalStatus.DRAFT.value, **data.model_dump())
        self.session.add(proposal)
        await self.session.commit()
        logger.info("proposal_created", proposal_id=proposal.id, user_id=str(user_id))
        return proposal

    async def list_for_user(self, user_id: uuid.UUID) -> list[Proposal]:
        result = await self.session.execute(
            select(Proposal).where(Proposal.user_id == user_id).order_by(Proposal.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_for_round(self, funding_round_id: uuid.UUID, status: ProposalStatus | None = None) -> list[Proposal]:
        query = select(Proposal).where(Proposal.funding_round_id == funding_round_id)
        if status is not None:
            query = query.where(Proposal.status == ProposalStatus(status).value)
        result = await self.session.execute(query.order_by(Proposal.created_at.desc()))
        return list(result.scalars().all())

    async def update(self, proposal_id: int, user_id: uuid.UUID, data: ProposalInput) -> Proposal:
        proposal = await self.get_owned(proposal_id, user_id)
        self._require_draft(proposal)

        for field, value in data.model_dump().items():
            setattr(proposal, field, value)
        await self.session.commit()
        logger.info("proposal_updated", proposal_id=proposal_id)
        return proposal

    async def delete(self, proposal_id: int, user_id: uuid.UUID) -> None:
        proposal = await self.get_owned(proposal_id, user_id)
        self._require_draft(proposal)

        await self.session.delete(proposal)
        await self.session.commit()
        logger.info("proposal_deleted", proposal_id=proposal_id)

    def _require_draft(self, proposal: Proposal) -> None:
        if proposal.status != ProposalStatus.DRAFT.value:
            raise AppError.bad_request("Only draft proposals can be modified", "DRAFT_ONLY")

    async def submit(
        self,
        proposal_id: int,
        user_id: uuid.UUID,
        funding_round_id: uuid.UUID,
        now: datetime | None = None,
    ) -> Proposal:
        """Submit a DRAFT to a funding round, moving it to CONSIDERATION.

        Raises:
            AppError(404): Proposal or funding round not found
            AppError(403): Caller is not the owner
            AppError(400): Not a draft, round not ACTIVE, or outside the
                round's submission phase
        """
        now = now or datetime.now(UTC)
        proposal = await self.get_owned(proposal_id, user_id)
        self._require_draft(proposal)

        funding_round = await self.session.get(FundingRound, funding_round_id)
        if funding_round is None:
            raise AppError.not_found("Funding round not found")
        if funding_round.status != FundingRoundStatus.ACTIVE.value:
            raise AppError.bad_request("Funding round is not active", "ROUND_NOT_ACTIVE")

        window = phase_window(funding_round, "submission")
        if window is None or not window.contains(now):
            raise AppError.bad_request("Funding round is not in submission phase", "NOT_IN_SUBMISSION_PHASE")

        proposal.funding_round_id = funding_round_id
        proposal.status = ProposalStatus.CONSIDERATION.value
        proposal.submitted_at = now
        await self.session.commit()
        logger.info(
            "proposal_submitted",
            proposal_id=proposal_id,
            funding_round_id=str(funding_round_id),
        )
        return proposal

    async def withdraw(self, proposal_id: int, user_id: uuid.UUID) -> Proposal:
        proposal = await self.get_owned(proposal_id, user_id)
        if ProposalStatus(proposal.status) not in WITHDRAWABLE_STATUSES:
            raise AppError.bad_request(
                "Only proposals in consideration or deliberation can be withdrawn",
                "NOT_WITHDRAWABLE",
            )

        proposal.status = ProposalStatus.WITHDRAWN.value
        await self.session.commit()
        logger.info("proposal_withdrawn", proposal_id=proposal_id)
        return proposal

    async def set_status(self, proposal_id: int, status: ProposalStatus) -> Proposal:
        """Admin override: set any status."""
        proposal = await self.get(proposal_id)
        old_status = proposal.status
        proposal.status = ProposalStatus(status).value
        await self.session.commit()
        logger.info(
            "proposal_status_overridden",
            proposal_id=proposal_id,
            old_status=old_status,
            new_status=proposal.status,
        )
        return proposal
