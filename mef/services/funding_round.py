"""FundingRoundService: round CRUD and the status transition guard.

Pure rules live in ``mef.domain.phases`` and ``mef.domain.round_status``;
this service performs the lookups that feed them and persists the result.
"""

import uuid
from datetime import UTC, datetime

import structlog
from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mef.core.exceptions import AppError
from mef.db.models.funding_round import (
    ConsiderationPhase,
    DeliberationPhase,
    FundingRound,
    SubmissionPhase,
    VotingPhase,
)
from mef.db.models.proposal import Proposal
from mef.db.models.reviewer_group import FundingRoundReviewerGroup
from mef.domain.phases import PhaseDates, PhaseWindow, RoundPhase, current_phase, time_remaining, validate_phase_dates
from mef.domain.round_status import FundingRoundStatus, check_status_transition
from mef.domain.validation import ValidationResult
from mef.schemas.funding_round import FundingRoundCreate, FundingRoundUpdate

logger = structlog.get_logger(__name__)

PHASE_MODELS = {
    "submission": SubmissionPhase,
    "consideration": ConsiderationPhase,
    "deliberation": DeliberationPhase,
    "voting": VotingPhase,
}


def phases_complete(funding_round: FundingRound) -> bool:
    return all(getattr(funding_round, f"{name}_phase") is not None for name in PHASE_MODELS)


def round_phase_dates(funding_round: FundingRound) -> PhaseDates | None:
    """PhaseDates for a round, or None while any phase is missing."""
    if not phases_complete(funding_round):
        return None
    return PhaseDates(
        funding_round=PhaseWindow(funding_round.start_date, funding_round.end_date),
        **{
            name: PhaseWindow(
                getattr(funding_round, f"{name}_phase").start_date,
                getattr(funding_round, f"{name}_phase").end_date,
            )
            for name in PHASE_MODELS
        },
    )


def round_current_phase(funding_round: FundingRound, now: datetime | None = None) -> RoundPhase | None:
    dates = round_phase_dates(funding_round)
    return current_phase(dates, now) if dates else None


def _phase_payload(phase) -> dict | None:
    if phase is None:
        return None
    return {"id": phase.id, "start_date": phase.start_date, "end_date": phase.end_date}


def phase_window(funding_round: FundingRound, name: str) -> PhaseWindow | None:
    phase = getattr(funding_round, f"{name}_phase")
    if phase is None:
        return None
    return PhaseWindow(phase.start_date, phase.end_date)


class FundingRoundService:
    """Service layer for funding rounds."""

    def __init__(self, session: AsyncSession, allow_multiple_active_rounds: bool = True):
        """Initialize with dependency-injected session.

        Args:
            session: SQLAlchemy async session
            allow_multiple_active_rounds: When False, activation fails while
                another round is ACTIVE
        """
        self.session = session
        self.allow_multiple_active_rounds = allow_multiple_active_rounds

    async def get(self, round_id: uuid.UUID) -> FundingRound:
        funding_round = await self.session.get(FundingRound, round_id)
        if funding_round is None:
            raise AppError.not_found("Funding round not found")
        return funding_round

    async def next_mef_id(self) -> int:
        result = await self.session.execute(select(func.max(FundingRound.mef_id)))
        return (result.scalar_one_or_none() or 0) + 1

    async def create(self, data: FundingRoundCreate, created_by_id: uuid.UUID | None = None) -> FundingRound:
        """Create a DRAFT round with its four phases.

        Raises:
            AppError(400): Phase dates invalid (code carries the validation code)
            AppError(409): Requested mef_id already taken
        """
        self._require_valid_dates(data)

        mef_id = data.mef_id or await self.next_mef_id()
        await self._require_unused_mef_id(mef_id)

        funding_round = FundingRound(
            id=uuid.uuid4(),
            mef_id=mef_id,
            name=data.name,
            description=data.description,
            status=FundingRoundStatus.DRAFT.value,
            total_budget=data.total_budget,
            start_date=data.start_date,
            end_date=data.end_date,
            created_by_id=created_by_id,
        )
        for name, model in PHASE_MODELS.items():
            dates = getattr(data, name)
            setattr(
                funding_round,
                f"{name}_phase",
                model(start_date=dates.start_date, end_date=dates.end_date),
            )

        self.session.add(funding_round)
        await self.session.commit()
        logger.info("funding_round_created", funding_round_id=str(funding_round.id), mef_id=mef_id)
        return await self.get(funding_round.id)

    async def update(self, round_id: uuid.UUID, data: FundingRoundUpdate) -> FundingRound:
        """Replace a round's fields and phase dates. Status is untouched.

        Raises:
            AppError(400): Phase dates invalid
            AppError(404): Round not found
            AppError(409): Requested mef_id belongs to another round
        """
        funding_round = await self.get(round_id)
        self._require_valid_dates(data)
        if data.mef_id is not None:
            await self._require_unused_mef_id(data.mef_id, exclude_id=round_id)

        funding_round.name = data.name
        funding_round.description = data.description
        funding_round.total_budget = data.total_budget
        funding_round.start_date = data.start_date
        funding_round.end_date = data.end_date
        if data.mef_id is not None:
            funding_round.mef_id = data.mef_id

        for name, model in PHASE_MODELS.items():
            dates = getattr(data, name)
            phase = getattr(funding_round, f"{name}_phase")
            if phase is None:
                setattr(funding_round, f"{name}_phase", model(start_date=dates.start_date, end_date=dates.end_date))
            else:
                phase.start_date = dates.start_date
                phase.end_date = dates.end_date

        await self.session.commit()
        logger.info("funding_round_updated", funding_round_id=str(round_id))
        return funding_round

    def _require_valid_dates(self, data: FundingRoundCreate) -> None:
        result = validate_phase_dates(data.phase_dates())
        if not result.valid:
            raise AppError.bad_request(result.error, result.code)

    async def _require_unused_mef_id(self, mef_id: int, exclude_id: uuid.UUID | None = None) -> None:
        query = select(FundingRound.id).where(FundingRound.mef_id == mef_id)
        if exclude_id is not None:
            query = query.where(FundingRound.id != exclude_id)
        existing = await self.session.execute(query)
        if existing.scalar_one_or_none() is not None:
            raise AppError.conflict(f"Funding round with MEF id {mef_id} already exists", "DUPLICATE_MEF_ID")

    async def validate_status_transition(
        self,
        current: FundingRoundStatus,
        requested: FundingRoundStatus,
        round_id: uuid.UUID,
    ) -> ValidationResult:
        """Check a status change against the round's phases and the other rounds."""
        funding_round = await self.get(round_id)

        other_active = False
        if FundingRoundStatus(requested) == FundingRoundStatus.ACTIVE:
            result = await self.session.execute(
                select(func.count(FundingRound.id)).where(
                    FundingRound.status == FundingRoundStatus.ACTIVE.value,
                    FundingRound.id != round_id,
                )
            )
            other_active = result.scalar_one() > 0

        return check_status_transition(
            current,
            requested,
            phases_complete=phases_complete(funding_round),
            other_active_round=other_active,
            allow_multiple_active_rounds=self.allow_multiple_active_rounds,
        )

    async def update_status(self, round_id: uuid.UUID, status: FundingRoundStatus) -> FundingRound:
        """Apply a validated status transition.

        Raises:
            AppError(400): Transition rejected; ``code`` is the validation code
            AppError(404): Round not found
        """
        funding_round = await self.get(round_id)
        current = FundingRoundStatus(funding_round.status)

        result = await self.validate_status_transition(current, status, round_id)
        if not result.valid:
            raise AppError.bad_request(result.error, result.code)

        funding_round.status = FundingRoundStatus(status).value
        await self.session.commit()
        logger.info(
            "funding_round_status_changed",
            funding_round_id=str(round_id),
            old_status=current.value,
            new_status=funding_round.status,
        )
        return funding_round

    async def delete(self, round_id: uuid.UUID) -> None:
        funding_round = await self.get(round_id)
        if funding_round.status == FundingRoundStatus.ACTIVE.value:
            raise AppError.bad_request("Cannot delete an active funding round", "ROUND_ACTIVE")

        await self.session.execute(
            delete(FundingRoundReviewerGroup).where(FundingRoundReviewerGroup.funding_round_id == round_id)
        )
        await self.session.delete(funding_round)
        await self.session.commit()
        logger.info("funding_round_deleted", funding_round_id=str(round_id))

    async def list_public(self) -> list[FundingRound]:
        """ACTIVE and COMPLETED rounds, active first, then newest start date."""
        result = await self.session.execute(
            select(FundingRound)
            .where(
                FundingRound.status.in_([FundingRoundStatus.ACTIVE.value, FundingRoundStatus.COMPLETED.value])
            )
            .order_by(
                case((FundingRound.status == FundingRoundStatus.ACTIVE.value, 0), else_=1),
                FundingRound.start_date.desc(),
            )
        )
        return list(result.scalars().all())

    async def list_all(self) -> list[FundingRound]:
        result = await self.session.execute(select(FundingRound).order_by(FundingRound.start_date.desc()))
        return list(result.scalars().all())

    async def list_active(self, now: datetime | None = None) -> list[FundingRound]:
        """ACTIVE rounds whose overall window contains ``now``."""
        now = now or datetime.now(UTC)
        result = await self.session.execute(
            select(FundingRound)
            .where(
                FundingRound.status == FundingRoundStatus.ACTIVE.value,
                FundingRound.start_date <= now,
                FundingRound.end_date >= now,
            )
            .order_by(FundingRound.start_date.asc())
        )
        return list(result.scalars().all())

    async def proposal_counts(self, round_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
        if not round_ids:
            return {}
        result = await self.session.execute(
            select(Proposal.funding_round_id, func.count(Proposal.id))
            .where(Proposal.funding_round_id.in_(round_ids))
            .group_by(Proposal.funding_round_id)
        )
        return {round_id: count for round_id, count in result.all()}

    def describe(self, funding_round: FundingRound, proposals_count: int = 0, now: datetime | None = None) -> dict:
        """Response payload: round fields, phases, current phase and time left in it."""
        now = now or datetime.now(UTC)
        phase = round_current_phase(funding_round, now)

        remaining = None
        if phase is not None and phase.value.lower() in PHASE_MODELS:
            remaining = time_remaining(phase_window(funding_round, phase.value.lower()).end, now)

        return {
            "id": funding_round.id,
            "mef_id": funding_round.mef_id,
            "name": funding_round.name,
            "description": funding_round.description,
            "status": funding_round.status,
            "total_budget": funding_round.total_budget,
            "start_date": funding_round.start_date,
            "end_date": funding_round.end_date,
            "phases": {name: _phase_payload(getattr(funding_round, f"{name}_phase")) for name in PHASE_MODELS},
            "phase": phase,
            "time_remaining": remaining,
            "proposals_count": proposals_count,
        }
