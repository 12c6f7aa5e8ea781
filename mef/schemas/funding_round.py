"""Funding round Pydantic schemas for API requests and responses."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from mef.domain.phases import PhaseDates, PhaseWindow, RoundPhase
from mef.domain.round_status import FundingRoundStatus


class PhaseDatesInput(BaseModel):
    start_date: datetime
    end_date: datetime

    def window(self) -> PhaseWindow:
        return PhaseWindow(self.start_date, self.end_date)


class FundingRoundCreate(BaseModel):
    """Create a DRAFT funding round with all four phases."""

    name: str = Field(min_length=1, max_length=255)
    description: str = ""
    total_budget: Decimal = Field(gt=0)
    start_date: datetime
    end_date: datetime
    submission: PhaseDatesInput
    consideration: PhaseDatesInput
    deliberation: PhaseDatesInput
    voting: PhaseDatesInput
    mef_id: int | None = Field(default=None, ge=1)

    def phase_dates(self) -> PhaseDates:
        return PhaseDates(
            funding_round=PhaseWindow(self.start_date, self.end_date),
            submission=self.submission.window(),
            consideration=self.consideration.window(),
            deliberation=self.deliberation.window(),
            voting=self.voting.window(),
        )


class FundingRoundUpdate(FundingRoundCreate):
    """Full replacement of a round's editable fields and phase dates."""


class FundingRoundStatusUpdate(BaseModel):
    status: FundingRoundStatus


class PhaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    start_date: datetime
    end_date: datetime


class FundingRoundPhases(BaseModel):
    submission: PhaseResponse | None = None
    consideration: PhaseResponse | None = None
    deliberation: PhaseResponse | None = None
    voting: PhaseResponse | None = None


class FundingRoundResponse(BaseModel):
    id: uuid.UUID
    mef_id: int
    name: str
    description: str
    status: FundingRoundStatus
    total_budget: Decimal
    start_date: datetime
    end_date: datetime
    phases: FundingRoundPhases
    phase: RoundPhase | None = None
    time_remaining: str | None = None
    proposals_count: int = 0
