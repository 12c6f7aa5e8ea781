"""Proposal Pydantic schemas for API requests and responses."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from mef.domain.proposal_status import ProposalStatus

MAX_BUDGET_REQUEST = Decimal("1000000")


class ProposalInput(BaseModel):
    """Editable proposal content, shared by create and update."""

    proposal_name: str = Field(min_length=10, max_length=100, pattern=r"^[\w\s.,!?()-]+$")
    abstract: str = Field(min_length=100, max_length=1000)
    motivation: str = Field(min_length=200, max_length=2000)
    rationale: str = Field(min_length=300, max_length=3000)
    delivery_requirements: str = Field(min_length=500, max_length=5000)
    security_and_performance: str = Field(min_length=200, max_length=3000)
    budget_request: Decimal = Field(gt=0, le=MAX_BUDGET_REQUEST, decimal_places=2)
    email: str | None = Field(default=None, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ProposalSubmit(BaseModel):
    funding_round_id: uuid.UUID


class ProposalStatusUpdate(BaseModel):
    status: ProposalStatus


class ProposalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: uuid.UUID
    funding_round_id: uuid.UUID | None
    proposal_name: str
    abstract: str
    motivation: str
    rationale: str
    delivery_requirements: str
    security_and_performance: str
    budget_request: Decimal
    email: str | None
    status: ProposalStatus
    submitted_at: datetime | None
    created_at: datetime
    updated_at: datetime
    can_edit: bool = False
    can_delete: bool = False
