"""Voting Pydantic schemas: consideration, deliberation and ranked voting."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from mef.domain.proposal_status import ConsiderationDecision, ProposalStatus


class ConsiderationVoteRequest(BaseModel):
    decision: ConsiderationDecision
    feedback: str = Field(min_length=1, max_length=5000)


class StatusMoveResponse(BaseModel):
    old_status: ProposalStatus
    new_status: ProposalStatus
    ocv_eligible: bool
    reviewer_votes_given: int
    reviewer_votes_required: int


class ConsiderationVoteResponse(BaseModel):
    proposal_id: int
    decision: ConsiderationDecision
    feedback: str
    status_move: StatusMoveResponse | None = None


class DeliberationVoteRequest(BaseModel):
    feedback: str = Field(min_length=1, max_length=5000)
    recommendation: bool | None = None


class DeliberationVoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    proposal_id: int
    feedback: str
    recommendation: bool | None
    created_at: datetime
    updated_at: datetime


class RankedVoteMemoRequest(BaseModel):
    funding_round_id: uuid.UUID
    proposal_ids: list[int] = Field(min_length=1)


class ConsiderationMemoRequest(BaseModel):
    proposal_ids: list[int] = Field(min_length=1)


class MemoResponse(BaseModel):
    memo: str
