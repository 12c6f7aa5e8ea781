"""Admin worker Pydantic schemas: heartbeats, OCV cache and GPT Survey controls."""

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel

# ---------- Heartbeats ----------


class WorkerHeartbeatResponse(BaseModel):
    id: uuid.UUID
    name: str
    status: str
    last_heartbeat: datetime
    created_at: datetime
    metadata: dict[str, Any] | None = None


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    page_size: int
    total_count: int


class SortInfo(BaseModel):
    field: str
    order: Literal["asc", "desc"]


class WorkerHeartbeatPage(BaseModel):
    data: list[WorkerHeartbeatResponse]
    pagination: Pagination
    sort: SortInfo


# ---------- GPT Survey ----------


class GptSurveyProcessRequest(BaseModel):
    round_id: uuid.UUID
    force_summary: bool = False


class GptSurveyProcessResponse(BaseModel):
    message: str
    last_execution: WorkerHeartbeatResponse | None


class GptSurveyProposalState(BaseModel):
    proposal_id: int
    proposal_name: str
    status: str
    submitted: bool
    feedback_count: int
    summary: str | None = None
    summary_updated_at: datetime | None = None


class GptSurveyStatusResponse(BaseModel):
    last_execution: WorkerHeartbeatResponse | None
    is_running: bool
    results: list[GptSurveyProposalState]


class GptSurveyKillResponse(BaseModel):
    message: str
    failed_rows: int
    cooperative: bool | None
