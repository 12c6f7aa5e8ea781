"""Admin worker routes: heartbeat monitoring, OCV vote cache, GPT Survey controls."""

import math
import uuid
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mef.api.deps import get_scheduler, get_worker_deps
from mef.core.auth import AuthUser, require_admin
from mef.core.config import get_settings
from mef.db.base import get_db_session
from mef.db.models.worker_heartbeat import WorkerHeartbeat
from mef.schemas.workers import (
    GptSurveyKillResponse,
    GptSurveyProcessRequest,
    GptSurveyProcessResponse,
    GptSurveyStatusResponse,
    WorkerHeartbeatPage,
    WorkerHeartbeatResponse,
)
from mef.services import ocv_votes
from mef.services.ocv_votes import OCVVotesService
from mef.workers import heartbeat
from mef.workers.deps import WorkerDeps
from mef.workers.jobs.gpt_survey_processing import gpt_survey_status, kill_gpt_survey, start_gpt_survey
from mef.workers.metadata import dump_metadata, parse_metadata
from mef.workers.scheduler import JobScheduler

router = APIRouter()


def _heartbeat_to_response(row: WorkerHeartbeat | None) -> WorkerHeartbeatResponse | None:
    if row is None:
        return None
    return WorkerHeartbeatResponse(
        id=row.id,
        name=row.name,
        status=row.status,
        last_heartbeat=row.last_heartbeat,
        created_at=row.created_at,
        metadata=dump_metadata(parse_metadata(row.name, row.job_metadata)),
    )


# ---------- Heartbeats ----------


@router.get("/worker-heartbeats", response_model=WorkerHeartbeatPage)
async def list_worker_heartbeats(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100, alias="pageSize"),
    sort_field: str = Query("created_at", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    _: AuthUser = Depends(require_admin),
    deps: WorkerDeps = Depends(get_worker_deps),
):
    """Paginated job executions, newest first by default."""
    if sort_field not in heartbeat.SORTABLE_FIELDS:
        raise HTTPException(status_code=400, detail=f"Cannot sort by {sort_field}")

    rows, total = await deps.registry.list_page(page, page_size, sort_field, sort_order)
    return {
        "data": [_heartbeat_to_response(row) for row in rows],
        "pagination": {
            "current_page": page,
            "total_pages": math.ceil(total / page_size),
            "page_size": page_size,
            "total_count": total,
        },
        "sort": {"field": sort_field, "order": sort_order},
    }


# ---------- OCV votes ----------


@router.get("/ocv-votes")
async def list_ocv_votes(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100, alias="pageSize"),
    sort_field: str = Query("updated_at", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    _: AuthUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Cached OCV tallies with the proposal they belong to."""
    if sort_field not in ocv_votes.SORTABLE_FIELDS:
        raise HTTPException(status_code=400, detail=f"Cannot sort by {sort_field}")

    return await OCVVotesService(session).list_votes(
        page,
        page_size,
        sort_field,
        sort_order,
        reviewer_count=get_settings().consideration_reviewer_approval_threshold,
    )


# ---------- GPT Survey ----------


@router.post("/gpt-survey/process", response_model=GptSurveyProcessResponse, status_code=202)
async def process_gpt_survey(
    body: GptSurveyProcessRequest,
    _: AuthUser = Depends(require_admin),
    deps: WorkerDeps = Depends(get_worker_deps),
    scheduler: JobScheduler = Depends(get_scheduler),
):
    """Start GPT Survey processing for a round. 409 while a run is in progress."""
    row = await start_gpt_survey(deps, scheduler, body.round_id, body.force_summary)
    return GptSurveyProcessResponse(
        message="GPT survey processing started",
        last_execution=_heartbeat_to_response(row),
    )


@router.get("/gpt-survey/status", response_model=GptSurveyStatusResponse)
async def get_gpt_survey_status(
    round_id: uuid.UUID | None = None,
    _: AuthUser = Depends(require_admin),
    deps: WorkerDeps = Depends(get_worker_deps),
    scheduler: JobScheduler = Depends(get_scheduler),
    session: AsyncSession = Depends(get_db_session),
):
    status = await gpt_survey_status(deps, scheduler, session, round_id)
    return GptSurveyStatusResponse(
        last_execution=_heartbeat_to_response(status["last_execution"]),
        is_running=status["is_running"],
        results=status["results"],
    )


@router.post("/gpt-survey/kill", response_model=GptSurveyKillResponse)
async def kill_gpt_survey_job(
    _: AuthUser = Depends(require_admin),
    deps: WorkerDeps = Depends(get_worker_deps),
    scheduler: JobScheduler = Depends(get_scheduler),
):
    """Cancel the running job and mark its heartbeat rows FAILED."""
    return await kill_gpt_survey(deps, scheduler)
