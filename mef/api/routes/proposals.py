"""Proposal routes: drafting, submission and withdrawal."""

import structlog
from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from mef.api.deps import get_optional_scheduler
from mef.core.auth import AuthUser, require_admin, require_auth
from mef.db.base import get_db_session
from mef.db.models.proposal import Proposal
from mef.schemas.proposal import ProposalInput, ProposalResponse, ProposalStatusUpdate, ProposalSubmit
from mef.services.proposal import ProposalService
from mef.workers.metadata import DISCORD_NOTIFY
from mef.workers.scheduler import JobScheduler

logger = structlog.get_logger(__name__)

router = APIRouter()


def get_proposal_service(session: AsyncSession = Depends(get_db_session)) -> ProposalService:
    return ProposalService(session)


def to_response(proposal: Proposal, user: AuthUser) -> ProposalResponse:
    response = ProposalResponse.model_validate(proposal)
    return response.model_copy(update=ProposalService.permissions(proposal, user.user_id))


@router.post("", response_model=ProposalResponse, status_code=201)
async def create_proposal(
    request: ProposalInput,
    user: AuthUser = Depends(require_auth),
    service: ProposalService = Depends(get_proposal_service),
):
    proposal = await service.create_draft(user.user_id, request)
    return to_response(proposal, user)


@router.get("", response_model=list[ProposalResponse])
async def list_my_proposals(
    user: AuthUser = Depends(require_auth),
    service: ProposalService = Depends(get_proposal_service),
):
    return [to_response(p, user) for p in await service.list_for_user(user.user_id)]


@router.get("/{proposal_id}", response_model=ProposalResponse)
async def get_proposal(
    proposal_id: int,
    user: AuthUser = Depends(require_auth),
    service: ProposalService = Depends(get_proposal_service),
):
    return to_response(await service.get_owned(proposal_id, user.user_id), user)


@router.put("/{proposal_id}", response_model=ProposalResponse)
async def update_proposal(
    proposal_id: int,
    request: ProposalInput,
    user: AuthUser = Depends(require_auth),
    service: ProposalService = Depends(get_proposal_service),
):
    """Edit a proposal. Owner only, DRAFT only."""
    return to_response(await service.update(proposal_id, user.user_id, request), user)


@router.delete("/{proposal_id}", status_code=204)
async def delete_proposal(
    proposal_id: int,
    user: AuthUser = Depends(require_auth),
    service: ProposalService = Depends(get_proposal_service),
):
    """Delete a proposal. Owner only, DRAFT only."""
    await service.delete(proposal_id, user.user_id)
    return Response(status_code=204)


@router.post("/{proposal_id}/submit", response_model=ProposalResponse)
async def submit_proposal(
    proposal_id: int,
    request: ProposalSubmit,
    user: AuthUser = Depends(require_auth),
    service: ProposalService = Depends(get_proposal_service),
    scheduler: JobScheduler | None = Depends(get_optional_scheduler),
):
    """Submit a DRAFT to a funding round and fire the submission notification."""
    proposal = await service.submit(proposal_id, user.user_id, request.funding_round_id)

    if scheduler is not None:
        scheduler.run(
            DISCORD_NOTIFY,
            payload={"proposal_id": proposal.id, "funding_round_id": str(proposal.funding_round_id)},
        )
    else:
        logger.info("submission_notification_skipped", proposal_id=proposal.id, reason="no_scheduler")

    return to_response(proposal, user)


@router.post("/{proposal_id}/withdraw", response_model=ProposalResponse)
async def withdraw_proposal(
    proposal_id: int,
    user: AuthUser = Depends(require_auth),
    service: ProposalService = Depends(get_proposal_service),
):
    return to_response(await service.withdraw(proposal_id, user.user_id), user)


admin_router = APIRouter()


@admin_router.patch("/{proposal_id}/status", response_model=ProposalResponse)
async def set_proposal_status(
    proposal_id: int,
    request: ProposalStatusUpdate,
    admin: AuthUser = Depends(require_admin),
    service: ProposalService = Depends(get_proposal_service),
):
    """Admin override of a proposal's status."""
    return to_response(await service.set_status(proposal_id, request.status), admin)
