"""Admin funding round routes: create, edit, status changes, delete."""

import uuid

from fastapi import APIRouter, Depends, Response

from mef.api.routes.funding_rounds import describe_rounds, get_funding_round_service
from mef.core.auth import AuthUser, require_admin
from mef.schemas.funding_round import (
    FundingRoundCreate,
    FundingRoundResponse,
    FundingRoundStatusUpdate,
    FundingRoundUpdate,
)
from mef.services.funding_round import FundingRoundService

router = APIRouter()


@router.get("", response_model=list[FundingRoundResponse])
async def list_all_funding_rounds(
    admin: AuthUser = Depends(require_admin),
    service: FundingRoundService = Depends(get_funding_round_service),
):
    return await describe_rounds(service, await service.list_all())


@router.post("", response_model=FundingRoundResponse, status_code=201)
async def create_funding_round(
    request: FundingRoundCreate,
    admin: AuthUser = Depends(require_admin),
    service: FundingRoundService = Depends(get_funding_round_service),
):
    """Create a DRAFT round.

    Raises:
        AppError(400): Phase dates invalid (INVALID_RANGE, OUT_OF_BOUNDS, OUT_OF_SEQUENCE)
    """
    funding_round = await service.create(request, created_by_id=admin.user_id)
    return service.describe(funding_round)


@router.put("/{round_id}", response_model=FundingRoundResponse)
async def update_funding_round(
    round_id: uuid.UUID,
    request: FundingRoundUpdate,
    admin: AuthUser = Depends(require_admin),
    service: FundingRoundService = Depends(get_funding_round_service),
):
    funding_round = await service.update(round_id, request)
    return service.describe(funding_round)


@router.patch("/{round_id}/status", response_model=FundingRoundResponse)
async def update_funding_round_status(
    round_id: uuid.UUID,
    request: FundingRoundStatusUpdate,
    admin: AuthUser = Depends(require_admin),
    service: FundingRoundService = Depends(get_funding_round_service),
):
    """Change a round's status.

    Raises:
        AppError(400): INVALID_TRANSITION, INCOMPLETE_PHASES or ANOTHER_ROUND_ACTIVE
        AppError(404): Round not found
    """
    funding_round = await service.update_status(round_id, request.status)
    return service.describe(funding_round)


@router.delete("/{round_id}", status_code=204)
async def delete_funding_round(
    round_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    service: FundingRoundService = Depends(get_funding_round_service),
):
    await service.delete(round_id)
    return Response(status_code=204)
