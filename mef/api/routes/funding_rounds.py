"""Public funding round routes."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mef.core.config import get_settings
from mef.db.base import get_db_session
from mef.schemas.funding_round import FundingRoundResponse
from mef.services.funding_round import FundingRoundService

router = APIRouter()


def get_funding_round_service(session: AsyncSession = Depends(get_db_session)) -> FundingRoundService:
    return FundingRoundService(session, get_settings().allow_multiple_active_rounds)


async def describe_rounds(service: FundingRoundService, rounds) -> list[dict]:
    counts = await service.proposal_counts([r.id for r in rounds])
    return [service.describe(r, counts.get(r.id, 0)) for r in rounds]


@router.get("", response_model=list[FundingRoundResponse])
async def list_funding_rounds(service: FundingRoundService = Depends(get_funding_round_service)):
    """ACTIVE and COMPLETED rounds, active first."""
    return await describe_rounds(service, await service.list_public())


@router.get("/active", response_model=list[FundingRoundResponse])
async def list_active_funding_rounds(service: FundingRoundService = Depends(get_funding_round_service)):
    return await describe_rounds(service, await service.list_active())


@router.get("/{round_id}", response_model=FundingRoundResponse)
async def get_funding_round(
    round_id: uuid.UUID,
    service: FundingRoundService = Depends(get_funding_round_service),
):
    funding_round = await service.get(round_id)
    counts = await service.proposal_counts([round_id])
    return service.describe(funding_round, counts.get(round_id, 0))
