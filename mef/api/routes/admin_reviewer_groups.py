"""Admin reviewer group routes: groups, their members and the rounds they review."""

import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from mef.core.auth import AuthUser, require_admin
from mef.db.base import get_db_session
from mef.schemas.reviewer_group import (
    ReviewerGroupAttach,
    ReviewerGroupCreate,
    ReviewerGroupMemberAdd,
    ReviewerGroupResponse,
    ReviewerGroupUpdate,
)
from mef.services.reviewer_group import ReviewerGroupService

router = APIRouter()
round_router = APIRouter()


def get_reviewer_group_service(session: AsyncSession = Depends(get_db_session)) -> ReviewerGroupService:
    return ReviewerGroupService(session)


async def describe_one(service: ReviewerGroupService, group_id: uuid.UUID) -> dict:
    return (await service.describe([await service.get(group_id)]))[0]


@router.get("", response_model=list[ReviewerGroupResponse])
async def list_reviewer_groups(
    admin: AuthUser = Depends(require_admin),
    service: ReviewerGroupService = Depends(get_reviewer_group_service),
):
    return await service.describe(await service.list_all())


@router.post("", response_model=ReviewerGroupResponse, status_code=201)
async def create_reviewer_group(
    request: ReviewerGroupCreate,
    admin: AuthUser = Depends(require_admin),
    service: ReviewerGroupService = Depends(get_reviewer_group_service),
):
    """Create a group.

    Raises:
        AppError(404): Unknown member id
        AppError(409): DUPLICATE_GROUP_NAME
    """
    group = await service.create(request)
    return await describe_one(service, group.id)


@router.get("/{group_id}", response_model=ReviewerGroupResponse)
async def get_reviewer_group(
    group_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    service: ReviewerGroupService = Depends(get_reviewer_group_service),
):
    return await describe_one(service, group_id)


@router.put("/{group_id}", response_model=ReviewerGroupResponse)
async def update_reviewer_group(
    group_id: uuid.UUID,
    request: ReviewerGroupUpdate,
    admin: AuthUser = Depends(require_admin),
    service: ReviewerGroupService = Depends(get_reviewer_group_service),
):
    await service.update(group_id, request)
    return await describe_one(service, group_id)


@router.delete("/{group_id}", status_code=204)
async def delete_reviewer_group(
    group_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    service: ReviewerGroupService = Depends(get_reviewer_group_service),
):
    await service.delete(group_id)
    return Response(status_code=204)


@router.post("/{group_id}/members", response_model=ReviewerGroupResponse, status_code=201)
async def add_reviewer_group_member(
    group_id: uuid.UUID,
    request: ReviewerGroupMemberAdd,
    admin: AuthUser = Depends(require_admin),
    service: ReviewerGroupService = Depends(get_reviewer_group_service),
):
    await service.add_member(group_id, request.user_id)
    return await describe_one(service, group_id)


@router.delete("/{group_id}/members/{user_id}", status_code=204)
async def remove_reviewer_group_member(
    group_id: uuid.UUID,
    user_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    service: ReviewerGroupService = Depends(get_reviewer_group_service),
):
    await service.remove_member(group_id, user_id)
    return Response(status_code=204)


# Mounted under /admin/funding-rounds


@round_router.get("/{round_id}/reviewer-groups", response_model=list[ReviewerGroupResponse])
async def list_round_reviewer_groups(
    round_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    service: ReviewerGroupService = Depends(get_reviewer_group_service),
):
    return await service.describe(await service.list_for_round(round_id))


@round_router.post("/{round_id}/reviewer-groups", response_model=list[ReviewerGroupResponse], status_code=201)
async def attach_round_reviewer_group(
    round_id: uuid.UUID,
    request: ReviewerGroupAttach,
    admin: AuthUser = Depends(require_admin),
    service: ReviewerGroupService = Depends(get_reviewer_group_service),
):
    """Attach a group; returns the round's groups afterwards.

    Raises:
        AppError(404): Round or group not found
        AppError(409): ALREADY_ATTACHED
    """
    await service.attach_to_round(round_id, request.reviewer_group_id)
    return await service.describe(await service.list_for_round(round_id))


@round_router.delete("/{round_id}/reviewer-groups/{group_id}", status_code=204)
async def detach_round_reviewer_group(
    round_id: uuid.UUID,
    group_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    service: ReviewerGroupService = Depends(get_reviewer_group_service),
):
    await service.detach_from_round(round_id, group_id)
    return Response(status_code=204)
