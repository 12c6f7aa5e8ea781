"""Reviewer group Pydantic schemas for the admin endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class ReviewerGroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = ""
    member_ids: list[uuid.UUID] = []


class ReviewerGroupUpdate(BaseModel):
    """Replace a group's name, description and its full member list."""

    name: str = Field(min_length=1, max_length=255)
    description: str = ""
    member_ids: list[uuid.UUID] = []


class ReviewerGroupMemberAdd(BaseModel):
    user_id: uuid.UUID


class ReviewerGroupAttach(BaseModel):
    reviewer_group_id: uuid.UUID


class ReviewerGroupMemberResponse(BaseModel):
    user_id: uuid.UUID
    username: str


class ReviewerGroupResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str
    created_at: datetime
    members: list[ReviewerGroupMemberResponse]
