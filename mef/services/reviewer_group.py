"""ReviewerGroupService: admin management of reviewer groups and their rounds.

A round's reviewers are the members of every group attached to it; see
``reviewer_ids_for_round`` in ``mef.services.proposal_status_move``.
"""

import uuid

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from mef.core.exceptions import AppError
from mef.db.models.funding_round import FundingRound
from mef.db.models.reviewer_group import FundingRoundReviewerGroup, ReviewerGroup, ReviewerGroupMember
from mef.db.models.user import User
from mef.schemas.reviewer_group import ReviewerGroupCreate, ReviewerGroupUpdate

logger = structlog.get_logger(__name__)


class ReviewerGroupService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, group_id: uuid.UUID) -> ReviewerGroup:
        group = await self.session.get(ReviewerGroup, group_id)
        if group is None:
            raise AppError.not_found("Reviewer group not found")
        return group

    async def list_all(self) -> list[ReviewerGroup]:
        result = await self.session.execute(select(ReviewerGroup).order_by(ReviewerGroup.name))
        return list(result.scalars().all())

    async def list_for_round(self, funding_round_id: uuid.UUID) -> list[ReviewerGroup]:
        await self._require_round(funding_round_id)
        result = await self.session.execute(
            select(ReviewerGroup)
            .join(FundingRoundReviewerGroup, FundingRoundReviewerGroup.reviewer_group_id == ReviewerGroup.id)
            .where(FundingRoundReviewerGroup.funding_round_id == funding_round_id)
            .order_by(ReviewerGroup.name)
        )
        return list(result.scalars().all())

    async def members(self, group_ids: list[uuid.UUID]) -> dict[uuid.UUID, list[dict]]:
        """Members per group, by username."""
        members: dict[uuid.UUID, list[dict]] = {group_id: [] for group_id in group_ids}
        if not group_ids:
            return members
        result = await self.session.execute(
            select(ReviewerGroupMember.reviewer_group_id, User.id, User.username)
            .join(User, User.id == ReviewerGroupMember.user_id)
            .where(ReviewerGroupMember.reviewer_group_id.in_(group_ids))
            .order_by(User.username)
        )
        for group_id, user_id, username in result.all():
            members[group_id].append({"user_id": user_id, "username": username})
        return members

    async def describe(self, groups: list[ReviewerGroup]) -> list[dict]:
        members = await self.members([group.id for group in groups])
        return [
            {
                "id": group.id,
                "name": group.name,
                "description": group.description,
                "created_at": group.created_at,
                "members": members[group.id],
            }
            for group in groups
        ]

    async def create(self, data: ReviewerGroupCreate) -> ReviewerGroup:
        """Create a group with its initial members.

        Raises:
            AppError(404): A member id is not a known user
            AppError(409): Group name already taken
        """
        await self._require_unused_name(data.name)
        member_ids = await self._require_users(data.member_ids)

        group = ReviewerGroup(id=uuid.uuid4(), name=data.name, description=data.description)
        self.session.add(group)
        for user_id in member_ids:
            self.session.add(ReviewerGroupMember(reviewer_group_id=group.id, user_id=user_id))
        await self.session.commit()

        logger.info("reviewer_group_created", reviewer_group_id=str(group.id), members=len(member_ids))
        return group

    async def update(self, group_id: uuid.UUID, data: ReviewerGroupUpdate) -> ReviewerGroup:
        """Rename a group and replace its member list.

        Raises:
            AppError(404): Group not found, or a member id is not a known user
            AppError(409): Group name taken by another group
        """
        group = await self.get(group_id)
        await self._require_unused_name(data.name, exclude_id=group_id)
        member_ids = await self._require_users(data.member_ids)

        group.name = data.name
        group.description = data.description
        await self.session.execute(delete(ReviewerGroupMember).where(ReviewerGroupMember.reviewer_group_id == group_id))
        for user_id in member_ids:
            self.session.add(ReviewerGroupMember(reviewer_group_id=group_id, user_id=user_id))
        await self.session.commit()

        logger.info("reviewer_group_updated", reviewer_group_id=str(group_id), members=len(member_ids))
        return group

    async def delete(self, group_id: uuid.UUID) -> None:
        """Delete a group, its memberships and its round attachments."""
        group = await self.get(group_id)
        await self.session.execute(delete(ReviewerGroupMember).where(ReviewerGroupMember.reviewer_group_id == group_id))
        await self.session.execute(
            delete(FundingRoundReviewerGroup).where(FundingRoundReviewerGroup.reviewer_group_id == group_id)
        )
        await self.session.delete(group)
        await self.session.commit()
        logger.info("reviewer_group_deleted", reviewer_group_id=str(group_id))

    async def add_member(self, group_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Add one user to a group.

        Raises:
            AppError(404): Group or user not found
            AppError(409): User already a member (ALREADY_MEMBER)
        """
        await self.get(group_id)
        await self._require_users([user_id])
        if await self._find_member(group_id, user_id) is not None:
            raise AppError.conflict("User is already a member of this group", "ALREADY_MEMBER")

        self.session.add(ReviewerGroupMember(reviewer_group_id=group_id, user_id=user_id))
        await self.session.commit()
        logger.info("reviewer_group_member_added", reviewer_group_id=str(group_id), user_id=str(user_id))

    async def remove_member(self, group_id: uuid.UUID, user_id: uuid.UUID) -> None:
        await self.get(group_id)
        member = await self._find_member(group_id, user_id)
        if member is None:
            raise AppError.not_found("User is not a member of this group")

        await self.session.delete(member)
        await self.session.commit()
        logger.info("reviewer_group_member_removed", reviewer_group_id=str(group_id), user_id=str(user_id))

    async def attach_to_round(self, funding_round_id: uuid.UUID, group_id: uuid.UUID) -> None:
        """Make a group's members reviewers of a round.

        Raises:
            AppError(404): Round or group not found
            AppError(409): Group already attached (ALREADY_ATTACHED)
        """
        await self._require_round(funding_round_id)
        await self.get(group_id)
        if await self._find_attachment(funding_round_id, group_id) is not None:
            raise AppError.conflict("Reviewer group is already attached to this round", "ALREADY_ATTACHED")

        self.session.add(FundingRoundReviewerGroup(funding_round_id=funding_round_id, reviewer_group_id=group_id))
        await self.session.commit()
        logger.info(
            "reviewer_group_attached",
            funding_round_id=str(funding_round_id),
            reviewer_group_id=str(group_id),
        )

    async def detach_from_round(self, funding_round_id: uuid.UUID, group_id: uuid.UUID) -> None:
        attachment = await self._find_attachment(funding_round_id, group_id)
        if attachment is None:
            raise AppError.not_found("Reviewer group is not attached to this round")

        await self.session.delete(attachment)
        await self.session.commit()
        logger.info(
            "reviewer_group_detached",
            funding_round_id=str(funding_round_id),
            reviewer_group_id=str(group_id),
        )

    async def _require_round(self, funding_round_id: uuid.UUID) -> None:
        if await self.session.get(FundingRound, funding_round_id) is None:
            raise AppError.not_found("Funding round not found")

    async def _require_unused_name(self, name: str, exclude_id: uuid.UUID | None = None) -> None:
        query = select(ReviewerGroup.id).where(ReviewerGroup.name == name)
        if exclude_id is not None:
            query = query.where(ReviewerGroup.id != exclude_id)
        existing = await self.session.execute(query)
        if existing.scalar_one_or_none() is not None:
            raise AppError.conflict(f"Reviewer group '{name}' already exists", "DUPLICATE_GROUP_NAME")

    async def _require_users(self, user_ids: list[uuid.UUID]) -> list[uuid.UUID]:
        """Deduplicated ``user_ids``, in order, after checking each one exists."""
        unique = list(dict.fromkeys(user_ids))
        if not unique:
            return unique
        result = await self.session.execute(select(User.id).where(User.id.in_(unique)))
        missing = set(unique) - set(result.scalars().all())
        if missing:
            raise AppError.not_found(f"User not found: {', '.join(sorted(str(user_id) for user_id in missing))}")
        return unique

    async def _find_member(self, group_id: uuid.UUID, user_id: uuid.UUID) -> ReviewerGroupMember | None:
        result = await self.session.execute(
            select(ReviewerGroupMember).where(
                ReviewerGroupMember.reviewer_group_id == group_id,
                ReviewerGroupMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def _find_attachment(self, funding_round_id: uuid.UUID, group_id: uuid.UUID) -> FundingRoundReviewerGroup | None:
        result = await self.session.execute(
            select(FundingRoundReviewerGroup).where(
                FundingRoundReviewerGroup.funding_round_id == funding_round_id,
                FundingRoundReviewerGroup.reviewer_group_id == group_id,
            )
        )
        return result.scalar_one_or_none()
