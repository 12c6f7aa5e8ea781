"""Reviewer groups: the users whose consideration approvals count for a round."""

import uuid

from sqlalchemy import Column, ForeignKey, String, Text, UniqueConstraint, Uuid

from mef.db.base import Base, UTCDateTime, utcnow


class ReviewerGroup(Base):
    __tablename__ = "reviewer_groups"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=False, default="")

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)


class ReviewerGroupMember(Base):
    __tablename__ = "reviewer_group_members"
    __table_args__ = (UniqueConstraint("reviewer_group_id", "user_id", name="uq_reviewer_group_member"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reviewer_group_id = Column(Uuid, ForeignKey("reviewer_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)


class FundingRoundReviewerGroup(Base):
    __tablename__ = "funding_round_reviewer_groups"
    __table_args__ = (
        UniqueConstraint("funding_round_id", "reviewer_group_id", name="uq_funding_round_reviewer_group"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    funding_round_id = Column(Uuid, ForeignKey("funding_rounds.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_group_id = Column(Uuid, ForeignKey("reviewer_groups.id", ondelete="CASCADE"), nullable=False)
