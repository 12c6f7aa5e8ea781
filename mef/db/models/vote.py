"""Reviewer and community votes cast during consideration and deliberation.

One row per (user, proposal) pair; edits overwrite the existing row.
"""

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid

from mef.db.base import Base, UTCDateTime, utcnow


class ConsiderationVote(Base):
    __tablename__ = "consideration_votes"
    __table_args__ = (UniqueConstraint("proposal_id", "voter_id", name="uq_consideration_vote"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    proposal_id = Column(Integer, ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False, index=True)
    voter_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)

    decision = Column(String(20), nullable=False)  # APPROVED, REJECTED
    feedback = Column(Text, nullable=False, default="")

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)


class DeliberationVote(Base):
    __tablename__ = "deliberation_votes"
    __table_args__ = (UniqueConstraint("proposal_id", "user_id", name="uq_deliberation_vote"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    proposal_id = Column(Integer, ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)

    feedback = Column(Text, nullable=False, default="")
    recommendation = Column(Boolean, nullable=True)  # reviewers only; None for community feedback

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)
