"""Proposal model: a funding request moving through the round's phases."""

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String, Text, Uuid

from mef.db.base import Base, UTCDateTime, utcnow


class Proposal(Base):
    __tablename__ = "proposals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    funding_round_id = Column(Uuid, ForeignKey("funding_rounds.id"), nullable=True, index=True)

    proposal_name = Column(String(255), nullable=False)
    abstract = Column(Text, nullable=False, default="")
    motivation = Column(Text, nullable=False, default="")
    rationale = Column(Text, nullable=False, default="")
    delivery_requirements = Column(Text, nullable=False, default="")
    security_and_performance = Column(Text, nullable=False, default="")
    budget_request = Column(Numeric(20, 2), nullable=False)
    email = Column(String(255), nullable=True)

    status = Column(String(50), nullable=False, default="DRAFT", index=True)  # ProposalStatus values

    submitted_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)
