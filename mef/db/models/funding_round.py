"""FundingRound model and its four phase sub-records."""

import uuid

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import declared_attr, relationship

from mef.db.base import Base, UTCDateTime, utcnow


class FundingRound(Base):
    __tablename__ = "funding_rounds"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    mef_id = Column(Integer, nullable=False, unique=True)  # on-chain round number used in vote memos

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(50), nullable=False, default="DRAFT")  # FundingRoundStatus values
    total_budget = Column(Numeric(20, 2), nullable=False)

    start_date = Column(UTCDateTime, nullable=False)
    end_date = Column(UTCDateTime, nullable=False)

    created_by_id = Column(Uuid, ForeignKey("users.id"), nullable=True)

    submission_phase = relationship(
        "SubmissionPhase", uselist=False, lazy="selectin", cascade="all, delete-orphan"
    )
    consideration_phase = relationship(
        "ConsiderationPhase", uselist=False, lazy="selectin", cascade="all, delete-orphan"
    )
    deliberation_phase = relationship(
        "DeliberationPhase", uselist=False, lazy="selectin", cascade="all, delete-orphan"
    )
    voting_phase = relationship(
        "VotingPhase", uselist=False, lazy="selectin", cascade="all, delete-orphan"
    )

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)


class _PhaseColumns:
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    start_date = Column(UTCDateTime, nullable=False)
    end_date = Column(UTCDateTime, nullable=False)

    @declared_attr
    def funding_round_id(cls):
        return Column(
            Uuid,
            ForeignKey("funding_rounds.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        )


class SubmissionPhase(_PhaseColumns, Base):
    __tablename__ = "submission_phases"


class ConsiderationPhase(_PhaseColumns, Base):
    __tablename__ = "consideration_phases"


class DeliberationPhase(_PhaseColumns, Base):
    __tablename__ = "deliberation_phases"


class VotingPhase(_PhaseColumns, Base):
    __tablename__ = "voting_phases"
