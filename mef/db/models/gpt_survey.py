"""Audit records of what was pushed to the GPT Survey summarizer."""

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Text, Uuid

from mef.db.base import Base, UTCDateTime, utcnow


class GptSurveyProposalSubmission(Base):
    __tablename__ = "gpt_survey_proposal_submissions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    proposal_id = Column(Integer, ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False, unique=True)

    request = Column(Text, nullable=False)
    response = Column(Text, nullable=False)
    is_success = Column(Boolean, nullable=False, default=False)

    summary = Column(Text, nullable=True)
    summary_updated_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)


class GptSurveyFeedbackSubmission(Base):
    __tablename__ = "gpt_survey_feedback_submissions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    deliberation_vote_id = Column(
        Uuid, ForeignKey("deliberation_votes.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    proposal_id = Column(Integer, nullable=False, index=True)

    request = Column(Text, nullable=False)
    response = Column(Text, nullable=False)
    is_success = Column(Boolean, nullable=False, default=False)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
