"""OCVConsiderationVote: last fetched on-chain vote tally per proposal.

A cache, not a source of truth. Each refresh overwrites the row.
"""

from sqlalchemy import Column, ForeignKey, Integer

from mef.db.base import Base, JSONType, UTCDateTime, utcnow


class OCVConsiderationVote(Base):
    __tablename__ = "ocv_consideration_votes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    proposal_id = Column(Integer, ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False, unique=True)

    # Raw OCV response: {"total_community_votes": int, "eligible": bool, "votes": [...], ...}
    vote_data = Column(JSONType, nullable=False, default=dict)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)
