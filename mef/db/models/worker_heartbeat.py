"""WorkerHeartbeat model: one row per background job execution."""

import uuid

from sqlalchemy import Column, String, Uuid

from mef.db.base import Base, JSONType, UTCDateTime, utcnow


class WorkerHeartbeat(Base):
    __tablename__ = "worker_heartbeats"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="NOT_STARTED", index=True)  # WorkerStatus values

    last_heartbeat = Column(UTCDateTime, nullable=False, default=utcnow)
    # Job-specific payload; shapes are defined in mef.workers.metadata
    job_metadata = Column("metadata", JSONType, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
