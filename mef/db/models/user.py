"""User model: platform accounts resolved from the auth collaborator's JWT."""

import uuid

from sqlalchemy import Boolean, Column, String, Uuid

from mef.db.base import Base, UTCDateTime, utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(255), nullable=False)
    auth_source = Column(String(50), nullable=True)  # "discord", "wallet"
    email = Column(String(255), nullable=True)

    is_admin = Column(Boolean, nullable=False, default=False)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)
