"""SQLAlchemy ORM model for user-to-user blocks."""
from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from catchlog.database import Base


class ProfileBlock(Base):
    __tablename__ = "profile_blocks"

    blocker_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    blocked_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True, index=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    blocked = relationship("Profile", foreign_keys=[blocked_id])

    __table_args__ = (CheckConstraint("blocker_id <> blocked_id", name="ck_profile_blocks_not_self"),)


__all__ = ["ProfileBlock"]
