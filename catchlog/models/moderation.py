"""SQLAlchemy ORM models for the warning ledger and the moderation audit log."""
from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from catchlog.database import Base


class UserWarning(Base):
    __tablename__ = "user_warnings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    issued_by = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)

    # "warning" | "temporary_suspension" | "permanent_ban"
    severity = Column(String(32), nullable=False, server_default="warning", default="warning")
    duration_hours = Column(Integer, nullable=True)
    reason = Column(Text, nullable=False)

    # Hash of admin/user/severity/duration/reason/time bucket, or a caller-supplied idempotency key.
    dedupe_key = Column(String(128), nullable=False, unique=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    user = relationship("Profile", foreign_keys=[user_id], back_populates="warnings")
    admin = relationship("Profile", foreign_keys=[issued_by])

    __table_args__ = (
        CheckConstraint(
            "(severity = 'temporary_suspension' AND duration_hours > 0) "
            "OR (severity <> 'temporary_suspension' AND duration_hours IS NULL)",
            name="ck_user_warnings_duration",
        ),
    )


class ModerationLogEntry(Base):
    __tablename__ = "moderation_log"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    action = Column(String(32), nullable=False, index=True)
    admin_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)

    # "catch" | "comment" | "user"
    target_type = Column(String(16), nullable=False)
    # Stored as text so catch, comment and profile ids share one searchable column.
    target_id = Column(String(64), nullable=False, index=True)
    subject_user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)

    reason = Column(Text, nullable=False)
    details = Column("metadata", JSON().with_variant(JSONB, "postgresql"), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    admin = relationship("Profile", foreign_keys=[admin_id])
    subject_user = relationship("Profile", foreign_keys=[subject_user_id])


__all__ = ["UserWarning", "ModerationLogEntry"]
