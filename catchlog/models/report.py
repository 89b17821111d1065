"""SQLAlchemy ORM model for user-submitted reports."""
from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from catchlog.database import Base


class Report(Base):
    __tablename__ = "reports"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    reporter_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)

    # "catch" | "comment" | "profile"
    target_type = Column(String(16), nullable=False, index=True)
    target_id = Column(UUID(as_uuid=True), nullable=False, index=True)

    reason = Column(String(120), nullable=False)
    details = Column(Text, nullable=True)

    # "open" | "resolved" | "dismissed"
    status = Column(String(32), nullable=False, server_default="open", default="open", index=True)

    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    resolution_notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    reporter = relationship("Profile", foreign_keys=[reporter_id])
    reviewer = relationship("Profile", foreign_keys=[reviewed_by])


__all__ = ["Report"]
