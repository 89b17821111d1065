"""SQLAlchemy ORM model for per-user rate-limit windows."""
from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID

from catchlog.database import Base


class RateLimitWindow(Base):
    __tablename__ = "rate_limit_windows"

    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    action = Column(String(32), primary_key=True)
    count = Column(Integer, nullable=False, default=0)
    window_start = Column(DateTime(timezone=True), nullable=False, index=True)


__all__ = ["RateLimitWindow"]
