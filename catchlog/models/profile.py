"""SQLAlchemy ORM model for user profiles and their moderation record."""
from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from catchlog.database import Base
from .base import TimestampMixin


class Profile(TimestampMixin, Base):
    __tablename__ = "profiles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(150), unique=True, nullable=False, index=True)
    role = Column(String(32), nullable=False, server_default="user", default="user")

    # Moderation record; mutated only by the moderation executor.
    moderation_status = Column(String(16), nullable=False, server_default="active", default="active", index=True)
    warn_count = Column(Integer, nullable=False, server_default="0", default=0)
    suspension_until = Column(DateTime(timezone=True), nullable=True)

    catches = relationship("Catch", back_populates="owner")
    comments = relationship("CatchComment", back_populates="author")
    warnings = relationship(
        "UserWarning",
        foreign_keys="UserWarning.user_id",
        back_populates="user",
        order_by="UserWarning.created_at.desc()",
    )
    notifications_received = relationship(
        "Notification",
        foreign_keys="Notification.recipient_id",
        back_populates="recipient",
        cascade="all, delete-orphan",
    )
    follower_relations = relationship(
        "Follow",
        foreign_keys="Follow.following_id",
        back_populates="following",
        cascade="all, delete-orphan",
    )
    following_relations = relationship(
        "Follow",
        foreign_keys="Follow.follower_id",
        back_populates="follower",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("warn_count >= 0", name="ck_profiles_warn_count_non_negative"),
        CheckConstraint(
            "moderation_status IN ('active', 'warned', 'suspended', 'banned')",
            name="ck_profiles_moderation_status",
        ),
    )


__all__ = ["Profile"]
