"""SQLAlchemy ORM models for catches and the engagement rows attached to them."""
from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from catchlog.database import Base
from .base import SoftDeleteMixin


class Catch(SoftDeleteMixin, Base):
    __tablename__ = "catches"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    species = Column(String(120), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    owner = relationship("Profile", back_populates="catches")
    comments = relationship("CatchComment", back_populates="catch", cascade="all, delete-orphan")
    reactions = relationship("CatchReaction", back_populates="catch", cascade="all, delete-orphan")
    ratings = relationship("CatchRating", back_populates="catch", cascade="all, delete-orphan")


class CatchComment(SoftDeleteMixin, Base):
    __tablename__ = "catch_comments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    catch_id = Column(UUID(as_uuid=True), ForeignKey("catches.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    catch = relationship("Catch", back_populates="comments")
    author = relationship("Profile", back_populates="comments")


class CatchReaction(Base):
    __tablename__ = "catch_reactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    catch_id = Column(UUID(as_uuid=True), ForeignKey("catches.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    reaction = Column(String(16), nullable=False, server_default="like", default="like")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    catch = relationship("Catch", back_populates="reactions")

    __table_args__ = (UniqueConstraint("catch_id", "user_id", name="uq_catch_reactions_catch_user"),)


class CatchRating(Base):
    __tablename__ = "catch_ratings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    catch_id = Column(UUID(as_uuid=True), ForeignKey("catches.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    catch = relationship("Catch", back_populates="ratings")

    __table_args__ = (
        UniqueConstraint("catch_id", "user_id", name="uq_catch_ratings_catch_user"),
        CheckConstraint("rating BETWEEN 1 AND 10", name="ck_catch_ratings_range"),
    )


__all__ = ["Catch", "CatchComment", "CatchReaction", "CatchRating"]
