"""Pydantic schemas for the throttled catch write paths."""
from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..constants import ReactionType


class CatchCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    species: str | None = Field(default=None, max_length=120)
    description: str | None = Field(default=None, max_length=4000)


class CatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    title: str
    species: str | None = None
    description: str | None = None
    created_at: datetime
    deleted_at: datetime | None = None


class CommentCreate(BaseModel):
    body: str = Field(..., min_length=1, max_length=2000)


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    catch_id: UUID
    user_id: UUID
    body: str
    created_at: datetime
    deleted_at: datetime | None = None


class ReactionRequest(BaseModel):
    reaction: ReactionType = ReactionType.LIKE


class RatingRequest(BaseModel):
    rating: int = Field(..., ge=1, le=10)


class EngagementResponse(BaseModel):
    catch_id: UUID
    status: Literal["created", "updated"]


__all__ = [
    "CatchCreate",
    "CatchResponse",
    "CommentCreate",
    "CommentResponse",
    "ReactionRequest",
    "RatingRequest",
    "EngagementResponse",
]
