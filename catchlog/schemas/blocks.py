"""Schemas for the blocked-anglers list."""
from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class BlockRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class BlockedProfileResponse(BaseModel):
    blocked_id: UUID
    username: str | None = None
    reason: str | None = None
    created_at: datetime


class BlockedProfileList(BaseModel):
    items: list[BlockedProfileResponse]


class BlockActionResponse(BaseModel):
    blocked_id: UUID
    status: Literal["blocked", "unblocked", "noop"]


__all__ = ["BlockActionResponse", "BlockRequest", "BlockedProfileList", "BlockedProfileResponse"]
