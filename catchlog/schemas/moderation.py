"""Schemas describing user moderation status, warnings and takedowns."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..constants import ModerationStatus, WarningSeverity
from .audit import ModerationLogEntryResponse


class ModerationStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    username: str
    moderation_status: ModerationStatus
    warn_count: int = 0
    suspension_until: datetime | None = None
    is_blocked: bool = False
    blocked_until: datetime | None = None


class ModerationActionRequest(BaseModel):
    # Blank/missing values are validated in the service so every caller gets the same error.
    severity: WarningSeverity = WarningSeverity.WARNING
    reason: str = Field(default="", max_length=1000)
    duration_hours: int | None = None
    idempotency_key: str | None = Field(default=None, max_length=128)


class LiftRestrictionsRequest(BaseModel):
    reason: str = Field(default="", max_length=1000)


class UserWarningResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    issued_by: UUID | None = None
    admin_username: str | None = None
    severity: WarningSeverity
    duration_hours: int | None = None
    reason: str
    created_at: datetime


class UserWarningList(BaseModel):
    items: list[UserWarningResponse]
    page: int
    has_more: bool


class ModerationOutcomeResponse(BaseModel):
    status: ModerationStatusResponse
    warning: UserWarningResponse | None = None
    log_entry: ModerationLogEntryResponse | None = None
    duplicate: bool = False


class TakedownRequest(BaseModel):
    reason: str = Field(default="", max_length=1000)


class TakedownResponse(BaseModel):
    target_type: str
    target_id: UUID
    owner_id: UUID | None = None
    deleted_at: datetime | None = None
    log_entry: ModerationLogEntryResponse


__all__ = [
    "ModerationStatusResponse",
    "ModerationActionRequest",
    "LiftRestrictionsRequest",
    "UserWarningResponse",
    "UserWarningList",
    "ModerationOutcomeResponse",
    "TakedownRequest",
    "TakedownResponse",
]
