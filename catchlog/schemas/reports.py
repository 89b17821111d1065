"""Schemas for user reports and the admin triage queue."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..constants import ModerationStatus, ReportStatus, ReportTargetType, WarningSeverity
from .audit import ModerationLogEntryResponse
from .moderation import ModerationStatusResponse, UserWarningResponse


class ReportCreateRequest(BaseModel):
    target_type: ReportTargetType
    target_id: UUID
    reason: str = Field(min_length=2, max_length=120)
    details: str | None = Field(default=None, max_length=1000)


class ReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    target_type: ReportTargetType
    target_id: UUID
    reporter_id: UUID
    reporter_username: str | None = None
    reason: str
    details: str | None = None
    status: ReportStatus
    created_at: datetime
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    resolution_notes: str | None = None


class ReportList(BaseModel):
    items: list[ReportResponse]
    page: int
    page_size: int
    has_more: bool


class ReportStatusUpdateRequest(BaseModel):
    status: ReportStatus
    resolution_notes: str | None = Field(default=None, max_length=1000)


class ReportContextResponse(BaseModel):
    report: ReportResponse
    target_user_id: UUID | None = None
    target_username: str | None = None
    parent_catch_id: UUID | None = None
    deleted_at: datetime | None = None
    target_missing: bool = False
    warn_count: int = 0
    moderation_status: ModerationStatus = ModerationStatus.ACTIVE
    suspension_until: datetime | None = None
    user_warnings: list[UserWarningResponse] = Field(default_factory=list)
    moderation_history: list[ModerationLogEntryResponse] = Field(default_factory=list)


class ModerateUserAction(BaseModel):
    type: Literal["moderate_user"] = "moderate_user"
    severity: WarningSeverity = WarningSeverity.WARNING
    reason: str = Field(default="", max_length=1000)
    duration_hours: int | None = None
    idempotency_key: str | None = Field(default=None, max_length=128)


class DeleteContentAction(BaseModel):
    type: Literal["delete_content"] = "delete_content"
    # Defaults to the report reason when omitted.
    reason: str | None = Field(default=None, max_length=1000)


class RestoreContentAction(BaseModel):
    type: Literal["restore_content"] = "restore_content"
    reason: str = Field(default="Decision overturned", max_length=1000)


class LiftRestrictionsAction(BaseModel):
    type: Literal["lift_restrictions"] = "lift_restrictions"
    reason: str = Field(default="", max_length=1000)


ReportAction = Annotated[
    Union[ModerateUserAction, DeleteContentAction, RestoreContentAction, LiftRestrictionsAction],
    Field(discriminator="type"),
]


class ResolveReportRequest(BaseModel):
    action: ReportAction
    resolution_notes: str | None = Field(default=None, max_length=1000)


class ResolveReportResponse(BaseModel):
    report: ReportResponse
    log_entry: ModerationLogEntryResponse | None = None
    status: ModerationStatusResponse | None = None
    duplicate: bool = False


__all__ = [
    "ReportCreateRequest",
    "ReportResponse",
    "ReportList",
    "ReportStatusUpdateRequest",
    "ReportContextResponse",
    "ModerateUserAction",
    "DeleteContentAction",
    "RestoreContentAction",
    "LiftRestrictionsAction",
    "ReportAction",
    "ResolveReportRequest",
    "ResolveReportResponse",
]
