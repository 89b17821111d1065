"""Schemas for moderation log entries and their typed metadata payloads."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..constants import ModerationStatus, WarningSeverity

METADATA_VERSION = 1
DEFAULT_REASON = "No reason provided"


class ModerationActionMetadata(BaseModel):
    """Recorded for warn/suspend/ban actions."""

    kind: Literal["moderation_action"] = "moderation_action"
    version: int = METADATA_VERSION
    reason: str
    severity: WarningSeverity
    duration_hours: int | None = None
    suspension_until: datetime | None = None
    warning_id: UUID
    report_id: UUID | None = None


class LiftMetadata(BaseModel):
    """Recorded when restrictions are lifted."""

    kind: Literal["lift"] = "lift"
    version: int = METADATA_VERSION
    reason: str
    previous_status: ModerationStatus
    previous_suspension_until: datetime | None = None
    report_id: UUID | None = None


class ContentTakedownMetadata(BaseModel):
    """Recorded for soft-delete and restore of catches and comments."""

    kind: Literal["content_takedown"] = "content_takedown"
    version: int = METADATA_VERSION
    reason: str
    owner_id: UUID | None = None
    catch_id: UUID | None = None
    already_deleted: bool = False
    report_id: UUID | None = None


class RawMetadata(BaseModel):
    """Fallback for payloads written by newer or older releases."""

    kind: Literal["raw"] = "raw"
    reason: str = DEFAULT_REASON
    data: dict[str, Any] = Field(default_factory=dict)


ModerationMetadata = Annotated[
    Union[ModerationActionMetadata, LiftMetadata, ContentTakedownMetadata, RawMetadata],
    Field(discriminator="kind"),
]

_metadata_adapter: TypeAdapter[Any] = TypeAdapter(ModerationMetadata)


def parse_metadata(payload: Any) -> ModerationActionMetadata | LiftMetadata | ContentTakedownMetadata | RawMetadata:
    """Decode a stored payload, falling back to :class:`RawMetadata` for unknown shapes."""

    if not isinstance(payload, dict):
        return RawMetadata()
    try:
        return _metadata_adapter.validate_python(payload)
    except ValidationError:
        reason = payload.get("reason")
        return RawMetadata(reason=reason if isinstance(reason, str) and reason else DEFAULT_REASON, data=payload)


class ModerationLogEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    action: str
    action_label: str
    admin_id: UUID | None = None
    admin_username: str | None = None
    target_type: str
    target_id: str
    subject_user_id: UUID | None = None
    reason: str
    metadata: ModerationMetadata
    created_at: datetime


class AuditLogPage(BaseModel):
    items: list[ModerationLogEntryResponse]
    page: int
    page_size: int
    has_more: bool


__all__ = [
    "METADATA_VERSION",
    "ModerationActionMetadata",
    "LiftMetadata",
    "ContentTakedownMetadata",
    "RawMetadata",
    "ModerationMetadata",
    "parse_metadata",
    "ModerationLogEntryResponse",
    "AuditLogPage",
]
