"""Moderation audit log: writing entries, filtered listing and CSV export."""
from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel
from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.orm import Session, joinedload

from ..config import get_settings
from ..constants import ACTION_LABELS, ModerationAction
from ..exceptions import InvalidModerationInput
from ..models import ModerationLogEntry, Profile
from ..schemas import AuditLogPage, ModerationLogEntryResponse, parse_metadata
from .auth_service import assert_admin
from .clock import as_utc
from .realtime import MODERATION_LOG_CHANNEL, change_feed

logger = logging.getLogger(__name__)

SortDirection = Literal["asc", "desc"]

CSV_HEADER = ("Timestamp", "Admin", "Action", "Target Type", "Target Id", "Reason", "Details")
MAX_PAGE_SIZE = 100


@dataclass(slots=True)
class AuditFilter:
    user_id: UUID | None = None
    action: str | None = None
    search: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


def action_label(action: str) -> str:
    return ACTION_LABELS.get(action, action.replace("_", " ").title())


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _search_clause(search: str):
    term = search.strip().lower()
    pattern = f"%{_escape_like(term)}%"
    clauses = [
        func.lower(Profile.username).like(pattern, escape="\\"),
        func.lower(ModerationLogEntry.reason).like(pattern, escape="\\"),
        func.lower(ModerationLogEntry.target_id).like(pattern, escape="\\"),
        func.lower(cast(ModerationLogEntry.details, String)).like(pattern, escape="\\"),
    ]
    try:
        clauses.append(ModerationLogEntry.admin_id == UUID(term))
    except ValueError:
        pass
    return or_(*clauses)


def _filtered_query(audit_filter: AuditFilter, direction: SortDirection):
    if direction not in ("asc", "desc"):
        raise InvalidModerationInput("direction", "Sort direction must be 'asc' or 'desc'.")
    if audit_filter.action and audit_filter.action not in set(ModerationAction):
        raise InvalidModerationInput("action", f"Unknown moderation action {audit_filter.action!r}.")

    stmt = (
        select(ModerationLogEntry)
        .outerjoin(Profile, ModerationLogEntry.admin_id == Profile.id)
        .options(joinedload(ModerationLogEntry.admin))
    )
    if audit_filter.user_id is not None:
        stmt = stmt.where(ModerationLogEntry.subject_user_id == audit_filter.user_id)
    if audit_filter.action:
        stmt = stmt.where(ModerationLogEntry.action == audit_filter.action)
    if audit_filter.date_from is not None:
        stmt = stmt.where(ModerationLogEntry.created_at >= audit_filter.date_from)
    if audit_filter.date_to is not None:
        stmt = stmt.where(ModerationLogEntry.created_at <= audit_filter.date_to)
    if audit_filter.search and audit_filter.search.strip():
        stmt = stmt.where(_search_clause(audit_filter.search))

    if direction == "asc":
        return stmt.order_by(ModerationLogEntry.created_at.asc(), ModerationLogEntry.id.asc())
    return stmt.order_by(ModerationLogEntry.created_at.desc(), ModerationLogEntry.id.desc())


def record_log_entry(
    db: Session,
    *,
    action: ModerationAction | str,
    admin_id: UUID | None,
    target_type: str,
    target_id: UUID | str,
    subject_user_id: UUID | None,
    metadata: BaseModel,
    created_at: datetime,
) -> ModerationLogEntry:
    """Stage a log entry in the caller's transaction; the caller commits."""

    payload = metadata.model_dump(mode="json")
    entry = ModerationLogEntry(
        id=uuid4(),
        action=str(action),
        admin_id=admin_id,
        target_type=str(target_type),
        target_id=str(target_id),
        subject_user_id=subject_user_id,
        reason=payload.get("reason") or "No reason provided",
        details=payload,
        created_at=created_at,
    )
    db.add(entry)
    return entry


def to_log_response(entry: ModerationLogEntry) -> ModerationLogEntryResponse:
    admin = entry.admin
    return ModerationLogEntryResponse(
        id=entry.id,
        action=entry.action,
        action_label=action_label(entry.action),
        admin_id=entry.admin_id,
        admin_username=admin.username if admin is not None else None,
        target_type=entry.target_type,
        target_id=entry.target_id,
        subject_user_id=entry.subject_user_id,
        reason=entry.reason,
        metadata=parse_metadata(entry.details),
        created_at=as_utc(entry.created_at),
    )


def publish_log_entry(entry: ModerationLogEntry | None) -> None:
    """Announce a committed entry on the moderation log channel."""

    if entry is None:
        return
    change_feed.publish(MODERATION_LOG_CHANNEL, "INSERT", to_log_response(entry).model_dump(mode="json"))


def list_moderation_log(
    db: Session,
    *,
    admin: Profile,
    audit_filter: AuditFilter | None = None,
    direction: SortDirection = "desc",
    page: int = 1,
    page_size: int | None = None,
) -> AuditLogPage:
    """Return one page of the filtered log.

    ``has_more`` is true whenever a full page came back, so the last page may
    turn out to be empty under concurrent inserts.
    """

    assert_admin(admin)
    safe_page = max(1, int(page or 1))
    safe_size = max(1, min(int(page_size or get_settings().audit_page_size), MAX_PAGE_SIZE))

    stmt = _filtered_query(audit_filter or AuditFilter(), direction)
    rows = list(db.scalars(stmt.offset((safe_page - 1) * safe_size).limit(safe_size)).unique())
    return AuditLogPage(
        items=[to_log_response(entry) for entry in rows],
        page=safe_page,
        page_size=safe_size,
        has_more=len(rows) == safe_size,
    )


def list_entries_for(
    db: Session,
    *,
    target_id: UUID | str | None = None,
    subject_user_id: UUID | None = None,
    limit: int | None = None,
) -> list[ModerationLogEntry]:
    """Entries touching a target or a user, newest first."""

    clauses = []
    if target_id is not None:
        clauses.append(ModerationLogEntry.target_id == str(target_id))
    if subject_user_id is not None:
        clauses.append(ModerationLogEntry.subject_user_id == subject_user_id)
    if not clauses:
        return []

    stmt = (
        select(ModerationLogEntry)
        .options(joinedload(ModerationLogEntry.admin))
        .where(or_(*clauses))
        .order_by(ModerationLogEntry.created_at.desc(), ModerationLogEntry.id.desc())
        .limit(limit or get_settings().context_history_limit)
    )
    return list(db.scalars(stmt).unique())


def _format_timestamp(value: datetime) -> str:
    return as_utc(value).isoformat(sep=" ", timespec="seconds")


def export_moderation_log_csv(
    db: Session,
    *,
    admin: Profile,
    audit_filter: AuditFilter | None = None,
    direction: SortDirection = "desc",
    max_rows: int | None = None,
) -> str:
    """Render the filtered view as CSV with every value quoted."""

    assert_admin(admin)
    limit = max(1, int(max_rows or get_settings().audit_export_max_rows))
    stmt = _filtered_query(audit_filter or AuditFilter(), direction).limit(limit)
    rows = list(db.scalars(stmt).unique())

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for entry in rows:
        response = to_log_response(entry)
        details = response.metadata.model_dump_json() if entry.details else ""
        writer.writerow(
            (
                _format_timestamp(entry.created_at),
                response.admin_username or (str(entry.admin_id) if entry.admin_id else "Unknown"),
                response.action_label,
                entry.target_type,
                entry.target_id,
                entry.reason,
                details,
            )
        )

    logger.info("Exported %d moderation log rows", len(rows))
    return buffer.getvalue()


__all__ = [
    "AuditFilter",
    "CSV_HEADER",
    "action_label",
    "record_log_entry",
    "to_log_response",
    "publish_log_entry",
    "list_moderation_log",
    "list_entries_for",
    "export_moderation_log_csv",
]
