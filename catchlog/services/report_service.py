"""Services for creating, triaging and resolving user reports."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal, cast
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, aliased, joinedload

from ..config import get_settings
from ..constants import ModerationStatus, ModerationTargetType, ReportStatus, ReportTargetType, ThrottledAction
from ..exceptions import InvalidModerationInput, RateLimitExceeded, StorageFailure, TargetNotFound
from ..models import Catch, CatchComment, ModerationLogEntry, Notification, Profile, Report
from ..schemas import (
    DeleteContentAction,
    LiftRestrictionsAction,
    ModerateUserAction,
    ReportContextResponse,
    ReportList,
    ReportResponse,
    RestoreContentAction,
    ResolveReportResponse,
)
from .audit_service import list_entries_for, publish_log_entry, to_log_response
from .auth_service import assert_admin
from .clock import as_utc, utcnow
from .moderation_service import (
    build_dedupe_key,
    ensure_can_act,
    recent_warnings,
    recover_duplicate,
    stage_lift,
    stage_moderation,
    to_status_response,
    to_warning_response,
    validate_moderation_input,
)
from .notification_service import deliver, notify_admins
from .rate_limiter import consume
from .realtime import REPORTS_CHANNEL, change_feed
from .takedown_service import stage_delete, stage_restore

logger = logging.getLogger(__name__)

SortDirection = Literal["asc", "desc"]
MAX_PAGE_SIZE = 100

DATE_RANGES: dict[str, timedelta | None] = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "all": None,
}

_CONTENT_TYPES = {
    ReportTargetType.CATCH: ModerationTargetType.CATCH,
    ReportTargetType.COMMENT: ModerationTargetType.COMMENT,
}


@dataclass(slots=True)
class ReportFilter:
    status: ReportStatus | str | None = None
    target_type: ReportTargetType | str | None = None
    reported_user_id: UUID | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


@dataclass(slots=True)
class ReportTarget:
    """What a report points at, resolved from the live target row."""

    user_id: UUID | None
    parent_catch_id: UUID | None
    deleted_at: datetime | None
    missing: bool


def since_for_range(date_range: str | None, *, now: datetime | None = None) -> datetime | None:
    """Translate the triage view's ``24h``/``7d``/``30d``/``all`` choice into a lower bound."""

    if not date_range:
        return None
    try:
        span = DATE_RANGES[date_range]
    except KeyError as exc:
        raise InvalidModerationInput("date_range", f"Unknown date range {date_range!r}.") from exc
    if span is None:
        return None
    current = as_utc(now) if now is not None else utcnow()
    return current - span


def resolve_target(db: Session, target_type: ReportTargetType | str, target_id: UUID) -> ReportTarget:
    target_type = ReportTargetType(target_type)
    if target_type is ReportTargetType.CATCH:
        catch = db.get(Catch, target_id)
        if catch is None:
            return ReportTarget(None, target_id, None, True)
        return ReportTarget(cast(UUID, catch.user_id), cast(UUID, catch.id), as_utc(catch.deleted_at), False)
    if target_type is ReportTargetType.COMMENT:
        comment = db.get(CatchComment, target_id)
        if comment is None:
            return ReportTarget(None, None, None, True)
        return ReportTarget(cast(UUID, comment.user_id), cast(UUID, comment.catch_id), as_utc(comment.deleted_at), False)
    profile = db.get(Profile, target_id)
    return ReportTarget(target_id, None, None, profile is None)


def to_report_response(report: Report) -> ReportResponse:
    response = ReportResponse.model_validate(report)
    response.reporter_username = report.reporter.username if report.reporter is not None else None
    response.created_at = as_utc(report.created_at)
    response.reviewed_at = as_utc(report.reviewed_at)
    return response


def _publish(report: Report, event: str) -> None:
    change_feed.publish(REPORTS_CHANNEL, event, to_report_response(report).model_dump(mode="json"))


def _commit(db: Session, *, detail: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s", detail)
        raise StorageFailure() from exc


def create_report(
    db: Session,
    *,
    reporter: Profile,
    target_type: ReportTargetType | str,
    target_id: UUID,
    reason: str,
    details: str | None = None,
    now: datetime | None = None,
) -> Report:
    """File a report, or refresh the reporter's open report on the same target."""

    safe_reason = " ".join((reason or "").split())
    safe_details = (details or "").strip() or None
    if len(safe_reason) < 2:
        raise InvalidModerationInput("reason", "Reason is required.")
    try:
        safe_type = ReportTargetType(target_type)
    except ValueError as exc:
        raise InvalidModerationInput("target_type", "Invalid report target.") from exc

    target = resolve_target(db, safe_type, target_id)
    if target.missing:
        raise TargetNotFound(f"Reported {safe_type.value} not found.")

    ensure_can_act(reporter, now=now)
    reporter_id = cast(UUID, reporter.id)
    try:
        consume(db, user_id=reporter_id, action=ThrottledAction.REPORT, now=now)
    except RateLimitExceeded:
        db.rollback()
        raise

    existing = db.scalar(
        select(Report).where(
            Report.reporter_id == reporter_id,
            Report.target_type == str(safe_type),
            Report.target_id == target_id,
            Report.status == str(ReportStatus.OPEN),
        )
    )
    notifications: list[Notification] = []
    if existing is not None:
        existing.reason = safe_reason
        existing.details = safe_details
        report = existing
        event = "UPDATE"
    else:
        current = as_utc(now) if now is not None else utcnow()
        report = Report(
            reporter_id=reporter_id,
            target_type=str(safe_type),
            target_id=target_id,
            reason=safe_reason,
            details=safe_details,
            status=str(ReportStatus.OPEN),
            created_at=current,
        )
        db.add(report)
        db.flush()
        notifications = notify_admins(
            db,
            message=f"New {safe_type.value} report from {reporter.username}: {safe_reason}",
            actor_id=reporter_id,
            extra_data={
                "report_id": str(report.id),
                "target_type": str(safe_type),
                "target_id": str(target_id),
                "reason": safe_reason,
            },
        )
        event = "INSERT"

    _commit(db, detail="Failed to save report")
    db.refresh(report)
    logger.info("Report %s %s by %s on %s %s", report.id, event.lower(), reporter_id, safe_type, target_id)
    _publish(report, event)
    deliver(notifications)
    return report


def _reported_user_clause(user_id: UUID):
    catch_ids = select(Catch.id).where(Catch.user_id == user_id)
    comment_ids = select(CatchComment.id).where(CatchComment.user_id == user_id)
    return or_(
        and_(Report.target_type == str(ReportTargetType.PROFILE), Report.target_id == user_id),
        and_(Report.target_type == str(ReportTargetType.CATCH), Report.target_id.in_(catch_ids)),
        and_(Report.target_type == str(ReportTargetType.COMMENT), Report.target_id.in_(comment_ids)),
    )


def list_reports(
    db: Session,
    *,
    admin: Profile,
    report_filter: ReportFilter | None = None,
    direction: SortDirection = "desc",
    page: int = 1,
    page_size: int | None = None,
) -> ReportList:
    assert_admin(admin)
    if direction not in ("asc", "desc"):
        raise InvalidModerationInput("direction", "Sort direction must be 'asc' or 'desc'.")
    report_filter = report_filter or ReportFilter()
    safe_page = max(1, int(page or 1))
    safe_size = max(1, min(int(page_size or get_settings().reports_page_size), MAX_PAGE_SIZE))

    reporter_alias = aliased(Profile)
    stmt = select(Report).join(reporter_alias, Report.reporter_id == reporter_alias.id).options(
        joinedload(Report.reporter)
    )
    if report_filter.status:
        try:
            stmt = stmt.where(Report.status == str(ReportStatus(report_filter.status)))
        except ValueError as exc:
            raise InvalidModerationInput("status", "Unknown report status.") from exc
    if report_filter.target_type:
        try:
            stmt = stmt.where(Report.target_type == str(ReportTargetType(report_filter.target_type)))
        except ValueError as exc:
            raise InvalidModerationInput("target_type", "Unknown report target type.") from exc
    if report_filter.reported_user_id is not None:
        stmt = stmt.where(_reported_user_clause(report_filter.reported_user_id))
    if report_filter.date_from is not None:
        stmt = stmt.where(Report.created_at >= report_filter.date_from)
    if report_filter.date_to is not None:
        stmt = stmt.where(Report.created_at <= report_filter.date_to)

    if direction == "asc":
        stmt = stmt.order_by(Report.created_at.asc(), Report.id.asc())
    else:
        stmt = stmt.order_by(Report.created_at.desc(), Report.id.desc())

    rows = list(db.scalars(stmt.offset((safe_page - 1) * safe_size).limit(safe_size)).unique())
    return ReportList(
        items=[to_report_response(report) for report in rows],
        page=safe_page,
        page_size=safe_size,
        has_more=len(rows) == safe_size,
    )


def _get_report(db: Session, report_id: UUID) -> Report:
    report = db.get(Report, report_id)
    if report is None:
        raise TargetNotFound("Report not found.")
    return report


def get_report_context(db: Session, *, admin: Profile, report_id: UUID) -> ReportContextResponse:
    """Everything an admin needs before acting on a report."""

    assert_admin(admin)
    report = _get_report(db, report_id)
    target = resolve_target(db, report.target_type, cast(UUID, report.target_id))
    history_limit = get_settings().context_history_limit

    context = ReportContextResponse(
        report=to_report_response(report),
        target_user_id=target.user_id,
        parent_catch_id=target.parent_catch_id,
        deleted_at=target.deleted_at,
        target_missing=target.missing,
    )

    profile = db.get(Profile, target.user_id) if target.user_id is not None else None
    if target.user_id is not None and profile is None:
        context.target_missing = True
    if profile is not None:
        status = to_status_response(profile)
        context.target_username = profile.username
        context.warn_count = status.warn_count
        context.moderation_status = ModerationStatus(status.moderation_status)
        context.suspension_until = status.suspension_until
        context.user_warnings = [
            to_warning_response(warning) for warning in recent_warnings(db, cast(UUID, profile.id), limit=history_limit)
        ]

    if report.target_type == ReportTargetType.PROFILE:
        history = list_entries_for(db, subject_user_id=target.user_id, limit=history_limit)
    else:
        history = list_entries_for(db, target_id=report.target_id, limit=history_limit)
    context.moderation_history = [to_log_response(entry) for entry in history]
    return context


def update_report_status(
    db: Session,
    *,
    admin: Profile,
    report_id: UUID,
    status: ReportStatus | str,
    resolution_notes: str | None = None,
    now: datetime | None = None,
) -> Report:
    """Set any status from any other; reopening keeps the review trail."""

    assert_admin(admin)
    try:
        safe_status = ReportStatus(status)
    except ValueError as exc:
        raise InvalidModerationInput("status", "Unknown report status.") from exc
    report = _get_report(db, report_id)
    current = as_utc(now) if now is not None else utcnow()

    report.status = str(safe_status)
    report.reviewed_by = admin.id
    report.reviewed_at = current
    if resolution_notes is not None:
        report.resolution_notes = resolution_notes.strip() or None

    _commit(db, detail=f"Failed to update report {report_id}")
    db.refresh(report)
    logger.info("Report %s set to %s by %s", report_id, safe_status, admin.id)
    _publish(report, "UPDATE")
    return report


def _mark_resolved(report: Report, *, admin: Profile, resolution_notes: str | None, now: datetime) -> None:
    report.status = str(ReportStatus.RESOLVED)
    report.reviewed_by = admin.id
    report.reviewed_at = now
    if resolution_notes is not None:
        report.resolution_notes = resolution_notes.strip() or None


def _recover_moderation(
    db: Session,
    exc: IntegrityError,
    *,
    admin: Profile,
    user_id: UUID,
    action: ModerateUserAction,
    now: datetime,
):
    severity, reason, hours = validate_moderation_input(action.severity, action.reason, action.duration_hours)
    dedupe_key = build_dedupe_key(
        admin_id=cast(UUID, admin.id),
        user_id=user_id,
        severity=severity,
        reason=reason,
        duration_hours=hours,
        now=now,
        idempotency_key=action.idempotency_key,
    )
    return recover_duplicate(db, exc, user_id=user_id, dedupe_key=dedupe_key)


def resolve_with_action(
    db: Session,
    *,
    admin: Profile,
    report_id: UUID,
    action: ModerateUserAction | DeleteContentAction | RestoreContentAction | LiftRestrictionsAction,
    resolution_notes: str | None = None,
    now: datetime | None = None,
) -> ResolveReportResponse:
    """Apply a moderation action for a report and mark it resolved in the same transaction."""

    assert_admin(admin)
    report = _get_report(db, report_id)
    target = resolve_target(db, report.target_type, cast(UUID, report.target_id))
    current = as_utc(now) if now is not None else utcnow()
    report_uuid = cast(UUID, report.id)

    log_entry: ModerationLogEntry | None = None
    notifications: list[Notification] = []
    moderated_profile: Profile | None = None
    duplicate = False
    try:
        if isinstance(action, (DeleteContentAction, RestoreContentAction)):
            content_type = _CONTENT_TYPES.get(ReportTargetType(report.target_type))
            if content_type is None:
                raise InvalidModerationInput("action", "Profile reports cannot be resolved with a content action.")
            if target.missing:
                raise TargetNotFound("The reported content no longer exists.")
            if isinstance(action, DeleteContentAction):
                takedown = stage_delete(
                    db,
                    admin=admin,
                    target_type=content_type,
                    target_id=cast(UUID, report.target_id),
                    reason=action.reason or report.reason,
                    report_id=report_uuid,
                    now=current,
                )
            else:
                takedown = stage_restore(
                    db,
                    admin=admin,
                    target_type=content_type,
                    target_id=cast(UUID, report.target_id),
                    reason=action.reason,
                    report_id=report_uuid,
                    now=current,
                )
            log_entry = takedown.log_entry
            notifications = takedown.notifications
        else:
            if target.user_id is None:
                raise TargetNotFound("No user could be resolved for this report.")
            if isinstance(action, ModerateUserAction):
                outcome = stage_moderation(
                    db,
                    admin=admin,
                    user_id=target.user_id,
                    severity=action.severity,
                    reason=action.reason,
                    duration_hours=action.duration_hours,
                    idempotency_key=action.idempotency_key,
                    report_id=report_uuid,
                    now=current,
                )
            else:
                outcome = stage_lift(
                    db,
                    admin=admin,
                    user_id=target.user_id,
                    reason=action.reason,
                    report_id=report_uuid,
                    now=current,
                )
            log_entry = outcome.log_entry
            notifications = outcome.notifications
            moderated_profile = outcome.profile
            duplicate = outcome.duplicate

        _mark_resolved(report, admin=admin, resolution_notes=resolution_notes, now=current)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not isinstance(action, ModerateUserAction) or target.user_id is None:
            logger.exception("Failed to resolve report %s", report_id)
            raise StorageFailure() from exc
        # A concurrent request already applied the same action.
        outcome = _recover_moderation(db, exc, admin=admin, user_id=target.user_id, action=action, now=current)
        log_entry = outcome.log_entry
        notifications = []
        moderated_profile = outcome.profile
        duplicate = True
        _mark_resolved(report, admin=admin, resolution_notes=resolution_notes, now=current)
        try:
            db.commit()
        except SQLAlchemyError as retry_exc:
            db.rollback()
            logger.exception("Failed to resolve report %s", report_id)
            raise StorageFailure() from retry_exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to resolve report %s", report_id)
        raise StorageFailure() from exc

    db.refresh(report)
    if moderated_profile is not None:
        db.refresh(moderated_profile)
    if not duplicate:
        publish_log_entry(log_entry)
        deliver(notifications)
    _publish(report, "UPDATE")
    logger.info("Report %s resolved by %s with %s", report_id, admin.id, action.type)

    return ResolveReportResponse(
        report=to_report_response(report),
        log_entry=to_log_response(log_entry) if log_entry is not None else None,
        status=to_status_response(moderated_profile, now=current) if moderated_profile is not None else None,
        duplicate=duplicate,
    )


__all__ = [
    "DATE_RANGES",
    "ReportFilter",
    "ReportTarget",
    "since_for_range",
    "resolve_target",
    "to_report_response",
    "create_report",
    "list_reports",
    "get_report_context",
    "update_report_status",
    "resolve_with_action",
]
