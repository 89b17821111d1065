"""Moderation status store and action executor.

Every warn/suspend/ban applies its effects (status, strike count, warning
ledger row, audit log entry) in a single transaction. The user notification is
written inside a savepoint of that transaction so a notification failure never
undoes the moderation decision.
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import cast
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..config import get_settings
from ..constants import (
    SEVERITY_TO_ACTION,
    SEVERITY_TO_STATUS,
    ModerationAction,
    ModerationStatus,
    ModerationTargetType,
    WarningSeverity,
)
from ..exceptions import AccountRestricted, InvalidModerationInput, StorageFailure, TargetNotFound, Unauthorized
from ..models import ModerationLogEntry, Notification, Profile, UserWarning
from ..schemas import (
    LiftMetadata,
    ModerationActionMetadata,
    ModerationStatusResponse,
    UserWarningList,
    UserWarningResponse,
)
from .audit_service import publish_log_entry, record_log_entry
from .auth_service import assert_admin
from .clock import as_utc, utcnow
from .notification_service import NotificationType, deliver, stage_notification

logger = logging.getLogger(__name__)

MAX_SUSPENSION_HOURS = 24 * 365 * 10
WARNINGS_PAGE_SIZE = 20

_SEVERITY_PHRASES = {
    WarningSeverity.WARNING: "You have received a warning from the moderators",
    WarningSeverity.TEMPORARY_SUSPENSION: "Your account has been suspended",
    WarningSeverity.PERMANENT_BAN: "Your account has been banned",
}


@dataclass(slots=True)
class ModerationOutcome:
    """Result of an executor call; ``duplicate`` marks a replayed request."""

    profile: Profile
    warning: UserWarning | None = None
    log_entry: ModerationLogEntry | None = None
    duplicate: bool = False
    notifications: list[Notification] = field(default_factory=list)


def _normalize_reason(reason: str | None) -> str:
    return " ".join((reason or "").split())


def validate_moderation_input(
    severity: WarningSeverity | str | None,
    reason: str | None,
    duration_hours: int | None,
) -> tuple[WarningSeverity, str, int | None]:
    """Return cleaned inputs or raise :class:`InvalidModerationInput` before any write."""

    try:
        safe_severity = WarningSeverity(severity)
    except ValueError as exc:
        raise InvalidModerationInput("severity", f"Unknown severity {severity!r}.") from exc

    safe_reason = _normalize_reason(reason)
    if not safe_reason:
        raise InvalidModerationInput("reason", "A reason is required.")

    if safe_severity is not WarningSeverity.TEMPORARY_SUSPENSION:
        # Durations only apply to temporary suspensions.
        return safe_severity, safe_reason, None

    if duration_hours is None or isinstance(duration_hours, bool):
        raise InvalidModerationInput("duration_hours", "A temporary suspension needs a duration in hours.")
    hours = int(duration_hours)
    if hours <= 0:
        raise InvalidModerationInput("duration_hours", "Suspension duration must be greater than zero.")
    if hours > MAX_SUSPENSION_HOURS:
        raise InvalidModerationInput("duration_hours", "Suspension duration is too long; use a ban instead.")
    return safe_severity, safe_reason, hours


def build_dedupe_key(
    *,
    admin_id: UUID,
    user_id: UUID,
    severity: WarningSeverity,
    reason: str,
    duration_hours: int | None,
    now: datetime,
    idempotency_key: str | None = None,
) -> str:
    """Key shared by repeated submissions of the same action.

    A caller-supplied idempotency key wins; otherwise the key buckets
    identical actions by ``MODERATION_DEDUPE_SECONDS``.
    """

    if idempotency_key and idempotency_key.strip():
        digest = hashlib.sha256(f"{admin_id}|{idempotency_key.strip()}".encode("utf-8")).hexdigest()
        return f"idem:{digest}"

    bucket_seconds = max(1, get_settings().moderation_dedupe_seconds)
    bucket = int(now.timestamp()) // bucket_seconds
    material = f"{admin_id}|{user_id}|{severity}|{duration_hours or 0}|{reason.lower()}|{bucket}"
    return f"auto:{hashlib.sha256(material.encode('utf-8')).hexdigest()}"


def _load_target(db: Session, admin: Profile, user_id: UUID) -> Profile:
    profile = db.get(Profile, user_id)
    if profile is None:
        raise TargetNotFound("User not found.")
    if profile.id == admin.id:
        raise InvalidModerationInput("user_id", "You cannot moderate your own account.")
    if (profile.role or "user").lower() == "owner":
        raise Unauthorized("The owner account cannot be moderated.")
    return profile


def _find_duplicate(
    db: Session,
    *,
    admin_id: UUID,
    user_id: UUID,
    severity: WarningSeverity,
    reason: str,
    duration_hours: int | None,
    dedupe_key: str,
    now: datetime,
    explicit_key: bool,
) -> UserWarning | None:
    existing = db.scalar(select(UserWarning).where(UserWarning.dedupe_key == dedupe_key))
    if existing is not None or explicit_key:
        return existing

    # Also catch double submissions that straddle a bucket boundary.
    window_start = now - timedelta(seconds=max(1, get_settings().moderation_dedupe_seconds))
    same_duration = (
        UserWarning.duration_hours.is_(None) if duration_hours is None else UserWarning.duration_hours == duration_hours
    )
    return db.scalar(
        select(UserWarning)
        .where(
            UserWarning.issued_by == admin_id,
            UserWarning.user_id == user_id,
            UserWarning.severity == str(severity),
            UserWarning.reason == reason,
            same_duration,
            UserWarning.created_at >= window_start,
        )
        .order_by(UserWarning.created_at.desc())
        .limit(1)
    )


def _log_entry_for_warning(db: Session, warning: UserWarning) -> ModerationLogEntry | None:
    return db.scalar(
        select(ModerationLogEntry)
        .options(joinedload(ModerationLogEntry.admin))
        .where(
            ModerationLogEntry.target_id == str(warning.user_id),
            ModerationLogEntry.admin_id == warning.issued_by,
            ModerationLogEntry.action.in_([ModerationAction.WARN_USER, ModerationAction.SUSPEND_USER]),
            ModerationLogEntry.created_at == warning.created_at,
        )
        .limit(1)
    )


def _duplicate_outcome(db: Session, profile: Profile, warning: UserWarning) -> ModerationOutcome:
    logger.info("Ignoring duplicate moderation request for user %s (warning %s)", profile.id, warning.id)
    db.refresh(profile)
    return ModerationOutcome(
        profile=profile,
        warning=warning,
        log_entry=_log_entry_for_warning(db, warning),
        duplicate=True,
    )


def _notification_message(severity: WarningSeverity, reason: str, suspension_until: datetime | None) -> str:
    message = f"{_SEVERITY_PHRASES[severity]}: {reason}"
    if suspension_until is not None:
        message = f"{message} (until {suspension_until.isoformat(timespec='minutes')})"
    return message


def stage_moderation(
    db: Session,
    *,
    admin: Profile,
    user_id: UUID,
    severity: WarningSeverity | str,
    reason: str,
    duration_hours: int | None = None,
    idempotency_key: str | None = None,
    report_id: UUID | None = None,
    now: datetime | None = None,
) -> ModerationOutcome:
    """Apply a warn/suspend/ban inside the caller's transaction without committing.

    Raises :class:`IntegrityError` from the flush when a concurrent request
    claimed the same dedupe key; :func:`apply_moderation` turns that into a
    duplicate outcome.
    """

    assert_admin(admin)
    safe_severity, safe_reason, hours = validate_moderation_input(severity, reason, duration_hours)
    current = as_utc(now) if now is not None else utcnow()
    profile = _load_target(db, admin, user_id)
    admin_id = cast(UUID, admin.id)

    dedupe_key = build_dedupe_key(
        admin_id=admin_id,
        user_id=user_id,
        severity=safe_severity,
        reason=safe_reason,
        duration_hours=hours,
        now=current,
        idempotency_key=idempotency_key,
    )
    existing = _find_duplicate(
        db,
        admin_id=admin_id,
        user_id=user_id,
        severity=safe_severity,
        reason=safe_reason,
        duration_hours=hours,
        dedupe_key=dedupe_key,
        now=current,
        explicit_key=bool(idempotency_key and idempotency_key.strip()),
    )
    if existing is not None:
        return _duplicate_outcome(db, profile, existing)

    new_status = SEVERITY_TO_STATUS[safe_severity]
    suspension_until = current + timedelta(hours=hours) if hours is not None else None

    db.execute(
        update(Profile)
        .where(Profile.id == user_id)
        .values(
            moderation_status=str(new_status),
            suspension_until=suspension_until,
            warn_count=Profile.warn_count + 1,
            updated_at=current,
        )
        .execution_options(synchronize_session=False)
    )

    warning = UserWarning(
        id=uuid4(),
        user_id=user_id,
        issued_by=admin_id,
        severity=str(safe_severity),
        duration_hours=hours,
        reason=safe_reason,
        dedupe_key=dedupe_key,
        created_at=current,
    )
    db.add(warning)

    log_entry = record_log_entry(
        db,
        action=SEVERITY_TO_ACTION[safe_severity],
        admin_id=admin_id,
        target_type=ModerationTargetType.USER,
        target_id=user_id,
        subject_user_id=user_id,
        metadata=ModerationActionMetadata(
            reason=safe_reason,
            severity=safe_severity,
            duration_hours=hours,
            suspension_until=suspension_until,
            warning_id=warning.id,
            report_id=report_id,
        ),
        created_at=current,
    )
    db.flush()

    notification = stage_notification(
        db,
        recipient_id=user_id,
        actor_id=admin_id,
        type_=NotificationType.ADMIN_WARNING,
        message=_notification_message(safe_severity, safe_reason, suspension_until),
        extra_data={
            "action": str(SEVERITY_TO_ACTION[safe_severity]),
            "severity": str(safe_severity),
            "reason": safe_reason,
            "duration_hours": hours,
            "suspension_until": suspension_until.isoformat() if suspension_until else None,
        },
    )

    logger.info(
        "Moderation action %s applied to user %s by admin %s (until=%s)",
        safe_severity,
        user_id,
        admin_id,
        suspension_until,
    )
    return ModerationOutcome(
        profile=profile,
        warning=warning,
        log_entry=log_entry,
        notifications=[notification] if notification is not None else [],
    )


def stage_lift(
    db: Session,
    *,
    admin: Profile,
    user_id: UUID,
    reason: str,
    report_id: UUID | None = None,
    now: datetime | None = None,
) -> ModerationOutcome:
    """Clear status and suspension in the caller's transaction; ``warn_count`` is kept."""

    assert_admin(admin)
    safe_reason = _normalize_reason(reason)
    if not safe_reason:
        raise InvalidModerationInput("reason", "A reason is required.")
    current = as_utc(now) if now is not None else utcnow()
    profile = _load_target(db, admin, user_id)
    admin_id = cast(UUID, admin.id)

    previous_status = ModerationStatus(profile.moderation_status or ModerationStatus.ACTIVE)
    previous_until = as_utc(profile.suspension_until)

    db.execute(
        update(Profile)
        .where(Profile.id == user_id)
        .values(moderation_status=str(ModerationStatus.ACTIVE), suspension_until=None, updated_at=current)
        .execution_options(synchronize_session=False)
    )

    log_entry = record_log_entry(
        db,
        action=ModerationAction.CLEAR_MODERATION,
        admin_id=admin_id,
        target_type=ModerationTargetType.USER,
        target_id=user_id,
        subject_user_id=user_id,
        metadata=LiftMetadata(
            reason=safe_reason,
            previous_status=previous_status,
            previous_suspension_until=previous_until,
            report_id=report_id,
        ),
        created_at=current,
    )
    db.flush()

    notification = stage_notification(
        db,
        recipient_id=user_id,
        actor_id=admin_id,
        type_=NotificationType.ADMIN_MODERATION,
        message=f"Your account restrictions have been lifted: {safe_reason}",
        extra_data={
            "action": str(ModerationAction.CLEAR_MODERATION),
            "reason": safe_reason,
            "previous_status": str(previous_status),
        },
    )

    logger.info("Restrictions lifted for user %s by admin %s (was %s)", user_id, admin_id, previous_status)
    return ModerationOutcome(
        profile=profile,
        log_entry=log_entry,
        notifications=[notification] if notification is not None else [],
    )


def commit_outcome(db: Session, outcome: ModerationOutcome) -> ModerationOutcome:
    """Commit staged effects, then refresh and publish them."""

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to persist moderation action for user %s", outcome.profile.id)
        raise StorageFailure() from exc
    db.refresh(outcome.profile)
    publish_log_entry(outcome.log_entry)
    deliver(outcome.notifications)
    return outcome


def apply_moderation(
    db: Session,
    *,
    admin: Profile,
    user_id: UUID,
    severity: WarningSeverity | str,
    reason: str,
    duration_hours: int | None = None,
    idempotency_key: str | None = None,
    report_id: UUID | None = None,
    now: datetime | None = None,
) -> ModerationOutcome:
    """Warn, suspend or ban ``user_id`` atomically.

    Raises
    ------
    Unauthorized
        ``admin`` is not an admin, or the target is the owner.
    InvalidModerationInput
        Blank reason, missing or non-positive suspension duration.
    TargetNotFound
        No profile with ``user_id``.
    StorageFailure
        The transaction failed and was rolled back.
    """

    assert_admin(admin)
    safe_severity, safe_reason, hours = validate_moderation_input(severity, reason, duration_hours)
    current = as_utc(now) if now is not None else utcnow()
    dedupe_key = build_dedupe_key(
        admin_id=cast(UUID, admin.id),
        user_id=user_id,
        severity=safe_severity,
        reason=safe_reason,
        duration_hours=hours,
        now=current,
        idempotency_key=idempotency_key,
    )

    try:
        outcome = stage_moderation(
            db,
            admin=admin,
            user_id=user_id,
            severity=safe_severity,
            reason=safe_reason,
            duration_hours=duration_hours,
            idempotency_key=idempotency_key,
            report_id=report_id,
            now=current,
        )
    except IntegrityError as exc:
        db.rollback()
        return recover_duplicate(db, exc, user_id=user_id, dedupe_key=dedupe_key)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to apply moderation to user %s", user_id)
        raise StorageFailure() from exc

    if outcome.duplicate:
        return outcome
    try:
        return commit_outcome(db, outcome)
    except StorageFailure as failure:
        if isinstance(failure.__cause__, IntegrityError):
            return recover_duplicate(db, failure.__cause__, user_id=user_id, dedupe_key=dedupe_key)
        raise


def recover_duplicate(db: Session, exc: IntegrityError, *, user_id: UUID, dedupe_key: str) -> ModerationOutcome:
    """Turn a dedupe-key collision with a concurrent request into a duplicate outcome."""

    existing = db.scalar(select(UserWarning).where(UserWarning.dedupe_key == dedupe_key))
    profile = db.get(Profile, user_id)
    if existing is None or profile is None:
        logger.error("Moderation write for user %s violated a constraint", user_id)
        raise StorageFailure() from exc
    return _duplicate_outcome(db, profile, existing)


def lift_restrictions(
    db: Session,
    *,
    admin: Profile,
    user_id: UUID,
    reason: str,
    report_id: UUID | None = None,
    now: datetime | None = None,
) -> ModerationOutcome:
    """Return ``user_id`` to active; the strike count stays as history."""

    try:
        outcome = stage_lift(db, admin=admin, user_id=user_id, reason=reason, report_id=report_id, now=now)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to lift restrictions for user %s", user_id)
        raise StorageFailure() from exc
    return commit_outcome(db, outcome)


def blocked_until(profile: Profile, *, now: datetime | None = None) -> tuple[bool, datetime | None]:
    """Compute whether ``profile`` is currently blocked and until when.

    Expired suspensions are not rewritten; they simply stop blocking.
    """

    current = as_utc(now) if now is not None else utcnow()
    status = (profile.moderation_status or ModerationStatus.ACTIVE).lower()
    if status == ModerationStatus.BANNED:
        return True, None
    if status == ModerationStatus.SUSPENDED:
        until = as_utc(profile.suspension_until)
        if until is not None and until > current:
            return True, until
    return False, None


def is_blocked(db: Session, user_id: UUID, *, now: datetime | None = None) -> bool:
    profile = db.get(Profile, user_id)
    if profile is None:
        return False
    blocked, _ = blocked_until(profile, now=now)
    return blocked


def ensure_can_act(profile: Profile, *, now: datetime | None = None) -> None:
    """Raise :class:`AccountRestricted` when ``profile`` may not write right now."""

    blocked, until = blocked_until(profile, now=now)
    if blocked:
        logger.info("Blocked write from restricted user %s (status=%s)", profile.id, profile.moderation_status)
        raise AccountRestricted(str(profile.moderation_status), until)


def to_status_response(profile: Profile, *, now: datetime | None = None) -> ModerationStatusResponse:
    blocked, until = blocked_until(profile, now=now)
    return ModerationStatusResponse(
        user_id=profile.id,
        username=profile.username,
        moderation_status=profile.moderation_status or ModerationStatus.ACTIVE,
        warn_count=int(profile.warn_count or 0),
        suspension_until=as_utc(profile.suspension_until),
        is_blocked=blocked,
        blocked_until=until,
    )


def get_moderation_status(db: Session, *, admin: Profile, user_id: UUID, now: datetime | None = None) -> ModerationStatusResponse:
    assert_admin(admin)
    profile = db.get(Profile, user_id)
    if profile is None:
        raise TargetNotFound("User not found.")
    return to_status_response(profile, now=now)


def to_warning_response(warning: UserWarning) -> UserWarningResponse:
    return UserWarningResponse(
        id=warning.id,
        user_id=warning.user_id,
        issued_by=warning.issued_by,
        admin_username=warning.admin.username if warning.admin is not None else None,
        severity=warning.severity,
        duration_hours=warning.duration_hours,
        reason=warning.reason,
        created_at=as_utc(warning.created_at),
    )


def recent_warnings(db: Session, user_id: UUID, *, limit: int, offset: int = 0) -> list[UserWarning]:
    stmt = (
        select(UserWarning)
        .options(joinedload(UserWarning.admin))
        .where(UserWarning.user_id == user_id)
        .order_by(UserWarning.created_at.desc(), UserWarning.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(db.scalars(stmt))


def list_user_warnings(db: Session, *, admin: Profile, user_id: UUID, page: int = 1) -> UserWarningList:
    assert_admin(admin)
    if db.get(Profile, user_id) is None:
        raise TargetNotFound("User not found.")
    safe_page = max(1, int(page or 1))
    rows = recent_warnings(db, user_id, limit=WARNINGS_PAGE_SIZE, offset=(safe_page - 1) * WARNINGS_PAGE_SIZE)
    return UserWarningList(
        items=[to_warning_response(row) for row in rows],
        page=safe_page,
        has_more=len(rows) == WARNINGS_PAGE_SIZE,
    )


__all__ = [
    "ModerationOutcome",
    "validate_moderation_input",
    "build_dedupe_key",
    "stage_moderation",
    "stage_lift",
    "commit_outcome",
    "apply_moderation",
    "recover_duplicate",
    "lift_restrictions",
    "blocked_until",
    "is_blocked",
    "ensure_can_act",
    "to_status_response",
    "get_moderation_status",
    "to_warning_response",
    "recent_warnings",
    "list_user_warnings",
]
