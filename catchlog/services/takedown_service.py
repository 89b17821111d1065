"""Soft-delete and restore of catches and comments by moderators."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import cast
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import ModerationAction, ModerationTargetType
from ..exceptions import InvalidModerationInput, NothingToRestore, StorageFailure, TargetNotFound
from ..models import Catch, CatchComment, ModerationLogEntry, Notification, Profile
from ..schemas import ContentTakedownMetadata
from .audit_service import publish_log_entry, record_log_entry
from .auth_service import assert_admin
from .clock import as_utc, utcnow
from .notification_service import NotificationType, deliver, stage_notification

logger = logging.getLogger(__name__)

DEFAULT_DELETE_REASON = "Moderator content removal"
DEFAULT_RESTORE_REASON = "Decision overturned"

_MODELS = {
    ModerationTargetType.CATCH: Catch,
    ModerationTargetType.COMMENT: CatchComment,
}
_DELETE_ACTIONS = {
    ModerationTargetType.CATCH: ModerationAction.DELETE_CATCH,
    ModerationTargetType.COMMENT: ModerationAction.DELETE_COMMENT,
}
_RESTORE_ACTIONS = {
    ModerationTargetType.CATCH: ModerationAction.RESTORE_CATCH,
    ModerationTargetType.COMMENT: ModerationAction.RESTORE_COMMENT,
}


@dataclass(slots=True)
class TakedownOutcome:
    target_type: ModerationTargetType
    target: Catch | CatchComment
    log_entry: ModerationLogEntry
    notifications: list[Notification] = field(default_factory=list)

    @property
    def owner_id(self) -> UUID:
        return cast(UUID, self.target.user_id)


def _content_type(target_type: ModerationTargetType | str) -> ModerationTargetType:
    try:
        content_type = ModerationTargetType(target_type)
    except ValueError as exc:
        raise InvalidModerationInput("target_type", f"Unknown content type {target_type!r}.") from exc
    if content_type not in _MODELS:
        raise InvalidModerationInput("target_type", "Only catches and comments can be taken down.")
    return content_type


def load_content(db: Session, target_type: ModerationTargetType | str, target_id: UUID) -> Catch | CatchComment:
    """Load a catch or comment, including soft-deleted rows."""

    content_type = _content_type(target_type)
    target = db.get(_MODELS[content_type], target_id)
    if target is None:
        raise TargetNotFound(f"{content_type.value.capitalize()} not found.")
    return target


def _describe(target: Catch | CatchComment) -> str:
    if isinstance(target, Catch):
        return f'your catch "{target.title}"'
    return "your comment"


def stage_delete(
    db: Session,
    *,
    admin: Profile,
    target_type: ModerationTargetType | str,
    target_id: UUID,
    reason: str | None = None,
    report_id: UUID | None = None,
    now: datetime | None = None,
) -> TakedownOutcome:
    """Mark content deleted in the caller's transaction.

    Content that is already soft-deleted keeps its original marker, but the
    call is still recorded in the log.
    """

    assert_admin(admin)
    content_type = _content_type(target_type)
    current = as_utc(now) if now is not None else utcnow()
    safe_reason = " ".join((reason or "").split()) or DEFAULT_DELETE_REASON
    target = load_content(db, content_type, target_id)

    already_deleted = target.deleted_at is not None
    if not already_deleted:
        target.deleted_at = current

    owner_id = cast(UUID, target.user_id)
    log_entry = record_log_entry(
        db,
        action=_DELETE_ACTIONS[content_type],
        admin_id=cast(UUID, admin.id),
        target_type=content_type,
        target_id=target_id,
        subject_user_id=owner_id,
        metadata=ContentTakedownMetadata(
            reason=safe_reason,
            owner_id=owner_id,
            catch_id=target.catch_id if isinstance(target, CatchComment) else target.id,
            already_deleted=already_deleted,
            report_id=report_id,
        ),
        created_at=current,
    )
    db.flush()

    notification = stage_notification(
        db,
        recipient_id=owner_id,
        actor_id=cast(UUID, admin.id),
        type_=NotificationType.ADMIN_MODERATION,
        message=f"A moderator removed {_describe(target)}: {safe_reason}",
        catch_id=target.catch_id if isinstance(target, CatchComment) else target.id,
        comment_id=target.id if isinstance(target, CatchComment) else None,
        extra_data={"action": str(_DELETE_ACTIONS[content_type]), "reason": safe_reason},
    )
    logger.info("Admin %s deleted %s %s (already_deleted=%s)", admin.id, content_type, target_id, already_deleted)
    return TakedownOutcome(
        target_type=content_type,
        target=target,
        log_entry=log_entry,
        notifications=[notification] if notification is not None else [],
    )


def stage_restore(
    db: Session,
    *,
    admin: Profile,
    target_type: ModerationTargetType | str,
    target_id: UUID,
    reason: str | None = None,
    report_id: UUID | None = None,
    now: datetime | None = None,
) -> TakedownOutcome:
    """Clear the deleted marker in the caller's transaction.

    Raises :class:`NothingToRestore` without writing anything when the
    content was never deleted.
    """

    assert_admin(admin)
    content_type = _content_type(target_type)
    current = as_utc(now) if now is not None else utcnow()
    safe_reason = " ".join((reason or "").split()) or DEFAULT_RESTORE_REASON
    target = load_content(db, content_type, target_id)
    if target.deleted_at is None:
        raise NothingToRestore()

    target.deleted_at = None
    owner_id = cast(UUID, target.user_id)
    log_entry = record_log_entry(
        db,
        action=_RESTORE_ACTIONS[content_type],
        admin_id=cast(UUID, admin.id),
        target_type=content_type,
        target_id=target_id,
        subject_user_id=owner_id,
        metadata=ContentTakedownMetadata(
            reason=safe_reason,
            owner_id=owner_id,
            catch_id=target.catch_id if isinstance(target, CatchComment) else target.id,
            report_id=report_id,
        ),
        created_at=current,
    )
    db.flush()

    notification = stage_notification(
        db,
        recipient_id=owner_id,
        actor_id=cast(UUID, admin.id),
        type_=NotificationType.ADMIN_MODERATION,
        message=f"A moderator restored {_describe(target)}: {safe_reason}",
        catch_id=target.catch_id if isinstance(target, CatchComment) else target.id,
        comment_id=target.id if isinstance(target, CatchComment) else None,
        extra_data={"action": str(_RESTORE_ACTIONS[content_type]), "reason": safe_reason},
    )
    logger.info("Admin %s restored %s %s", admin.id, content_type, target_id)
    return TakedownOutcome(
        target_type=content_type,
        target=target,
        log_entry=log_entry,
        notifications=[notification] if notification is not None else [],
    )


def _commit(db: Session, outcome: TakedownOutcome) -> TakedownOutcome:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to persist takedown of %s %s", outcome.target_type, outcome.target.id)
        raise StorageFailure() from exc
    db.refresh(outcome.target)
    publish_log_entry(outcome.log_entry)
    deliver(outcome.notifications)
    return outcome


def delete_content(
    db: Session,
    *,
    admin: Profile,
    target_type: ModerationTargetType | str,
    target_id: UUID,
    reason: str | None = None,
    now: datetime | None = None,
) -> TakedownOutcome:
    try:
        outcome = stage_delete(db, admin=admin, target_type=target_type, target_id=target_id, reason=reason, now=now)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to delete %s %s", target_type, target_id)
        raise StorageFailure() from exc
    return _commit(db, outcome)


def restore_content(
    db: Session,
    *,
    admin: Profile,
    target_type: ModerationTargetType | str,
    target_id: UUID,
    reason: str | None = None,
    now: datetime | None = None,
) -> TakedownOutcome:
    try:
        outcome = stage_restore(db, admin=admin, target_type=target_type, target_id=target_id, reason=reason, now=now)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to restore %s %s", target_type, target_id)
        raise StorageFailure() from exc
    return _commit(db, outcome)


__all__ = [
    "DEFAULT_DELETE_REASON",
    "DEFAULT_RESTORE_REASON",
    "TakedownOutcome",
    "load_content",
    "stage_delete",
    "stage_restore",
    "delete_content",
    "restore_content",
]
