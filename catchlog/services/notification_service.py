"""Notification helper logic: staging rows inside moderation transactions and fanning them out."""
from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import ADMIN_ROLES
from ..models import Notification, Profile
from ..schemas import NotificationResponse
from .realtime import change_feed, user_channel

logger = logging.getLogger(__name__)


class NotificationType(StrEnum):
    NEW_FOLLOWER = "new_follower"
    NEW_COMMENT = "new_comment"
    NEW_RATING = "new_rating"
    NEW_REACTION = "new_reaction"
    ADMIN_REPORT = "admin_report"
    ADMIN_WARNING = "admin_warning"
    ADMIN_MODERATION = "admin_moderation"


def list_notifications(db: Session, user_id: UUID, *, limit: int = 50) -> list[Notification]:
    """Return notifications for the supplied recipient ordered newest first."""

    stmt = (
        select(Notification)
        .where(Notification.recipient_id == user_id)
        .order_by(Notification.created_at.desc())
        .limit(max(1, min(int(limit), 200)))
    )
    return list(db.scalars(stmt))


def count_unread_notifications(db: Session, user_id: UUID) -> int:
    """Return the unread notification total for the supplied user."""

    stmt = (
        select(func.count())
        .select_from(Notification)
        .where(Notification.recipient_id == user_id, Notification.is_read.is_(False))
    )
    return int(db.scalar(stmt) or 0)


def stage_notification(
    db: Session,
    *,
    recipient_id: UUID,
    message: str,
    type_: NotificationType | str,
    actor_id: UUID | None = None,
    extra_data: dict[str, Any] | None = None,
    catch_id: UUID | None = None,
    comment_id: UUID | None = None,
) -> Notification | None:
    """Add a notification inside a savepoint of the caller's transaction.

    A failure only discards the savepoint; the surrounding moderation write is
    left intact and ``None`` is returned.
    """

    notification = Notification(
        recipient_id=recipient_id,
        actor_id=actor_id,
        type=str(type_),
        message=message,
        extra_data=extra_data,
        catch_id=catch_id,
        comment_id=comment_id,
    )
    try:
        with db.begin_nested():
            db.add(notification)
    except SQLAlchemyError:
        logger.warning("Failed to stage %s notification for %s", type_, recipient_id, exc_info=True)
        return None
    return notification


def notify_admins(
    db: Session,
    *,
    message: str,
    extra_data: dict[str, Any] | None = None,
    actor_id: UUID | None = None,
) -> list[Notification]:
    """Stage an ``admin_report`` notification for every admin and owner."""

    admin_ids = list(db.scalars(select(Profile.id).where(Profile.role.in_(ADMIN_ROLES)).order_by(Profile.created_at)))
    if not admin_ids:
        logger.warning("No admin users configured to receive notifications")
        return []

    staged: list[Notification] = []
    for admin_id in admin_ids:
        notification = stage_notification(
            db,
            recipient_id=admin_id,
            message=message,
            type_=NotificationType.ADMIN_REPORT,
            actor_id=actor_id,
            extra_data=extra_data,
        )
        if notification is not None:
            staged.append(notification)
    return staged


def deliver(notifications: Iterable[Notification | None]) -> None:
    """Push committed notifications to their recipients' realtime channel."""

    for notification in notifications:
        if notification is None:
            continue
        try:
            payload = NotificationResponse.model_validate(notification).model_dump(mode="json")
            change_feed.publish(user_channel(notification.recipient_id), "notification.created", payload)
        except Exception:
            logger.warning("Failed to push notification %s", notification.id, exc_info=True)


def mark_all_read(db: Session, recipient_id: UUID) -> None:
    """Mark all notifications for the given recipient as read."""

    stmt = (
        update(Notification)
        .where(Notification.recipient_id == recipient_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    db.execute(stmt)
    db.commit()
    change_feed.publish(user_channel(recipient_id), "notification.read_all", {"recipient_id": str(recipient_id)})


__all__ = [
    "NotificationType",
    "list_notifications",
    "count_unread_notifications",
    "stage_notification",
    "notify_admins",
    "deliver",
    "mark_all_read",
]
