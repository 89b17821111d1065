"""Business logic for follower relationships."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import cast
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import ThrottledAction
from ..exceptions import RateLimitExceeded, StorageFailure
from ..models import Follow, Profile
from .block_service import ensure_not_blocked
from .moderation_service import ensure_can_act
from .notification_service import NotificationType, deliver, stage_notification
from .rate_limiter import consume

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FollowStats:
    user_id: UUID
    followers_count: int
    following_count: int
    is_following: bool


def _get_user_or_404(db: Session, user_id: UUID) -> Profile:
    user = db.get(Profile, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def follow_user(db: Session, *, follower: Profile, target_id: UUID, now: datetime | None = None) -> bool:
    """Follow ``target_id``; returns ``False`` when already following.

    The attempt is counted against the follow limit either way.
    """

    follower_id = cast(UUID, follower.id)
    if follower_id == target_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot follow yourself")

    ensure_can_act(follower, now=now)
    _get_user_or_404(db, target_id)
    ensure_not_blocked(db, follower_id, target_id)

    try:
        consume(db, user_id=follower_id, action=ThrottledAction.FOLLOW, now=now)
    except RateLimitExceeded:
        db.rollback()
        raise

    existing = db.scalar(
        select(Follow).where(Follow.follower_id == follower_id, Follow.following_id == target_id)
    )
    notification = None
    if existing is None:
        db.add(Follow(follower_id=follower_id, following_id=target_id))
        db.flush()
        notification = stage_notification(
            db,
            recipient_id=target_id,
            actor_id=follower_id,
            type_=NotificationType.NEW_FOLLOWER,
            message=f"{follower.username} started following you",
        )

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to follow %s for user %s", target_id, follower_id)
        raise StorageFailure("Unable to follow user.") from exc

    deliver([notification])
    return existing is None


def unfollow_user(db: Session, *, follower: Profile, target_id: UUID) -> bool:
    follower_id = cast(UUID, follower.id)
    if follower_id == target_id:
        return False

    record = db.scalar(
        select(Follow).where(Follow.follower_id == follower_id, Follow.following_id == target_id)
    )
    if record is None:
        return False
    try:
        db.delete(record)
        db.commit()
        return True
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageFailure("Unable to unfollow user.") from exc


def get_follow_stats(db: Session, *, user_id: UUID, viewer_id: UUID | None = None) -> FollowStats:
    _get_user_or_404(db, user_id)

    followers_count = db.scalar(
        select(func.count()).select_from(Follow).where(Follow.following_id == user_id)
    ) or 0
    following_count = db.scalar(
        select(func.count()).select_from(Follow).where(Follow.follower_id == user_id)
    ) or 0

    is_following = False
    if viewer_id is not None:
        is_following = (
            db.scalar(
                select(Follow.follower_id).where(
                    Follow.follower_id == viewer_id,
                    Follow.following_id == user_id,
                )
            )
            is not None
        )

    return FollowStats(
        user_id=user_id,
        followers_count=int(followers_count),
        following_count=int(following_count),
        is_following=is_following,
    )


__all__ = ["FollowStats", "follow_user", "unfollow_user", "get_follow_stats"]
