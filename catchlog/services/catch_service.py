"""Business logic for catches and their engagement, gated by moderation status and rate limits."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import cast
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import ReactionType, ThrottledAction
from ..exceptions import RateLimitExceeded, StorageFailure
from ..models import Catch, CatchComment, CatchRating, CatchReaction, Notification, Profile
from .block_service import ensure_not_blocked
from .moderation_service import ensure_can_act
from .notification_service import NotificationType, deliver, stage_notification
from .rate_limiter import consume

logger = logging.getLogger(__name__)


def _get_catch_or_404(db: Session, catch_id: UUID) -> Catch:
    catch = db.get(Catch, catch_id)
    if catch is None or catch.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Catch not found")
    return catch


def _gate(
    db: Session,
    actor: Profile,
    action: ThrottledAction,
    now: datetime | None,
    *,
    owner_id: UUID | None = None,
) -> None:
    """Status and block checks first, then consume one attempt in the current transaction."""

    ensure_can_act(actor, now=now)
    if owner_id is not None:
        ensure_not_blocked(db, cast(UUID, actor.id), owner_id)
    try:
        consume(db, user_id=cast(UUID, actor.id), action=action, now=now)
    except RateLimitExceeded:
        db.rollback()
        raise


def _commit(db: Session, *, detail: str, notifications: list[Notification | None] | None = None) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s", detail)
        raise StorageFailure(f"{detail}. Please retry.") from exc
    deliver(notifications or [])


def _notify_owner(
    db: Session,
    catch: Catch,
    actor: Profile,
    *,
    type_: NotificationType,
    message: str,
    comment_id: UUID | None = None,
) -> Notification | None:
    if catch.user_id == actor.id:
        return None
    return stage_notification(
        db,
        recipient_id=cast(UUID, catch.user_id),
        actor_id=cast(UUID, actor.id),
        type_=type_,
        message=message,
        catch_id=cast(UUID, catch.id),
        comment_id=comment_id,
    )


def get_catch(db: Session, catch_id: UUID) -> Catch:
    return _get_catch_or_404(db, catch_id)


def create_catch(
    db: Session,
    *,
    author: Profile,
    title: str,
    species: str | None = None,
    description: str | None = None,
    now: datetime | None = None,
) -> Catch:
    safe_title = (title or "").strip()
    if not safe_title:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Title is required")

    _gate(db, author, ThrottledAction.CATCH, now)

    catch = Catch(
        user_id=author.id,
        title=safe_title,
        species=(species or "").strip() or None,
        description=(description or "").strip() or None,
    )
    db.add(catch)
    _commit(db, detail="Failed to create catch")
    db.refresh(catch)
    return catch


def add_comment(
    db: Session,
    *,
    catch_id: UUID,
    author: Profile,
    body: str,
    now: datetime | None = None,
) -> CatchComment:
    text = (body or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Comment cannot be empty")
    catch = _get_catch_or_404(db, catch_id)

    _gate(db, author, ThrottledAction.COMMENT, now, owner_id=cast(UUID, catch.user_id))

    comment = CatchComment(catch_id=catch.id, user_id=author.id, body=text)
    db.add(comment)
    db.flush()
    notification = _notify_owner(
        db,
        catch,
        author,
        type_=NotificationType.NEW_COMMENT,
        message=f'{author.username} commented on "{catch.title}"',
        comment_id=cast(UUID, comment.id),
    )
    _commit(db, detail="Failed to add comment", notifications=[notification])
    db.refresh(comment)
    return comment


def react_to_catch(
    db: Session,
    *,
    catch_id: UUID,
    user: Profile,
    reaction: ReactionType | str = ReactionType.LIKE,
    now: datetime | None = None,
) -> bool:
    """Record one reaction per user per catch; returns ``True`` when newly created."""

    try:
        safe_reaction = ReactionType(reaction)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Unknown reaction") from exc
    catch = _get_catch_or_404(db, catch_id)

    _gate(db, user, ThrottledAction.REACTION, now, owner_id=cast(UUID, catch.user_id))

    existing = db.scalar(
        select(CatchReaction).where(CatchReaction.catch_id == catch.id, CatchReaction.user_id == user.id)
    )
    notification = None
    if existing is None:
        db.add(CatchReaction(catch_id=catch.id, user_id=user.id, reaction=str(safe_reaction)))
        db.flush()
        notification = _notify_owner(
            db,
            catch,
            user,
            type_=NotificationType.NEW_REACTION,
            message=f'{user.username} reacted to "{catch.title}"',
        )
    else:
        existing.reaction = str(safe_reaction)

    _commit(db, detail="Failed to save reaction", notifications=[notification])
    return existing is None


def rate_catch(
    db: Session,
    *,
    catch_id: UUID,
    user: Profile,
    rating: int,
    now: datetime | None = None,
) -> bool:
    """Rate a catch from 1 to 10; returns ``True`` when a new rating was created."""

    if isinstance(rating, bool) or not 1 <= int(rating) <= 10:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Rating must be between 1 and 10")
    catch = _get_catch_or_404(db, catch_id)
    if catch.user_id == user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot rate your own catch")

    _gate(db, user, ThrottledAction.RATING, now, owner_id=cast(UUID, catch.user_id))

    existing = db.scalar(select(CatchRating).where(CatchRating.catch_id == catch.id, CatchRating.user_id == user.id))
    notification = None
    if existing is None:
        db.add(CatchRating(catch_id=catch.id, user_id=user.id, rating=int(rating)))
        db.flush()
        notification = _notify_owner(
            db,
            catch,
            user,
            type_=NotificationType.NEW_RATING,
            message=f'{user.username} rated "{catch.title}" {int(rating)}/10',
        )
    else:
        existing.rating = int(rating)

    _commit(db, detail="Failed to save rating", notifications=[notification])
    return existing is None


__all__ = ["get_catch", "create_catch", "add_comment", "react_to_catch", "rate_catch"]
