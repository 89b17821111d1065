"""User-to-user blocking.

A block hides the two anglers from each other's interactions: neither side can
follow, comment on, react to or rate the other's catches while it exists.
Blocking also drops any follow relationship between the pair. Restricted
accounts may still block; it only ever reduces contact.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import cast
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import and_, delete, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..exceptions import InteractionBlocked, StorageFailure
from ..models import Follow, Profile, ProfileBlock
from .clock import as_utc, utcnow

logger = logging.getLogger(__name__)


def _pair_clause(model_first, model_second, first_id: UUID, second_id: UUID):
    return or_(
        and_(model_first == first_id, model_second == second_id),
        and_(model_first == second_id, model_second == first_id),
    )


def block_profile(
    db: Session,
    *,
    blocker: Profile,
    blocked_id: UUID,
    reason: str | None = None,
    now: datetime | None = None,
) -> bool:
    """Block ``blocked_id``; returns ``False`` when the block already existed."""

    blocker_id = cast(UUID, blocker.id)
    if blocker_id == blocked_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot block yourself")
    if db.get(Profile, blocked_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if db.get(ProfileBlock, (blocker_id, blocked_id)) is not None:
        return False

    current = as_utc(now) if now is not None else utcnow()
    db.add(
        ProfileBlock(
            blocker_id=blocker_id,
            blocked_id=blocked_id,
            reason=(reason or "").strip() or None,
            created_at=current,
        )
    )
    db.execute(delete(Follow).where(_pair_clause(Follow.follower_id, Follow.following_id, blocker_id, blocked_id)))
    try:
        db.commit()
    except IntegrityError:
        # Same block submitted twice at once.
        db.rollback()
        return False
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to block %s for user %s", blocked_id, blocker_id)
        raise StorageFailure("Unable to block user.") from exc

    logger.info("User %s blocked %s", blocker_id, blocked_id)
    return True


def unblock_profile(db: Session, *, blocker: Profile, blocked_id: UUID) -> bool:
    blocker_id = cast(UUID, blocker.id)
    record = db.get(ProfileBlock, (blocker_id, blocked_id))
    if record is None:
        return False
    try:
        db.delete(record)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to unblock %s for user %s", blocked_id, blocker_id)
        raise StorageFailure("Unable to unblock user.") from exc
    logger.info("User %s unblocked %s", blocker_id, blocked_id)
    return True


def list_blocked(db: Session, *, blocker_id: UUID) -> list[ProfileBlock]:
    """Blocks placed by ``blocker_id``, newest first, with the blocked profile loaded."""

    stmt = (
        select(ProfileBlock)
        .options(joinedload(ProfileBlock.blocked))
        .where(ProfileBlock.blocker_id == blocker_id)
        .order_by(ProfileBlock.created_at.desc())
    )
    return list(db.scalars(stmt).unique())


def has_block_between(db: Session, first_id: UUID, second_id: UUID) -> bool:
    """True when either user has blocked the other."""

    stmt = select(ProfileBlock.blocker_id).where(
        _pair_clause(ProfileBlock.blocker_id, ProfileBlock.blocked_id, first_id, second_id)
    )
    return db.scalar(stmt.limit(1)) is not None


def ensure_not_blocked(db: Session, actor_id: UUID, other_id: UUID) -> None:
    if actor_id == other_id:
        return
    if has_block_between(db, actor_id, other_id):
        raise InteractionBlocked()


__all__ = ["block_profile", "unblock_profile", "list_blocked", "has_block_between", "ensure_not_blocked"]
