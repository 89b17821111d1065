"""Per-user, per-action throttling backed by the ``rate_limit_windows`` table.

Each (user, action) pair owns a single anchored window row. A check either
starts a fresh window, increments the current one while it is below the
configured maximum, or rejects with :class:`RateLimitExceeded`. Every branch is
a single conditional statement so two concurrent requests can never both take
the last slot, and consumption happens inside the caller's transaction so the
attempt only counts when the guarded write commits.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import RateLimitPolicy, get_settings
from ..exceptions import RateLimitExceeded
from ..models import RateLimitWindow
from .clock import as_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    """Outcome of a successful consumption."""

    action: str
    remaining: int
    reset_at: datetime
    allowed: bool = True


@dataclass(frozen=True, slots=True)
class RateLimitStatus:
    """Read-only view of a user's current allowance for one action."""

    action: str
    max_attempts: int
    used: int
    remaining: int
    reset_at: datetime | None

    @property
    def allowed(self) -> bool:
        return self.remaining > 0


def policy_for(action: str) -> RateLimitPolicy:
    """Return the configured policy for ``action`` or raise ``KeyError``."""

    return get_settings().rate_limit_policy(str(action))


def _validate(max_attempts: int, window: timedelta) -> None:
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    if window <= timedelta(0):
        raise ValueError("window must be a positive duration")


def _key(user_id: UUID, action: str):
    return (RateLimitWindow.user_id == user_id, RateLimitWindow.action == action)


def _load_window(db: Session, user_id: UUID, action: str) -> RateLimitWindow | None:
    return db.get(RateLimitWindow, (user_id, action), populate_existing=True)


def _try_increment(
    db: Session,
    *,
    user_id: UUID,
    action: str,
    max_attempts: int,
    window: timedelta,
    now: datetime,
) -> RateLimitDecision | None:
    result = db.execute(
        update(RateLimitWindow)
        .where(
            *_key(user_id, action),
            RateLimitWindow.count < max_attempts,
            RateLimitWindow.window_start > now - window,
        )
        .values(count=RateLimitWindow.count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None
    row = _load_window(db, user_id, action)
    if row is None:  # pragma: no cover - row cannot vanish inside our transaction
        return None
    return RateLimitDecision(
        action=action,
        remaining=max(0, max_attempts - int(row.count)),
        reset_at=as_utc(row.window_start) + window,
    )


def check_and_consume(
    db: Session,
    *,
    user_id: UUID,
    action: str,
    max_attempts: int,
    window: timedelta,
    now: datetime | None = None,
) -> RateLimitDecision:
    """Consume one attempt of ``action`` for ``user_id`` or raise :class:`RateLimitExceeded`.

    The caller owns the transaction: nothing is committed here.
    """

    _validate(max_attempts, window)
    action = str(action)
    current = as_utc(now) if now is not None else utcnow()

    reset = db.execute(
        update(RateLimitWindow)
        .where(*_key(user_id, action), RateLimitWindow.window_start <= current - window)
        .values(count=1, window_start=current)
        .execution_options(synchronize_session=False)
    )
    if reset.rowcount == 1:
        return RateLimitDecision(action=action, remaining=max_attempts - 1, reset_at=current + window)

    decision = _try_increment(db, user_id=user_id, action=action, max_attempts=max_attempts, window=window, now=current)
    if decision is not None:
        return decision

    existing = _load_window(db, user_id, action)
    if existing is None:
        try:
            with db.begin_nested():
                db.add(RateLimitWindow(user_id=user_id, action=action, count=1, window_start=current))
        except IntegrityError:
            # Another request opened the window between our update and insert.
            decision = _try_increment(
                db, user_id=user_id, action=action, max_attempts=max_attempts, window=window, now=current
            )
            if decision is not None:
                return decision
            existing = _load_window(db, user_id, action)
        else:
            return RateLimitDecision(action=action, remaining=max_attempts - 1, reset_at=current + window)

    reset_at = as_utc(existing.window_start) + window if existing is not None else current + window
    logger.info("Rate limit hit (user=%s, action=%s, reset_at=%s)", user_id, action, reset_at.isoformat())
    raise RateLimitExceeded(action, reset_at)


def consume(db: Session, *, user_id: UUID, action: str, now: datetime | None = None) -> RateLimitDecision:
    """Consume one attempt using the configured policy for ``action``."""

    policy = policy_for(action)
    return check_and_consume(
        db,
        user_id=user_id,
        action=action,
        max_attempts=policy.max_attempts,
        window=policy.window,
        now=now,
    )


def get_rate_limit_status(
    db: Session,
    *,
    user_id: UUID,
    action: str,
    max_attempts: int | None = None,
    window: timedelta | None = None,
    now: datetime | None = None,
) -> RateLimitStatus:
    """Report used/remaining attempts without consuming one."""

    action = str(action)
    if max_attempts is None or window is None:
        policy = policy_for(action)
        max_attempts = policy.max_attempts if max_attempts is None else max_attempts
        window = policy.window if window is None else window
    _validate(max_attempts, window)
    current = as_utc(now) if now is not None else utcnow()

    row = _load_window(db, user_id, action)
    if row is None:
        return RateLimitStatus(action, max_attempts, 0, max_attempts, None)

    window_start = as_utc(row.window_start)
    if window_start <= current - window:
        return RateLimitStatus(action, max_attempts, 0, max_attempts, None)

    used = min(int(row.count), max_attempts)
    return RateLimitStatus(action, max_attempts, used, max_attempts - used, window_start + window)


__all__ = [
    "RateLimitDecision",
    "RateLimitStatus",
    "policy_for",
    "check_and_consume",
    "consume",
    "get_rate_limit_status",
]
