"""Automated cleanup utilities for pruning expired rate-limit windows."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..constants import ThrottledAction
from ..models import RateLimitWindow
from .clock import as_utc, utcnow

logger = logging.getLogger(__name__)


class CleanupError(RuntimeError):
    """Raised when the cleanup task cannot complete successfully."""


@dataclass(frozen=True, slots=True)
class CleanupSummary:
    """Represents the number of rate-limit windows deleted during a sweep."""

    windows: int
    cutoff: datetime

    @property
    def total(self) -> int:
        return self.windows


def _longest_window() -> timedelta:
    settings = get_settings()
    return max(settings.rate_limit_policy(action).window for action in ThrottledAction)


def sweep_expired_windows(
    session: Session,
    *,
    older_than: timedelta | None = None,
    now: datetime | None = None,
) -> CleanupSummary:
    """Delete windows that started before ``now - older_than``.

    ``older_than`` defaults to the longest configured window so a sweep never
    removes a window that is still counting. Only storage is reclaimed: an
    expired window would be reset by the next check anyway.

    Raises
    ------
    CleanupError
        If the delete fails; the transaction is rolled back first.
    """

    retention = older_than if older_than is not None else _longest_window()
    if retention <= timedelta(0):
        raise ValueError("older_than must be a positive duration")

    current = as_utc(now) if now is not None else utcnow()
    cutoff = current - retention

    try:
        result = session.execute(
            delete(RateLimitWindow).where(RateLimitWindow.window_start <= cutoff).returning(RateLimitWindow.user_id)
        )
        deleted = len(result.scalars().all())
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Rate-limit sweep failed; transaction rolled back")
        raise CleanupError("rate-limit sweep failed") from exc

    summary = CleanupSummary(windows=deleted, cutoff=cutoff)
    logger.info("Rate-limit sweep finished (windows=%d, cutoff=%s)", summary.windows, cutoff.isoformat())
    return summary


def run_cleanup(session_factory: Callable[[], Session], *, older_than: timedelta | None = None) -> CleanupSummary:
    """Run a sweep on a session scoped to this call.

    Suitable for the FastAPI startup loop or any scheduled background task.
    """

    session = session_factory()
    try:
        return sweep_expired_windows(session, older_than=older_than)
    finally:
        session.close()


__all__ = [
    "CleanupError",
    "CleanupSummary",
    "sweep_expired_windows",
    "run_cleanup",
]
