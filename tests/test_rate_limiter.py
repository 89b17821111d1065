"""Tests for the windowed per-user rate limiter and the expired-window sweep."""
from __future__ import annotations

import os
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator

import pytest
from sqlalchemy import delete, func, select

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_catchlog.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DISABLE_SWEEP", "true")

from catchlog.config import RateLimitPolicy  # noqa: E402
from catchlog.database import Base, SessionLocal, engine  # noqa: E402
from catchlog.exceptions import RateLimitExceeded  # noqa: E402
from catchlog.models import Follow, Profile, RateLimitWindow  # noqa: E402
from catchlog.services import rate_limiter  # noqa: E402
from catchlog.services.cleanup_service import run_cleanup, sweep_expired_windows  # noqa: E402
from catchlog.services.clock import utcnow  # noqa: E402
from catchlog.services.follow_service import follow_user  # noqa: E402
from catchlog.services.rate_limiter import check_and_consume, get_rate_limit_status  # noqa: E402

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
WINDOW = timedelta(minutes=10)


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        session.execute(delete(RateLimitWindow))
        session.execute(delete(Profile))
        session.commit()
    yield


@pytest.fixture
def profile_factory() -> Callable[[str], Profile]:
    def _factory(username: str) -> Profile:
        with SessionLocal() as session:
            profile = Profile(username=username)
            session.add(profile)
            session.commit()
            session.refresh(profile)
            return profile
    return _factory


def _window_count(user: Profile, action: str) -> int | None:
    with SessionLocal() as session:
        row = session.get(RateLimitWindow, (user.id, action))
        return None if row is None else row.count


def test_allows_max_attempts_then_rejects(profile_factory) -> None:
    user = profile_factory("angler")

    with SessionLocal() as session:
        for attempt in range(3):
            decision = check_and_consume(
                session,
                user_id=user.id,
                action="comment",
                max_attempts=3,
                window=WINDOW,
                now=NOW + timedelta(seconds=attempt),
            )
            assert decision.allowed is True
            assert decision.remaining == 2 - attempt
        session.commit()

        with pytest.raises(RateLimitExceeded) as excinfo:
            check_and_consume(
                session,
                user_id=user.id,
                action="comment",
                max_attempts=3,
                window=WINDOW,
                now=NOW + timedelta(minutes=1),
            )
        session.rollback()

    assert excinfo.value.action == "comment"
    assert excinfo.value.reset_at == NOW + WINDOW
    assert _window_count(user, "comment") == 3


def test_window_resets_after_it_elapses(profile_factory) -> None:
    user = profile_factory("patient")

    with SessionLocal() as session:
        check_and_consume(session, user_id=user.id, action="follow", max_attempts=1, window=WINDOW, now=NOW)
        session.commit()
        with pytest.raises(RateLimitExceeded):
            check_and_consume(
                session, user_id=user.id, action="follow", max_attempts=1, window=WINDOW, now=NOW + timedelta(minutes=9)
            )
        session.rollback()

        later = NOW + WINDOW + timedelta(seconds=1)
        decision = check_and_consume(
            session, user_id=user.id, action="follow", max_attempts=1, window=WINDOW, now=later
        )
        session.commit()

    assert decision.remaining == 0
    assert decision.reset_at == later + WINDOW


def test_actions_are_counted_independently(profile_factory) -> None:
    user = profile_factory("multitasker")

    with SessionLocal() as session:
        check_and_consume(session, user_id=user.id, action="rating", max_attempts=1, window=WINDOW, now=NOW)
        decision = check_and_consume(session, user_id=user.id, action="reaction", max_attempts=1, window=WINDOW, now=NOW)
        session.commit()

    assert decision.remaining == 0
    assert _window_count(user, "rating") == 1
    assert _window_count(user, "reaction") == 1


def test_rolled_back_attempt_is_not_counted(profile_factory) -> None:
    user = profile_factory("undecided")

    with SessionLocal() as session:
        check_and_consume(session, user_id=user.id, action="catch", max_attempts=2, window=WINDOW, now=NOW)
        session.rollback()

        state = get_rate_limit_status(session, user_id=user.id, action="catch", max_attempts=2, window=WINDOW, now=NOW)

    assert state.used == 0
    assert state.remaining == 2
    assert state.reset_at is None


def test_status_reports_usage_without_consuming(profile_factory) -> None:
    user = profile_factory("counter")

    with SessionLocal() as session:
        for _ in range(2):
            check_and_consume(session, user_id=user.id, action="report", max_attempts=5, window=WINDOW, now=NOW)
        session.commit()

        state = get_rate_limit_status(
            session, user_id=user.id, action="report", max_attempts=5, window=WINDOW, now=NOW + timedelta(minutes=2)
        )
        expired = get_rate_limit_status(
            session, user_id=user.id, action="report", max_attempts=5, window=WINDOW, now=NOW + timedelta(hours=1)
        )

    assert (state.used, state.remaining, state.allowed) == (2, 3, True)
    assert state.reset_at == NOW + WINDOW
    assert (expired.used, expired.remaining, expired.reset_at) == (0, 5, None)
    assert _window_count(user, "report") == 2


def test_configured_policy_is_used_when_limits_are_omitted(profile_factory) -> None:
    user = profile_factory("configured")

    with SessionLocal() as session:
        state = get_rate_limit_status(session, user_id=user.id, action="follow", now=NOW)

    policy = rate_limiter.policy_for("follow")
    assert state.max_attempts == policy.max_attempts
    assert state.remaining == policy.max_attempts


@pytest.mark.parametrize(
    ("max_attempts", "window"),
    [(0, WINDOW), (3, timedelta(0)), (3, timedelta(seconds=-5))],
)
def test_invalid_limits_are_rejected(profile_factory, max_attempts: int, window: timedelta) -> None:
    user = profile_factory("misconfigured")

    with SessionLocal() as session:
        with pytest.raises(ValueError):
            check_and_consume(session, user_id=user.id, action="comment", max_attempts=max_attempts, window=window, now=NOW)


def test_last_slot_is_granted_once_across_sessions(profile_factory) -> None:
    user = profile_factory("racer")

    with SessionLocal() as first, SessionLocal() as second:
        check_and_consume(first, user_id=user.id, action="follow", max_attempts=1, window=WINDOW, now=NOW)
        first.commit()

        with pytest.raises(RateLimitExceeded):
            check_and_consume(second, user_id=user.id, action="follow", max_attempts=1, window=WINDOW, now=NOW)
        second.rollback()

    assert _window_count(user, "follow") == 1


def test_concurrent_follows_share_a_single_slot(profile_factory, monkeypatch) -> None:
    fan = profile_factory("eager-fan")
    guide = profile_factory("fly-guide")
    monkeypatch.setattr(rate_limiter, "policy_for", lambda action: RateLimitPolicy(1, timedelta(hours=1)))

    barrier = threading.Barrier(2)
    results: list[str] = []
    lock = threading.Lock()

    def _follow() -> None:
        with SessionLocal() as session:
            barrier.wait(timeout=10)
            try:
                follow_user(session, follower=fan, target_id=guide.id, now=NOW)
                outcome = "followed"
            except RateLimitExceeded:
                outcome = "limited"
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=_follow) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert sorted(results) == ["followed", "limited"]
    assert _window_count(fan, "follow") == 1
    with SessionLocal() as session:
        assert session.scalar(select(func.count()).select_from(Follow)) == 1


def test_concurrent_window_creation_falls_back_to_increment(profile_factory, monkeypatch) -> None:
    user = profile_factory("late-arrival")

    with SessionLocal() as first:
        check_and_consume(first, user_id=user.id, action="comment", max_attempts=1, window=WINDOW, now=NOW)
        first.commit()

    real_load = rate_limiter._load_window
    calls = {"count": 0}

    def _stale_then_real(db, user_id, action):
        calls["count"] += 1
        if calls["count"] == 1:
            # Simulates a request that read before the competing window row was committed.
            return None
        return real_load(db, user_id, action)

    monkeypatch.setattr(rate_limiter, "_load_window", _stale_then_real)

    with SessionLocal() as second:
        with pytest.raises(RateLimitExceeded) as excinfo:
            check_and_consume(second, user_id=user.id, action="comment", max_attempts=1, window=WINDOW, now=NOW)
        second.rollback()

    assert excinfo.value.reset_at == NOW + WINDOW
    assert calls["count"] >= 2
    with SessionLocal() as session:
        total = session.scalar(select(func.count()).select_from(RateLimitWindow))
    assert total == 1
    assert _window_count(user, "comment") == 1


def test_sweep_removes_only_expired_windows(profile_factory) -> None:
    stale = profile_factory("stale")
    fresh = profile_factory("fresh")

    with SessionLocal() as session:
        session.add(RateLimitWindow(user_id=stale.id, action="comment", count=4, window_start=NOW - timedelta(hours=3)))
        session.add(RateLimitWindow(user_id=fresh.id, action="comment", count=1, window_start=NOW - timedelta(minutes=5)))
        session.commit()

        summary = sweep_expired_windows(session, older_than=timedelta(hours=1), now=NOW)

    assert summary.windows == 1
    assert summary.total == 1
    assert summary.cutoff == NOW - timedelta(hours=1)
    assert _window_count(stale, "comment") is None
    assert _window_count(fresh, "comment") == 1


def test_sweep_rejects_non_positive_retention(profile_factory) -> None:
    with SessionLocal() as session:
        with pytest.raises(ValueError):
            sweep_expired_windows(session, older_than=timedelta(0), now=NOW)


def test_run_cleanup_uses_its_own_session(profile_factory) -> None:
    user = profile_factory("ancient")
    with SessionLocal() as session:
        session.add(RateLimitWindow(user_id=user.id, action="rating", count=1, window_start=utcnow() - timedelta(days=30)))
        session.commit()

    summary = run_cleanup(SessionLocal)

    assert summary.windows == 1
    assert _window_count(user, "rating") is None
