"""Tests covering the moderation executor and restriction enforcement."""
from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator

import pytest
from sqlalchemy import delete, func, select

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_catchlog.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DISABLE_SWEEP", "true")

from catchlog.constants import ModerationAction, ModerationStatus, WarningSeverity  # noqa: E402
from catchlog.database import Base, SessionLocal, engine  # noqa: E402
from catchlog.exceptions import (  # noqa: E402
    AccountRestricted,
    InvalidModerationInput,
    TargetNotFound,
    Unauthorized,
)
from catchlog.models import ModerationLogEntry, Notification, Profile, UserWarning  # noqa: E402
from catchlog.services import moderation_service  # noqa: E402
from catchlog.services.clock import as_utc  # noqa: E402
from catchlog.services.moderation_service import (  # noqa: E402
    apply_moderation,
    blocked_until,
    ensure_can_act,
    get_moderation_status,
    is_blocked,
    lift_restrictions,
    list_user_warnings,
)
from catchlog.services.realtime import MODERATION_LOG_CHANNEL, change_feed, user_channel  # noqa: E402

NOW = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        session.execute(delete(Notification))
        session.execute(delete(ModerationLogEntry))
        session.execute(delete(UserWarning))
        session.execute(delete(Profile))
        session.commit()
    yield


@pytest.fixture
def profile_factory() -> Callable[..., Profile]:
    def _factory(username: str, role: str = "user") -> Profile:
        with SessionLocal() as session:
            profile = Profile(username=username, role=role)
            session.add(profile)
            session.commit()
            session.refresh(profile)
            return profile
    return _factory


@pytest.fixture
def admin(profile_factory) -> Profile:
    return profile_factory("river-warden", role="admin")


def _count(model, *criteria) -> int:
    with SessionLocal() as session:
        return int(session.scalar(select(func.count()).select_from(model).where(*criteria)) or 0)


def test_temporary_suspension_blocks_until_it_expires(admin, profile_factory) -> None:
    target = profile_factory("spammer")

    with SessionLocal() as session:
        outcome = apply_moderation(
            session,
            admin=admin,
            user_id=target.id,
            severity=WarningSeverity.TEMPORARY_SUSPENSION,
            reason="Spamming bait links",
            duration_hours=24,
            now=NOW,
        )

        assert outcome.duplicate is False
        assert outcome.profile.moderation_status == ModerationStatus.SUSPENDED
        assert outcome.profile.warn_count == 1
        assert outcome.log_entry is not None
        assert outcome.log_entry.action == ModerationAction.SUSPEND_USER
        assert outcome.warning is not None
        assert outcome.warning.duration_hours == 24

        assert is_blocked(session, target.id, now=NOW + timedelta(hours=1)) is True
        assert is_blocked(session, target.id, now=NOW + timedelta(hours=24, seconds=1)) is False

        profile = session.get(Profile, target.id)
        with pytest.raises(AccountRestricted) as excinfo:
            ensure_can_act(profile, now=NOW + timedelta(hours=2))
        ensure_can_act(profile, now=NOW + timedelta(hours=25))

    assert excinfo.value.status == ModerationStatus.SUSPENDED
    assert excinfo.value.until == NOW + timedelta(hours=24)
    assert _count(UserWarning, UserWarning.user_id == target.id) == 1
    assert _count(ModerationLogEntry, ModerationLogEntry.subject_user_id == target.id) == 1


def test_expired_suspension_is_not_rewritten(admin, profile_factory) -> None:
    target = profile_factory("short-timeout")

    with SessionLocal() as session:
        apply_moderation(
            session,
            admin=admin,
            user_id=target.id,
            severity=WarningSeverity.TEMPORARY_SUSPENSION,
            reason="Cooling off",
            duration_hours=1,
            now=NOW,
        )
        status = get_moderation_status(session, admin=admin, user_id=target.id, now=NOW + timedelta(hours=2))

    assert status.moderation_status == ModerationStatus.SUSPENDED
    assert status.is_blocked is False
    assert status.blocked_until is None
    assert status.suspension_until == NOW + timedelta(hours=1)


def test_each_action_increments_warn_count(admin, profile_factory) -> None:
    target = profile_factory("repeat-offender")

    with SessionLocal() as session:
        apply_moderation(session, admin=admin, user_id=target.id, severity="warning", reason="Off-topic posts", now=NOW)
        outcome = apply_moderation(
            session,
            admin=admin,
            user_id=target.id,
            severity="warning",
            reason="Rude replies",
            now=NOW + timedelta(minutes=5),
        )

    assert outcome.profile.warn_count == 2
    assert outcome.profile.moderation_status == ModerationStatus.WARNED
    assert outcome.profile.suspension_until is None
    assert _count(UserWarning, UserWarning.user_id == target.id) == 2
    assert _count(ModerationLogEntry, ModerationLogEntry.action == ModerationAction.WARN_USER) == 2


def test_permanent_ban_blocks_without_end(admin, profile_factory) -> None:
    target = profile_factory("poacher")

    with SessionLocal() as session:
        outcome = apply_moderation(
            session,
            admin=admin,
            user_id=target.id,
            severity=WarningSeverity.PERMANENT_BAN,
            reason="Selling protected species",
            duration_hours=48,
            now=NOW,
        )

    assert outcome.profile.moderation_status == ModerationStatus.BANNED
    assert outcome.profile.suspension_until is None
    assert outcome.warning is not None and outcome.warning.duration_hours is None
    assert blocked_until(outcome.profile, now=NOW + timedelta(days=3650)) == (True, None)
    with pytest.raises(AccountRestricted) as excinfo:
        ensure_can_act(outcome.profile, now=NOW)
    assert excinfo.value.until is None


@pytest.mark.parametrize(
    ("severity", "duration_hours"),
    [
        (WarningSeverity.WARNING, None),
        (WarningSeverity.TEMPORARY_SUSPENSION, 12),
        (WarningSeverity.PERMANENT_BAN, None),
    ],
)
def test_lift_restores_active_status_and_keeps_history(admin, profile_factory, severity, duration_hours) -> None:
    target = profile_factory(f"lifted-{severity.value}")

    with SessionLocal() as session:
        apply_moderation(
            session,
            admin=admin,
            user_id=target.id,
            severity=severity,
            reason="Initial decision",
            duration_hours=duration_hours,
            now=NOW,
        )
        outcome = lift_restrictions(
            session,
            admin=admin,
            user_id=target.id,
            reason="Appeal accepted",
            now=NOW + timedelta(hours=1),
        )

    assert outcome.profile.moderation_status == ModerationStatus.ACTIVE
    assert outcome.profile.suspension_until is None
    assert outcome.profile.warn_count == 1
    assert outcome.log_entry is not None
    assert outcome.log_entry.action == ModerationAction.CLEAR_MODERATION
    assert outcome.log_entry.details["previous_status"] == str(moderation_service.SEVERITY_TO_STATUS[severity])
    assert _count(UserWarning, UserWarning.user_id == target.id) == 1


def test_repeat_submission_inside_dedupe_window_is_ignored(admin, profile_factory) -> None:
    target = profile_factory("double-click")

    with SessionLocal() as session:
        first = apply_moderation(session, admin=admin, user_id=target.id, severity="warning", reason="Spam", now=NOW)
        second = apply_moderation(
            session,
            admin=admin,
            user_id=target.id,
            severity="warning",
            reason="  spam  ",
            now=NOW + timedelta(seconds=2),
        )

    assert first.duplicate is False
    assert second.duplicate is True
    assert second.warning is not None and first.warning is not None
    assert second.warning.id == first.warning.id
    assert second.log_entry is not None and second.log_entry.id == first.log_entry.id
    assert second.profile.warn_count == 1
    assert _count(UserWarning, UserWarning.user_id == target.id) == 1
    assert _count(ModerationLogEntry, ModerationLogEntry.subject_user_id == target.id) == 1


def test_idempotency_key_replays_the_first_result(admin, profile_factory) -> None:
    target = profile_factory("retry-target")

    with SessionLocal() as session:
        first = apply_moderation(
            session,
            admin=admin,
            user_id=target.id,
            severity="warning",
            reason="Trolling",
            idempotency_key="req-42",
            now=NOW,
        )
        replay = apply_moderation(
            session,
            admin=admin,
            user_id=target.id,
            severity="warning",
            reason="Trolling again",
            idempotency_key="req-42",
            now=NOW + timedelta(hours=3),
        )

    assert replay.duplicate is True
    assert replay.warning is not None and first.warning is not None
    assert replay.warning.id == first.warning.id
    assert replay.profile.warn_count == 1


def test_same_action_outside_window_is_applied_again(admin, profile_factory) -> None:
    target = profile_factory("slow-repeat")

    with SessionLocal() as session:
        apply_moderation(session, admin=admin, user_id=target.id, severity="warning", reason="Spam", now=NOW)
        later = apply_moderation(
            session,
            admin=admin,
            user_id=target.id,
            severity="warning",
            reason="Spam",
            now=NOW + timedelta(minutes=10),
        )

    assert later.duplicate is False
    assert later.profile.warn_count == 2


def test_corrected_suspension_length_is_not_a_duplicate(admin, profile_factory) -> None:
    target = profile_factory("repeat-offender")

    with SessionLocal() as session:
        short = apply_moderation(
            session,
            admin=admin,
            user_id=target.id,
            severity="temporary_suspension",
            reason="Harassment",
            duration_hours=1,
            now=NOW,
        )
        corrected = apply_moderation(
            session,
            admin=admin,
            user_id=target.id,
            severity="temporary_suspension",
            reason="Harassment",
            duration_hours=72,
            now=NOW + timedelta(seconds=5),
        )

    assert short.duplicate is False
    assert corrected.duplicate is False
    assert corrected.warning is not None and corrected.warning.duration_hours == 72
    assert as_utc(corrected.profile.suspension_until) == NOW + timedelta(seconds=5, hours=72)
    assert corrected.profile.warn_count == 2
    assert _count(UserWarning, UserWarning.user_id == target.id) == 2


@pytest.mark.parametrize(
    ("severity", "reason", "duration_hours", "field"),
    [
        ("warning", "   ", None, "reason"),
        ("temporary_suspension", "Flooding", None, "duration_hours"),
        ("temporary_suspension", "Flooding", 0, "duration_hours"),
        ("temporary_suspension", "Flooding", -3, "duration_hours"),
        ("temporary_suspension", "Flooding", moderation_service.MAX_SUSPENSION_HOURS + 1, "duration_hours"),
        ("shadow_ban", "Flooding", None, "severity"),
    ],
)
def test_invalid_input_is_rejected_before_any_write(
    admin, profile_factory, severity, reason, duration_hours, field
) -> None:
    target = profile_factory("untouched")

    with SessionLocal() as session:
        with pytest.raises(InvalidModerationInput) as excinfo:
            apply_moderation(
                session,
                admin=admin,
                user_id=target.id,
                severity=severity,
                reason=reason,
                duration_hours=duration_hours,
                now=NOW,
            )

    assert excinfo.value.field == field
    with SessionLocal() as session:
        profile = session.get(Profile, target.id)
        assert profile is not None
        assert profile.warn_count == 0
        assert profile.moderation_status == ModerationStatus.ACTIVE
    assert _count(ModerationLogEntry) == 0
    assert _count(UserWarning) == 0


def test_admins_cannot_moderate_themselves(admin) -> None:
    with SessionLocal() as session:
        with pytest.raises(InvalidModerationInput) as excinfo:
            apply_moderation(session, admin=admin, user_id=admin.id, severity="warning", reason="Test", now=NOW)
    assert excinfo.value.field == "user_id"


def test_owner_account_cannot_be_moderated(admin, profile_factory) -> None:
    owner = profile_factory("founder", role="owner")

    with SessionLocal() as session:
        with pytest.raises(Unauthorized):
            apply_moderation(session, admin=admin, user_id=owner.id, severity="warning", reason="Test", now=NOW)


def test_non_admin_cannot_moderate(profile_factory) -> None:
    actor = profile_factory("regular")
    target = profile_factory("victim")

    with SessionLocal() as session:
        with pytest.raises(Unauthorized):
            apply_moderation(session, admin=actor, user_id=target.id, severity="warning", reason="Grudge", now=NOW)
        with pytest.raises(Unauthorized):
            lift_restrictions(session, admin=actor, user_id=target.id, reason="Grudge")

    assert _count(ModerationLogEntry) == 0


def test_unknown_user_raises_target_not_found(admin) -> None:
    from uuid import uuid4

    with SessionLocal() as session:
        with pytest.raises(TargetNotFound):
            apply_moderation(session, admin=admin, user_id=uuid4(), severity="warning", reason="Ghost", now=NOW)


def test_target_is_notified_and_log_is_published(admin, profile_factory) -> None:
    target = profile_factory("notified")
    log_events: list[dict] = []
    user_events: list[dict] = []
    stop_log = change_feed.subscribe(MODERATION_LOG_CHANNEL, log_events.append)
    stop_user = change_feed.subscribe(user_channel(target.id), user_events.append)

    try:
        with SessionLocal() as session:
            apply_moderation(session, admin=admin, user_id=target.id, severity="warning", reason="Language", now=NOW)
    finally:
        stop_log()
        stop_user()

    with SessionLocal() as session:
        notifications = list(session.scalars(select(Notification).where(Notification.recipient_id == target.id)))
    assert len(notifications) == 1
    assert notifications[0].type == "admin_warning"
    assert notifications[0].extra_data["severity"] == "warning"

    assert [event["type"] for event in log_events] == ["INSERT"]
    assert log_events[0]["record"]["action"] == "warn_user"
    assert log_events[0]["record"]["admin_username"] == "river-warden"
    assert [event["type"] for event in user_events] == ["notification.created"]


def test_notification_failure_does_not_undo_moderation(admin, profile_factory, monkeypatch) -> None:
    target = profile_factory("unreachable")
    # A NULL message violates the notifications table constraint inside the savepoint.
    monkeypatch.setattr(moderation_service, "_notification_message", lambda *args: None)

    with SessionLocal() as session:
        outcome = apply_moderation(
            session,
            admin=admin,
            user_id=target.id,
            severity=WarningSeverity.TEMPORARY_SUSPENSION,
            reason="Harassment",
            duration_hours=6,
            now=NOW,
        )

    assert outcome.notifications == []
    assert outcome.profile.moderation_status == ModerationStatus.SUSPENDED
    assert outcome.profile.warn_count == 1
    assert _count(ModerationLogEntry, ModerationLogEntry.subject_user_id == target.id) == 1
    assert _count(Notification, Notification.recipient_id == target.id) == 0


def test_warning_history_is_paginated_newest_first(admin, profile_factory) -> None:
    target = profile_factory("history")

    with SessionLocal() as session:
        for index in range(3):
            apply_moderation(
                session,
                admin=admin,
                user_id=target.id,
                severity="warning",
                reason=f"Strike {index}",
                now=NOW + timedelta(minutes=index),
            )
        page = list_user_warnings(session, admin=admin, user_id=target.id)

    assert [item.reason for item in page.items] == ["Strike 2", "Strike 1", "Strike 0"]
    assert page.items[0].admin_username == "river-warden"
    assert page.has_more is False
