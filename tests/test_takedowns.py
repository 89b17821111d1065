"""Tests for moderator soft-delete and restore of catches and comments."""
from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Iterator
from uuid import uuid4

import pytest
from sqlalchemy import delete, func, select

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_catchlog.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DISABLE_SWEEP", "true")

from catchlog.constants import ModerationAction  # noqa: E402
from catchlog.database import Base, SessionLocal, engine  # noqa: E402
from catchlog.exceptions import InvalidModerationInput, NothingToRestore, TargetNotFound, Unauthorized  # noqa: E402
from catchlog.models import Catch, CatchComment, ModerationLogEntry, Notification, Profile  # noqa: E402
from catchlog.services.clock import as_utc  # noqa: E402
from catchlog.services.takedown_service import (  # noqa: E402
    DEFAULT_DELETE_REASON,
    delete_content,
    restore_content,
)

NOW = datetime(2026, 10, 18, 15, 0, tzinfo=timezone.utc)


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
        session.execute(delete(CatchComment))
        session.execute(delete(Catch))
        session.execute(delete(Profile))
        session.commit()
    yield


@pytest.fixture
def seeded() -> dict:
    with SessionLocal() as session:
        admin = Profile(username="bank-ranger", role="admin")
        owner = Profile(username="pike-hunter")
        commenter = Profile(username="heckler")
        session.add_all([admin, owner, commenter])
        session.flush()
        catch = Catch(user_id=owner.id, title="Northern pike", species="Esox lucius")
        session.add(catch)
        session.flush()
        comment = CatchComment(catch_id=catch.id, user_id=commenter.id, body="Fake photo")
        session.add(comment)
        session.commit()
        for row in (admin, owner, commenter, catch, comment):
            session.refresh(row)
        return {"admin": admin, "owner": owner, "commenter": commenter, "catch": catch, "comment": comment}


def _log_actions(target_id) -> list[str]:
    with SessionLocal() as session:
        stmt = (
            select(ModerationLogEntry.action)
            .where(ModerationLogEntry.target_id == str(target_id))
            .order_by(ModerationLogEntry.created_at)
        )
        return list(session.scalars(stmt))


def test_delete_marks_content_and_logs(seeded) -> None:
    catch = seeded["catch"]

    with SessionLocal() as session:
        outcome = delete_content(
            session,
            admin=seeded["admin"],
            target_type="catch",
            target_id=catch.id,
            reason="Misleading species",
            now=NOW,
        )

        assert as_utc(outcome.target.deleted_at) == NOW
        assert outcome.owner_id == seeded["owner"].id
        assert outcome.log_entry.action == ModerationAction.DELETE_CATCH
        assert outcome.log_entry.subject_user_id == seeded["owner"].id
        assert outcome.log_entry.details["already_deleted"] is False
        assert outcome.log_entry.reason == "Misleading species"

        notification = session.scalar(select(Notification).where(Notification.recipient_id == seeded["owner"].id))
    assert notification is not None
    assert notification.type == "admin_moderation"
    assert notification.catch_id == catch.id


def test_deleting_twice_keeps_first_marker_and_logs_both(seeded) -> None:
    comment = seeded["comment"]

    with SessionLocal() as session:
        delete_content(session, admin=seeded["admin"], target_type="comment", target_id=comment.id, now=NOW)
        second = delete_content(
            session,
            admin=seeded["admin"],
            target_type="comment",
            target_id=comment.id,
            now=NOW + timedelta(hours=1),
        )

    assert as_utc(second.target.deleted_at) == NOW
    assert second.log_entry.details["already_deleted"] is True
    assert second.log_entry.reason == DEFAULT_DELETE_REASON
    assert _log_actions(comment.id) == [ModerationAction.DELETE_COMMENT, ModerationAction.DELETE_COMMENT]


def test_restore_clears_marker_and_logs(seeded) -> None:
    catch = seeded["catch"]

    with SessionLocal() as session:
        delete_content(session, admin=seeded["admin"], target_type="catch", target_id=catch.id, now=NOW)
        outcome = restore_content(
            session,
            admin=seeded["admin"],
            target_type="catch",
            target_id=catch.id,
            now=NOW + timedelta(minutes=30),
        )

    assert outcome.target.deleted_at is None
    assert outcome.log_entry.action == ModerationAction.RESTORE_CATCH
    assert outcome.log_entry.reason == "Decision overturned"
    assert _log_actions(catch.id) == [ModerationAction.DELETE_CATCH, ModerationAction.RESTORE_CATCH]


def test_restore_without_marker_writes_nothing(seeded) -> None:
    comment = seeded["comment"]

    with SessionLocal() as session:
        with pytest.raises(NothingToRestore):
            restore_content(session, admin=seeded["admin"], target_type="comment", target_id=comment.id, now=NOW)

    assert _log_actions(comment.id) == []
    with SessionLocal() as session:
        count = session.scalar(select(func.count()).select_from(Notification))
    assert count == 0


def test_missing_content_raises_target_not_found(seeded) -> None:
    with SessionLocal() as session:
        with pytest.raises(TargetNotFound):
            delete_content(session, admin=seeded["admin"], target_type="catch", target_id=uuid4(), now=NOW)
        with pytest.raises(TargetNotFound):
            restore_content(session, admin=seeded["admin"], target_type="comment", target_id=uuid4(), now=NOW)


def test_profiles_are_not_content(seeded) -> None:
    with SessionLocal() as session:
        with pytest.raises(InvalidModerationInput) as excinfo:
            delete_content(
                session,
                admin=seeded["admin"],
                target_type="user",
                target_id=seeded["owner"].id,
                now=NOW,
            )
    assert excinfo.value.field == "target_type"


def test_takedowns_require_admin(seeded) -> None:
    with SessionLocal() as session:
        with pytest.raises(Unauthorized):
            delete_content(
                session,
                admin=seeded["commenter"],
                target_type="catch",
                target_id=seeded["catch"].id,
                now=NOW,
            )
    assert _log_actions(seeded["catch"].id) == []
