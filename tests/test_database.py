"""Tests for engine setup and the startup migration switch."""
from __future__ import annotations

import os
from typing import Iterator
from uuid import uuid4

import pytest
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_catchlog.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DISABLE_SWEEP", "true")

from catchlog.config import Settings  # noqa: E402
from catchlog.database import Base, SessionLocal, engine, is_sqlite_url  # noqa: E402
from catchlog.models import Profile, UserWarning  # noqa: E402
from catchlog.services.migrations import pending_head, should_run_migrations  # noqa: E402

HEAD_REVISION = "20261018_add_profile_blocks"


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        session.execute(delete(UserWarning))
        session.execute(delete(Profile))
        session.commit()
    yield


def _settings(**values: object) -> Settings:
    return Settings(_env_file=None, **values)


def test_sqlite_rejects_rows_for_missing_profiles() -> None:
    with SessionLocal() as session:
        session.add(UserWarning(user_id=uuid4(), severity="warning", reason="Orphan", dedupe_key="orphan"))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()


def test_deleting_a_profile_cascades_to_its_warnings() -> None:
    with SessionLocal() as session:
        admin = Profile(username="warden", role="admin")
        angler = Profile(username="snag-master")
        session.add_all([admin, angler])
        session.flush()
        session.add(
            UserWarning(user_id=angler.id, issued_by=admin.id, severity="warning", reason="Spam", dedupe_key="k1")
        )
        session.commit()

        session.execute(delete(Profile).where(Profile.id == angler.id))
        session.commit()

        assert session.scalar(select(func.count()).select_from(UserWarning)) == 0


def test_migrations_skip_sqlite_by_default() -> None:
    assert is_sqlite_url("sqlite+pysqlite:///./local.db")
    assert should_run_migrations(_settings(DATABASE_URL="sqlite+pysqlite:///./local.db")) is False
    assert should_run_migrations(_settings(DATABASE_URL="postgresql://u:p@db/catchlog")) is True


def test_migration_switches_override_the_default() -> None:
    forced = _settings(DATABASE_URL="sqlite+pysqlite:///./local.db", AUTO_MIGRATE=True)
    disabled = _settings(DATABASE_URL="postgresql://u:p@db/catchlog", DISABLE_AUTO_MIGRATIONS=True)
    skipped = _settings(DATABASE_URL="postgresql://u:p@db/catchlog", AUTO_MIGRATE=False)

    assert should_run_migrations(forced) is True
    assert should_run_migrations(disabled) is False
    assert should_run_migrations(skipped) is False


def test_fresh_database_is_behind_head(tmp_path) -> None:
    database_url = f"sqlite+pysqlite:///{tmp_path / 'fresh.db'}"
    assert pending_head(database_url) == HEAD_REVISION
