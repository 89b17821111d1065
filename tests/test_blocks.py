"""Tests for user-to-user blocks and the interactions they shut off."""
from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator

import pytest
from fastapi import HTTPException
from sqlalchemy import delete, func, select

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_catchlog.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DISABLE_SWEEP", "true")

from catchlog.database import Base, SessionLocal, engine  # noqa: E402
from catchlog.exceptions import InteractionBlocked  # noqa: E402
from catchlog.models import (  # noqa: E402
    Catch,
    CatchComment,
    Follow,
    Notification,
    Profile,
    ProfileBlock,
    RateLimitWindow,
)
from catchlog.services.block_service import (  # noqa: E402
    block_profile,
    has_block_between,
    list_blocked,
    unblock_profile,
)
from catchlog.services.catch_service import add_comment, create_catch, rate_catch, react_to_catch  # noqa: E402
from catchlog.services.follow_service import follow_user  # noqa: E402

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        for model in (Notification, RateLimitWindow, ProfileBlock, Follow, CatchComment, Catch, Profile):
            session.execute(delete(model))
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


def _follow_count() -> int:
    with SessionLocal() as session:
        return session.scalar(select(func.count()).select_from(Follow)) or 0


def test_block_list_and_unblock(profile_factory) -> None:
    angler = profile_factory("angler")
    troll = profile_factory("troll")
    spammer = profile_factory("spammer")

    with SessionLocal() as session:
        assert block_profile(session, blocker=angler, blocked_id=troll.id, reason="  Rude  ", now=NOW) is True
        assert block_profile(session, blocker=angler, blocked_id=troll.id, now=NOW) is False
        assert block_profile(session, blocker=angler, blocked_id=spammer.id, now=NOW + timedelta(minutes=1)) is True

        blocks = list_blocked(session, blocker_id=angler.id)
        assert [block.blocked.username for block in blocks] == ["spammer", "troll"]
        assert blocks[1].reason == "Rude"
        assert blocks[0].reason is None

        assert has_block_between(session, troll.id, angler.id) is True
        assert list_blocked(session, blocker_id=troll.id) == []

        assert unblock_profile(session, blocker=angler, blocked_id=troll.id) is True
        assert unblock_profile(session, blocker=angler, blocked_id=troll.id) is False
        assert has_block_between(session, angler.id, troll.id) is False


def test_self_and_unknown_blocks_are_rejected(profile_factory) -> None:
    angler = profile_factory("angler")
    ghost = profile_factory("ghost")
    ghost_id = ghost.id
    with SessionLocal() as session:
        session.execute(delete(Profile).where(Profile.id == ghost_id))
        session.commit()

    with SessionLocal() as session:
        with pytest.raises(HTTPException) as self_block:
            block_profile(session, blocker=angler, blocked_id=angler.id, now=NOW)
        assert self_block.value.status_code == 400

        with pytest.raises(HTTPException) as unknown:
            block_profile(session, blocker=angler, blocked_id=ghost_id, now=NOW)
        assert unknown.value.status_code == 404


def test_block_removes_follows_both_ways(profile_factory) -> None:
    guide = profile_factory("guide")
    fan = profile_factory("fan")

    with SessionLocal() as session:
        follow_user(session, follower=fan, target_id=guide.id, now=NOW)
        follow_user(session, follower=guide, target_id=fan.id, now=NOW)
    assert _follow_count() == 2

    with SessionLocal() as session:
        block_profile(session, blocker=guide, blocked_id=fan.id, now=NOW)
    assert _follow_count() == 0


def test_blocked_pair_cannot_follow_either_way(profile_factory) -> None:
    guide = profile_factory("guide")
    fan = profile_factory("fan")

    with SessionLocal() as session:
        block_profile(session, blocker=guide, blocked_id=fan.id, now=NOW)

    with SessionLocal() as session:
        with pytest.raises(InteractionBlocked):
            follow_user(session, follower=fan, target_id=guide.id, now=NOW)
        with pytest.raises(InteractionBlocked):
            follow_user(session, follower=guide, target_id=fan.id, now=NOW)

    assert _follow_count() == 0
    with SessionLocal() as session:
        assert session.get(RateLimitWindow, (fan.id, "follow")) is None
        assert session.get(RateLimitWindow, (guide.id, "follow")) is None


def test_blocked_pair_cannot_engage_with_catches(profile_factory) -> None:
    owner = profile_factory("owner")
    troll = profile_factory("troll")

    with SessionLocal() as session:
        catch = create_catch(session, author=owner, title="Rainbow trout", now=NOW)
        troll_catch = create_catch(session, author=troll, title="Chub", now=NOW)
        block_profile(session, blocker=owner, blocked_id=troll.id, now=NOW)

    with SessionLocal() as session:
        with pytest.raises(InteractionBlocked):
            add_comment(session, catch_id=catch.id, author=troll, body="Tiny", now=NOW)
        with pytest.raises(InteractionBlocked):
            react_to_catch(session, catch_id=catch.id, user=troll, reaction="like", now=NOW)
        with pytest.raises(InteractionBlocked):
            rate_catch(session, catch_id=catch.id, user=troll, rating=1, now=NOW)
        with pytest.raises(InteractionBlocked):
            add_comment(session, catch_id=troll_catch.id, author=owner, body="Nice", now=NOW)

        # Own catches stay open to their author.
        own = add_comment(session, catch_id=catch.id, author=owner, body="Released", now=NOW)
        assert own.body == "Released"

    with SessionLocal() as session:
        assert session.get(RateLimitWindow, (troll.id, "comment")) is None
        assert session.get(RateLimitWindow, (troll.id, "rating")) is None


def test_unblock_restores_interactions(profile_factory) -> None:
    guide = profile_factory("guide")
    fan = profile_factory("fan")

    with SessionLocal() as session:
        block_profile(session, blocker=guide, blocked_id=fan.id, now=NOW)
        unblock_profile(session, blocker=guide, blocked_id=fan.id)

    with SessionLocal() as session:
        assert follow_user(session, follower=fan, target_id=guide.id, now=NOW) is True
    assert _follow_count() == 1
