"""
tests/test_listener_service.py — Profiles & Listening Accrual Tests
====================================================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from onair.constants import MilestoneType
from onair.database.models import Listener, Milestone
from onair.errors import ConflictError, NotFoundError, ValidationError
from onair.services.listener_service import (
    add_listening_time,
    count_listeners,
    get_listener,
    listener_to_dict,
    sample_total_listeners,
    upsert_listener,
)

H = 3600


def _signup(engine, cache, user_id: str = "user-1", nickname: str = "dana"):
    return upsert_listener(
        engine, cache, user_id=user_id, email=f"{user_id}@example.com", nickname=nickname,
    )


def _set_seconds(engine, user_id: str, seconds: int) -> None:
    with Session(engine) as s:
        listener = s.scalar(select(Listener).where(Listener.user_id == user_id))
        listener.total_seconds = seconds
        s.commit()


def _hour_milestones(engine) -> list[int]:
    with Session(engine) as s:
        rows = s.scalars(
            select(Milestone)
            .where(Milestone.milestone_type == MilestoneType.LISTENING_HOURS)
            .order_by(Milestone.id)
        ).all()
        return [row.metadata_["hours"] for row in rows]


# ===========================================================================
# Profiles
# ===========================================================================
class TestUpsertListener:
    def test_create_emits_first_signup(self, db_engine, settings_cache):
        result = _signup(db_engine, settings_cache)
        assert result.created
        assert result.listener.nickname == "dana"
        assert result.listener.total_seconds == 0
        assert [m.milestone_type for m in result.milestones] == [MilestoneType.FIRST_SIGNUP]
        assert result.milestones[0].nickname == "dana"

    def test_update_keeps_row_and_skips_signup(self, db_engine, settings_cache):
        first = _signup(db_engine, settings_cache)
        second = upsert_listener(
            db_engine, settings_cache,
            user_id="user-1", email="user-1@example.com", nickname="dana_k",
            avatar_url="https://cdn.example.com/a.png",
        )
        assert not second.created
        assert second.listener.id == first.listener.id
        assert second.listener.nickname == "dana_k"
        assert second.milestones == []

    def test_update_without_avatar_keeps_stored_avatar(self, db_engine, settings_cache):
        upsert_listener(
            db_engine, settings_cache,
            user_id="user-1", email="user-1@example.com", nickname="dana",
            avatar_url="https://cdn.example.com/a.png",
        )
        updated = _signup(db_engine, settings_cache, nickname="dana_k")
        assert updated.listener.avatar_url == "https://cdn.example.com/a.png"
        assert get_listener(db_engine, "user-1").avatar_url == "https://cdn.example.com/a.png"

    def test_nickname_taken(self, db_engine, settings_cache):
        _signup(db_engine, settings_cache)
        with pytest.raises(ConflictError) as exc_info:
            _signup(db_engine, settings_cache, user_id="user-2", nickname="dana")
        assert exc_info.value.code == "nickname_taken"

    def test_keeping_own_nickname_is_allowed(self, db_engine, settings_cache):
        _signup(db_engine, settings_cache)
        assert not _signup(db_engine, settings_cache).created

    @pytest.mark.parametrize("nickname", ["", " a ", "x" * 31])
    def test_invalid_nickname(self, db_engine, settings_cache, nickname):
        with pytest.raises(ValidationError):
            _signup(db_engine, settings_cache, nickname=nickname)

    def test_get_listener(self, db_engine, settings_cache):
        _signup(db_engine, settings_cache)
        data = listener_to_dict(get_listener(db_engine, "user-1"))
        assert data["nickname"] == "dana"
        assert data["level"]["title"] == "newcomer"

    def test_get_missing_listener(self, db_engine):
        with pytest.raises(NotFoundError):
            get_listener(db_engine, "ghost")


class TestTotalListeners:
    def test_tenth_signup_emits_threshold(self, db_engine, settings_cache):
        for i in range(10):
            _signup(db_engine, settings_cache, user_id=f"user-{i}", nickname=f"listener{i}")
        assert count_listeners(db_engine) == 10

        with Session(db_engine) as s:
            rows = s.scalars(
                select(Milestone).where(Milestone.milestone_type == MilestoneType.TOTAL_LISTENERS)
            ).all()
        assert [r.metadata_["count"] for r in rows] == [10]
        assert rows[0].listener_id is None

    def test_resampling_does_not_duplicate(self, db_engine, settings_cache):
        for i in range(10):
            _signup(db_engine, settings_cache, user_id=f"user-{i}", nickname=f"listener{i}")
        assert sample_total_listeners(db_engine, settings_cache) == []


# ===========================================================================
# Listening accrual
# ===========================================================================
class TestListeningTime:
    def test_accrual_increments(self, db_engine, settings_cache):
        _signup(db_engine, settings_cache)
        add_listening_time(db_engine, settings_cache, "user-1", 600)
        result = add_listening_time(db_engine, settings_cache, "user-1", 600)
        assert result.total_seconds == 1200
        assert result.hours == 0

    def test_crossing_ten_hours_emits_once(self, db_engine, settings_cache):
        _signup(db_engine, settings_cache)
        _set_seconds(db_engine, "user-1", int(9.9 * H))

        result = add_listening_time(db_engine, settings_cache, "user-1", int(0.2 * H))
        assert [m.metadata_["hours"] for m in result.milestones] == [10]
        assert _hour_milestones(db_engine) == [10]

        # Further accrual past 10h emits nothing new
        again = add_listening_time(db_engine, settings_cache, "user-1", 60)
        assert again.milestones == []
        assert _hour_milestones(db_engine) == [10]

    def test_thresholds_below_start_are_not_emitted(self, db_engine, settings_cache):
        _signup(db_engine, settings_cache)
        _set_seconds(db_engine, "user-1", int(9.9 * H))
        add_listening_time(db_engine, settings_cache, "user-1", int(0.2 * H))
        assert 5 not in _hour_milestones(db_engine)

    def test_milestone_snapshot_carries_nickname(self, db_engine, settings_cache):
        _signup(db_engine, settings_cache)
        result = add_listening_time(db_engine, settings_cache, "user-1", H)
        assert result.milestones[0].nickname == "dana"

    @pytest.mark.parametrize("seconds", [0, -5, 3601])
    def test_out_of_range_seconds(self, db_engine, settings_cache, seconds):
        _signup(db_engine, settings_cache)
        with pytest.raises(ValidationError):
            add_listening_time(db_engine, settings_cache, "user-1", seconds)

    def test_unknown_listener(self, db_engine, settings_cache):
        with pytest.raises(NotFoundError):
            add_listening_time(db_engine, settings_cache, "ghost", 60)
