"""
tests/test_like_service.py — Track-Like Ledger Tests
=====================================================
Covers at-most-once likes, read-after-write counts, and the milestones a
like produces (against in-memory SQLite).
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from onair.constants import MilestoneType
from onair.database.models import Milestone, TrackLike
from onair.errors import ValidationError
from onair.services.identity_service import resolve_identity
from onair.services.like_service import add_like, get_like_state, normalize_track
from onair.services.listener_service import upsert_listener


def _milestones(engine, milestone_type: str) -> list[Milestone]:
    with Session(engine) as s:
        return list(s.scalars(
            select(Milestone).where(Milestone.milestone_type == milestone_type)
        ).all())


class TestLikeLedger:
    def test_first_like_counts_one(self, db_engine, settings_cache, guest):
        result = add_like(db_engine, settings_cache, guest("fp-1"), "Song", "Band")
        assert result.likes == 1
        assert not result.already_liked

    def test_duplicate_like_is_idempotent(self, db_engine, settings_cache, guest):
        add_like(db_engine, settings_cache, guest("fp-1"), "Song", "Band")
        again = add_like(db_engine, settings_cache, guest("fp-1"), "Song", "Band")

        assert again.already_liked
        assert again.likes == 1
        with Session(db_engine) as s:
            assert s.scalar(select(func.count(TrackLike.id))) == 1

    def test_same_identity_different_tracks(self, db_engine, settings_cache, guest):
        add_like(db_engine, settings_cache, guest("fp-1"), "Song", "Band")
        other = add_like(db_engine, settings_cache, guest("fp-1"), "Other", "Band")
        assert other.likes == 1
        assert not other.already_liked

    def test_names_are_trimmed(self, db_engine, settings_cache, guest):
        add_like(db_engine, settings_cache, guest("fp-1"), "  Song ", " Band")
        dup = add_like(db_engine, settings_cache, guest("fp-1"), "Song", "Band")
        assert dup.already_liked

    @pytest.mark.parametrize("track, artist", [("", "Band"), ("Song", "   "), ("x" * 201, "Band")])
    def test_invalid_track_rejected(self, track, artist):
        with pytest.raises(ValidationError):
            normalize_track(track, artist)

    def test_like_state(self, db_engine, settings_cache, guest):
        add_like(db_engine, settings_cache, guest("fp-1"), "Song", "Band")
        add_like(db_engine, settings_cache, guest("fp-2"), "Song", "Band")

        state = get_like_state(db_engine, "Song", "Band", "fp-1")
        assert state.likes == 2
        assert state.user_liked
        assert not get_like_state(db_engine, "Song", "Band", "fp-3").user_liked
        assert get_like_state(db_engine, "Song", "Band").to_dict() == {
            "likes": 2, "userLiked": False,
        }


class TestLikeMilestones:
    def test_five_likes_emit_one_threshold_milestone(self, db_engine, settings_cache, guest):
        for i in range(5):
            add_like(db_engine, settings_cache, guest(f"fp-{i}"), "Song", "Band")

        rows = _milestones(db_engine, MilestoneType.TRACK_MILESTONE_LIKES)
        assert len(rows) == 1
        assert rows[0].metadata_["like_count"] == 5
        assert rows[0].listener_id is None

        add_like(db_engine, settings_cache, guest("fp-5"), "Song", "Band")
        assert len(_milestones(db_engine, MilestoneType.TRACK_MILESTONE_LIKES)) == 1

    def test_guest_first_like_is_suppressed(self, db_engine, settings_cache, guest):
        add_like(db_engine, settings_cache, guest("fp-1"), "Song", "Band")
        assert _milestones(db_engine, MilestoneType.TRACK_FIRST_LIKE) == []
        assert _milestones(db_engine, MilestoneType.TRACK_LIKED) == []

    def test_registered_first_like(self, db_engine, settings_cache):
        upsert_listener(
            db_engine, settings_cache,
            user_id="user-1", email="dana@example.com", nickname="dana",
        )
        identity = resolve_identity(db_engine, {"sub": "user-1"}, None)
        add_like(db_engine, settings_cache, identity, "Song", "Band")

        first = _milestones(db_engine, MilestoneType.TRACK_FIRST_LIKE)
        assert len(first) == 1
        assert first[0].nickname == "dana"
        assert len(_milestones(db_engine, MilestoneType.TRACK_LIKED)) == 1

    def test_rank_one_once_per_track(self, db_engine, settings_cache, guest):
        add_like(db_engine, settings_cache, guest("fp-1"), "Song", "Band")
        add_like(db_engine, settings_cache, guest("fp-2"), "Song", "Band")
        rank_one = _milestones(db_engine, MilestoneType.TRACK_RANK_ONE)
        assert len(rank_one) == 1
        assert rank_one[0].metadata_["track_name"] == "Song"

    def test_tie_has_no_new_leader(self, db_engine, settings_cache, guest):
        add_like(db_engine, settings_cache, guest("fp-1"), "A", "Band")
        add_like(db_engine, settings_cache, guest("fp-2"), "B", "Band")
        tracks = {m.metadata_["track_name"] for m in _milestones(db_engine, MilestoneType.TRACK_RANK_ONE)}
        assert tracks == {"A"}

    def test_milestone_failure_does_not_fail_like(self, db_engine, settings_cache, guest):
        with patch(
            "onair.services.milestone_service.insert_milestones",
            side_effect=RuntimeError("milestones down"),
        ):
            result = add_like(db_engine, settings_cache, guest("fp-1"), "Song", "Band")
        assert result.likes == 1
        assert result.milestones == []
        assert get_like_state(db_engine, "Song", "Band", "fp-1").user_liked
