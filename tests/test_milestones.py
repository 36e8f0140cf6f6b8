"""
tests/test_milestones.py — Milestone Rule Pipeline Unit Tests
==============================================================
Pure calculation tests; no database.
"""

from __future__ import annotations

import pytest

from onair.constants import (
    LISTENING_HOUR_THRESHOLDS,
    TOTAL_LISTENER_THRESHOLDS,
    TRACK_LIKE_THRESHOLDS,
    MilestoneType,
)
from onair.engine.milestones import (
    MilestoneContext,
    Thresholds,
    Trigger,
    evaluate,
    track_subject,
)

H = 3600

DEFAULTS = Thresholds(
    listening_hours=LISTENING_HOUR_THRESHOLDS,
    track_likes=TRACK_LIKE_THRESHOLDS,
    total_listeners=TOTAL_LISTENER_THRESHOLDS,
)


def _types(candidates) -> list[str]:
    return [c.milestone_type for c in candidates]


# ===========================================================================
# Listening hours
# ===========================================================================
class TestListeningHours:
    def test_crossing_ten_hours(self):
        ctx = MilestoneContext(listener_id=7, old_seconds=int(9.9 * H), new_seconds=int(10.1 * H))
        out = evaluate(Trigger.LISTENING_ACCRUED, ctx, DEFAULTS)
        assert len(out) == 1
        assert out[0].metadata == {"hours": 10}
        assert out[0].dedupe_key == "listening_hours:7:10"
        assert out[0].listener_id == 7

    def test_no_crossing(self):
        ctx = MilestoneContext(listener_id=7, old_seconds=int(10.1 * H), new_seconds=int(10.9 * H))
        assert evaluate(Trigger.LISTENING_ACCRUED, ctx, DEFAULTS) == []

    def test_jump_crosses_several_thresholds(self):
        ctx = MilestoneContext(listener_id=7, old_seconds=0, new_seconds=11 * H)
        out = evaluate(Trigger.LISTENING_ACCRUED, ctx, DEFAULTS)
        assert [c.metadata["hours"] for c in out] == [1, 5, 10]

    def test_landing_exactly_on_threshold(self):
        ctx = MilestoneContext(listener_id=7, old_seconds=H - 1, new_seconds=H)
        out = evaluate(Trigger.LISTENING_ACCRUED, ctx, DEFAULTS)
        assert [c.metadata["hours"] for c in out] == [1]

    def test_needs_listener(self):
        ctx = MilestoneContext(old_seconds=0, new_seconds=2 * H)
        assert evaluate(Trigger.LISTENING_ACCRUED, ctx, DEFAULTS) == []


# ===========================================================================
# Likes
# ===========================================================================
class TestTrackLikes:
    def _ctx(self, count: int, listener_id: int | None = 3) -> MilestoneContext:
        return MilestoneContext(
            listener_id=listener_id,
            track_name="Song",
            artist_name="Band",
            like_count=count,
        )

    def test_first_like_by_registered_listener(self):
        out = evaluate(Trigger.TRACK_LIKED, self._ctx(1), DEFAULTS)
        assert _types(out) == [MilestoneType.TRACK_LIKED, MilestoneType.TRACK_FIRST_LIKE]
        assert out[1].dedupe_key == "track_first_like:Song|Band"

    def test_first_like_by_guest_is_suppressed(self):
        assert evaluate(Trigger.TRACK_LIKED, self._ctx(1, listener_id=None), DEFAULTS) == []

    @pytest.mark.parametrize("count", [5, 10, 25, 50])
    def test_exact_threshold_emits_system_event(self, count):
        out = evaluate(Trigger.TRACK_LIKED, self._ctx(count, listener_id=None), DEFAULTS)
        assert _types(out) == [MilestoneType.TRACK_MILESTONE_LIKES]
        assert out[0].listener_id is None
        assert out[0].metadata == {"track_name": "Song", "artist_name": "Band", "like_count": count}

    @pytest.mark.parametrize("count", [2, 4, 6, 11, 51])
    def test_non_threshold_counts_emit_nothing_for_guests(self, count):
        assert evaluate(Trigger.TRACK_LIKED, self._ctx(count, listener_id=None), DEFAULTS) == []

    def test_registered_like_at_threshold(self):
        out = evaluate(Trigger.TRACK_LIKED, self._ctx(5), DEFAULTS)
        assert _types(out) == [MilestoneType.TRACK_LIKED, MilestoneType.TRACK_MILESTONE_LIKES]

    def test_track_liked_key_is_per_listener_and_track(self):
        out = evaluate(Trigger.TRACK_LIKED, self._ctx(3), DEFAULTS)
        assert out[0].dedupe_key == "track_liked:3:" + track_subject("Song", "Band")


# ===========================================================================
# Signups, listener counts, rank one
# ===========================================================================
class TestSystemMilestones:
    def test_first_signup(self):
        out = evaluate(Trigger.LISTENER_SIGNED_UP, MilestoneContext(listener_id=9), DEFAULTS)
        assert _types(out) == [MilestoneType.FIRST_SIGNUP]
        assert out[0].dedupe_key == "first_signup:9"

    def test_total_listeners_emits_every_reached_threshold(self):
        out = evaluate(Trigger.LISTENERS_SAMPLED, MilestoneContext(listener_count=30), DEFAULTS)
        assert [c.metadata["count"] for c in out] == [10, 25]
        assert all(c.listener_id is None for c in out)

    def test_total_listeners_below_first_threshold(self):
        assert evaluate(Trigger.LISTENERS_SAMPLED, MilestoneContext(listener_count=9), DEFAULTS) == []

    def test_rank_one_requires_strict_leader(self):
        tied = MilestoneContext(track_name="A", artist_name="B", like_count=3)
        assert evaluate(Trigger.TRACK_RANKED, tied, DEFAULTS) == []

        leader = MilestoneContext(
            track_name="A", artist_name="B", like_count=3, is_strict_leader=True,
        )
        out = evaluate(Trigger.TRACK_RANKED, leader, DEFAULTS)
        assert _types(out) == [MilestoneType.TRACK_RANK_ONE]
        assert out[0].dedupe_key == "track_rank_one:A|B"

    def test_custom_thresholds(self):
        custom = Thresholds(listening_hours=(2,), track_likes=(3,), total_listeners=(1,))
        out = evaluate(
            Trigger.TRACK_LIKED,
            MilestoneContext(track_name="A", artist_name="B", like_count=3),
            custom,
        )
        assert _types(out) == [MilestoneType.TRACK_MILESTONE_LIKES]
