"""
tests/test_timeline.py — Client Chat Timeline Tests
====================================================
"""

from __future__ import annotations

import pytest

from onair.client.timeline import ChatTimeline, mentions


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _msg(message_id: int, body: str = "hi", *, reaction: bool = False, **extra) -> dict:
    return {"id": message_id, "message": body, "is_reaction": reaction, **extra}


class TestReconciliation:
    def test_echo_of_own_message_is_discarded(self):
        timeline = ChatTimeline()
        assert timeline.add_local(_msg(1))
        assert not timeline.receive(_msg(1))
        assert timeline.message_count == 1

    def test_broadcast_before_local_copy(self):
        timeline = ChatTimeline()
        assert timeline.receive(_msg(1))
        assert not timeline.add_local(_msg(1))
        assert timeline.message_count == 1

    def test_merge_counts_only_new(self):
        timeline = ChatTimeline()
        timeline.receive(_msg(1))
        assert timeline.merge([_msg(1), _msg(2), _msg(3)]) == 2
        assert [m["id"] for m in timeline.messages] == [1, 2, 3]

    def test_history_is_bounded(self):
        timeline = ChatTimeline(max_messages=3)
        timeline.merge(_msg(i) for i in range(5))
        assert [m["id"] for m in timeline.messages] == [2, 3, 4]


class TestReactions:
    def test_reactions_excluded_from_count(self):
        timeline = ChatTimeline()
        timeline.receive(_msg(1))
        timeline.receive(_msg(2, "🔥", reaction=True, nickname="dana"))
        assert timeline.message_count == 1
        assert [r.emoji for r in timeline.active_reactions()] == ["🔥"]

    def test_reaction_expires(self):
        clock = FakeClock()
        timeline = ChatTimeline(clock=clock)
        timeline.receive(_msg(1, "🚀", reaction=True))
        clock.now += 1.9
        assert len(timeline.active_reactions()) == 1
        clock.now += 0.2
        assert timeline.active_reactions() == []

    def test_expired_reaction_ids_are_forgotten(self):
        clock = FakeClock()
        timeline = ChatTimeline(clock=clock)
        for i in range(50):
            timeline.receive(_msg(i, "🔥", reaction=True))
        clock.now += 3
        timeline.receive(_msg(100, "🚀", reaction=True))
        assert timeline._seen == {100}
        assert [r.message_id for r in timeline.active_reactions()] == [100]

    def test_duplicate_reaction_floats_once(self):
        timeline = ChatTimeline()
        timeline.add_local(_msg(7, "✨", reaction=True))
        timeline.receive(_msg(7, "✨", reaction=True))
        assert len(timeline.active_reactions()) == 1


class TestMentions:
    @pytest.mark.parametrize("body, expected", [
        ("hey @dana!", True),
        ("@DANA what's on", True),
        ("hi @dana_k", False),
        ("mail me x@dana", False),
        ("dana without at", False),
    ])
    def test_token_boundaries(self, body, expected):
        assert mentions(body, "dana") is expected

    def test_no_viewer_nickname(self):
        assert not mentions("@dana", None)

    def test_timeline_flags_mentions(self):
        timeline = ChatTimeline(viewer_nickname="dana")
        assert timeline.is_mention(_msg(1, "nice one @dana"))
        assert not timeline.is_mention(_msg(2, "nice one"))
