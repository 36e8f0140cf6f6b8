"""
onair.services.leaderboard_service — Listener & Track Rankings
===============================================================

Read-only projections over ``listeners.total_seconds`` and the like
ledger.  Ties are broken by a stable secondary key so repeated reads of
an unchanged table always return the same order.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from onair.constants import listener_level, listening_hours
from onair.database.models import Listener, Milestone, TrackLike
from onair.engine.milestones import MilestoneContext, Trigger, evaluate
from onair.services.milestone_service import record_milestones

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from onair.engine.cache import SettingsCache

logger = logging.getLogger(__name__)

MAX_LEADERBOARD_LIMIT = 100


def clamp_limit(limit: int | None, default: int, maximum: int = MAX_LEADERBOARD_LIMIT) -> int:
    if limit is None or limit < 1:
        return default
    return min(limit, maximum)


def get_top_listeners(engine: Engine, limit: int = 10) -> list[dict]:
    """Top listeners by total listening time, ``id`` breaking ties."""
    with Session(engine) as session:
        rows = session.scalars(
            select(Listener)
            .order_by(Listener.total_seconds.desc(), Listener.id.asc())
            .limit(limit)
        ).all()

    return [
        {
            "rank": rank,
            "listener_id": row.id,
            "nickname": row.nickname,
            "avatar_url": row.avatar_url,
            "total_seconds": row.total_seconds,
            "hours": listening_hours(row.total_seconds),
            "level": listener_level(row.total_seconds),
        }
        for rank, row in enumerate(rows, start=1)
    ]


def get_top_tracks(engine: Engine, limit: int = 10) -> list[dict]:
    """Most-liked tracks, ties broken by track then artist name."""
    likes = func.count(TrackLike.id).label("likes")
    with Session(engine) as session:
        rows = session.execute(
            select(TrackLike.track_name, TrackLike.artist_name, likes)
            .group_by(TrackLike.track_name, TrackLike.artist_name)
            .order_by(likes.desc(), TrackLike.track_name.asc(), TrackLike.artist_name.asc())
            .limit(limit)
        ).all()

    return [
        {
            "rank": rank,
            "track": row.track_name,
            "artist": row.artist_name,
            "likes": row.likes,
        }
        for rank, row in enumerate(rows, start=1)
    ]


def check_track_rank_one(engine: Engine, cache: SettingsCache) -> list[Milestone]:
    """Emit ``track_rank_one`` for the current strict leader, if any.

    A tie at the top has no leader.  Best-effort: failures are logged.
    """
    try:
        top = get_top_tracks(engine, limit=2)
    except Exception:
        logger.exception("Rank-one check failed to read top tracks")
        return []
    if not top:
        return []

    leader = top[0]
    strict = len(top) == 1 or leader["likes"] > top[1]["likes"]
    ctx = MilestoneContext(
        track_name=leader["track"],
        artist_name=leader["artist"],
        like_count=leader["likes"],
        is_strict_leader=strict,
    )
    return record_milestones(engine, evaluate(Trigger.TRACK_RANKED, ctx, cache.thresholds()))
