"""
onair.api.routes.activity — Activity feed & leaderboard
========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import Engine

from onair.api.deps import get_engine, get_settings_cache, http_error, set_shared_cache
from onair.engine.cache import SettingsCache
from onair.errors import OnAirError
from onair.services.feed_service import MAX_FEED_LIMIT, get_feed, parse_cursor
from onair.services.leaderboard_service import get_top_listeners

router = APIRouter(tags=["activity"])


# ---------------------------------------------------------------------------
# GET /activity-feed
# ---------------------------------------------------------------------------
@router.get("/activity-feed")
def activity_feed(
    response: Response,
    since: str | None = Query(None),
    limit: int | None = Query(None, ge=1, le=MAX_FEED_LIMIT),
    engine: Engine = Depends(get_engine),
    cache: SettingsCache = Depends(get_settings_cache),
):
    """Newest milestones, or (with ``since``) only strictly newer ones ascending."""
    try:
        cursor = parse_cursor(since)
    except OnAirError as exc:
        raise http_error(exc) from exc

    if limit is None:
        limit = cache.get_int("feed.default_limit", 30)
    set_shared_cache(response, cache.get_int("cache.feed_seconds", 20))
    return {"milestones": get_feed(engine, cursor, limit)}


# ---------------------------------------------------------------------------
# GET /leaderboard
# ---------------------------------------------------------------------------
@router.get("/leaderboard")
def leaderboard(
    response: Response,
    limit: int = Query(10, ge=1, le=100),
    engine: Engine = Depends(get_engine),
    cache: SettingsCache = Depends(get_settings_cache),
):
    set_shared_cache(response, cache.get_int("cache.leaderboard_seconds", 30))
    return get_top_listeners(engine, limit)
