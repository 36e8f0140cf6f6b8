"""
onair.api.routes.likes — Track likes
=====================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Engine

from onair.api.deps import (
    get_engine,
    get_session_claims,
    get_settings_cache,
    http_error,
    set_private_cache,
    set_shared_cache,
)
from onair.engine.cache import SettingsCache
from onair.errors import OnAirError
from onair.services.identity_service import require_identity, resolve_identity
from onair.services.leaderboard_service import clamp_limit, get_top_tracks
from onair.services.like_service import add_like, get_like_state

router = APIRouter(tags=["likes"])


class LikeBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    track: str
    artist: str
    identity_key: str | None = Field(None, alias="identityKey")


# ---------------------------------------------------------------------------
# GET /likes
# ---------------------------------------------------------------------------
@router.get("/likes")
def like_state(
    response: Response,
    track: str = Query(""),
    artist: str = Query(""),
    identity_key: str | None = Query(None, alias="identityKey"),
    claims: dict | None = Depends(get_session_claims),
    engine: Engine = Depends(get_engine),
    cache: SettingsCache = Depends(get_settings_cache),
):
    """Current like count and whether the caller has liked the track."""
    try:
        identity = resolve_identity(engine, claims, identity_key)
        key = identity.identity_key if identity is not None else None
        state = get_like_state(engine, track, artist, key)
    except OnAirError as exc:
        raise http_error(exc) from exc
    # userLiked follows the session subject, which the URL does not carry
    if claims is not None:
        set_private_cache(response)
    else:
        set_shared_cache(response, cache.get_int("cache.likes_seconds", 30))
    return state.to_dict()


# ---------------------------------------------------------------------------
# POST /likes
# ---------------------------------------------------------------------------
@router.post("/likes")
def like_track(
    body: LikeBody,
    claims: dict | None = Depends(get_session_claims),
    engine: Engine = Depends(get_engine),
    cache: SettingsCache = Depends(get_settings_cache),
):
    try:
        identity = require_identity(engine, claims, body.identity_key)
        result = add_like(engine, cache, identity, body.track, body.artist)
    except OnAirError as exc:
        raise http_error(exc) from exc

    if result.already_liked:
        return JSONResponse(
            status_code=409,
            content={"error": "Already liked", "alreadyLiked": True, "likes": result.likes},
        )
    return {"success": True, "likes": result.likes}


# ---------------------------------------------------------------------------
# GET /tracks/top
# ---------------------------------------------------------------------------
@router.get("/tracks/top")
def top_tracks(
    response: Response,
    limit: int = Query(10, ge=1, le=100),
    engine: Engine = Depends(get_engine),
    cache: SettingsCache = Depends(get_settings_cache),
):
    set_shared_cache(response, cache.get_int("cache.leaderboard_seconds", 30))
    return get_top_tracks(engine, clamp_limit(limit, 10))
