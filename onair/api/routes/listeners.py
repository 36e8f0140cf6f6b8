"""
onair.api.routes.listeners — Identity, profiles & listening time
=================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import Engine

from onair.api.deps import (
    get_engine,
    get_session_claims,
    get_settings_cache,
    http_error,
    require_session_claims,
)
from onair.engine.cache import SettingsCache
from onair.errors import OnAirError
from onair.services.identity_service import require_identity
from onair.services.listener_service import (
    add_listening_time,
    get_listener,
    listener_to_dict,
    upsert_listener,
)
from onair.services.milestone_service import milestone_to_dict

router = APIRouter(tags=["listeners"])


class ListenerBody(BaseModel):
    nickname: str
    avatar_url: str | None = None
    email: str | None = None


class ListeningTimeBody(BaseModel):
    seconds: int


# ---------------------------------------------------------------------------
# GET /identity
# ---------------------------------------------------------------------------
@router.get("/identity")
def whoami(
    fingerprint: str | None = Query(None),
    claims: dict | None = Depends(get_session_claims),
    engine: Engine = Depends(get_engine),
):
    """Resolve the caller to a display identity and role flags."""
    try:
        identity = require_identity(engine, claims, fingerprint)
    except OnAirError as exc:
        raise http_error(exc) from exc
    return identity.to_dict()


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------
@router.get("/listeners/{user_id}")
def listener_profile(user_id: str, engine: Engine = Depends(get_engine)):
    try:
        listener = get_listener(engine, user_id)
    except OnAirError as exc:
        raise http_error(exc) from exc
    return listener_to_dict(listener)


@router.post("/listeners")
def save_listener_profile(
    body: ListenerBody,
    claims: dict = Depends(require_session_claims),
    engine: Engine = Depends(get_engine),
    cache: SettingsCache = Depends(get_settings_cache),
):
    """Create or update the caller's profile."""
    try:
        result = upsert_listener(
            engine, cache,
            user_id=claims["sub"],
            email=claims.get("email") or body.email or "",
            nickname=body.nickname,
            avatar_url=body.avatar_url,
        )
    except OnAirError as exc:
        raise http_error(exc) from exc

    return {
        "listener": listener_to_dict(result.listener),
        "created": result.created,
        "milestones": [milestone_to_dict(m) for m in result.milestones],
    }


# ---------------------------------------------------------------------------
# POST /listeners/listening-time
# ---------------------------------------------------------------------------
@router.post("/listeners/listening-time")
def report_listening_time(
    body: ListeningTimeBody,
    claims: dict = Depends(require_session_claims),
    engine: Engine = Depends(get_engine),
    cache: SettingsCache = Depends(get_settings_cache),
):
    try:
        result = add_listening_time(engine, cache, claims["sub"], body.seconds)
    except OnAirError as exc:
        raise http_error(exc) from exc

    return {
        "total_seconds": result.total_seconds,
        "hours": result.hours,
        "milestones": [milestone_to_dict(m) for m in result.milestones],
    }
