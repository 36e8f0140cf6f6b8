"""
onair.api.routes.station — Now playing & station info
======================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import Engine

from onair.api.deps import get_config, get_engine, get_session_claims, http_error
from onair.config import OnAirConfig
from onair.database.engine import run_db
from onair.errors import OnAirError
from onair.services.identity_service import resolve_identity
from onair.services.like_service import get_like_state
from onair.services.now_playing import fetch_now_playing

router = APIRouter(tags=["station"])


@router.get("/station")
def station_info(config: OnAirConfig = Depends(get_config)):
    return {"name": config.station_name, "tagline": config.station_tagline}


@router.get("/now-playing")
async def now_playing(
    fingerprint: str | None = Query(None),
    claims: dict | None = Depends(get_session_claims),
    engine: Engine = Depends(get_engine),
    config: OnAirConfig = Depends(get_config),
):
    """Current track from the streaming server, with its like state."""
    try:
        track = await fetch_now_playing(config.now_playing_url)
        identity = await run_db(resolve_identity, engine, claims, fingerprint)
        state = await run_db(
            get_like_state, engine, track.title, track.artist,
            identity.identity_key if identity is not None else None,
        )
    except OnAirError as exc:
        raise http_error(exc) from exc

    return {**track.to_dict(), **state.to_dict()}
