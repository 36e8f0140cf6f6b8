"""
onair.api.routes.chat — Chat history, posting and live fan-out
===============================================================

WebSocket protocol (``/api/chat/ws``):

    server → client   {"type": "chat_message", "data": {...message...}}
    client → server   {"action": "ping"}
    server → client   {"type": "pong"}

A subscriber that falls too far behind is closed with code 1013 and
should reconnect or poll ``GET /api/chat/messages``.

Posting goes through ``POST /api/chat/messages``; the socket is
receive-only apart from keepalive pings.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Engine

from onair.api.deps import (
    get_chat_hub,
    get_chat_publisher,
    get_engine,
    get_session_claims,
    get_settings_cache,
    http_error,
)
from onair.api.rate_limit import ChatRateLimiter
from onair.engine.cache import SettingsCache
from onair.errors import OnAirError
from onair.services.broadcast import EVICTED, ChatHub, ChatPublisher
from onair.services.chat_service import list_messages, post_message
from onair.services.identity_service import resolve_identity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


class ChatBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = ""
    is_reaction: bool = False
    fingerprint: str | None = Field(None, alias="guest_fingerprint")


# ---------------------------------------------------------------------------
# GET /chat/messages
# ---------------------------------------------------------------------------
@router.get("/chat/messages")
def chat_history(
    limit: int = Query(50, ge=1, le=200),
    include_reactions: bool = Query(False),
    engine: Engine = Depends(get_engine),
):
    """Newest messages, oldest first."""
    return list_messages(engine, limit, include_reactions=include_reactions)


# ---------------------------------------------------------------------------
# POST /chat/messages
# ---------------------------------------------------------------------------
@router.post("/chat/messages")
def send_chat_message(
    body: ChatBody,
    claims: dict | None = Depends(get_session_claims),
    engine: Engine = Depends(get_engine),
    cache: SettingsCache = Depends(get_settings_cache),
    publisher: ChatPublisher = Depends(get_chat_publisher),
):
    limiter = ChatRateLimiter.from_settings(engine, cache)
    try:
        identity = resolve_identity(engine, claims, body.fingerprint)
        if identity is not None:
            limiter.enforce(identity.identity_key)
        message = post_message(
            engine, cache, identity, body.message,
            is_reaction=body.is_reaction, publisher=publisher,
        )
    except OnAirError as exc:
        raise http_error(exc) from exc

    # Best-effort: the message is already stored
    try:
        limiter.record(identity.identity_key)
    except Exception:
        logger.exception("Failed to record chat rate-limit event for %s", identity.identity_key)
    return message


# ---------------------------------------------------------------------------
# WS /chat/ws
# ---------------------------------------------------------------------------
@router.websocket("/chat/ws")
async def chat_socket(websocket: WebSocket, hub: ChatHub = Depends(get_chat_hub)):
    # Subscribe before the handshake completes
    sub_id, queue = hub.subscribe()
    try:
        await websocket.accept()
    except Exception:
        hub.unsubscribe(sub_id)
        raise

    async def _pump() -> None:
        while True:
            envelope = await queue.get()
            if envelope is EVICTED:
                await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
                return
            await websocket.send_json(envelope)

    async def _listen() -> None:
        while True:
            data = await websocket.receive_json()
            if isinstance(data, dict) and data.get("action") == "ping":
                queue.put_nowait({"type": "pong"})

    tasks = [asyncio.create_task(_pump()), asyncio.create_task(_listen())]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("Chat socket %d closed on error: %s", sub_id, exc)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        hub.unsubscribe(sub_id)
