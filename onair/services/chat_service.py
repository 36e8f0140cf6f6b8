"""
onair.services.chat_service — Chat Channel
===========================================

Accepts, persists and publishes chat messages and reactions.

The stored author is exactly one of a listener or a guest.  For guests
the display name is derived here from the fingerprint, never taken from
the client.  Publishing happens after commit and never fails the post.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from onair.constants import MAX_CHAT_MESSAGE_LENGTH, REACTION_EMOJIS
from onair.database.models import ChatMessage, Listener
from onair.errors import ValidationError
from onair.services.milestone_service import isoformat_utc

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from onair.engine.cache import SettingsCache
    from onair.engine.identity import Identity
    from onair.services.broadcast import ChatPublisher

logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 200


def message_to_dict(message: ChatMessage, listener: Listener | None = None) -> dict:
    listener = listener or message.listener
    return {
        "id": message.id,
        "listener_id": message.listener_id,
        "guest_fingerprint": message.guest_fingerprint,
        "guest_name": message.guest_name,
        "nickname": listener.nickname if listener is not None else None,
        "avatar_url": listener.avatar_url if listener is not None else None,
        "message": message.message,
        "is_reaction": message.is_reaction,
        "created_at": isoformat_utc(message.created_at),
    }


def validate_body(body: str | None, *, is_reaction: bool, max_length: int) -> str:
    text = (body or "").strip()
    if not text:
        raise ValidationError("Message cannot be empty")
    if len(text) > max_length:
        raise ValidationError(f"Message must be at most {max_length} characters")
    if is_reaction and text not in REACTION_EMOJIS:
        raise ValidationError("Unsupported reaction")
    return text


def post_message(
    engine: Engine,
    cache: SettingsCache,
    identity: Identity | None,
    body: str | None,
    *,
    is_reaction: bool = False,
    publisher: ChatPublisher | None = None,
) -> dict:
    """Persist a message from *identity* and publish it.

    Returns the serialized message exactly as subscribers receive it.
    """
    if identity is None:
        raise ValidationError("A signed-in listener or a guest fingerprint is required")
    if is_reaction and not identity.is_registered:
        raise ValidationError("Sign in to send reactions")

    max_length = cache.get_int("chat.max_message_length", MAX_CHAT_MESSAGE_LENGTH)
    text = validate_body(body, is_reaction=is_reaction, max_length=max_length)

    with Session(engine, expire_on_commit=False) as session:
        if identity.is_registered:
            row = ChatMessage(listener_id=identity.listener_id, message=text,
                              is_reaction=is_reaction)
        else:
            row = ChatMessage(
                guest_fingerprint=identity.guest_fingerprint,
                guest_name=identity.display_name,
                message=text,
                is_reaction=is_reaction,
            )
        session.add(row)
        session.commit()

        listener = (
            session.get(Listener, identity.listener_id) if identity.is_registered else None
        )
        payload = message_to_dict(row, listener)

    logger.debug("Chat message %d stored (reaction=%s)", row.id, is_reaction)
    if publisher is not None:
        publisher.publish(payload)
    return payload


def list_messages(
    engine: Engine,
    limit: int = 50,
    *,
    include_reactions: bool = False,
) -> list[dict]:
    """Newest *limit* messages, returned oldest first."""
    limit = max(1, min(limit, MAX_HISTORY_LIMIT))
    query = (
        select(ChatMessage)
        .options(selectinload(ChatMessage.listener))
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .limit(limit)
    )
    if not include_reactions:
        query = query.where(ChatMessage.is_reaction.is_(False))

    with Session(engine) as session:
        rows = session.scalars(query).all()
        return [message_to_dict(row) for row in reversed(rows)]
