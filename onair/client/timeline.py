"""
onair.client.timeline — Chat Timeline Reconciliation
=====================================================

Client-side model of the chat window.

A sender appends the server's copy of its own message as soon as the
POST returns.  The same message then arrives again through the
broadcast; because both copies carry the server id, the second is
discarded.  Reactions are kept out of the conversation and instead
float over it for a short, fixed lifetime.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from onair.constants import GUEST_FALLBACK_NAME, REACTION_LIFETIME_SECONDS


def mentions(body: str, nickname: str | None) -> bool:
    """True when *body* contains ``@nickname`` as a whole token.

    Case-insensitive; ``@dana`` does not match inside ``@danal`` or
    ``x@dana``.
    """
    if not nickname:
        return False
    pattern = rf"(?<![\w@])@{re.escape(nickname)}(?!\w)"
    return re.search(pattern, body, flags=re.IGNORECASE) is not None


@dataclass(slots=True)
class FloatingReaction:
    message_id: int
    emoji: str
    author: str
    expires_at: float


class ChatTimeline:
    """Ordered, id-deduplicated chat history plus a reaction overlay."""

    def __init__(
        self,
        viewer_nickname: str | None = None,
        *,
        max_messages: int = 200,
        reaction_lifetime: float = REACTION_LIFETIME_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.viewer_nickname = viewer_nickname
        self._max_messages = max_messages
        self._reaction_lifetime = reaction_lifetime
        self._clock = clock
        self._entries: list[dict] = []
        self._seen: set[int] = set()
        self._reactions: list[FloatingReaction] = []

    # -------------------------------------------------------------------
    # Ingest
    # -------------------------------------------------------------------
    def _append(self, message: dict) -> bool:
        message_id = message["id"]
        if message_id in self._seen:
            return False
        self._seen.add(message_id)

        if message.get("is_reaction"):
            self._prune_reactions()
            self._reactions.append(FloatingReaction(
                message_id=message_id,
                emoji=message["message"],
                author=(
                    message.get("nickname") or message.get("guest_name") or GUEST_FALLBACK_NAME
                ),
                expires_at=self._clock() + self._reaction_lifetime,
            ))
            return True

        self._entries.append(message)
        if len(self._entries) > self._max_messages:
            dropped = self._entries[: len(self._entries) - self._max_messages]
            self._entries = self._entries[-self._max_messages:]
            for old in dropped:
                self._seen.discard(old["id"])
        return True

    def add_local(self, message: dict) -> bool:
        """Append the sender's own message as returned by the POST."""
        return self._append(message)

    def receive(self, message: dict) -> bool:
        """Apply a broadcast message.  Returns False for a duplicate echo."""
        return self._append(message)

    def merge(self, messages: Iterable[dict]) -> int:
        """Apply a polled history page; returns how many were new."""
        return sum(1 for message in messages if self._append(message))

    # -------------------------------------------------------------------
    # Read model
    # -------------------------------------------------------------------
    @property
    def messages(self) -> list[dict]:
        """Conversation messages in arrival order (reactions excluded)."""
        return list(self._entries)

    @property
    def message_count(self) -> int:
        return len(self._entries)

    def _prune_reactions(self) -> None:
        now = self._clock()
        live = []
        for reaction in self._reactions:
            if reaction.expires_at > now:
                live.append(reaction)
            else:
                self._seen.discard(reaction.message_id)
        self._reactions = live

    def active_reactions(self) -> list[FloatingReaction]:
        """Reactions still on screen; expired ones are pruned."""
        self._prune_reactions()
        return list(self._reactions)

    def is_mention(self, message: dict) -> bool:
        return mentions(message.get("message", ""), self.viewer_nickname)
