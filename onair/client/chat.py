"""
onair.client.chat — Chat Sender
================================

Posts messages for one viewer and feeds the server copy back into the
viewer's :class:`~onair.client.timeline.ChatTimeline`.
"""

from __future__ import annotations

import logging

import httpx

from onair.client.timeline import ChatTimeline

logger = logging.getLogger(__name__)


class ChatClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        timeline: ChatTimeline,
        *,
        fingerprint: str | None = None,
        token: str | None = None,
    ) -> None:
        self._client = client
        self.timeline = timeline
        self.fingerprint = fingerprint
        self.token = token

    async def send(self, message: str, *, is_reaction: bool = False) -> dict:
        """POST *message* and append the returned copy locally.

        Raises :class:`httpx.HTTPStatusError` on a rejected post.
        """
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        resp = await self._client.post(
            "/api/chat/messages",
            json={
                "message": message,
                "is_reaction": is_reaction,
                "fingerprint": self.fingerprint,
            },
            headers=headers,
        )
        resp.raise_for_status()
        stored = resp.json()
        self.timeline.add_local(stored)
        return stored

    def on_broadcast(self, envelope: dict) -> bool:
        """Apply one WebSocket envelope; False for echoes and other types."""
        if envelope.get("type") != "chat_message":
            return False
        return self.timeline.receive(envelope["data"])
