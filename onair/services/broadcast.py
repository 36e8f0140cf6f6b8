"""
onair.services.broadcast — Chat Fan-out Hub
============================================

Every API process holds one :class:`ChatHub`.  Each WebSocket subscriber
owns an :class:`asyncio.Queue`; the hub copies every envelope into every
queue.

Publishing happens from worker threads (sync route handlers, the PG
LISTEN thread), so delivery is marshalled onto the hub's event loop with
``call_soon_threadsafe``.

On PostgreSQL the publisher sends ``NOTIFY onair_chat`` and lets every
process's LISTEN thread deliver to its own hub, the posting process
included.  Elsewhere (SQLite dev/test) it delivers to the local hub
directly.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import TYPE_CHECKING

from onair.engine.cache import send_chat_notify

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

SUBSCRIBER_QUEUE_SIZE = 100

# Last item an evicted subscriber's queue ever yields
EVICTED = {"type": "evicted"}


def chat_envelope(message: dict) -> dict:
    return {"type": "chat_message", "data": message}


class ChatHub:
    """In-process registry of chat subscribers."""

    def __init__(self) -> None:
        self._queues: dict[int, asyncio.Queue] = {}
        self._ids = itertools.count(1)
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def subscribe(self) -> tuple[int, asyncio.Queue]:
        """Register a subscriber.  Must be called from the event loop."""
        self._loop = asyncio.get_running_loop()
        sub_id = next(self._ids)
        queue: asyncio.Queue = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        self._queues[sub_id] = queue
        logger.debug("Chat subscriber %d joined (%d total)", sub_id, len(self._queues))
        return sub_id, queue

    def unsubscribe(self, sub_id: int) -> None:
        if self._queues.pop(sub_id, None) is not None:
            logger.debug("Chat subscriber %d left (%d total)", sub_id, len(self._queues))

    def evict(self, sub_id: int) -> None:
        """Drop *sub_id* and leave only :data:`EVICTED` in its queue.

        The socket handler closes the connection when it reads the marker,
        so the client reconnects or falls back to polling.  Loop thread only.
        """
        queue = self._queues.pop(sub_id, None)
        if queue is None:
            return
        while not queue.empty():
            queue.get_nowait()
        queue.put_nowait(EVICTED)

    def deliver(self, envelope: dict) -> int:
        """Copy *envelope* into every subscriber queue.  Loop thread only.

        A subscriber whose queue is full is too slow to keep up and is
        evicted.
        """
        delivered = 0
        for sub_id, queue in list(self._queues.items()):
            try:
                queue.put_nowait(envelope)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Chat subscriber %d lagging, evicting", sub_id)
                self.evict(sub_id)
        return delivered

    def deliver_threadsafe(self, envelope: dict) -> None:
        """Schedule :meth:`deliver` on the hub's loop from any thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("Chat hub has no running loop — nothing to deliver to")
            return
        loop.call_soon_threadsafe(self.deliver, envelope)


class ChatPublisher:
    """Publish committed chat messages to every connected client."""

    def __init__(self, engine: Engine, hub: ChatHub) -> None:
        self._engine = engine
        self._hub = hub
        self.use_notify = engine.dialect.name == "postgresql"

    def publish(self, message: dict) -> bool:
        """Fan *message* out.  Returns False on failure; never raises."""
        envelope = chat_envelope(message)
        try:
            if self.use_notify:
                send_chat_notify(self._engine, envelope)
            else:
                self._hub.deliver_threadsafe(envelope)
        except Exception:
            logger.exception("Chat broadcast failed for message %s", message.get("id"))
            return False
        return True
