"""
onair.client.pollers — Cancellable Polling Consumers
=====================================================

Fixed-interval readers for the activity feed, the leaderboard, a track's
like count and the chat history.  Each poller is an ``asyncio`` task
bound to the lifetime of whoever started it: ``stop()`` (or leaving the
``async with`` block) cancels it.  A failed request is logged and the
poller simply waits for its next tick.

All pollers share one :class:`httpx.AsyncClient` whose ``base_url``
points at the API.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque

import httpx

from onair.client.timeline import ChatTimeline

logger = logging.getLogger(__name__)


class Poller:
    """Run :meth:`poll_once` now and then every *interval* seconds."""

    name = "poller"

    def __init__(self, client: httpx.AsyncClient, interval: float) -> None:
        self._client = client
        self.interval = interval
        self._task: asyncio.Task | None = None

    async def poll_once(self) -> None:
        raise NotImplementedError

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except httpx.HTTPError as exc:
                logger.warning("%s poll failed: %s", self.name, exc)
            except Exception:
                logger.exception("%s poll returned an unusable response", self.name)
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def __aenter__(self) -> Poller:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()


# ---------------------------------------------------------------------------
# Activity feed
# ---------------------------------------------------------------------------
class ActivityFeedPoller(Poller):
    """Keeps the newest *max_items* milestones, newest first.

    The cursor only advances when a poll returns rows, so an empty or
    failed poll asks again from the same point.
    """

    name = "activity-feed"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        max_items: int = 10,
        interval: float = 30.0,
    ) -> None:
        super().__init__(client, interval)
        self.max_items = max_items
        self.items: deque[dict] = deque(maxlen=max_items)
        self.cursor: str | None = None

    async def poll_once(self) -> None:
        params: dict[str, object] = {"limit": self.max_items}
        if self.cursor is not None:
            params["since"] = self.cursor
        resp = await self._client.get("/api/activity-feed", params=params)
        resp.raise_for_status()
        self.apply(resp.json()["milestones"], incremental=self.cursor is not None)

    def apply(self, milestones: list[dict], *, incremental: bool) -> None:
        if not milestones:
            return
        if incremental:
            # Ascending: each row is newer than everything held
            known = {item["id"] for item in self.items}
            for milestone in milestones:
                if milestone["id"] not in known:
                    self.items.appendleft(milestone)
            self.cursor = milestones[-1]["created_at"]
        else:
            self.items.clear()
            self.items.extend(milestones)
            self.cursor = milestones[0]["created_at"]


# ---------------------------------------------------------------------------
# Leaderboard & likes
# ---------------------------------------------------------------------------
class LeaderboardPoller(Poller):
    name = "leaderboard"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        limit: int = 10,
        interval: float = 60.0,
    ) -> None:
        super().__init__(client, interval)
        self.limit = limit
        self.entries: list[dict] = []

    async def poll_once(self) -> None:
        resp = await self._client.get("/api/leaderboard", params={"limit": self.limit})
        resp.raise_for_status()
        self.entries = resp.json()


class TrackLikePoller(Poller):
    """Like count for the current track; call :meth:`set_track` on change."""

    name = "track-likes"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        identity_key: str | None = None,
        interval: float = 30.0,
    ) -> None:
        super().__init__(client, interval)
        self.identity_key = identity_key
        self.track: str | None = None
        self.artist: str | None = None
        self.likes = 0
        self.user_liked = False

    def set_track(self, track: str, artist: str) -> None:
        if (track, artist) != (self.track, self.artist):
            self.track, self.artist = track, artist
            self.likes, self.user_liked = 0, False

    async def poll_once(self) -> None:
        if not self.track or not self.artist:
            return
        params = {"track": self.track, "artist": self.artist}
        if self.identity_key:
            params["identityKey"] = self.identity_key
        resp = await self._client.get("/api/likes", params=params)
        resp.raise_for_status()
        data = resp.json()
        self.likes = data["likes"]
        self.user_liked = data["userLiked"]


# ---------------------------------------------------------------------------
# Chat fallback
# ---------------------------------------------------------------------------
class ChatPoller(Poller):
    """History polling for clients that cannot hold a WebSocket."""

    name = "chat"

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeline: ChatTimeline,
        *,
        limit: int = 50,
        interval: float = 5.0,
    ) -> None:
        super().__init__(client, interval)
        self.timeline = timeline
        self.limit = limit

    async def poll_once(self) -> None:
        resp = await self._client.get("/api/chat/messages", params={"limit": self.limit})
        resp.raise_for_status()
        self.timeline.merge(resp.json())
