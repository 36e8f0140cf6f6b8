"""
onair.services.now_playing — Streaming Server Now-Playing Proxy
================================================================

Reads the streaming server's now-playing JSON and reduces it to the
``(artist, title)`` pair used as the like subject.  Failures surface as
:class:`~onair.errors.TransientInfraError`; a track is never invented.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from onair.errors import TransientInfraError

logger = logging.getLogger(__name__)

NOW_PLAYING_TIMEOUT = 5.0


@dataclass(frozen=True, slots=True)
class NowPlaying:
    artist: str
    title: str

    def to_dict(self) -> dict:
        return {"artist": self.artist, "title": self.title}


def parse_now_playing(payload: object) -> NowPlaying:
    """Extract ``now_playing.song.{artist,title}``.

    The endpoint may return a single station object or a list of them;
    the first station is used.
    """
    if isinstance(payload, list):
        payload = payload[0] if payload else {}
    try:
        song = payload["now_playing"]["song"]
        artist = str(song["artist"]).strip()
        title = str(song["title"]).strip()
    except (KeyError, TypeError) as exc:
        raise TransientInfraError("Now-playing response is missing song data") from exc
    if not artist or not title:
        raise TransientInfraError("Now-playing response has an empty track")
    return NowPlaying(artist=artist, title=title)


async def fetch_now_playing(
    url: str,
    client: httpx.AsyncClient | None = None,
) -> NowPlaying:
    """Fetch and parse the now-playing document at *url*."""
    if not url:
        raise TransientInfraError("No now-playing URL configured")

    try:
        if client is None:
            transport = httpx.AsyncHTTPTransport(retries=1)
            async with httpx.AsyncClient(
                timeout=NOW_PLAYING_TIMEOUT, transport=transport,
            ) as owned:
                resp = await owned.get(url)
        else:
            resp = await client.get(url)
        resp.raise_for_status()
        payload = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Now-playing fetch from %s failed: %s", url, exc)
        raise TransientInfraError("Streaming server unavailable") from exc

    return parse_now_playing(payload)
