"""
tests/test_now_playing_and_sampler.py — Now-Playing Proxy & Sampler Tests
==========================================================================
"""

from __future__ import annotations

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from onair.constants import MilestoneType
from onair.database.models import Listener, Milestone, TrackLike
from onair.errors import TransientInfraError
from onair.services.now_playing import fetch_now_playing, parse_now_playing
from onair.services.sampler import MilestoneSampler

STATION_JSON = {
    "station": {"name": "Track Trip"},
    "now_playing": {"song": {"artist": "Band", "title": "Song", "album": "LP"}},
}


# ===========================================================================
# Now playing
# ===========================================================================
class TestNowPlaying:
    def test_parse_station_object(self):
        track = parse_now_playing(STATION_JSON)
        assert track.to_dict() == {"artist": "Band", "title": "Song"}

    def test_parse_station_list(self):
        assert parse_now_playing([STATION_JSON]).title == "Song"

    @pytest.mark.parametrize("payload", [{}, [], {"now_playing": {"song": {"artist": "", "title": "x"}}}])
    def test_parse_rejects_missing_track(self, payload):
        with pytest.raises(TransientInfraError):
            parse_now_playing(payload)

    @pytest.mark.asyncio
    async def test_fetch(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=STATION_JSON))
        async with httpx.AsyncClient(transport=transport) as client:
            track = await fetch_now_playing("http://stream.test/api/nowplaying/1", client)
        assert track.artist == "Band"

    @pytest.mark.asyncio
    async def test_fetch_server_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(502))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(TransientInfraError):
                await fetch_now_playing("http://stream.test/api/nowplaying/1", client)

    @pytest.mark.asyncio
    async def test_no_url_configured(self):
        with pytest.raises(TransientInfraError):
            await fetch_now_playing("")


# ===========================================================================
# Sampler
# ===========================================================================
class TestMilestoneSampler:
    @pytest.mark.asyncio
    async def test_sample_once_records_aggregate_milestones(self, db_engine, settings_cache):
        with Session(db_engine) as s:
            for i in range(10):
                s.add(Listener(user_id=f"u{i}", email=f"{i}@x", nickname=f"n{i}"))
            s.add(TrackLike(track_name="Hit", artist_name="Band", identity_key="fp"))
            s.commit()

        sampler = MilestoneSampler(db_engine, settings_cache, interval=60)
        assert await sampler.sample_once() == 2
        assert await sampler.sample_once() == 0

        with Session(db_engine) as s:
            types = set(s.scalars(select(Milestone.milestone_type)).all())
        assert types == {MilestoneType.TOTAL_LISTENERS, MilestoneType.TRACK_RANK_ONE}

    @pytest.mark.asyncio
    async def test_start_and_stop(self, db_engine, settings_cache):
        sampler = MilestoneSampler(db_engine, settings_cache)
        assert sampler.interval == 300
        sampler.start()
        assert sampler.running
        await sampler.stop()
        assert not sampler.running
