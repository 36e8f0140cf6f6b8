"""
tests/test_database_engine.py — Schema bootstrap & async bridge
================================================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from onair.config import OnAirConfig
from onair.database.engine import create_db_engine, init_db, run_db
from onair.database.models import Artist, ListenerRole, Setting
from onair.database.seed import DEFAULT_SETTINGS
from onair.services.listener_service import count_listeners


@pytest.fixture
def bare_engine():
    return create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool,
    )


def _config() -> OnAirConfig:
    return OnAirConfig(
        station_name="Track Trip Radio",
        station_tagline="",
        api_port=8000,
        now_playing_url="",
        bootstrap_admin_user_ids=("admin-1",),
        bootstrap_artist_emails=("band@example.com",),
    )


def test_init_db_seeds_settings_and_roles(bare_engine):
    init_db(bare_engine, _config())
    init_db(bare_engine, _config())

    with Session(bare_engine) as s:
        assert len(s.scalars(select(Setting)).all()) == len(DEFAULT_SETTINGS)
        assert s.scalars(select(ListenerRole.user_id)).all() == ["admin-1"]
        artist = s.scalar(select(Artist))
        assert artist.email == "band@example.com"
        assert artist.approved


def test_init_db_without_config_skips_roles(bare_engine):
    init_db(bare_engine)
    with Session(bare_engine) as s:
        assert s.scalars(select(ListenerRole)).all() == []


@pytest.mark.asyncio
async def test_run_db_runs_sync_work(db_engine):
    assert await run_db(count_listeners, db_engine) == 0


def test_create_db_engine_requires_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        create_db_engine()
