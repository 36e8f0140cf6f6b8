"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid AUTH_JWT_SECRET is always set for test runs.
# This must happen before any import of onair.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("AUTH_JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite renders JSONB as TEXT; values still round-trip through the JSON
# serializer.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.ext.compiler import compiles  # noqa: E402

from onair.database.models import Base  # noqa: E402
from onair.database.seed import seed_default_settings  # noqa: E402
from onair.engine.cache import SettingsCache  # noqa: E402
from onair.engine.identity import guest_identity  # noqa: E402
from onair.services.broadcast import ChatHub  # noqa: E402


@compiles(PG_JSONB, "sqlite")
def _compile_jsonb_as_text(type_, compiler, **kw):
    return "TEXT"


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all tables and default settings.

    Uses StaticPool so every thread (TestClient workers, ``run_db``)
    shares the same in-memory database.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    seed_default_settings(engine)
    return engine


@pytest.fixture
def settings_cache(db_engine: Engine) -> SettingsCache:
    cache = SettingsCache(db_engine)
    cache.load_all()
    return cache


@pytest.fixture
def chat_hub() -> ChatHub:
    return ChatHub()


@pytest.fixture
def guest():
    """Factory for guest identities: ``guest("fp-1")``."""
    return guest_identity


def make_token(sub: str = "user-1", email: str = "listener@example.com") -> str:
    """Create an auth-provider style access token signed with the test secret."""
    import jwt

    from onair.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "email": email, "aud": "authenticated", "role": "authenticated"},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db_engine, settings_cache, chat_hub):
    """TestClient with the engine, settings cache and chat hub overridden."""
    from fastapi.testclient import TestClient

    from onair.api.deps import get_chat_hub, get_engine, get_settings_cache
    from onair.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_settings_cache] = lambda: settings_cache
    app.dependency_overrides[get_chat_hub] = lambda: chat_hub
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()
