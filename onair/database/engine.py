"""
onair.database.engine — Database Connection & Async Helper
===========================================================

The API runs on an ``asyncio`` event loop, but SQLAlchemy + psycopg2 is
**synchronous**.  Any DB work reached from async code (WebSocket handlers,
the periodic sampler, the rate limiter) is shipped to a thread pool with
:func:`run_db` so the loop is never blocked.  Plain ``def`` route handlers
already run on FastAPI's worker threads and call services directly.

Usage::

    from onair.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    count = await run_db(count_listeners, engine)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from typing import TYPE_CHECKING, ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine

from onair.database.models import Base

if TYPE_CHECKING:
    from onair.config import OnAirConfig

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine() -> Engine:
    """Build a SQLAlchemy :class:`Engine` from the ``DATABASE_URL`` env var.

    Raises
    ------
    RuntimeError
        If ``DATABASE_URL`` is not set.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    engine = create_engine(
        url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,   # Reconnect stale connections automatically
        pool_timeout=10,      # Fail after 10s instead of hanging forever
        pool_recycle=3600,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine, config: OnAirConfig | None = None) -> None:
    """Create all tables, then seed default settings and bootstrap roles.

    .. note::

        In production the schema is managed by Alembic (``alembic upgrade
        head``).  ``create_all`` is retained for dev/test environments.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")

    from onair.database.seed import seed_default_settings, seed_roles

    seed_default_settings(engine)
    if config is not None:
        seed_roles(
            engine,
            admin_user_ids=config.bootstrap_admin_user_ids,
            artist_emails=config.bootstrap_artist_emails,
        )


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    Under the hood it calls :func:`asyncio.to_thread`, which schedules
    *func* on the default ``ThreadPoolExecutor``.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
