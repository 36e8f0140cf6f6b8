"""
onair.api.main — FastAPI application entry point
=================================================

Run with::

    uvicorn onair.api.main:app --reload --port 8000
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

load_dotenv()

from onair.api.deps import (  # noqa: E402
    get_chat_hub,
    get_config,
    get_engine,
    get_settings_cache,
)
from onair.api.routes.activity import router as activity_router  # noqa: E402
from onair.api.routes.chat import router as chat_router  # noqa: E402
from onair.api.routes.likes import router as likes_router  # noqa: E402
from onair.api.routes.listeners import router as listeners_router  # noqa: E402
from onair.api.routes.station import router as station_router  # noqa: E402
from onair.database.engine import init_db  # noqa: E402
from onair.engine.cache import SettingsCache  # noqa: E402
from onair.services.broadcast import ChatHub  # noqa: E402
from onair.services.sampler import MilestoneSampler  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle.

    Ensures the schema and defaults, warms the settings cache, attaches
    the chat hub to this loop, starts the PG LISTEN thread (PostgreSQL
    only) and the milestone sampler.
    """
    engine = get_engine()
    init_db(engine, get_config())

    cache = get_settings_cache()
    hub = get_chat_hub()
    hub.bind_loop(asyncio.get_running_loop())

    if engine.dialect.name == "postgresql":
        cache.start_listener(on_chat=hub.deliver_threadsafe)

    sampler = MilestoneSampler(engine, cache)
    sampler.start()
    logger.info("OnAir API started — engine ready (%s)", engine.url.database)
    yield

    logger.info("OnAir API shutting down")
    await sampler.stop()
    cache.stop_listener()


app = FastAPI(
    title="OnAir Listener Engagement API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OperationalError)
async def database_unavailable(request: Request, exc: OperationalError):
    logger.error("Database unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Service temporarily unavailable"},
        headers={"Retry-After": "5"},
    )


# Mount routers
app.include_router(likes_router, prefix="/api")
app.include_router(chat_router, prefix="/api")
app.include_router(activity_router, prefix="/api")
app.include_router(listeners_router, prefix="/api")
app.include_router(station_router, prefix="/api")


@app.get("/api/health")
def health(
    hub: ChatHub = Depends(get_chat_hub),
    cache: SettingsCache = Depends(get_settings_cache),
):
    """Liveness plus chat fan-out state (the NOTIFY listener runs on PostgreSQL only)."""
    return {
        "status": "ok",
        "chat_subscribers": hub.subscriber_count,
        "notify_listener_healthy": cache.listener_healthy,
    }
