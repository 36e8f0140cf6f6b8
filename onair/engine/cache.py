"""
onair.engine.cache — Settings Cache with PG LISTEN/NOTIFY
==========================================================

Engagement tuning (thresholds, chat limits, cache windows) is cached in
memory and reloaded when a ``NOTIFY onair_settings`` arrives.  The same
LISTEN connection carries the ``onair_chat`` channel, whose JSON payloads
are handed to the chat hub so every API process fans out every message.

The cache is read-only for tuning values.  Nothing on a write path
("was this like already recorded?") ever consults it.
"""

from __future__ import annotations

import json
import logging
import random
import select as _select
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from onair.constants import (
    LISTENING_HOUR_THRESHOLDS,
    TOTAL_LISTENER_THRESHOLDS,
    TRACK_LIKE_THRESHOLDS,
)
from onair.database.models import Setting
from onair.engine.milestones import Thresholds

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

# PG channel for settings invalidation
SETTINGS_NOTIFY_CHANNEL = "onair_settings"

# PG channel carrying chat fan-out payloads
CHAT_NOTIFY_CHANNEL = "onair_chat"

# PG caps NOTIFY payloads at 8000 bytes
MAX_NOTIFY_PAYLOAD_BYTES = 7900


class SettingsCache:
    """Thread-safe in-memory cache of the ``settings`` table.

    Usage:
        cache = SettingsCache(engine)
        cache.load_all()
        cache.start_listener(on_chat=hub.deliver_threadsafe)

        limit = cache.get_int("chat.max_message_length", 500)
        thresholds = cache.thresholds()
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        self._settings: dict[str, Any] = {}

        self._listener_healthy: bool = False
        self._listener_failed: bool = False
        self._listener_thread: threading.Thread | None = None
        self._shutdown_event = threading.Event()
        self._on_chat: Callable[[dict], None] | None = None

    # -------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------
    def load_all(self) -> None:
        """Load all settings from the DB.  Call on startup."""
        with Session(self._engine) as session:
            rows = session.scalars(select(Setting)).all()
            parsed: dict[str, Any] = {}
            for row in rows:
                try:
                    parsed[row.key] = json.loads(row.value_json)
                except (json.JSONDecodeError, TypeError):
                    parsed[row.key] = row.value_json

        with self._lock:
            self._settings = parsed
        logger.info("SettingsCache loaded: %d settings", len(parsed))

    # -------------------------------------------------------------------
    # Typed accessors (thread-safe)
    # -------------------------------------------------------------------
    def get_setting(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._settings.get(key, default)

    def get_int(self, key: str, default: int = 0) -> int:
        val = self.get_setting(key)
        if val is None:
            return default
        try:
            return int(val)
        except (TypeError, ValueError):
            return default

    def get_int_list(self, key: str, default: tuple[int, ...]) -> tuple[int, ...]:
        """Parse a JSON list of ints, falling back to *default* if malformed."""
        val = self.get_setting(key)
        if not isinstance(val, list):
            return default
        try:
            return tuple(sorted(int(v) for v in val))
        except (TypeError, ValueError):
            logger.warning("Malformed threshold list for %s — using defaults", key)
            return default

    def thresholds(self) -> Thresholds:
        return Thresholds(
            listening_hours=self.get_int_list(
                "milestones.listening_hour_thresholds", LISTENING_HOUR_THRESHOLDS,
            ),
            track_likes=self.get_int_list(
                "milestones.track_like_thresholds", TRACK_LIKE_THRESHOLDS,
            ),
            total_listeners=self.get_int_list(
                "milestones.total_listener_thresholds", TOTAL_LISTENER_THRESHOLDS,
            ),
        )

    # -------------------------------------------------------------------
    # NOTIFY handling
    # -------------------------------------------------------------------
    def handle_notify(self, channel: str, payload: str) -> None:
        """Route one NOTIFY to a settings reload or the chat callback."""
        if channel == SETTINGS_NOTIFY_CHANNEL:
            logger.info("Settings cache invalidated (%s)", payload or "all")
            self.load_all()
            return

        if channel == CHAT_NOTIFY_CHANNEL:
            try:
                data = json.loads(payload)
            except (json.JSONDecodeError, TypeError):
                logger.warning("Invalid chat payload (not JSON): %s", payload)
                return
            if self._on_chat is None:
                logger.debug("Chat NOTIFY received with no hub attached")
                return
            self._on_chat(data)
            return

        logger.warning("Unknown NOTIFY channel: %s — ignoring", channel)

    @property
    def listener_healthy(self) -> bool:
        """Return True if the LISTEN thread is alive and connected."""
        return self._listener_healthy and not self._listener_failed

    def stop_listener(self) -> None:
        """Signal the listener thread to stop and wait for it to exit."""
        self._shutdown_event.set()
        if self._listener_thread is not None and self._listener_thread.is_alive():
            self._listener_thread.join(timeout=5)
            logger.info("PG NOTIFY listener thread stopped")

    def start_listener(self, on_chat: Callable[[dict], None] | None = None) -> None:
        """Start a background thread that LISTENs on both PG channels.

        Uses a raw psycopg2 connection + select() so the asyncio loop is
        never blocked.  Reconnects with exponential backoff + jitter and
        gives up after a bounded number of attempts.
        """
        import psycopg2

        self._on_chat = on_chat
        max_backoff = 60.0
        base_backoff = 1.0
        max_reconnect_attempts = 10

        def _listen_thread() -> None:
            raw_url = self._engine.url.render_as_string(hide_password=False)
            dsn = raw_url.replace("postgresql+psycopg2://", "postgresql://")
            attempt = 0

            while not self._shutdown_event.is_set():
                conn = None
                try:
                    conn = psycopg2.connect(dsn)
                    conn.set_isolation_level(0)  # autocommit
                    cur = conn.cursor()
                    cur.execute(f"LISTEN {SETTINGS_NOTIFY_CHANNEL};")
                    cur.execute(f"LISTEN {CHAT_NOTIFY_CHANNEL};")
                    logger.info(
                        "PG LISTEN started on channels '%s', '%s'",
                        SETTINGS_NOTIFY_CHANNEL, CHAT_NOTIFY_CHANNEL,
                    )
                    attempt = 0
                    self._listener_healthy = True

                    while not self._shutdown_event.is_set():
                        if _select.select([conn], [], [], 5.0) == ([], [], []):
                            continue
                        conn.poll()
                        while conn.notifies:
                            notify = conn.notifies.pop(0)
                            try:
                                self.handle_notify(notify.channel, notify.payload or "")
                            except Exception:
                                logger.exception(
                                    "Error handling NOTIFY on '%s'", notify.channel,
                                )

                except Exception:
                    self._listener_healthy = False
                    attempt += 1
                    if attempt >= max_reconnect_attempts:
                        logger.critical(
                            "PG LISTEN exhausted %d retries. "
                            "Chat fan-out across processes disabled.",
                            max_reconnect_attempts,
                        )
                        self._listener_failed = True
                        break

                    backoff = min(base_backoff * (2 ** (attempt - 1)), max_backoff)
                    wait = backoff + random.uniform(0, backoff * 0.5)
                    logger.exception(
                        "PG LISTEN connection lost (attempt %d/%d). "
                        "Reconnecting in %.1fs…",
                        attempt, max_reconnect_attempts, wait,
                    )
                    if self._shutdown_event.wait(timeout=wait):
                        break
                finally:
                    if conn is not None:
                        try:
                            conn.close()
                        except Exception:
                            logger.debug("Error closing LISTEN connection", exc_info=True)

        thread = threading.Thread(target=_listen_thread, daemon=True, name="pg-notify-listener")
        self._listener_thread = thread
        thread.start()
        logger.info("PG NOTIFY listener thread started")


def send_chat_notify(engine: Engine, payload: dict) -> None:
    """Publish a chat payload on the ``onair_chat`` channel.

    Raises ValueError if the serialized payload exceeds the NOTIFY limit.
    """
    raw = json.dumps(payload, default=str, ensure_ascii=False)
    if len(raw.encode("utf-8")) > MAX_NOTIFY_PAYLOAD_BYTES:
        raise ValueError("Chat payload too large for NOTIFY")
    with engine.connect() as conn:
        conn.execute(
            text("SELECT pg_notify(:channel, :payload)"),
            {"channel": CHAT_NOTIFY_CHANNEL, "payload": raw},
        )
        conn.commit()
