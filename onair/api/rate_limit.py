"""
onair.api.rate_limit — Per-Identity Chat Flood Control
=======================================================

Sliding-window counter keyed by identity key (auth subject or guest
fingerprint), stored in ``chat_rate_limit_events`` so the window holds
across processes and restarts.  Window size and message budget are read
from the settings cache on every check.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import Engine, delete, func, select
from sqlalchemy.orm import Session

from onair.database.models import ChatRateLimitEvent
from onair.engine.cache import SettingsCache
from onair.errors import RateLimitedError

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT = 10
DEFAULT_WINDOW_SECONDS = 30


class ChatRateLimiter:
    """Sliding-window limiter; DB-backed only."""

    def __init__(
        self,
        max_messages: int = DEFAULT_RATE_LIMIT,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        *,
        engine: Engine,
    ) -> None:
        self.max_messages = max_messages
        self.window_seconds = window_seconds
        self.engine = engine

    @classmethod
    def from_settings(cls, engine: Engine, cache: SettingsCache) -> ChatRateLimiter:
        return cls(
            max_messages=cache.get_int("chat.rate_limit_messages", DEFAULT_RATE_LIMIT),
            window_seconds=cache.get_int(
                "chat.rate_limit_window_seconds", DEFAULT_WINDOW_SECONDS,
            ),
            engine=engine,
        )

    @staticmethod
    def _normalize_dt(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def _prune(self, session: Session, identity_key: str, cutoff: datetime) -> None:
        session.execute(
            delete(ChatRateLimitEvent).where(
                ChatRateLimitEvent.identity_key == identity_key,
                ChatRateLimitEvent.timestamp < cutoff,
            )
        )

    def check(self, identity_key: str) -> tuple[bool, dict[str, Any]]:
        """Return ``(allowed, info)``; info has remaining, reset and limit."""
        now = datetime.now(UTC)
        cutoff = now - timedelta(seconds=self.window_seconds)

        with Session(self.engine) as session:
            self._prune(session, identity_key, cutoff)
            timestamps = session.scalars(
                select(ChatRateLimitEvent.timestamp)
                .where(ChatRateLimitEvent.identity_key == identity_key)
                .order_by(ChatRateLimitEvent.timestamp.asc())
            ).all()
            session.commit()

        count = len(timestamps)
        if count >= self.max_messages:
            oldest = self._normalize_dt(timestamps[0])
            reset = (oldest + timedelta(seconds=self.window_seconds) - now).total_seconds()
            return False, {
                "remaining": 0,
                "reset": max(1, int(reset) + 1),
                "limit": self.max_messages,
            }

        return True, {
            "remaining": self.max_messages - count,
            "reset": self.window_seconds,
            "limit": self.max_messages,
        }

    def record(self, identity_key: str) -> int:
        """Record one message; return how many remain in the window."""
        with Session(self.engine) as session:
            session.add(ChatRateLimitEvent(identity_key=identity_key))
            session.flush()
            count = session.scalar(
                select(func.count(ChatRateLimitEvent.id)).where(
                    ChatRateLimitEvent.identity_key == identity_key
                )
            ) or 0
            session.commit()
        return max(0, self.max_messages - count)

    def enforce(self, identity_key: str) -> None:
        """Raise RateLimitedError if *identity_key* is over budget."""
        allowed, info = self.check(identity_key)
        if not allowed:
            logger.warning(
                "Chat rate limit exceeded for %s: %d messages in %ds",
                identity_key, self.max_messages, self.window_seconds,
            )
            raise RateLimitedError(
                f"Too many messages: {self.max_messages} per {self.window_seconds}s",
                retry_after=info["reset"],
            )
