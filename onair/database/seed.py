"""
onair.database.seed — Default Settings & Role Bootstrap
========================================================

Baseline settings seeded on first startup so every threshold and limit
has a value before anyone edits the table, plus the initial admin and
artist grants taken from ``config.yaml``.

Idempotent — only inserts rows that don't already exist.  Values edited
later are never overwritten and grants are never revoked here.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable

from sqlalchemy import Engine, func, select
from sqlalchemy.orm import Session

from onair.constants import (
    LISTENING_HOUR_THRESHOLDS,
    MAX_CHAT_MESSAGE_LENGTH,
    TOTAL_LISTENER_THRESHOLDS,
    TRACK_LIKE_THRESHOLDS,
)
from onair.database.models import Artist, ListenerRole, Setting

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


# ---------------------------------------------------------------------------
# Default settings catalogue
# ---------------------------------------------------------------------------
DEFAULT_SETTINGS: dict[str, tuple[object, str, str]] = {
    "milestones.listening_hour_thresholds": (
        list(LISTENING_HOUR_THRESHOLDS), "milestones",
        "Listening hours that each emit one listening_hours milestone",
    ),
    "milestones.track_like_thresholds": (
        list(TRACK_LIKE_THRESHOLDS), "milestones",
        "Exact like counts that emit track_milestone_likes",
    ),
    "milestones.total_listener_thresholds": (
        list(TOTAL_LISTENER_THRESHOLDS), "milestones",
        "Registered listener counts that emit total_listeners",
    ),
    "chat.max_message_length": (
        MAX_CHAT_MESSAGE_LENGTH, "chat", "Maximum characters per chat message",
    ),
    "chat.rate_limit_messages": (10, "chat", "Messages allowed per identity per window"),
    "chat.rate_limit_window_seconds": (30, "chat", "Chat flood-control window length"),
    "listening.max_report_seconds": (
        3600, "listening", "Largest listening-time report accepted in one call",
    ),
    "cache.likes_seconds": (30, "cache", "Shared-cache lifetime for like counts"),
    "cache.feed_seconds": (20, "cache", "Shared-cache lifetime for the activity feed"),
    "cache.leaderboard_seconds": (30, "cache", "Shared-cache lifetime for leaderboards"),
    "sampler.interval_seconds": (
        300, "sampler", "Seconds between total-listener / rank-one samples",
    ),
    "feed.default_limit": (30, "feed", "Milestones returned when no limit is given"),
}
"""Each entry maps ``key`` → ``(default_value, category, description)``."""


# ---------------------------------------------------------------------------
# Seeders
# ---------------------------------------------------------------------------
def seed_default_settings(engine: Engine) -> None:
    """Insert default settings that don't yet exist."""
    session = Session(engine)
    inserted = 0
    try:
        for key, (value, category, desc) in DEFAULT_SETTINGS.items():
            existing = session.get(Setting, key)
            if existing is None:
                session.add(Setting(
                    key=key,
                    value_json=json.dumps(value),
                    category=category,
                    description=desc,
                ))
                inserted += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if inserted:
        logger.info("Seeded %d default settings.", inserted)


def seed_roles(
    engine: Engine,
    *,
    admin_user_ids: Iterable[str] = (),
    artist_emails: Iterable[str] = (),
) -> None:
    """Grant bootstrap admin roles and approved-artist rows if missing."""
    with Session(engine) as session:
        granted = 0
        for user_id in admin_user_ids:
            exists = session.scalar(
                select(ListenerRole.id).where(
                    ListenerRole.user_id == user_id,
                    ListenerRole.role == ADMIN_ROLE,
                )
            )
            if exists is None:
                session.add(ListenerRole(user_id=user_id, role=ADMIN_ROLE))
                granted += 1

        for email in artist_emails:
            normalized = email.strip().lower()
            artist = session.scalar(
                select(Artist).where(func.lower(Artist.email) == normalized)
            )
            if artist is None:
                session.add(Artist(name=normalized, email=normalized, approved=True))
                granted += 1
            elif not artist.approved:
                artist.approved = True
                granted += 1

        session.commit()

    if granted:
        logger.info("Bootstrapped %d role grants from config.", granted)
