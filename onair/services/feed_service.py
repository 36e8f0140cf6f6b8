"""
onair.services.feed_service — Activity Feed
============================================

Cursor-based reader over the milestone stream.

Without a cursor the newest rows come back newest first.  With a cursor
only rows strictly newer than it come back, oldest first, so a poller
that keeps the newest ``created_at`` as its cursor never skips or
repeats a row.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from onair.database.models import Milestone
from onair.errors import ValidationError
from onair.services.milestone_service import milestone_to_dict

if TYPE_CHECKING:
    from sqlalchemy import Engine

DEFAULT_FEED_LIMIT = 30
MAX_FEED_LIMIT = 100


def parse_cursor(since: str | None) -> datetime | None:
    """Parse an ISO-8601 cursor.  Naive values are taken as UTC."""
    if since is None or not since.strip():
        return None
    raw = since.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"Invalid cursor: {since!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def get_feed(
    engine: Engine,
    since: datetime | None = None,
    limit: int = DEFAULT_FEED_LIMIT,
) -> list[dict]:
    limit = max(1, min(limit, MAX_FEED_LIMIT))
    query = select(Milestone)
    if since is None:
        query = query.order_by(Milestone.created_at.desc(), Milestone.id.desc())
    else:
        query = query.where(Milestone.created_at > since).order_by(
            Milestone.created_at.asc(), Milestone.id.asc()
        )

    with Session(engine) as session:
        rows = session.scalars(query.limit(limit)).all()
        return [milestone_to_dict(row) for row in rows]
