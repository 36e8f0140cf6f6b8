"""
onair.services.milestone_service — Milestone Persistence
=========================================================

Writes the candidates produced by :mod:`onair.engine.milestones`.

Exactly-once is enforced by the unique ``dedupe_key``: each candidate is
inserted inside its own SAVEPOINT and a unique violation simply means the
milestone already exists.  Recording is best-effort — it runs after the
primary write has committed and never raises to that caller.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from onair.database.models import Listener, Milestone
from onair.engine.milestones import MilestoneCandidate

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def isoformat_utc(value: datetime) -> str:
    """ISO-8601 with an explicit offset; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()


def milestone_to_dict(milestone: Milestone) -> dict:
    return {
        "id": milestone.id,
        "listener_id": milestone.listener_id,
        "nickname": milestone.nickname,
        "avatar_url": milestone.avatar_url,
        "milestone_type": milestone.milestone_type,
        "metadata": milestone.metadata_ or {},
        "created_at": isoformat_utc(milestone.created_at),
    }


def insert_milestones(
    session: Session,
    candidates: Sequence[MilestoneCandidate],
) -> list[Milestone]:
    """Insert *candidates* in *session*, skipping ones already recorded.

    The caller owns the outer transaction.
    """
    created: list[Milestone] = []
    snapshots: dict[int, Listener | None] = {}

    for candidate in candidates:
        nickname = avatar_url = None
        if candidate.listener_id is not None:
            if candidate.listener_id not in snapshots:
                snapshots[candidate.listener_id] = session.get(
                    Listener, candidate.listener_id
                )
            listener = snapshots[candidate.listener_id]
            if listener is not None:
                nickname, avatar_url = listener.nickname, listener.avatar_url

        row = Milestone(
            listener_id=candidate.listener_id,
            nickname=nickname,
            avatar_url=avatar_url,
            milestone_type=str(candidate.milestone_type),
            metadata_=dict(candidate.metadata) or None,
            dedupe_key=candidate.dedupe_key,
        )
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(row)
                session.flush()
        except IntegrityError:
            # Already emitted; the SAVEPOINT was rolled back.
            logger.debug("Milestone %s already recorded", candidate.dedupe_key)
            continue
        created.append(row)

    return created


def record_milestones(
    engine: Engine,
    candidates: Sequence[MilestoneCandidate],
) -> list[Milestone]:
    """Persist *candidates* in a fresh transaction and return the new rows.

    Never raises: a failure here is logged and the primary action that
    produced the candidates stands.
    """
    if not candidates:
        return []
    try:
        with Session(engine, expire_on_commit=False) as session:
            created = insert_milestones(session, candidates)
            session.commit()
    except Exception:
        logger.exception(
            "Failed to record %d milestone candidates (%s)",
            len(candidates), ", ".join(c.dedupe_key for c in candidates),
        )
        return []

    for row in created:
        logger.info("Milestone recorded: %s", row.dedupe_key)
    return created
