"""
onair.services.like_service — Track-Like Ledger
================================================

One like per (track, artist, identity).  The unique constraint is the
source of truth for duplicates — the service never reads before writing
to decide.  Counts returned after a write are read in the same
transaction, so a listener never sees a count that excludes their own
like.

Milestone evaluation runs after commit and is best-effort.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from onair.constants import MAX_TRACK_FIELD_LENGTH
from onair.database.models import Milestone, TrackLike
from onair.engine.milestones import MilestoneContext, Trigger, evaluate
from onair.errors import ValidationError
from onair.services.leaderboard_service import check_track_rank_one
from onair.services.milestone_service import record_milestones

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from onair.engine.cache import SettingsCache
    from onair.engine.identity import Identity

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LikeState:
    likes: int
    user_liked: bool

    def to_dict(self) -> dict:
        return {"likes": self.likes, "userLiked": self.user_liked}


@dataclass(slots=True)
class LikeResult:
    likes: int
    already_liked: bool = False
    milestones: list[Milestone] = field(default_factory=list)


def normalize_track(track_name: str | None, artist_name: str | None) -> tuple[str, str]:
    """Trim and validate a (track, artist) pair.

    Raises ValidationError if either is empty or too long.
    """
    track = (track_name or "").strip()
    artist = (artist_name or "").strip()
    if not track or not artist:
        raise ValidationError("track and artist are required")
    if len(track) > MAX_TRACK_FIELD_LENGTH or len(artist) > MAX_TRACK_FIELD_LENGTH:
        raise ValidationError(
            f"track and artist must be at most {MAX_TRACK_FIELD_LENGTH} characters"
        )
    return track, artist


def count_likes(session: Session, track_name: str, artist_name: str) -> int:
    return session.scalar(
        select(func.count(TrackLike.id)).where(
            TrackLike.track_name == track_name,
            TrackLike.artist_name == artist_name,
        )
    ) or 0


def get_like_state(
    engine: Engine,
    track_name: str,
    artist_name: str,
    identity_key: str | None = None,
) -> LikeState:
    """Current like count, and whether *identity_key* has liked the track."""
    track, artist = normalize_track(track_name, artist_name)
    with Session(engine) as session:
        likes = count_likes(session, track, artist)
        user_liked = False
        if identity_key:
            user_liked = session.scalar(
                select(TrackLike.id).where(
                    TrackLike.track_name == track,
                    TrackLike.artist_name == artist,
                    TrackLike.identity_key == identity_key,
                )
            ) is not None
    return LikeState(likes=likes, user_liked=user_liked)


def add_like(
    engine: Engine,
    cache: SettingsCache,
    identity: Identity,
    track_name: str,
    artist_name: str,
) -> LikeResult:
    """Record a like for *identity*.

    Returns ``already_liked=True`` with the current count when the ledger
    already holds this like.  Otherwise returns the post-insert count and
    any milestones the like produced.
    """
    track, artist = normalize_track(track_name, artist_name)

    with Session(engine) as session:
        session.add(TrackLike(
            track_name=track,
            artist_name=artist,
            identity_key=identity.identity_key,
        ))
        try:
            session.flush()
        except IntegrityError:
            session.rollback()
            likes = count_likes(session, track, artist)
            logger.debug("Duplicate like on %s / %s by %s", track, artist, identity.identity_key)
            return LikeResult(likes=likes, already_liked=True)

        likes = count_likes(session, track, artist)
        session.commit()

    logger.info("Like recorded: %s / %s → %d", track, artist, likes)

    ctx = MilestoneContext(
        listener_id=identity.listener_id,
        track_name=track,
        artist_name=artist,
        like_count=likes,
    )
    milestones = record_milestones(
        engine, evaluate(Trigger.TRACK_LIKED, ctx, cache.thresholds())
    )
    milestones += check_track_rank_one(engine, cache)
    return LikeResult(likes=likes, milestones=milestones)
