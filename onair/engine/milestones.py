"""
onair.engine.milestones — Milestone Rule Pipeline
==================================================

Handler-registry implementation of the milestone families.  Each trigger
maps to a pure handler that receives a :class:`MilestoneContext` and the
configured thresholds, and returns the candidates it would emit.

This module is pure calculation — no database I/O.  Exactly-once delivery
is the persistence layer's job: every candidate carries a ``dedupe_key``
and the ``milestones`` table holds it under a unique constraint.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from onair.constants import MilestoneType, listening_hours

logger = logging.getLogger(__name__)


class Trigger(enum.StrEnum):
    """State transitions the engine reacts to."""
    LISTENING_ACCRUED = "listening_accrued"
    TRACK_LIKED = "track_liked"
    LISTENER_SIGNED_UP = "listener_signed_up"
    LISTENERS_SAMPLED = "listeners_sampled"
    TRACK_RANKED = "track_ranked"


# ---------------------------------------------------------------------------
# Context & candidates
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MilestoneContext:
    """Snapshot of the state transition that may produce milestones.

    Parameters
    ----------
    listener_id : Registered listener behind the action (None for guests
        and system samples).
    old_seconds / new_seconds : Listening total before and after accrual.
    track_name / artist_name : Like subject.
    like_count : Read-after-write like count including this like.
    listener_count : Sampled number of registered listeners.
    is_strict_leader : True when the ranked track leads with no tie.
    """

    listener_id: int | None = None
    old_seconds: int = 0
    new_seconds: int = 0
    track_name: str | None = None
    artist_name: str | None = None
    like_count: int = 0
    listener_count: int = 0
    is_strict_leader: bool = False


@dataclass(frozen=True, slots=True)
class MilestoneCandidate:
    """A milestone the rules want to emit, not yet persisted."""

    milestone_type: MilestoneType
    dedupe_key: str
    metadata: dict = field(default_factory=dict)
    listener_id: int | None = None


@dataclass(frozen=True, slots=True)
class Thresholds:
    listening_hours: Sequence[int]
    track_likes: Sequence[int]
    total_listeners: Sequence[int]


def track_subject(track_name: str, artist_name: str) -> str:
    return f"{track_name}|{artist_name}"


def _track_metadata(ctx: MilestoneContext) -> dict:
    return {"track_name": ctx.track_name, "artist_name": ctx.artist_name}


# ---------------------------------------------------------------------------
# Handlers — pure functions (ctx, thresholds) → candidates
# ---------------------------------------------------------------------------
def _listening_hours(ctx: MilestoneContext, th: Thresholds) -> list[MilestoneCandidate]:
    """Every threshold crossed by this accrual: old_hours < t <= new_hours."""
    if ctx.listener_id is None:
        return []
    old_hours = listening_hours(ctx.old_seconds)
    new_hours = listening_hours(ctx.new_seconds)
    return [
        MilestoneCandidate(
            milestone_type=MilestoneType.LISTENING_HOURS,
            dedupe_key=f"{MilestoneType.LISTENING_HOURS}:{ctx.listener_id}:{t}",
            metadata={"hours": t},
            listener_id=ctx.listener_id,
        )
        for t in sorted(th.listening_hours)
        if old_hours < t <= new_hours
    ]


def _track_liked(ctx: MilestoneContext, th: Thresholds) -> list[MilestoneCandidate]:
    """Per-like events, first-like, and exact-count like thresholds."""
    if ctx.track_name is None or ctx.artist_name is None:
        return []
    subject = track_subject(ctx.track_name, ctx.artist_name)
    out: list[MilestoneCandidate] = []

    # Guest-attributed events are suppressed: the feed shows a nickname
    if ctx.listener_id is not None:
        out.append(MilestoneCandidate(
            milestone_type=MilestoneType.TRACK_LIKED,
            dedupe_key=f"{MilestoneType.TRACK_LIKED}:{ctx.listener_id}:{subject}",
            metadata=_track_metadata(ctx),
            listener_id=ctx.listener_id,
        ))
        if ctx.like_count == 1:
            out.append(MilestoneCandidate(
                milestone_type=MilestoneType.TRACK_FIRST_LIKE,
                dedupe_key=f"{MilestoneType.TRACK_FIRST_LIKE}:{subject}",
                metadata=_track_metadata(ctx),
                listener_id=ctx.listener_id,
            ))

    # Exact equality: a burst that skips a value never emits it
    if ctx.like_count in th.track_likes:
        out.append(MilestoneCandidate(
            milestone_type=MilestoneType.TRACK_MILESTONE_LIKES,
            dedupe_key=(
                f"{MilestoneType.TRACK_MILESTONE_LIKES}:{subject}:{ctx.like_count}"
            ),
            metadata={**_track_metadata(ctx), "like_count": ctx.like_count},
        ))
    return out


def _signed_up(ctx: MilestoneContext, th: Thresholds) -> list[MilestoneCandidate]:
    if ctx.listener_id is None:
        return []
    return [MilestoneCandidate(
        milestone_type=MilestoneType.FIRST_SIGNUP,
        dedupe_key=f"{MilestoneType.FIRST_SIGNUP}:{ctx.listener_id}",
        listener_id=ctx.listener_id,
    )]


def _listeners_sampled(ctx: MilestoneContext, th: Thresholds) -> list[MilestoneCandidate]:
    """Every listener-count threshold reached so far (dedupe drops repeats)."""
    return [
        MilestoneCandidate(
            milestone_type=MilestoneType.TOTAL_LISTENERS,
            dedupe_key=f"{MilestoneType.TOTAL_LISTENERS}:station:{t}",
            metadata={"count": t},
        )
        for t in sorted(th.total_listeners)
        if t <= ctx.listener_count
    ]


def _track_ranked(ctx: MilestoneContext, th: Thresholds) -> list[MilestoneCandidate]:
    if (
        ctx.track_name is None
        or ctx.artist_name is None
        or not ctx.is_strict_leader
        or ctx.like_count < 1
    ):
        return []
    subject = track_subject(ctx.track_name, ctx.artist_name)
    return [MilestoneCandidate(
        milestone_type=MilestoneType.TRACK_RANK_ONE,
        dedupe_key=f"{MilestoneType.TRACK_RANK_ONE}:{subject}",
        metadata={**_track_metadata(ctx), "like_count": ctx.like_count},
    )]


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------
TRIGGER_HANDLERS: dict[str, Callable[[MilestoneContext, Thresholds], list[MilestoneCandidate]]] = {
    Trigger.LISTENING_ACCRUED: _listening_hours,
    Trigger.TRACK_LIKED: _track_liked,
    Trigger.LISTENER_SIGNED_UP: _signed_up,
    Trigger.LISTENERS_SAMPLED: _listeners_sampled,
    Trigger.TRACK_RANKED: _track_ranked,
}


def evaluate(
    trigger: Trigger,
    ctx: MilestoneContext,
    thresholds: Thresholds,
) -> list[MilestoneCandidate]:
    """Return the milestone candidates *trigger* produces for *ctx*."""
    handler = TRIGGER_HANDLERS.get(trigger)
    if handler is None:
        logger.warning("No milestone handler for trigger %s", trigger)
        return []
    candidates = handler(ctx, thresholds)
    if candidates:
        logger.debug(
            "Trigger %s produced %d milestone candidates", trigger, len(candidates),
        )
    return candidates
