"""
onair.services.listener_service — Listener Profiles & Listening Accrual
========================================================================

Sign-up/profile upsert keyed on the auth subject, and listening-time
reports that drive the listening-hours milestones.

Accrual uses a single ``UPDATE … SET total_seconds = total_seconds + n``
so concurrent reports from two tabs never lose time.  The pre-accrual
total is derived from the post-increment read rather than read up front.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from onair.constants import listener_level, listening_hours
from onair.database.models import Listener, Milestone, utcnow
from onair.engine.milestones import MilestoneContext, Trigger, evaluate
from onair.errors import ConflictError, NotFoundError, ValidationError
from onair.services.milestone_service import isoformat_utc, record_milestones

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from onair.engine.cache import SettingsCache

logger = logging.getLogger(__name__)

NICKNAME_MIN_LENGTH = 2
NICKNAME_MAX_LENGTH = 30


@dataclass(slots=True)
class UpsertResult:
    listener: Listener
    created: bool
    milestones: list[Milestone] = field(default_factory=list)


@dataclass(slots=True)
class AccrualResult:
    total_seconds: int
    milestones: list[Milestone] = field(default_factory=list)

    @property
    def hours(self) -> int:
        return listening_hours(self.total_seconds)


def listener_to_dict(listener: Listener) -> dict:
    return {
        "id": listener.id,
        "user_id": listener.user_id,
        "nickname": listener.nickname,
        "avatar_url": listener.avatar_url,
        "total_seconds": listener.total_seconds,
        "hours": listening_hours(listener.total_seconds),
        "level": listener_level(listener.total_seconds),
        "created_at": isoformat_utc(listener.created_at) if listener.created_at else None,
    }


def validate_nickname(nickname: str | None) -> str:
    nickname = (nickname or "").strip()
    if not NICKNAME_MIN_LENGTH <= len(nickname) <= NICKNAME_MAX_LENGTH:
        raise ValidationError(
            f"Nickname must be {NICKNAME_MIN_LENGTH}-{NICKNAME_MAX_LENGTH} characters"
        )
    return nickname


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------
def get_listener(engine: Engine, user_id: str) -> Listener:
    """Return the listener for *user_id*, or raise NotFoundError."""
    with Session(engine, expire_on_commit=False) as session:
        listener = session.scalar(select(Listener).where(Listener.user_id == user_id))
    if listener is None:
        raise NotFoundError(f"Listener {user_id} not found")
    return listener


def count_listeners(engine: Engine) -> int:
    with Session(engine) as session:
        return session.scalar(select(func.count(Listener.id))) or 0


def upsert_listener(
    engine: Engine,
    cache: SettingsCache,
    *,
    user_id: str,
    email: str,
    nickname: str,
    avatar_url: str | None = None,
) -> UpsertResult:
    """Create or update the profile owned by *user_id*.

    Raises ConflictError (``nickname_taken``) when another listener holds
    *nickname*.  First creation emits ``first_signup`` and samples the
    total-listener count.
    """
    nickname = validate_nickname(nickname)
    email = (email or "").strip()
    if not email:
        raise ValidationError("An email address is required")

    with Session(engine, expire_on_commit=False) as session:
        taken = session.scalar(
            select(Listener.id).where(
                Listener.nickname == nickname,
                Listener.user_id != user_id,
            )
        )
        if taken is not None:
            raise ConflictError("Nickname is already taken", code="nickname_taken")

        listener = session.scalar(select(Listener).where(Listener.user_id == user_id))
        created = listener is None
        if created:
            listener = Listener(user_id=user_id, email=email, nickname=nickname)
            session.add(listener)
        else:
            listener.email = email
            listener.nickname = nickname
        if avatar_url is not None:
            listener.avatar_url = avatar_url
        listener.last_seen = utcnow()

        try:
            session.commit()
        except IntegrityError as exc:
            # Lost a race for the nickname (or the profile itself)
            session.rollback()
            raise ConflictError("Nickname is already taken", code="nickname_taken") from exc

    result = UpsertResult(listener=listener, created=created)
    if created:
        logger.info("Listener signed up: %s (%s)", nickname, user_id)
        ctx = MilestoneContext(listener_id=listener.id)
        result.milestones = record_milestones(
            engine, evaluate(Trigger.LISTENER_SIGNED_UP, ctx, cache.thresholds())
        )
        result.milestones += sample_total_listeners(engine, cache)
    return result


def sample_total_listeners(engine: Engine, cache: SettingsCache) -> list[Milestone]:
    """Emit every total-listener threshold reached so far.  Best-effort."""
    try:
        count = count_listeners(engine)
    except Exception:
        logger.exception("Failed to count listeners for milestone sampling")
        return []
    ctx = MilestoneContext(listener_count=count)
    return record_milestones(
        engine, evaluate(Trigger.LISTENERS_SAMPLED, ctx, cache.thresholds())
    )


# ---------------------------------------------------------------------------
# Listening accrual
# ---------------------------------------------------------------------------
def add_listening_time(
    engine: Engine,
    cache: SettingsCache,
    user_id: str,
    seconds: int,
) -> AccrualResult:
    """Add *seconds* to the listener's total and evaluate hour thresholds."""
    max_seconds = cache.get_int("listening.max_report_seconds", 3600)
    if not isinstance(seconds, int) or not 1 <= seconds <= max_seconds:
        raise ValidationError(f"seconds must be between 1 and {max_seconds}")

    with Session(engine) as session:
        result = session.execute(
            update(Listener)
            .where(Listener.user_id == user_id)
            .values(
                total_seconds=Listener.total_seconds + seconds,
                last_seen=utcnow(),
            )
        )
        if result.rowcount == 0:
            session.rollback()
            raise NotFoundError(f"Listener {user_id} not found")

        row = session.execute(
            select(Listener.id, Listener.total_seconds).where(Listener.user_id == user_id)
        ).one()
        session.commit()

    new_total = row.total_seconds
    ctx = MilestoneContext(
        listener_id=row.id,
        old_seconds=new_total - seconds,
        new_seconds=new_total,
    )
    milestones = record_milestones(
        engine, evaluate(Trigger.LISTENING_ACCRUED, ctx, cache.thresholds())
    )
    return AccrualResult(total_seconds=new_total, milestones=milestones)
