"""
onair.database.models — SQLAlchemy 2.0 Data Models
===================================================

Tables:
- listeners              — Registered listener profiles (auth subject → nickname)
- artists                — Artist registry; approved rows grant the artist role
- listener_roles         — Capability grants (e.g. ``admin``) per auth subject
- track_likes            — Insert-only like facts, one per (track, artist, identity)
- chat_messages          — Durable chat log; reactions flagged ``is_reaction``
- milestones             — Append-only, exactly-once activity stream
- settings               — Engagement tuning key/value store
- chat_rate_limit_events — Sliding-window chat flood control
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Client-side timestamp with microsecond resolution on every backend."""
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all OnAir ORM models."""


# ---------------------------------------------------------------------------
# Listeners — one row per registered listener
# ---------------------------------------------------------------------------
class Listener(Base):
    __tablename__ = "listeners"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    nickname: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    avatar_url: Mapped[str | None] = mapped_column(String(500), default=None)
    total_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    last_seen: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    messages: Mapped[list[ChatMessage]] = relationship(back_populates="listener")

    __table_args__ = (
        Index("ix_listeners_total_seconds", "total_seconds"),
    )

    def __repr__(self) -> str:
        return f"<Listener id={self.id} nickname={self.nickname!r}>"


# ---------------------------------------------------------------------------
# Artists — registry consulted for the artist role
# ---------------------------------------------------------------------------
class Artist(Base):
    __tablename__ = "artists"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    approved: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Artist id={self.id} name={self.name!r} approved={self.approved}>"


# ---------------------------------------------------------------------------
# ListenerRole — capability grants keyed by auth subject
# ---------------------------------------------------------------------------
class ListenerRole(Base):
    __tablename__ = "listener_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    role: Mapped[str] = mapped_column(String(30), nullable=False)
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_listener_roles_user_role"),
    )

    def __repr__(self) -> str:
        return f"<ListenerRole user={self.user_id!r} role={self.role!r}>"


# ---------------------------------------------------------------------------
# TrackLike — insert-only like facts
# ---------------------------------------------------------------------------
class TrackLike(Base):
    __tablename__ = "track_likes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    track_name: Mapped[str] = mapped_column(String(200), nullable=False)
    artist_name: Mapped[str] = mapped_column(String(200), nullable=False)
    identity_key: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "track_name", "artist_name", "identity_key",
            name="uq_track_likes_track_artist_identity",
        ),
        Index("ix_track_likes_track_artist", "track_name", "artist_name"),
    )

    def __repr__(self) -> str:
        return f"<TrackLike track={self.track_name!r} identity={self.identity_key!r}>"


# ---------------------------------------------------------------------------
# ChatMessage — durable chat log
# ---------------------------------------------------------------------------
class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    listener_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("listeners.id", ondelete="SET NULL"), nullable=True
    )
    guest_fingerprint: Mapped[str | None] = mapped_column(String(128), default=None)
    guest_name: Mapped[str | None] = mapped_column(String(100), default=None)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_reaction: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    listener: Mapped[Listener | None] = relationship(back_populates="messages")

    __table_args__ = (
        # Author is exactly one of listener or guest
        CheckConstraint(
            "(listener_id IS NOT NULL AND guest_fingerprint IS NULL AND guest_name IS NULL)"
            " OR (listener_id IS NULL AND guest_fingerprint IS NOT NULL"
            " AND guest_name IS NOT NULL)",
            name="ck_chat_messages_single_author",
        ),
        Index("ix_chat_messages_created", "created_at"),
        Index("ix_chat_messages_reaction_created", "is_reaction", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ChatMessage id={self.id} reaction={self.is_reaction}>"


# ---------------------------------------------------------------------------
# Milestone — append-only activity stream
# ---------------------------------------------------------------------------
class Milestone(Base):
    __tablename__ = "milestones"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    listener_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("listeners.id", ondelete="SET NULL"), nullable=True
    )
    # Snapshots so the feed renders without joins
    nickname: Mapped[str | None] = mapped_column(String(50), default=None)
    avatar_url: Mapped[str | None] = mapped_column(String(500), default=None)
    milestone_type: Mapped[str] = mapped_column(String(40), nullable=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    # type:subject[:threshold], one row per combination
    dedupe_key: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_milestones_created", "created_at"),
        Index("ix_milestones_type_created", "milestone_type", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Milestone id={self.id} type={self.milestone_type} key={self.dedupe_key!r}>"


# ---------------------------------------------------------------------------
# Setting — engagement tuning
# ---------------------------------------------------------------------------
class Setting(Base):
    """Key-value configuration store.

    Thresholds, chat limits and cache windows live here so they can be
    tuned without redeploying.  Values are stored as JSON strings; typed
    accessors live in :class:`~onair.engine.cache.SettingsCache`.
    """
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_settings_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Setting key={self.key!r} category={self.category!r}>"


# ---------------------------------------------------------------------------
# ChatRateLimitEvent — durable sliding-window state
# ---------------------------------------------------------------------------
class ChatRateLimitEvent(Base):
    __tablename__ = "chat_rate_limit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identity_key: Mapped[str] = mapped_column(String(128), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_chat_rate_limit_identity_ts", "identity_key", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<ChatRateLimitEvent identity={self.identity_key!r}>"
