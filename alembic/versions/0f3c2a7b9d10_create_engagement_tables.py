"""Create listener engagement tables

Revision ID: 0f3c2a7b9d10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0f3c2a7b9d10"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at(name: str = "created_at", nullable: bool = True) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), nullable=nullable, server_default=sa.func.now(),
    )


def upgrade() -> None:
    """Listeners, role store, likes, chat, milestones, settings, flood control."""
    op.create_table(
        "listeners",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), nullable=False, unique=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("nickname", sa.String(50), nullable=False, unique=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("total_seconds", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_listeners_total_seconds", "listeners", ["total_seconds"])

    op.create_table(
        "artists",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("approved", sa.Boolean(), server_default=sa.false()),
        _created_at(),
    )

    op.create_table(
        "listener_roles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("role", sa.String(30), nullable=False),
        _created_at("granted_at"),
        sa.UniqueConstraint("user_id", "role", name="uq_listener_roles_user_role"),
    )

    op.create_table(
        "track_likes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("track_name", sa.String(200), nullable=False),
        sa.Column("artist_name", sa.String(200), nullable=False),
        sa.Column("identity_key", sa.String(128), nullable=False),
        _created_at(),
        sa.UniqueConstraint(
            "track_name", "artist_name", "identity_key",
            name="uq_track_likes_track_artist_identity",
        ),
    )
    op.create_index(
        "ix_track_likes_track_artist", "track_likes", ["track_name", "artist_name"],
    )

    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "listener_id", sa.Integer(),
            sa.ForeignKey("listeners.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("guest_fingerprint", sa.String(128), nullable=True),
        sa.Column("guest_name", sa.String(100), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_reaction", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.CheckConstraint(
            "(listener_id IS NOT NULL AND guest_fingerprint IS NULL AND guest_name IS NULL)"
            " OR (listener_id IS NULL AND guest_fingerprint IS NOT NULL"
            " AND guest_name IS NOT NULL)",
            name="ck_chat_messages_single_author",
        ),
    )
    op.create_index("ix_chat_messages_created", "chat_messages", ["created_at"])
    op.create_index(
        "ix_chat_messages_reaction_created", "chat_messages", ["is_reaction", "created_at"],
    )

    op.create_table(
        "milestones",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "listener_id", sa.Integer(),
            sa.ForeignKey("listeners.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("nickname", sa.String(50), nullable=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("milestone_type", sa.String(40), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("dedupe_key", sa.String(512), nullable=False, unique=True),
        _created_at(),
    )
    op.create_index("ix_milestones_created", "milestones", ["created_at"])
    op.create_index(
        "ix_milestones_type_created", "milestones", ["milestone_type", "created_at"],
    )

    op.create_table(
        "settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value_json", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at("updated_at"),
    )
    op.create_index("ix_settings_category", "settings", ["category"])

    op.create_table(
        "chat_rate_limit_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("identity_key", sa.String(128), nullable=False),
        _created_at("timestamp", nullable=False),
    )
    op.create_index(
        "ix_chat_rate_limit_identity_ts",
        "chat_rate_limit_events",
        ["identity_key", "timestamp"],
    )


def downgrade() -> None:
    op.drop_index("ix_chat_rate_limit_identity_ts", table_name="chat_rate_limit_events")
    op.drop_table("chat_rate_limit_events")
    op.drop_index("ix_settings_category", table_name="settings")
    op.drop_table("settings")
    op.drop_index("ix_milestones_type_created", table_name="milestones")
    op.drop_index("ix_milestones_created", table_name="milestones")
    op.drop_table("milestones")
    op.drop_index("ix_chat_messages_reaction_created", table_name="chat_messages")
    op.drop_index("ix_chat_messages_created", table_name="chat_messages")
    op.drop_table("chat_messages")
    op.drop_index("ix_track_likes_track_artist", table_name="track_likes")
    op.drop_table("track_likes")
    op.drop_table("listener_roles")
    op.drop_table("artists")
    op.drop_index("ix_listeners_total_seconds", table_name="listeners")
    op.drop_table("listeners")
