"""Create profiles, content and moderation tables.

Revision ID: 20261018_create_moderation_schema
Revises:
Create Date: 2026-10-18

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "20261018_create_moderation_schema"
down_revision: str | None = None
branch_labels = None
depends_on = None

_UUID = postgresql.UUID(as_uuid=True)
_JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False)


def upgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)

    if "profiles" in inspector.get_table_names():
        return

    op.create_table(
        "profiles",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("username", sa.String(length=150), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="user"),
        sa.Column("moderation_status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("warn_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("suspension_until", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.CheckConstraint("warn_count >= 0", name="ck_profiles_warn_count_non_negative"),
        sa.CheckConstraint(
            "moderation_status IN ('active', 'warned', 'suspended', 'banned')",
            name="ck_profiles_moderation_status",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_profiles_username", "profiles", ["username"], unique=True)
    op.create_index("ix_profiles_moderation_status", "profiles", ["moderation_status"])

    op.create_table(
        "catches",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("user_id", _UUID, nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("species", sa.String(length=120), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_catches_user_id", "catches", ["user_id"])
    op.create_index("ix_catches_deleted_at", "catches", ["deleted_at"])

    op.create_table(
        "catch_comments",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("catch_id", _UUID, nullable=False),
        sa.Column("user_id", _UUID, nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        _created_at(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["catch_id"], ["catches.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_catch_comments_catch_id", "catch_comments", ["catch_id"])
    op.create_index("ix_catch_comments_user_id", "catch_comments", ["user_id"])
    op.create_index("ix_catch_comments_deleted_at", "catch_comments", ["deleted_at"])

    op.create_table(
        "catch_reactions",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("catch_id", _UUID, nullable=False),
        sa.Column("user_id", _UUID, nullable=False),
        sa.Column("reaction", sa.String(length=16), nullable=False, server_default="like"),
        _created_at(),
        sa.ForeignKeyConstraint(["catch_id"], ["catches.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("catch_id", "user_id", name="uq_catch_reactions_catch_user"),
    )
    op.create_index("ix_catch_reactions_catch_id", "catch_reactions", ["catch_id"])
    op.create_index("ix_catch_reactions_user_id", "catch_reactions", ["user_id"])

    op.create_table(
        "catch_ratings",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("catch_id", _UUID, nullable=False),
        sa.Column("user_id", _UUID, nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["catch_id"], ["catches.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("catch_id", "user_id", name="uq_catch_ratings_catch_user"),
        sa.CheckConstraint("rating BETWEEN 1 AND 10", name="ck_catch_ratings_range"),
    )
    op.create_index("ix_catch_ratings_catch_id", "catch_ratings", ["catch_id"])
    op.create_index("ix_catch_ratings_user_id", "catch_ratings", ["user_id"])

    op.create_table(
        "profile_follows",
        sa.Column("follower_id", _UUID, nullable=False),
        sa.Column("following_id", _UUID, nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["follower_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["following_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("follower_id", "following_id"),
    )

    op.create_table(
        "user_warnings",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("user_id", _UUID, nullable=False),
        sa.Column("issued_by", _UUID, nullable=True),
        sa.Column("severity", sa.String(length=32), nullable=False, server_default="warning"),
        sa.Column("duration_hours", sa.Integer(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("dedupe_key", sa.String(length=128), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["issued_by"], ["profiles.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("dedupe_key"),
        sa.CheckConstraint(
            "(severity = 'temporary_suspension' AND duration_hours > 0) "
            "OR (severity <> 'temporary_suspension' AND duration_hours IS NULL)",
            name="ck_user_warnings_duration",
        ),
    )
    op.create_index("ix_user_warnings_user_id", "user_warnings", ["user_id"])
    op.create_index("ix_user_warnings_created_at", "user_warnings", ["created_at"])

    op.create_table(
        "moderation_log",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("admin_id", _UUID, nullable=True),
        sa.Column("target_type", sa.String(length=16), nullable=False),
        sa.Column("target_id", sa.String(length=64), nullable=False),
        sa.Column("subject_user_id", _UUID, nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("metadata", _JSON, nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["admin_id"], ["profiles.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["subject_user_id"], ["profiles.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_moderation_log_action", "moderation_log", ["action"])
    op.create_index("ix_moderation_log_admin_id", "moderation_log", ["admin_id"])
    op.create_index("ix_moderation_log_target_id", "moderation_log", ["target_id"])
    op.create_index("ix_moderation_log_subject_user_id", "moderation_log", ["subject_user_id"])
    op.create_index("ix_moderation_log_created_at", "moderation_log", ["created_at"])

    op.create_table(
        "reports",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("reporter_id", _UUID, nullable=False),
        sa.Column("target_type", sa.String(length=16), nullable=False),
        sa.Column("target_id", _UUID, nullable=False),
        sa.Column("reason", sa.String(length=120), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="open"),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", _UUID, nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["reporter_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["reviewed_by"], ["profiles.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_reports_reporter_id", "reports", ["reporter_id"])
    op.create_index("ix_reports_target_type", "reports", ["target_type"])
    op.create_index("ix_reports_target_id", "reports", ["target_id"])
    op.create_index("ix_reports_status", "reports", ["status"])
    op.create_index("ix_reports_created_at", "reports", ["created_at"])

    op.create_table(
        "rate_limit_windows",
        sa.Column("user_id", _UUID, nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("window_start", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "action"),
    )
    op.create_index("ix_rate_limit_windows_window_start", "rate_limit_windows", ["window_start"])

    op.create_table(
        "notifications",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("recipient_id", _UUID, nullable=False),
        sa.Column("actor_id", _UUID, nullable=True),
        sa.Column("type", sa.String(length=100), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("catch_id", _UUID, nullable=True),
        sa.Column("comment_id", _UUID, nullable=True),
        sa.Column("extra_data", _JSON, nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.ForeignKeyConstraint(["recipient_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["actor_id"], ["profiles.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
    op.create_index("ix_notifications_actor_id", "notifications", ["actor_id"])


def downgrade() -> None:
    for table in (
        "notifications",
        "rate_limit_windows",
        "reports",
        "moderation_log",
        "user_warnings",
        "profile_follows",
        "catch_ratings",
        "catch_reactions",
        "catch_comments",
        "catches",
        "profiles",
    ):
        op.drop_table(table)
