"""Add user-to-user blocks.

Revision ID: 20261018_add_profile_blocks
Revises: 20261018_create_moderation_schema
Create Date: 2026-10-18

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "20261018_add_profile_blocks"
down_revision: str | None = "20261018_create_moderation_schema"
branch_labels = None
depends_on = None

_UUID = postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    bind = op.get_bind()
    if "profile_blocks" in inspect(bind).get_table_names():
        return

    op.create_table(
        "profile_blocks",
        sa.Column("blocker_id", _UUID, nullable=False),
        sa.Column("blocked_id", _UUID, nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.ForeignKeyConstraint(["blocker_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["blocked_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("blocker_id", "blocked_id"),
        sa.CheckConstraint("blocker_id <> blocked_id", name="ck_profile_blocks_not_self"),
    )
    op.create_index("ix_profile_blocks_blocked_id", "profile_blocks", ["blocked_id"])


def downgrade() -> None:
    op.drop_index("ix_profile_blocks_blocked_id", table_name="profile_blocks")
    op.drop_table("profile_blocks")
