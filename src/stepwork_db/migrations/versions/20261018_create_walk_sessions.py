"""Create the walk_sessions table.

One row per guided walk.  The conversation is stored as an ordered JSONB
list in ``step_responses``; ``version`` backs optimistic concurrency so a
double-submitted answer cannot silently overwrite the other.

Revision ID: 20261018_walk_sessions
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

# revision identifiers, used by Alembic.
revision = "20261018_walk_sessions"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "walk_sessions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("current_step", sa.String(10), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("pre_walk_mood", sa.Text(), nullable=True),
        sa.Column("pre_walk_intention", sa.Text(), nullable=True),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("body_need", sa.Text(), nullable=True),
        sa.Column(
            "step_responses", JSONB(), nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("final_reflection", sa.Text(), nullable=True),
        sa.Column("encouragement_message", sa.Text(), nullable=True),
        sa.Column("insights", JSONB(), nullable=True),
        sa.Column("analytics", JSONB(), nullable=True),
        sa.Column("walk_duration", sa.Integer(), nullable=True),
        sa.Column(
            "coins_earned", sa.Integer(), nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("started_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("completed_at", TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "current_step IN ('step1', 'step2', 'step3')",
            name="ck_current_step",
        ),
        sa.CheckConstraint(
            "status IN ('in_progress', 'step_complete', 'completed')",
            name="ck_status",
        ),
        sa.CheckConstraint(
            "status != 'completed' OR completed_at IS NOT NULL",
            name="ck_completed_has_timestamp",
        ),
        sa.CheckConstraint("coins_earned >= 0", name="ck_coins_non_negative"),
    )

    op.create_index("ix_walk_sessions_user_id", "walk_sessions", ["user_id"])
    op.create_index("ix_walk_sessions_status", "walk_sessions", ["status"])
    op.create_index("ix_user_created", "walk_sessions", ["user_id", "created_at"])
    # --- Partial index: "most recent incomplete walk" lookup ---
    op.create_index(
        "ix_incomplete_user_session",
        "walk_sessions",
        ["user_id", "started_at"],
        postgresql_where=sa.text("completed_at IS NULL"),
    )


def downgrade() -> None:
    op.drop_index("ix_incomplete_user_session", table_name="walk_sessions")
    op.drop_index("ix_user_created", table_name="walk_sessions")
    op.drop_index("ix_walk_sessions_status", table_name="walk_sessions")
    op.drop_index("ix_walk_sessions_user_id", table_name="walk_sessions")
    op.drop_table("walk_sessions")
