"""Initial schema - habits and habit completions

Revision ID: 001
Revises:
Create Date: 2026-03-02
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Habits
    op.create_table(
        "habits",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("frequency_type", sa.String(20), nullable=False, server_default="daily"),
        sa.Column("frequency_days", sa.JSON(), nullable=True),
        sa.Column("times_per_period", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("goal_id", sa.Uuid(), nullable=True),
        sa.Column("reminder_time", sa.String(5), nullable=True),
        sa.Column("color", sa.String(20), nullable=True),
        sa.Column("icon", sa.String(100), nullable=True),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_habits"),
    )
    op.create_index("ix_habits_goal_id", "habits", ["goal_id"])

    # Habit completions: one row per habit per calendar day
    op.create_table(
        "habit_completions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("habit_id", sa.Uuid(), nullable=False),
        sa.Column("completed_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_habit_completions"),
        sa.ForeignKeyConstraint(["habit_id"], ["habits.id"], name="fk_habit_completions_habit_id_habits", ondelete="CASCADE"),
        sa.UniqueConstraint("habit_id", "completed_date", name="uq_habit_completions_habit_day"),
    )
    op.create_index("ix_habit_completions_completed_date", "habit_completions", ["completed_date"])


def downgrade() -> None:
    op.drop_index("ix_habit_completions_completed_date", table_name="habit_completions")
    op.drop_table("habit_completions")
    op.drop_index("ix_habits_goal_id", table_name="habits")
    op.drop_table("habits")
