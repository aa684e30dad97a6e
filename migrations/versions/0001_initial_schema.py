"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ENUM types ---
    pillar_enum = sa.Enum("BODY", "MIND", name="pillar_enum")
    pillar_enum.create(op.get_bind(), checkfirst=True)

    cue_type_enum = sa.Enum("TIME", "LOCATION", "AFTER_ACTIVITY", name="cue_type_enum")
    cue_type_enum.create(op.get_bind(), checkfirst=True)

    completion_source_enum = sa.Enum(
        "MANUAL", "WHOOP", "AUTO_TRIGGER", name="completion_source_enum"
    )
    completion_source_enum.create(op.get_bind(), checkfirst=True)

    auto_trigger_type_enum = sa.Enum(
        "WHOOP_RECOVERY_ABOVE", "WHOOP_RECOVERY_BELOW", "WHOOP_SLEEP_ABOVE",
        "WHOOP_STRAIN_ABOVE", "WHOOP_WORKOUT_TYPE", "ACTIVITY_COMPLETED",
        name="auto_trigger_type_enum",
    )
    auto_trigger_type_enum.create(op.get_bind(), checkfirst=True)

    # --- activities ---
    op.create_table(
        "activities",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("pillar", sa.Enum("BODY", "MIND", name="pillar_enum", create_type=False), nullable=False),
        sa.Column("sub_category", sa.String(64), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default="25"),
        sa.Column("is_habit", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cue_type", sa.Enum(
            "TIME", "LOCATION", "AFTER_ACTIVITY", name="cue_type_enum", create_type=False,
        ), nullable=True),
        sa.Column("cue_value", sa.String(128), nullable=True),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("points > 0", name="ck_activity_points_positive"),
    )
    op.create_index("ix_activities_id", "activities", ["id"])
    op.create_index("ix_activities_user_id", "activities", ["user_id"])

    # --- activity_completions ---
    op.create_table(
        "activity_completions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("activity_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("points_earned", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("source", sa.Enum(
            "MANUAL", "WHOOP", "AUTO_TRIGGER", name="completion_source_enum", create_type=False,
        ), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("external_id", sa.String(64), nullable=True),
        sa.Column("record_type", sa.String(32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["activity_id"], ["activities.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "source", "external_id", "record_type", name="uq_completion_external_record"
        ),
    )
    op.create_index("ix_activity_completions_id", "activity_completions", ["id"])
    op.create_index("ix_activity_completions_activity_id", "activity_completions", ["activity_id"])
    op.create_index(
        "ix_completion_user_completed_at", "activity_completions", ["user_id", "completed_at"]
    )

    # --- daily_scores ---
    op.create_table(
        "daily_scores",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("body_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("mind_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("body_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("mind_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("balance_index", sa.Numeric(5, 1), nullable=False, server_default="0"),
        sa.Column("body_complete", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("mind_complete", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "date", name="uq_daily_score_user_date"),
    )
    op.create_index("ix_daily_scores_id", "daily_scores", ["id"])
    op.create_index("ix_daily_scores_user_id", "daily_scores", ["user_id"])
    op.create_index("ix_daily_scores_date", "daily_scores", ["date"])

    # --- streaks ---
    op.create_table(
        "streaks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("pillar_key", sa.String(16), nullable=False),
        sa.Column("current", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_active_date", sa.Date(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "pillar_key", name="uq_streak_user_pillar"),
        sa.CheckConstraint("current >= 0", name="ck_streak_current_non_negative"),
        sa.CheckConstraint("longest >= current", name="ck_streak_longest_ge_current"),
    )
    op.create_index("ix_streaks_id", "streaks", ["id"])
    op.create_index("ix_streaks_user_id", "streaks", ["user_id"])

    # --- habit_stacks ---
    op.create_table(
        "habit_stacks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("activity_ids", sa.JSON(), nullable=False),
        sa.Column("completion_bonus", sa.Integer(), nullable=False, server_default="20"),
        sa.Column("cue_type", sa.Enum(
            "TIME", "LOCATION", "AFTER_ACTIVITY", name="cue_type_enum", create_type=False,
        ), nullable=True),
        sa.Column("cue_value", sa.String(128), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_habit_stacks_id", "habit_stacks", ["id"])
    op.create_index("ix_habit_stacks_user_id", "habit_stacks", ["user_id"])

    # --- stack_completions ---
    op.create_table(
        "stack_completions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("stack_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("completed_on", sa.Date(), nullable=False),
        sa.Column("bonus_points_earned", sa.Integer(), nullable=False),
        sa.Column("streak_day", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["stack_id"], ["habit_stacks.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("stack_id", "completed_on", name="uq_stack_completion_day"),
    )
    op.create_index("ix_stack_completions_id", "stack_completions", ["id"])
    op.create_index("ix_stack_completions_stack_id", "stack_completions", ["stack_id"])
    op.create_index("ix_stack_completions_user_id", "stack_completions", ["user_id"])

    # --- achievements ---
    op.create_table(
        "achievements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "type", name="uq_achievement_user_type"),
    )
    op.create_index("ix_achievements_id", "achievements", ["id"])
    op.create_index("ix_achievements_user_id", "achievements", ["user_id"])

    # --- quotes ---
    op.create_table(
        "quotes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("author", sa.String(128), nullable=True),
        sa.Column("category", sa.String(16), nullable=False, server_default="BALANCE"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_quotes_id", "quotes", ["id"])

    # --- auto_triggers ---
    op.create_table(
        "auto_triggers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("activity_id", sa.Integer(), nullable=False),
        sa.Column("trigger_type", sa.Enum(
            "WHOOP_RECOVERY_ABOVE", "WHOOP_RECOVERY_BELOW", "WHOOP_SLEEP_ABOVE",
            "WHOOP_STRAIN_ABOVE", "WHOOP_WORKOUT_TYPE", "ACTIVITY_COMPLETED",
            name="auto_trigger_type_enum", create_type=False,
        ), nullable=False),
        sa.Column("threshold_value", sa.Float(), nullable=True),
        sa.Column("workout_type_id", sa.Integer(), nullable=True),
        sa.Column("trigger_activity_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["activity_id"], ["activities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["trigger_activity_id"], ["activities.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_auto_triggers_id", "auto_triggers", ["id"])
    op.create_index("ix_auto_triggers_activity_id", "auto_triggers", ["activity_id"])


def downgrade() -> None:
    op.drop_table("auto_triggers")
    op.drop_table("quotes")
    op.drop_table("achievements")
    op.drop_table("stack_completions")
    op.drop_table("habit_stacks")
    op.drop_table("streaks")
    op.drop_table("daily_scores")
    op.drop_table("activity_completions")
    op.drop_table("activities")

    sa.Enum(name="auto_trigger_type_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="completion_source_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="cue_type_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="pillar_enum").drop(op.get_bind(), checkfirst=True)
