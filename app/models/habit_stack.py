"""
HabitStack — an ordered chain of activities whose same-day completion
earns a bonus; StackCompletion — the write-once bonus claim per day.

StackCompletion.streak_day is the stack's own consecutive-day counter,
independent of the pillar Streak rows. The unique (stack_id, completed_on)
constraint is the concurrency guard for the claim.
"""
from datetime import date, datetime

from sqlalchemy import (
    Integer, String, Text, Boolean, Date, DateTime, Enum, JSON, ForeignKey,
    UniqueConstraint, func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.activity import CueType


class HabitStack(Base):
    __tablename__ = "habit_stacks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    activity_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    completion_bonus: Mapped[int] = mapped_column(
        Integer, nullable=False, default=20,
        comment="Bonus points before the streak multiplier",
    )
    cue_type: Mapped[CueType | None] = mapped_column(
        Enum(CueType, name="cue_type_enum"), nullable=True
    )
    cue_value: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    completions = relationship(
        "StackCompletion",
        back_populates="stack",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class StackCompletion(Base):
    __tablename__ = "stack_completions"
    __table_args__ = (
        UniqueConstraint("stack_id", "completed_on", name="uq_stack_completion_day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    stack_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("habit_stacks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    completed_on: Mapped[date] = mapped_column(Date, nullable=False)
    bonus_points_earned: Mapped[int] = mapped_column(Integer, nullable=False)
    streak_day: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    stack = relationship("HabitStack", back_populates="completions")
