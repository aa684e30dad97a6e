"""
Activity — a user-defined thing that can be logged (a workout, a reading
session, a meditation).

Soft-deleted through `archived`; completions hang off it and cascade on a
hard delete.
"""
from datetime import datetime
import enum

from sqlalchemy import Integer, String, Text, Boolean, DateTime, Enum, func, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class Pillar(str, enum.Enum):
    BODY = "BODY"
    MIND = "MIND"


class CueType(str, enum.Enum):
    TIME = "TIME"
    LOCATION = "LOCATION"
    AFTER_ACTIVITY = "AFTER_ACTIVITY"


# Predefined sub-categories; any other non-blank string is accepted too.
PREDEFINED_SUB_CATEGORIES = (
    "TRAINING",
    "SLEEP",
    "NUTRITION",
    "MEDITATION",
    "READING",
    "LEARNING",
    "JOURNALING",
)


class Activity(Base):
    __tablename__ = "activities"
    __table_args__ = (
        CheckConstraint("points > 0", name="ck_activity_points_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    pillar: Mapped[Pillar] = mapped_column(Enum(Pillar, name="pillar_enum"), nullable=False)
    sub_category: Mapped[str] = mapped_column(String(64), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=25)
    is_habit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cue_type: Mapped[CueType | None] = mapped_column(
        Enum(CueType, name="cue_type_enum"), nullable=True
    )
    cue_value: Mapped[str | None] = mapped_column(String(128), nullable=True)
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    completions = relationship(
        "ActivityCompletion",
        back_populates="activity",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
