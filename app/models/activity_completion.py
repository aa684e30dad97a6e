"""
ActivityCompletion — one logged event for an Activity.

Append-only: created once per event, never mutated.

`completed_at` is the event time (for WHOOP rows, the end of the sleep or
workout), always stored in UTC; day bucketing happens against local
midnight bounds converted to UTC.

Externally-sourced rows carry (`external_id`, `record_type`). The unique
constraint on (source, external_id, record_type) is the ingestion dedup
key; manual rows leave both NULL and therefore never collide.
"""
from datetime import datetime
import enum

from sqlalchemy import (
    Integer, String, Text, DateTime, Enum, ForeignKey, UniqueConstraint, Index, func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class Source(str, enum.Enum):
    MANUAL = "MANUAL"
    WHOOP = "WHOOP"
    AUTO_TRIGGER = "AUTO_TRIGGER"


class ActivityCompletion(Base):
    __tablename__ = "activity_completions"
    __table_args__ = (
        UniqueConstraint(
            "source", "external_id", "record_type",
            name="uq_completion_external_record",
        ),
        Index("ix_completion_user_completed_at", "user_id", "completed_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    activity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("activities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    points_earned: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    source: Mapped[Source] = mapped_column(
        Enum(Source, name="completion_source_enum"), nullable=False, default=Source.MANUAL
    )
    details: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Opaque JSON for display; not used for dedup",
    )
    external_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    record_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    activity = relationship("Activity", back_populates="completions")
