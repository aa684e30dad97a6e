"""
DailyScore — per (user, calendar date) aggregate of completion points.

Derived cache: always recomputed from the day's completions and
overwritten, never patched incrementally. One row per (user_id, date).

  body_score    = min(body_points, 100)
  balance_index = (body_score + mind_score) / 2
"""
from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import Integer, String, Boolean, Numeric, DateTime, Date, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class DailyScore(Base):
    __tablename__ = "daily_scores"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_daily_score_user_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    body_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mind_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    body_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mind_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    balance_index: Mapped[Decimal] = mapped_column(
        Numeric(5, 1), nullable=False, default=Decimal("0"),
        comment="Mean of the two clamped scores, 0.0-100.0",
    )
    body_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    mind_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
