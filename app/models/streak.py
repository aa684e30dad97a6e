"""
Streak — consecutive complete days per (user, pillar_key).

pillar_key values: "BODY", "MIND", "OVERALL" (OVERALL = BODY and MIND
complete on the same day).

Rows are only written by the transactional update in
app/services/streaks.py; `last_active_date` never moves backwards.
"""
from datetime import date, datetime
import enum

from sqlalchemy import Integer, String, Date, DateTime, func, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class PillarKey(str, enum.Enum):
    BODY = "BODY"
    MIND = "MIND"
    OVERALL = "OVERALL"


class Streak(Base):
    __tablename__ = "streaks"
    __table_args__ = (
        UniqueConstraint("user_id", "pillar_key", name="uq_streak_user_pillar"),
        CheckConstraint("current >= 0", name="ck_streak_current_non_negative"),
        CheckConstraint("longest >= current", name="ck_streak_longest_ge_current"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    pillar_key: Mapped[str] = mapped_column(String(16), nullable=False)
    current: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_active_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
