"""
AutoTrigger — completes an activity automatically when a wearable reading
or another activity's completion meets a condition.

trigger_type values and the field they read:
  WHOOP_RECOVERY_ABOVE  threshold_value   recovery % >= threshold
  WHOOP_RECOVERY_BELOW  threshold_value   recovery % <  threshold
  WHOOP_SLEEP_ABOVE     threshold_value   sleep hours >= threshold
  WHOOP_STRAIN_ABOVE    threshold_value   day strain >= threshold
  WHOOP_WORKOUT_TYPE    workout_type_id   today's workout sport_id matches
  ACTIVITY_COMPLETED    trigger_activity_id   linked activity was completed
"""
from datetime import datetime
import enum

from sqlalchemy import Integer, Float, Boolean, DateTime, Enum, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class AutoTriggerType(str, enum.Enum):
    WHOOP_RECOVERY_ABOVE = "WHOOP_RECOVERY_ABOVE"
    WHOOP_RECOVERY_BELOW = "WHOOP_RECOVERY_BELOW"
    WHOOP_SLEEP_ABOVE = "WHOOP_SLEEP_ABOVE"
    WHOOP_STRAIN_ABOVE = "WHOOP_STRAIN_ABOVE"
    WHOOP_WORKOUT_TYPE = "WHOOP_WORKOUT_TYPE"
    ACTIVITY_COMPLETED = "ACTIVITY_COMPLETED"


class AutoTrigger(Base):
    __tablename__ = "auto_triggers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    activity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("activities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    trigger_type: Mapped[AutoTriggerType] = mapped_column(
        Enum(AutoTriggerType, name="auto_trigger_type_enum"), nullable=False
    )
    threshold_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    workout_type_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    trigger_activity_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("activities.id", ondelete="CASCADE"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    activity = relationship("Activity", foreign_keys=[activity_id])
