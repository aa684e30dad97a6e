"""
Auto-trigger schemas.

POST /triggers → TriggerCreate → TriggerResponse
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from app.models.auto_trigger import AutoTriggerType


class TriggerCreate(BaseModel):
    activity_id: int = Field(description="Activity to complete when the trigger fires.")
    trigger_type: AutoTriggerType
    threshold_value: Optional[float] = Field(
        default=None,
        description="Recovery %, sleep hours or strain, depending on trigger_type.",
        examples=[67],
    )
    workout_type_id: Optional[int] = Field(default=None, description="WHOOP sport_id.")
    trigger_activity_id: Optional[int] = Field(
        default=None, description="Linked activity for ACTIVITY_COMPLETED."
    )


class TriggerResponse(BaseModel):
    id: int
    activity_id: int
    activity_name: str
    trigger_type: str
    threshold_value: Optional[float]
    workout_type_id: Optional[int]
    trigger_activity_id: Optional[int]
    is_active: bool
    created_at: str
