"""
Habit stack schemas.

POST  /stacks                → StackCreate → StackResponse
PATCH /stacks/{id}           → StackUpdate → StackResponse
GET   /stacks/{id}/status    →               StackStatusResponse
POST  /stacks/{id}/execute   →               StackExecutionResponse
"""
from __future__ import annotations

from typing import Annotated, Optional

from pydantic import BaseModel, Field

from app.models.activity import CueType
from app.schemas.streak import DailyScoreResponse, StreakChange


class StackCreate(BaseModel):
    name: Annotated[str, Field(min_length=1, max_length=128, examples=["Morning routine"])]
    activity_ids: list[int] = Field(
        description="Ordered member activities (at least 2, distinct)."
    )
    description: Optional[str] = Field(default=None, max_length=2000)
    completion_bonus: int = Field(
        default=20, ge=0, le=100,
        description="Bonus points before the streak multiplier.",
    )
    cue_type: Optional[CueType] = None
    cue_value: Optional[str] = Field(default=None, max_length=128)
    is_active: bool = True


class StackUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=128)
    activity_ids: Optional[list[int]] = None
    description: Optional[str] = Field(default=None, max_length=2000)
    completion_bonus: Optional[int] = Field(default=None, ge=0, le=100)
    cue_type: Optional[CueType] = None
    cue_value: Optional[str] = Field(default=None, max_length=128)
    is_active: Optional[bool] = None


class StackResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    activity_ids: list[int]
    completion_bonus: int
    cue_type: Optional[str]
    cue_value: Optional[str]
    is_active: bool
    current_streak: int
    created_at: str


class StackStatusResponse(BaseModel):
    stack_id: int
    day: str
    activity_ids: list[int]
    completed_activity_ids: list[int]
    is_completed: bool
    bonus_claimed: bool
    current_streak: int
    next_bonus_points: int


class StackMemberCompletion(BaseModel):
    completion_id: int
    activity_id: int
    points_earned: int


class StackExecutionResponse(BaseModel):
    stack_id: int
    name: str
    day: str
    completions: list[StackMemberCompletion]
    already_completed: int
    newly_completed: int
    points_earned: int
    bonus_points: int
    streak_day: int
    total_points: int
    daily_score: DailyScoreResponse
    streaks: list[StreakChange]
