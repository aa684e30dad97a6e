"""
Daily status snapshot schema (GET /daily-status).
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from app.schemas.streak import StreakListResponse


class CompletedActivityOut(BaseModel):
    completion_id: int
    activity_id: int
    name: str
    sub_category: str
    points: int
    source: str
    completed_at: str


class PillarStatusOut(BaseModel):
    points: int
    score: int
    completed: bool
    points_remaining: int
    progress: float
    activities: list[CompletedActivityOut]


class RecoveryOut(BaseModel):
    score: Optional[float]
    zone: Optional[str]
    recommendation: Optional[str]
    hrv: Optional[float]
    resting_heart_rate: Optional[float]


class SleepOut(BaseModel):
    hours: float
    efficiency: Optional[int]
    rem_hours: float
    deep_hours: float
    performance: Optional[int]


class WorkoutOut(BaseModel):
    name: str
    strain: float
    duration_minutes: int
    calories: int


class TrainingOut(BaseModel):
    strain: float
    calories: int
    workouts: list[WorkoutOut]


class WearableOut(BaseModel):
    connected: bool
    recovery: Optional[RecoveryOut] = None
    sleep: Optional[SleepOut] = None
    training: Optional[TrainingOut] = None


class QuoteOut(BaseModel):
    text: str
    author: Optional[str]


class DailyStatusResponse(BaseModel):
    date: str
    body: PillarStatusOut
    mind: PillarStatusOut
    balance_index: float
    overall_complete: bool
    streaks: StreakListResponse
    stack_bonus_points: int
    quote: QuoteOut
    wearable: Optional[WearableOut]
    recommendations: list[str]
