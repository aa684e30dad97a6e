"""
Streak, achievement and daily-score schemas (read side).
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class StreakResponse(BaseModel):
    pillar_key: str
    current: int
    longest: int
    last_active_date: Optional[str]
    at_risk: bool = Field(description="Streak > 0 and today not yet complete.")
    hours_remaining: float = Field(description="Hours until local midnight, one decimal.")
    ember: str = Field(description="dim | steady | bright | golden")
    has_particles: bool


class StreakListResponse(BaseModel):
    overall: StreakResponse
    body: StreakResponse
    mind: StreakResponse


class StreakChange(BaseModel):
    """Before/after of one streak write."""
    pillar_key: str
    previous: int
    current: int
    longest: int
    last_active_date: Optional[str]
    increased: bool


class AchievementResponse(BaseModel):
    type: str
    title: str
    description: str
    icon: str
    unlocked_at: str


class DailyScoreResponse(BaseModel):
    date: str
    body_points: int
    mind_points: int
    body_score: int
    mind_score: int
    balance_index: float
    body_complete: bool
    mind_complete: bool
