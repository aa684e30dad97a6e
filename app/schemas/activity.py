"""
Activity and completion schemas.

POST  /activities                 → ActivityCreate     → ActivityResponse
PATCH /activities/{id}            → ActivityUpdate     → ActivityResponse
POST  /activities/{id}/complete   → CompletionRequest  → CompletionResponse
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Optional

from pydantic import BaseModel, Field, field_validator

from app.models.activity import CueType, Pillar
from app.schemas.streak import DailyScoreResponse, StreakChange


class ActivityCreate(BaseModel):
    name: Annotated[str, Field(min_length=1, max_length=128, examples=["Morning run"])]
    pillar: Pillar
    sub_category: Annotated[str, Field(
        min_length=1,
        max_length=64,
        description="Predefined (TRAINING, SLEEP, NUTRITION, MEDITATION, READING, "
                    "LEARNING, JOURNALING) or any custom label.",
        examples=["TRAINING"],
    )]
    points: int = Field(default=25, gt=0, le=1000)
    is_habit: bool = False
    cue_type: Optional[CueType] = None
    cue_value: Optional[str] = Field(default=None, max_length=128, examples=["07:00"])
    description: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("name", "sub_category", mode="before")
    @classmethod
    def strip_and_check_empty(cls, v):
        stripped = v.strip() if isinstance(v, str) else v
        if stripped == "":
            raise ValueError("must not be empty after stripping whitespace")
        return stripped


class ActivityUpdate(BaseModel):
    """Partial update; only fields present in the body are applied."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=128)
    pillar: Optional[Pillar] = None
    sub_category: Optional[str] = Field(default=None, min_length=1, max_length=64)
    points: Optional[int] = Field(default=None, gt=0, le=1000)
    is_habit: Optional[bool] = None
    cue_type: Optional[CueType] = None
    cue_value: Optional[str] = Field(default=None, max_length=128)
    description: Optional[str] = Field(default=None, max_length=2000)


class ActivityResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    pillar: str
    sub_category: str
    points: int
    is_habit: bool
    cue_type: Optional[str]
    cue_value: Optional[str]
    archived: bool
    created_at: str


class CompletionRequest(BaseModel):
    points: Optional[int] = Field(
        default=None, ge=0, le=1000,
        description="Override the activity's default points.",
    )
    details: Optional[Any] = Field(
        default=None,
        description="Free-form notes or a JSON object stored with the completion.",
    )
    completed_at: Optional[datetime] = Field(
        default=None,
        description="Event time; defaults to now. Naive values are read as UTC.",
    )


class CompletionOut(BaseModel):
    id: int
    activity_id: int
    points_earned: int
    completed_at: str
    source: str
    details: Optional[str]


class CompletionResponse(BaseModel):
    completion: CompletionOut
    day: str
    daily_score: DailyScoreResponse
    streaks: list[StreakChange]
