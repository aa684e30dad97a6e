"""
WHOOP reconciliation schemas.

POST /integrations/whoop/sync → SyncRequest → SyncResponse
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SyncRequest(BaseModel):
    since: Optional[datetime] = Field(
        default=None,
        description="Window start; defaults to, and is clamped to, the configured lookback (never later than now).",
    )


class SyncPoints(BaseModel):
    sleep: int
    training: int
    total: int


class SyncResponse(BaseModel):
    sleep_synced: int
    workouts_synced: int
    points: SyncPoints
    days_updated: list[str]
    triggers_evaluated: int
    triggers_activated: int
    errors: list[str] = Field(description="Per-category vendor failures; the pass still ran.")
