"""
WHOOP developer API (v2) payloads.

Only the fields the engine reads are modelled; everything else in the vendor
JSON is ignored. Record ids are kept as strings (v2 uses UUIDs for sleeps
and workouts, integers for cycles) so they can be stored as external ids.
"""
from __future__ import annotations

from datetime import datetime
from typing import Generic, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

MILLIS_PER_HOUR = 3_600_000
KJ_PER_KCAL = 4.184

WHOOP_SPORT_NAMES: dict[int, str] = {
    0: "Running",
    1: "Cycling",
    44: "Weightlifting",
    52: "HIIT",
    71: "Yoga",
    82: "CrossFit",
    84: "Functional Fitness",
    96: "Walking",
    126: "Meditation",
}


class _WhoopModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _WhoopRecord(_WhoopModel):
    """Coerces integer ids to str."""

    @field_validator("id", "cycle_id", "sleep_id", mode="before", check_fields=False)
    @classmethod
    def coerce_id(cls, v):
        return None if v is None else str(v)


# ---------------------------------------------------------------------------
# Sleep
# ---------------------------------------------------------------------------

class SleepStageSummary(_WhoopModel):
    total_in_bed_time_milli: int = 0
    total_slow_wave_sleep_time_milli: int = 0
    total_rem_sleep_time_milli: int = 0


class SleepScore(_WhoopModel):
    stage_summary: SleepStageSummary = Field(default_factory=SleepStageSummary)
    sleep_performance_percentage: Optional[float] = None
    sleep_efficiency_percentage: Optional[float] = None
    respiratory_rate: Optional[float] = None


class WhoopSleep(_WhoopRecord):
    id: str
    cycle_id: Optional[str] = None
    start: datetime
    end: datetime
    nap: bool = False
    score: Optional[SleepScore] = None

    @property
    def hours_in_bed(self) -> float:
        if self.score is None:
            return 0.0
        return self.score.stage_summary.total_in_bed_time_milli / MILLIS_PER_HOUR

    @property
    def rem_hours(self) -> float:
        if self.score is None:
            return 0.0
        return self.score.stage_summary.total_rem_sleep_time_milli / MILLIS_PER_HOUR

    @property
    def deep_hours(self) -> float:
        if self.score is None:
            return 0.0
        return self.score.stage_summary.total_slow_wave_sleep_time_milli / MILLIS_PER_HOUR

    @property
    def efficiency(self) -> Optional[float]:
        return self.score.sleep_efficiency_percentage if self.score else None


# ---------------------------------------------------------------------------
# Workout
# ---------------------------------------------------------------------------

class WorkoutScore(_WhoopModel):
    strain: float = 0.0
    average_heart_rate: Optional[int] = None
    max_heart_rate: Optional[int] = None
    kilojoule: float = 0.0


class WhoopWorkout(_WhoopRecord):
    id: str
    start: datetime
    end: datetime
    sport_id: Optional[int] = None
    score: Optional[WorkoutScore] = None

    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60

    @property
    def strain(self) -> float:
        return self.score.strain if self.score else 0.0

    @property
    def calories(self) -> int:
        return round(self.score.kilojoule / KJ_PER_KCAL) if self.score else 0

    @property
    def sport_name(self) -> str:
        return WHOOP_SPORT_NAMES.get(self.sport_id, f"Activity {self.sport_id}")


# ---------------------------------------------------------------------------
# Recovery / cycle
# ---------------------------------------------------------------------------

class RecoveryScore(_WhoopModel):
    recovery_score: Optional[float] = None
    resting_heart_rate: Optional[float] = None
    hrv_rmssd_milli: Optional[float] = None


class WhoopRecovery(_WhoopRecord):
    cycle_id: Optional[str] = None
    sleep_id: Optional[str] = None
    score: Optional[RecoveryScore] = None

    @property
    def recovery_score(self) -> Optional[float]:
        return self.score.recovery_score if self.score else None

    @property
    def hrv(self) -> Optional[float]:
        return self.score.hrv_rmssd_milli if self.score else None


class CycleScore(_WhoopModel):
    strain: Optional[float] = None


class WhoopCycle(_WhoopRecord):
    id: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    score: Optional[CycleScore] = None

    @property
    def strain(self) -> Optional[float]:
        return self.score.strain if self.score else None


T = TypeVar("T")


class WhoopPage(_WhoopModel, Generic[T]):
    """One page of a collection endpoint; v2 spells the cursor either way."""
    records: list[T] = Field(default_factory=list)
    next_token: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("next_token", "nextToken")
    )

    @field_validator("records", mode="before")
    @classmethod
    def null_records(cls, v):
        return [] if v is None else v
