"""
Daily Status Aggregator — one read-only snapshot of "how is my day going".

Composes:
  * the day's completions bucketed into BODY / MIND totals
  * the streak read path for OVERALL, BODY and MIND (at-risk, hours left)
  * the day's claimed habit-stack bonus
  * the quote of the day
  * an optional wearable snapshot (recovery zone + recommendation, last
    sleep, today's training)

Nothing here writes. Wearable fetches are isolated from each other and a
failed fetch simply leaves its part of the snapshot empty.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.errors import WearableAPIError
from app.models.activity import Pillar
from app.models.activity_completion import ActivityCompletion
from app.models.habit_stack import StackCompletion
from app.services.daily_scores import DayTotals, completions_for_day, compute_day
from app.services.points import points_progress, points_remaining
from app.services.quotes import QuoteOfTheDay, daily_quote
from app.services.streaks import StreakInfo, get_all_streaks
from app.services.whoop_client import WhoopClient

logger = logging.getLogger(__name__)

RECOVERY_GREEN_THRESHOLD = 67
RECOVERY_YELLOW_THRESHOLD = 34

RECOVERY_RECOMMENDATIONS = {
    "green": "Your body is well recovered. Great day for intense training!",
    "yellow": "Moderate recovery. Consider a lighter workout or active recovery.",
    "red": "Low recovery. Focus on rest, sleep, and gentle movement today.",
}


# ---------------------------------------------------------------------------
# Snapshot types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CompletedActivity:
    completion_id: int
    activity_id: int
    name: str
    sub_category: str
    points: int
    source: str
    completed_at: datetime


@dataclass(frozen=True)
class PillarStatus:
    points: int
    score: int
    completed: bool
    points_remaining: int
    progress: float
    activities: tuple[CompletedActivity, ...] = ()


@dataclass(frozen=True)
class RecoveryStatus:
    score: Optional[float]
    zone: Optional[str]
    recommendation: Optional[str]
    hrv: Optional[float]
    resting_heart_rate: Optional[float]


@dataclass(frozen=True)
class SleepSummary:
    hours: float
    efficiency: Optional[int]
    rem_hours: float
    deep_hours: float
    performance: Optional[int]


@dataclass(frozen=True)
class WorkoutSummary:
    name: str
    strain: float
    duration_minutes: int
    calories: int


@dataclass(frozen=True)
class TrainingSummary:
    strain: float
    calories: int
    workouts: tuple[WorkoutSummary, ...] = ()


@dataclass(frozen=True)
class WearableSnapshot:
    recovery: Optional[RecoveryStatus] = None
    sleep: Optional[SleepSummary] = None
    training: Optional[TrainingSummary] = None


@dataclass(frozen=True)
class DailyStatus:
    date: date
    body: PillarStatus
    mind: PillarStatus
    balance_index: Decimal
    streaks: dict[str, StreakInfo]
    stack_bonus_points: int
    quote: QuoteOfTheDay
    wearable: Optional[WearableSnapshot] = None
    recommendations: tuple[str, ...] = field(default_factory=tuple)

    @property
    def overall_complete(self) -> bool:
        return self.body.completed and self.mind.completed


# ---------------------------------------------------------------------------
# Recovery helpers
# ---------------------------------------------------------------------------

def recovery_zone(score: Optional[float]) -> Optional[str]:
    if score is None:
        return None
    if score >= RECOVERY_GREEN_THRESHOLD:
        return "green"
    if score >= RECOVERY_YELLOW_THRESHOLD:
        return "yellow"
    return "red"


def recovery_recommendation(zone: Optional[str]) -> Optional[str]:
    return RECOVERY_RECOMMENDATIONS.get(zone) if zone else None


# ---------------------------------------------------------------------------
# Wearable snapshot
# ---------------------------------------------------------------------------

def _fetch_recovery(client: WhoopClient) -> Optional[RecoveryStatus]:
    cycle = client.latest_cycle()
    if cycle is None:
        return None
    rec = client.cycle_recovery(cycle.id)
    if rec is None or rec.recovery_score is None:
        return None
    zone = recovery_zone(rec.recovery_score)
    return RecoveryStatus(
        score=rec.recovery_score,
        zone=zone,
        recommendation=recovery_recommendation(zone),
        hrv=rec.hrv,
        resting_heart_rate=rec.score.resting_heart_rate if rec.score else None,
    )


def _fetch_sleep(client: WhoopClient) -> Optional[SleepSummary]:
    sleep = client.latest_sleep()
    if sleep is None or sleep.score is None:
        return None
    perf = sleep.score.sleep_performance_percentage
    return SleepSummary(
        hours=round(sleep.hours_in_bed, 1),
        efficiency=round(sleep.efficiency) if sleep.efficiency is not None else None,
        rem_hours=round(sleep.rem_hours, 1),
        deep_hours=round(sleep.deep_hours, 1),
        performance=round(perf) if perf is not None else None,
    )


def _fetch_training(client: WhoopClient, clock: Clock) -> TrainingSummary:
    today = clock.today()
    workouts = tuple(
        WorkoutSummary(
            name=w.sport_name,
            strain=round(w.strain, 1),
            duration_minutes=round(w.duration_minutes),
            calories=w.calories,
        )
        for w in client.recent_workouts(limit=5)
        if clock.local_date(w.start) == today
    )
    return TrainingSummary(
        strain=round(sum(w.strain for w in workouts), 1),
        calories=sum(w.calories for w in workouts),
        workouts=workouts,
    )


def fetch_wearable_snapshot(client: WhoopClient, clock: Clock) -> WearableSnapshot:
    parts = {}
    for name, fetch in (
        ("recovery", lambda: _fetch_recovery(client)),
        ("sleep", lambda: _fetch_sleep(client)),
        ("training", lambda: _fetch_training(client, clock)),
    ):
        try:
            parts[name] = fetch()
        except WearableAPIError as exc:
            logger.warning("WHOOP %s unavailable for daily status: %s", name, exc.message)
            parts[name] = None
    return WearableSnapshot(**parts)


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------

def _pillar_status(
    totals: DayTotals, completions: list[ActivityCompletion], pillar: Pillar
) -> PillarStatus:
    if pillar is Pillar.BODY:
        points, score, done = totals.body_points, totals.body_score, totals.body_complete
    else:
        points, score, done = totals.mind_points, totals.mind_score, totals.mind_complete
    activities = tuple(
        CompletedActivity(
            completion_id=c.id,
            activity_id=c.activity_id,
            name=c.activity.name,
            sub_category=c.activity.sub_category,
            points=c.points_earned,
            source=c.source.value,
            completed_at=c.completed_at,
        )
        for c in completions
        if c.activity.pillar == pillar
    )
    return PillarStatus(
        points=points,
        score=score,
        completed=done,
        points_remaining=points_remaining(points),
        progress=round(points_progress(points), 1),
        activities=activities,
    )


def stack_bonus_for_day(db: Session, user_id: str, day: date) -> int:
    total = (
        db.query(func.coalesce(func.sum(StackCompletion.bonus_points_earned), 0))
        .filter(StackCompletion.user_id == user_id, StackCompletion.completed_on == day)
        .scalar()
    )
    return int(total or 0)


def _recommendations(totals: DayTotals, wearable: Optional[WearableSnapshot]) -> tuple[str, ...]:
    tips = []
    if wearable is not None and wearable.recovery is not None and wearable.recovery.recommendation:
        tips.append(wearable.recovery.recommendation)
    if not totals.body_complete:
        tips.append(f"{points_remaining(totals.body_points)} more Body points to complete today.")
    if not totals.mind_complete:
        tips.append(f"{points_remaining(totals.mind_points)} more Mind points to complete today.")
    return tuple(tips)


def get_daily_status(
    db: Session,
    user_id: str,
    day: date,
    clock: Clock,
    wearable: Optional[WearableSnapshot] = None,
) -> DailyStatus:
    completions = completions_for_day(db, user_id, day, clock)
    totals = compute_day(day, completions)
    streak_totals = totals if day == clock.today() else None
    return DailyStatus(
        date=day,
        body=_pillar_status(totals, completions, Pillar.BODY),
        mind=_pillar_status(totals, completions, Pillar.MIND),
        balance_index=totals.balance_index,
        streaks=get_all_streaks(db, user_id, clock, today_totals=streak_totals),
        stack_bonus_points=stack_bonus_for_day(db, user_id, day),
        quote=daily_quote(db, user_id, day),
        wearable=wearable,
        recommendations=_recommendations(totals, wearable),
    )
