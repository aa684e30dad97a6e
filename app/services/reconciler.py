"""
External Completion Reconciler — turns WHOOP sleeps and workouts into
deduplicated ActivityCompletion rows.

Pass outline
------------
  1. recovery   fetched first; only feeds the sleep HRV bonus and triggers
  2. sleep      -> "Whoop Sleep Tracking" system activity
  3. workout    -> "Whoop Workout Tracking" system activity
  4. every local day that received a new completion: recompute DailyScore,
     then advance streaks, oldest day first (stale days are no-ops)
  5. latest recovery / sleep / strain / today's workout type -> auto-triggers

Each category is fetched and processed in isolation: a vendor error or
timeout in one is appended to `errors` and the pass moves on. Nothing here
raises WearableAPIError to the caller.

Dedup key: (source=WHOOP, external_id=<whoop record id>, record_type).
A pre-check skips known records; the unique constraint catches the rest
when two passes overlap.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import Clock, as_utc
from app.core.config import settings
from app.core.errors import WearableAPIError
from app.db.base import begin_write
from app.models.activity import Activity, Pillar
from app.models.activity_completion import ActivityCompletion, Source
from app.models.streak import PillarKey
from app.schemas.whoop import WhoopRecovery, WhoopSleep, WhoopWorkout
from app.services.activities import add_completion, refresh_day
from app.services.auto_triggers import (
    WHOOP_TRIGGER_TYPES,
    TriggerContext,
    evaluate_auto_triggers,
)
from app.services.whoop_client import WhoopClient

logger = logging.getLogger(__name__)

RECORD_SLEEP = "sleep"
RECORD_WORKOUT = "workout"

SYSTEM_ACTIVITIES: dict[str, dict[str, Any]] = {
    RECORD_SLEEP: {
        "name": "Whoop Sleep Tracking",
        "sub_category": "SLEEP",
    },
    RECORD_WORKOUT: {
        "name": "Whoop Workout Tracking",
        "sub_category": "TRAINING",
    },
}
SYSTEM_ACTIVITY_POINTS = 25


# ---------------------------------------------------------------------------
# Reward rules
# ---------------------------------------------------------------------------

BASE_POINTS = 10
BONUS_POINTS = 5
SLEEP_HOURS_TARGET = 7
SLEEP_EFFICIENCY_TARGET = 85
HRV_TARGET_MS = 50
WORKOUT_MINUTES_TARGET = 30
STRAIN_TARGETS = (10, 15)


def sleep_points(sleep: WhoopSleep, recovery: Optional[WhoopRecovery] = None) -> int:
    points = BASE_POINTS
    if sleep.hours_in_bed >= SLEEP_HOURS_TARGET:
        points += BONUS_POINTS
    if (sleep.efficiency or 0) >= SLEEP_EFFICIENCY_TARGET:
        points += BONUS_POINTS
    if recovery is not None and (recovery.hrv or 0) >= HRV_TARGET_MS:
        points += BONUS_POINTS
    return points


def workout_points(workout: WhoopWorkout) -> int:
    points = BASE_POINTS
    if workout.duration_minutes >= WORKOUT_MINUTES_TARGET:
        points += BONUS_POINTS
    for target in STRAIN_TARGETS:
        if workout.strain >= target:
            points += BONUS_POINTS
    return points


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class ReconcileResult:
    sleep_synced: int = 0
    workouts_synced: int = 0
    points: dict[str, int] = field(
        default_factory=lambda: {"sleep": 0, "training": 0, "total": 0}
    )
    days_updated: list[date] = field(default_factory=list)
    triggers_evaluated: int = 0
    triggers_activated: int = 0
    overall_streak: Optional[int] = None
    errors: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def system_activity(db: Session, user_id: str, record_type: str) -> Activity:
    """Get or create the per-user activity WHOOP records are booked against."""
    template = SYSTEM_ACTIVITIES[record_type]
    activity = (
        db.query(Activity)
        .filter(
            Activity.user_id == user_id,
            Activity.name == template["name"],
            Activity.sub_category == template["sub_category"],
            Activity.archived.is_(False),
        )
        .order_by(Activity.id)
        .first()
    )
    if activity is None:
        activity = Activity(
            user_id=user_id,
            name=template["name"],
            sub_category=template["sub_category"],
            pillar=Pillar.BODY,
            description="Automatically synced from Whoop",
            points=SYSTEM_ACTIVITY_POINTS,
            is_habit=True,
        )
        db.add(activity)
        db.flush()
    return activity


def already_synced(db: Session, external_id: str, record_type: str) -> bool:
    return (
        db.query(ActivityCompletion.id)
        .filter(
            ActivityCompletion.source == Source.WHOOP,
            ActivityCompletion.external_id == external_id,
            ActivityCompletion.record_type == record_type,
        )
        .first()
        is not None
    )


def _ingest(
    db: Session,
    activity: Activity,
    external_id: str,
    record_type: str,
    completed_at: datetime,
    points: int,
    details: dict[str, Any],
) -> Optional[ActivityCompletion]:
    """Insert one WHOOP completion; None when the record was already synced."""
    if already_synced(db, external_id, record_type):
        return None
    savepoint = db.begin_nested()
    try:
        completion = add_completion(
            db,
            activity,
            completed_at,
            points=points,
            details=details,
            source=Source.WHOOP,
            external_id=external_id,
            record_type=record_type,
        )
        savepoint.commit()
    except IntegrityError:
        # A concurrent pass synced the same record.
        savepoint.rollback()
        return None
    return completion


def _recovery_index(recoveries: list[WhoopRecovery]) -> dict[str, WhoopRecovery]:
    index: dict[str, WhoopRecovery] = {}
    for rec in recoveries:
        if rec.cycle_id:
            index.setdefault(f"cycle:{rec.cycle_id}", rec)
        if rec.sleep_id:
            index.setdefault(f"sleep:{rec.sleep_id}", rec)
    return index


def _match_recovery(sleep: WhoopSleep, index: dict[str, WhoopRecovery]) -> Optional[WhoopRecovery]:
    return index.get(f"sleep:{sleep.id}") or (
        index.get(f"cycle:{sleep.cycle_id}") if sleep.cycle_id else None
    )


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def _sync_sleep(
    db: Session,
    user_id: str,
    sleeps: list[WhoopSleep],
    recoveries: dict[str, WhoopRecovery],
    clock: Clock,
    result: ReconcileResult,
    days: set[date],
) -> None:
    try:
        begin_write(db)
        activity = system_activity(db, user_id, RECORD_SLEEP)
        for sleep in sleeps:
            recovery = _match_recovery(sleep, recoveries)
            points = sleep_points(sleep, recovery)
            created = _ingest(
                db, activity, sleep.id, RECORD_SLEEP, sleep.end, points,
                details={
                    "whoop_id": sleep.id,
                    "type": RECORD_SLEEP,
                    "sleep_hours": round(sleep.hours_in_bed, 1),
                    "efficiency": sleep.efficiency,
                    "hrv": recovery.hrv if recovery else None,
                },
            )
            if created is None:
                continue
            result.sleep_synced += 1
            result.points["sleep"] += points
            days.add(clock.local_date(sleep.end))
        db.commit()
    except Exception:
        db.rollback()
        raise


def _sync_workouts(
    db: Session,
    user_id: str,
    workouts: list[WhoopWorkout],
    clock: Clock,
    result: ReconcileResult,
    days: set[date],
) -> None:
    try:
        begin_write(db)
        activity = system_activity(db, user_id, RECORD_WORKOUT)
        for workout in workouts:
            points = workout_points(workout)
            created = _ingest(
                db, activity, workout.id, RECORD_WORKOUT, workout.end, points,
                details={
                    "whoop_id": workout.id,
                    "type": RECORD_WORKOUT,
                    "sport_id": workout.sport_id,
                    "sport": workout.sport_name,
                    "duration_minutes": round(workout.duration_minutes),
                    "strain": round(workout.strain, 1),
                    "calories": workout.calories,
                },
            )
            if created is None:
                continue
            result.workouts_synced += 1
            result.points["training"] += points
            days.add(clock.local_date(workout.end))
        db.commit()
    except Exception:
        db.rollback()
        raise


def fetch_latest_metrics(
    client: WhoopClient, clock: Clock, errors: Optional[list[str]] = None
) -> TriggerContext:
    """Current recovery, sleep hours, day strain and today's workout type."""
    errors = errors if errors is not None else []
    recovery = strain = sleep_hours = None
    workout_type_id = None

    try:
        cycle = client.latest_cycle()
        if cycle is not None:
            strain = cycle.strain
            rec = client.cycle_recovery(cycle.id)
            if rec is not None:
                recovery = rec.recovery_score
    except WearableAPIError as exc:
        errors.append(f"Latest recovery error: {exc.message}")

    try:
        sleep = client.latest_sleep()
        if sleep is not None:
            sleep_hours = sleep.hours_in_bed
    except WearableAPIError as exc:
        errors.append(f"Latest sleep error: {exc.message}")

    try:
        workouts = client.recent_workouts(limit=1)
        if workouts and clock.local_date(workouts[0].start) == clock.today():
            workout_type_id = workouts[0].sport_id
    except WearableAPIError as exc:
        errors.append(f"Latest workout error: {exc.message}")

    return TriggerContext(
        whoop_recovery=recovery,
        whoop_sleep_hours=sleep_hours,
        whoop_strain=strain,
        whoop_workout_type_id=workout_type_id,
    )


def sync_window(clock: Clock, since: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """
    [start, now] to fetch. *since* is clamped into the lookback window:
    never earlier than now minus WHOOP_SYNC_LOOKBACK_DAYS, never later
    than now.
    """
    end = clock.now()
    floor = end - timedelta(days=settings.WHOOP_SYNC_LOOKBACK_DAYS)
    if since is None:
        return floor, end
    start = min(max(as_utc(since), floor), end)
    if start != as_utc(since):
        logger.info("WHOOP sync: since %s clamped to %s", since.isoformat(), start.isoformat())
    return start, end


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def reconcile_whoop(
    db: Session,
    user_id: str,
    client: WhoopClient,
    clock: Clock,
    since: Optional[datetime] = None,
) -> ReconcileResult:
    result = ReconcileResult()
    start, end = sync_window(clock, since)
    days: set[date] = set()

    try:
        recoveries = _recovery_index(client.recoveries(start, end))
    except WearableAPIError as exc:
        result.errors.append(f"Recovery sync error: {exc.message}")
        recoveries = {}

    try:
        _sync_sleep(db, user_id, client.sleeps(start, end), recoveries, clock, result, days)
    except WearableAPIError as exc:
        result.errors.append(f"Sleep sync error: {exc.message}")

    try:
        _sync_workouts(db, user_id, client.workouts(start, end), clock, result, days)
    except WearableAPIError as exc:
        result.errors.append(f"Workout sync error: {exc.message}")

    result.points["total"] = result.points["sleep"] + result.points["training"]

    today = clock.today()
    for day in sorted(days):
        _, streaks = refresh_day(db, user_id, day, clock, allow_stale=day < today)
        overall = streaks[PillarKey.OVERALL.value]
        if overall.increased:
            result.overall_streak = overall.after.current
    result.days_updated = sorted(days)

    ctx = fetch_latest_metrics(client, clock, result.errors)
    run = evaluate_auto_triggers(db, user_id, ctx, clock, types=WHOOP_TRIGGER_TYPES)
    result.triggers_evaluated = len(run.evaluations)
    result.triggers_activated = run.activated
    overall = run.streaks.get(PillarKey.OVERALL.value)
    if overall is not None and overall.increased:
        result.overall_streak = overall.after.current

    logger.info(
        "WHOOP sync for %s: %d sleeps, %d workouts, +%d points, %d triggers fired, %d errors",
        user_id, result.sleep_synced, result.workouts_synced, result.points["total"],
        result.triggers_activated, len(result.errors),
    )
    return result
