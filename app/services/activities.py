"""
Activities service: user-managed CRUD plus the "record a completion" entry
point of the engine.

Public API
----------
create_activity / update_activity / archive_activity / list_activities
get_owned_activity(db, user_id, activity_id)               -> Activity (404)
record_completion(db, user_id, activity_id, clock, ...)    -> CompletionOutcome

record_completion pipeline
--------------------------
  insert completion (commit)
    -> recompute DailyScore for the completion's local day (commit)
    -> advance BODY / MIND / OVERALL streaks (one commit each)

Best-effort follow-ups (achievement unlocks, ACTIVITY_COMPLETED
auto-triggers) are not run here; the caller dispatches them once this
returns, after everything above has committed.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.core.clock import Clock, as_utc
from app.core.errors import (
    ActivityAlreadyCompletedError,
    ActivityNotFoundError,
    ValidationFailedError,
)
from app.db.base import begin_write
from app.models.activity import Activity, CueType, Pillar
from app.models.activity_completion import ActivityCompletion, Source
from app.models.daily_score import DailyScore
from app.models.streak import PillarKey
from app.services.daily_scores import recompute_daily_score
from app.services.streaks import StreakUpdate, update_all_streaks
from app.services.validation import validate_cue, validate_name

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = {
    "name", "description", "pillar", "sub_category", "points",
    "is_habit", "cue_type", "cue_value",
}


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class CompletionOutcome:
    completion: ActivityCompletion
    day: date
    daily_score: DailyScore
    streaks: dict[str, StreakUpdate]

    @property
    def overall_streak(self) -> int:
        return self.streaks[PillarKey.OVERALL.value].after.current

    @property
    def overall_increased(self) -> bool:
        return self.streaks[PillarKey.OVERALL.value].increased


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

def _validate_points(points: int) -> None:
    if points is None or points <= 0:
        raise ValidationFailedError("Points must be a positive integer.", field="points")


def _validate_sub_category(value: Optional[str]) -> str:
    stripped = (value or "").strip()
    if not stripped:
        raise ValidationFailedError("Sub-category must not be empty.", field="sub_category")
    return stripped.upper()


def create_activity(
    db: Session,
    user_id: str,
    *,
    name: str,
    pillar: Pillar | str,
    sub_category: str,
    points: int = 25,
    is_habit: bool = False,
    cue_type: Optional[CueType | str] = None,
    cue_value: Optional[str] = None,
    description: Optional[str] = None,
) -> Activity:
    clean_name = validate_name(name)
    clean_sub = _validate_sub_category(sub_category)
    _validate_points(points)
    validate_cue(cue_type, cue_value)

    activity = Activity(
        user_id=user_id,
        name=clean_name,
        description=description,
        pillar=Pillar(pillar),
        sub_category=clean_sub,
        points=points,
        is_habit=is_habit,
        cue_type=CueType(cue_type) if cue_type else None,
        cue_value=cue_value if cue_type else None,
    )
    db.add(activity)
    db.commit()
    db.refresh(activity)
    return activity


def get_owned_activity(
    db: Session,
    user_id: str,
    activity_id: int,
    include_archived: bool = False,
) -> Activity:
    q = db.query(Activity).filter(Activity.id == activity_id, Activity.user_id == user_id)
    if not include_archived:
        q = q.filter(Activity.archived.is_(False))
    activity = q.first()
    if activity is None:
        raise ActivityNotFoundError(activity_id)
    return activity


def list_activities(
    db: Session,
    user_id: str,
    pillar: Optional[Pillar | str] = None,
    include_archived: bool = False,
) -> list[Activity]:
    q = db.query(Activity).filter(Activity.user_id == user_id)
    if pillar is not None:
        q = q.filter(Activity.pillar == Pillar(pillar))
    if not include_archived:
        q = q.filter(Activity.archived.is_(False))
    return q.order_by(Activity.pillar, Activity.created_at, Activity.id).all()


def update_activity(
    db: Session, user_id: str, activity_id: int, changes: dict[str, Any]
) -> Activity:
    """Apply a partial update. Unknown keys are ignored."""
    activity = get_owned_activity(db, user_id, activity_id)
    changes = {k: v for k, v in changes.items() if k in _EDITABLE_FIELDS}

    if "name" in changes:
        changes["name"] = validate_name(changes["name"])
    if "sub_category" in changes:
        changes["sub_category"] = _validate_sub_category(changes["sub_category"])
    if "points" in changes:
        _validate_points(changes["points"])
    if "pillar" in changes:
        changes["pillar"] = Pillar(changes["pillar"])

    cue_type = changes.get("cue_type", activity.cue_type)
    cue_value = changes.get("cue_value", activity.cue_value)
    validate_cue(cue_type, cue_value)
    if "cue_type" in changes:
        changes["cue_type"] = CueType(cue_type) if cue_type else None
        if cue_type is None:
            changes["cue_value"] = None

    for field, value in changes.items():
        setattr(activity, field, value)
    db.commit()
    db.refresh(activity)
    return activity


def archive_activity(db: Session, user_id: str, activity_id: int) -> Activity:
    activity = get_owned_activity(db, user_id, activity_id, include_archived=True)
    if not activity.archived:
        activity.archived = True
        db.commit()
        db.refresh(activity)
    return activity


# ---------------------------------------------------------------------------
# Completions
# ---------------------------------------------------------------------------

def serialize_details(details: Any) -> Optional[str]:
    if details is None:
        return None
    if isinstance(details, str):
        return details.strip() or None
    return json.dumps(details, default=str, sort_keys=True)


def completion_on_day(
    db: Session, activity_id: int, day: date, clock: Clock
) -> Optional[ActivityCompletion]:
    start, end = clock.day_bounds(day)
    return (
        db.query(ActivityCompletion)
        .filter(
            ActivityCompletion.activity_id == activity_id,
            ActivityCompletion.completed_at >= start,
            ActivityCompletion.completed_at < end,
        )
        .first()
    )


def add_completion(
    db: Session,
    activity: Activity,
    completed_at: datetime,
    points: Optional[int] = None,
    details: Any = None,
    source: Source = Source.MANUAL,
    external_id: Optional[str] = None,
    record_type: Optional[str] = None,
) -> ActivityCompletion:
    """Stage a completion row (flush only; the caller commits)."""
    completion = ActivityCompletion(
        activity_id=activity.id,
        user_id=activity.user_id,
        points_earned=activity.points if points is None else points,
        completed_at=as_utc(completed_at),
        source=source,
        details=serialize_details(details),
        external_id=external_id,
        record_type=record_type,
    )
    db.add(completion)
    db.flush()
    return completion


def refresh_day(
    db: Session, user_id: str, day: date, clock: Clock, allow_stale: bool = False
) -> tuple[DailyScore, dict[str, StreakUpdate]]:
    """Recompute the day's score, then advance the three streaks for it."""
    score = recompute_daily_score(db, user_id, day, clock)
    streaks = update_all_streaks(db, user_id, day, clock, allow_stale=allow_stale)
    return score, streaks


def record_completion(
    db: Session,
    user_id: str,
    activity_id: int,
    clock: Clock,
    points: Optional[int] = None,
    details: Any = None,
    completed_at: Optional[datetime] = None,
    source: Source = Source.MANUAL,
) -> CompletionOutcome:
    """
    Log one completion and push it through scores and streaks.

    Habit activities can be completed once per local day; a second attempt
    raises ActivityAlreadyCompletedError with nothing written.
    """
    activity = get_owned_activity(db, user_id, activity_id)
    if points is not None and points < 0:
        raise ValidationFailedError("Point override must not be negative.", field="points")

    event_time = as_utc(completed_at) if completed_at else as_utc(clock.now())
    day = clock.local_date(event_time)
    if day > clock.today():
        raise ValidationFailedError("Completions cannot be logged in the future.", field="completed_at")

    try:
        begin_write(db)
        if activity.is_habit and completion_on_day(db, activity.id, day, clock) is not None:
            raise ActivityAlreadyCompletedError(activity_id, day)

        completion = add_completion(
            db, activity, event_time, points=points, details=details, source=source,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(completion)
    logger.info(
        "user %s completed activity %s (+%d %s) on %s",
        user_id, activity.id, completion.points_earned, activity.pillar.value, day,
    )

    score, streaks = refresh_day(db, user_id, day, clock, allow_stale=day < clock.today())
    return CompletionOutcome(
        completion=completion,
        day=day,
        daily_score=score,
        streaks=streaks,
    )
