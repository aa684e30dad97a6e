"""
Auto-trigger service — completes a habit automatically when a wearable
reading or a linked activity's completion satisfies its condition.

Evaluated from two places:
  * after a WHOOP reconciliation pass (recovery / sleep / strain / workout)
  * after a manual completion (ACTIVITY_COMPLETED), post-commit

An activity that already has a completion today is never auto-completed a
second time, whatever its source.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, contains_eager

from app.core.clock import Clock
from app.core.errors import TriggerNotFoundError, ValidationFailedError
from app.db.base import begin_write
from app.models.activity import Activity
from app.models.activity_completion import Source
from app.models.auto_trigger import AutoTrigger, AutoTriggerType
from app.models.streak import PillarKey
from app.services.achievements import unlock_streak_achievements
from app.services.activities import (
    add_completion,
    completion_on_day,
    get_owned_activity,
    refresh_day,
)
from app.services.streaks import StreakUpdate

logger = logging.getLogger(__name__)

WHOOP_TRIGGER_TYPES = frozenset({
    AutoTriggerType.WHOOP_RECOVERY_ABOVE,
    AutoTriggerType.WHOOP_RECOVERY_BELOW,
    AutoTriggerType.WHOOP_SLEEP_ABOVE,
    AutoTriggerType.WHOOP_STRAIN_ABOVE,
    AutoTriggerType.WHOOP_WORKOUT_TYPE,
})

_THRESHOLD_TYPES = frozenset({
    AutoTriggerType.WHOOP_RECOVERY_ABOVE,
    AutoTriggerType.WHOOP_RECOVERY_BELOW,
    AutoTriggerType.WHOOP_SLEEP_ABOVE,
    AutoTriggerType.WHOOP_STRAIN_ABOVE,
})


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TriggerContext:
    whoop_recovery: Optional[float] = None
    whoop_sleep_hours: Optional[float] = None
    whoop_strain: Optional[float] = None
    whoop_workout_type_id: Optional[int] = None
    completed_activity_id: Optional[int] = None


@dataclass
class TriggerEvaluation:
    trigger_id: int
    activity_id: int
    activity_name: str
    triggered: bool = False
    already_completed_today: bool = False
    completion_created: bool = False


@dataclass
class TriggerRun:
    evaluations: list[TriggerEvaluation] = field(default_factory=list)
    streaks: dict[str, StreakUpdate] = field(default_factory=dict)

    @property
    def activated(self) -> int:
        return sum(1 for e in self.evaluations if e.completion_created)


# ---------------------------------------------------------------------------
# Pure condition logic
# ---------------------------------------------------------------------------

def trigger_condition_met(trigger: AutoTrigger, ctx: TriggerContext) -> bool:
    t = trigger.trigger_type
    if t == AutoTriggerType.WHOOP_RECOVERY_ABOVE:
        return ctx.whoop_recovery is not None and ctx.whoop_recovery >= (trigger.threshold_value or 0)
    if t == AutoTriggerType.WHOOP_RECOVERY_BELOW:
        if ctx.whoop_recovery is None:
            return False
        threshold = 100 if trigger.threshold_value is None else trigger.threshold_value
        return ctx.whoop_recovery < threshold
    if t == AutoTriggerType.WHOOP_SLEEP_ABOVE:
        return ctx.whoop_sleep_hours is not None and ctx.whoop_sleep_hours >= (trigger.threshold_value or 0)
    if t == AutoTriggerType.WHOOP_STRAIN_ABOVE:
        return ctx.whoop_strain is not None and ctx.whoop_strain >= (trigger.threshold_value or 0)
    if t == AutoTriggerType.WHOOP_WORKOUT_TYPE:
        return (
            ctx.whoop_workout_type_id is not None
            and ctx.whoop_workout_type_id == trigger.workout_type_id
        )
    if t == AutoTriggerType.ACTIVITY_COMPLETED:
        return (
            ctx.completed_activity_id is not None
            and ctx.completed_activity_id == trigger.trigger_activity_id
        )
    logger.warning("unknown trigger type %s on trigger %s", t, trigger.id)
    return False


def completion_details(trigger_type: AutoTriggerType, ctx: TriggerContext) -> str:
    if trigger_type in (AutoTriggerType.WHOOP_RECOVERY_ABOVE, AutoTriggerType.WHOOP_RECOVERY_BELOW):
        return f"Auto-triggered: Recovery {ctx.whoop_recovery:g}%"
    if trigger_type == AutoTriggerType.WHOOP_SLEEP_ABOVE:
        return f"Auto-triggered: Sleep {ctx.whoop_sleep_hours:.1f} hours"
    if trigger_type == AutoTriggerType.WHOOP_STRAIN_ABOVE:
        return f"Auto-triggered: Strain {ctx.whoop_strain:.1f}"
    if trigger_type == AutoTriggerType.WHOOP_WORKOUT_TYPE:
        return f"Auto-triggered: Workout type {ctx.whoop_workout_type_id} logged"
    if trigger_type == AutoTriggerType.ACTIVITY_COMPLETED:
        return "Auto-triggered: Linked activity completed"
    return "Auto-triggered"


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def _active_triggers(
    db: Session, user_id: str, types: Optional[Iterable[AutoTriggerType]]
) -> list[AutoTrigger]:
    q = (
        db.query(AutoTrigger)
        .join(AutoTrigger.activity)
        .options(contains_eager(AutoTrigger.activity))
        .filter(
            AutoTrigger.is_active.is_(True),
            Activity.user_id == user_id,
            Activity.archived.is_(False),
        )
    )
    if types is not None:
        q = q.filter(AutoTrigger.trigger_type.in_(list(types)))
    return q.order_by(AutoTrigger.id).all()


def evaluate_auto_triggers(
    db: Session,
    user_id: str,
    ctx: TriggerContext,
    clock: Clock,
    types: Optional[Iterable[AutoTriggerType]] = None,
) -> TriggerRun:
    """
    Auto-complete every activity whose active trigger fires on *ctx*.

    All new completions land on today and are committed together; the day's
    score and streaks are then refreshed once.
    """
    run = TriggerRun()
    triggers = _active_triggers(db, user_id, types)
    if not triggers:
        return run

    now = clock.now()
    today = clock.today()
    completed_now: set[int] = set()
    try:
        begin_write(db)
        for trigger in triggers:
            activity = trigger.activity
            evaluation = TriggerEvaluation(
                trigger_id=trigger.id,
                activity_id=activity.id,
                activity_name=activity.name,
            )
            run.evaluations.append(evaluation)
            evaluation.triggered = trigger_condition_met(trigger, ctx)
            if not evaluation.triggered:
                continue

            if activity.id in completed_now or completion_on_day(db, activity.id, today, clock):
                evaluation.already_completed_today = True
                continue

            add_completion(
                db,
                activity,
                now,
                details=completion_details(trigger.trigger_type, ctx),
                source=Source.AUTO_TRIGGER,
            )
            completed_now.add(activity.id)
            evaluation.completion_created = True
            logger.info(
                "auto-completed activity %s for %s (trigger %s, %s)",
                activity.id, user_id, trigger.id, trigger.trigger_type.value,
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    if completed_now:
        _, run.streaks = refresh_day(db, user_id, today, clock)
    return run


def dispatch_activity_triggers(
    user_id: str,
    activity_id: int,
    clock: Clock,
    session_factory: Callable[[], Session],
) -> Optional[TriggerRun]:
    """
    Post-commit follow-up of a manual completion: evaluate ACTIVITY_COMPLETED
    triggers linked to *activity_id*. Own session; errors are logged.
    """
    db = session_factory()
    try:
        run = evaluate_auto_triggers(
            db,
            user_id,
            TriggerContext(completed_activity_id=activity_id),
            clock,
            types=[AutoTriggerType.ACTIVITY_COMPLETED],
        )
        overall = run.streaks.get(PillarKey.OVERALL.value)
        if overall is not None and overall.increased:
            unlock_streak_achievements(db, user_id, overall.after.current)
        return run
    except SQLAlchemyError:
        db.rollback()
        logger.exception("auto-trigger evaluation failed for %s after activity %s", user_id, activity_id)
        return None
    finally:
        db.close()


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

def create_trigger(
    db: Session,
    user_id: str,
    *,
    activity_id: int,
    trigger_type: AutoTriggerType | str,
    threshold_value: Optional[float] = None,
    workout_type_id: Optional[int] = None,
    trigger_activity_id: Optional[int] = None,
) -> AutoTrigger:
    trigger_type = AutoTriggerType(trigger_type)
    get_owned_activity(db, user_id, activity_id)

    if trigger_type in _THRESHOLD_TYPES and threshold_value is None:
        raise ValidationFailedError(
            f"{trigger_type.value} requires threshold_value.", field="threshold_value"
        )
    if trigger_type == AutoTriggerType.WHOOP_WORKOUT_TYPE and workout_type_id is None:
        raise ValidationFailedError(
            "WHOOP_WORKOUT_TYPE requires workout_type_id.", field="workout_type_id"
        )
    if trigger_type == AutoTriggerType.ACTIVITY_COMPLETED:
        if trigger_activity_id is None:
            raise ValidationFailedError(
                "ACTIVITY_COMPLETED requires trigger_activity_id.", field="trigger_activity_id"
            )
        if trigger_activity_id == activity_id:
            raise ValidationFailedError(
                "An activity cannot trigger itself.", field="trigger_activity_id"
            )
        get_owned_activity(db, user_id, trigger_activity_id)

    trigger = AutoTrigger(
        activity_id=activity_id,
        trigger_type=trigger_type,
        threshold_value=threshold_value if trigger_type in _THRESHOLD_TYPES else None,
        workout_type_id=workout_type_id if trigger_type == AutoTriggerType.WHOOP_WORKOUT_TYPE else None,
        trigger_activity_id=(
            trigger_activity_id if trigger_type == AutoTriggerType.ACTIVITY_COMPLETED else None
        ),
        is_active=True,
    )
    db.add(trigger)
    db.commit()
    db.refresh(trigger)
    return trigger


def list_triggers(
    db: Session, user_id: str, activity_id: Optional[int] = None
) -> list[AutoTrigger]:
    q = (
        db.query(AutoTrigger)
        .join(AutoTrigger.activity)
        .options(contains_eager(AutoTrigger.activity))
        .filter(Activity.user_id == user_id)
    )
    if activity_id is not None:
        q = q.filter(AutoTrigger.activity_id == activity_id)
    return q.order_by(AutoTrigger.id).all()


def delete_trigger(db: Session, user_id: str, trigger_id: int) -> None:
    trigger = (
        db.query(AutoTrigger)
        .join(AutoTrigger.activity)
        .filter(AutoTrigger.id == trigger_id, Activity.user_id == user_id)
        .first()
    )
    if trigger is None:
        raise TriggerNotFoundError(trigger_id)
    db.delete(trigger)
    db.commit()
