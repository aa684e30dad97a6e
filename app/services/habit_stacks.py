"""
Habit Stack service — CRUD, completion detection and the streak-scaled
bonus claim.

Bonus rule
----------
  streak_day  = consecutive days the stack was claimed up to yesterday + 1
  multiplier  = min(1 + (streak_day - 1) * 0.05, 1.5)
  bonus       = round_half_up(completion_bonus * multiplier)

  completion_bonus=20: day 1 -> 20, day 10 -> 29, day 11+ -> 30

The claim is write-once per (stack, day). `complete_stack` returns the
existing row when one is already there, and a writer that loses the insert
race on the unique key re-reads the winner's row instead of failing.

`is_stack_completed` is a read-only check and never claims the bonus.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.config import settings
from app.core.errors import StackNotFoundError, ValidationFailedError
from app.db.base import begin_write
from app.models.activity import Activity, CueType
from app.models.activity_completion import ActivityCompletion, Source
from app.models.daily_score import DailyScore
from app.models.habit_stack import HabitStack, StackCompletion
from app.services.activities import add_completion
from app.services.daily_scores import recompute_daily_score
from app.services.day_counter import run_length
from app.services.streaks import StreakUpdate, update_all_streaks
from app.services.validation import validate_cue, validate_name

logger = logging.getLogger(__name__)

MIN_STACK_SIZE = 2
MAX_COMPLETION_BONUS = 100
MULTIPLIER_STEP = Decimal("0.05")
MULTIPLIER_CAP = Decimal("1.5")

_EDITABLE_FIELDS = {
    "name", "description", "activity_ids", "completion_bonus",
    "cue_type", "cue_value", "is_active",
}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class StackCompletionResult:
    completion: StackCompletion
    created: bool

    @property
    def bonus_points(self) -> int:
        return self.completion.bonus_points_earned

    @property
    def streak_day(self) -> int:
        return self.completion.streak_day


@dataclass(frozen=True)
class StackStatus:
    stack_id: int
    day: date
    activity_ids: list[int]
    completed_activity_ids: list[int]
    is_completed: bool
    bonus_claimed: bool
    current_streak: int
    next_bonus_points: int


@dataclass
class StackExecution:
    stack: HabitStack
    day: date
    new_completions: list[ActivityCompletion] = field(default_factory=list)
    already_completed: int = 0
    points_earned: int = 0
    bonus: Optional[StackCompletionResult] = None
    daily_score: Optional[DailyScore] = None
    streaks: dict[str, StreakUpdate] = field(default_factory=dict)

    @property
    def total_points(self) -> int:
        return self.points_earned + (self.bonus.bonus_points if self.bonus else 0)


# ---------------------------------------------------------------------------
# Bonus calculation (pure)
# ---------------------------------------------------------------------------

def bonus_multiplier(streak_day: int) -> Decimal:
    if streak_day < 1:
        raise ValueError("streak_day starts at 1")
    return min(Decimal(1) + (streak_day - 1) * MULTIPLIER_STEP, MULTIPLIER_CAP)


def bonus_points(completion_bonus: int, streak_day: int) -> int:
    raw = Decimal(completion_bonus) * bonus_multiplier(streak_day)
    return int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Streak scan
# ---------------------------------------------------------------------------

def _recent_claim_dates(db: Session, stack_id: int, before: date, lookback: int) -> list[date]:
    rows = (
        db.query(StackCompletion.completed_on)
        .filter(StackCompletion.stack_id == stack_id, StackCompletion.completed_on < before)
        .order_by(StackCompletion.completed_on.desc())
        .limit(lookback)
        .all()
    )
    return [r.completed_on for r in rows]


def stack_streak_before(
    db: Session,
    stack_id: int,
    day: date,
    lookback: Optional[int] = None,
) -> int:
    """Consecutive claimed days ending the day before *day* (bounded scan)."""
    lookback = lookback or settings.STACK_STREAK_LOOKBACK
    dates = _recent_claim_dates(db, stack_id, day, lookback)
    return run_length(dates, day - timedelta(days=1))


def current_stack_streak(db: Session, stack_id: int, today: date) -> int:
    """Live streak: includes today when today's bonus is already claimed."""
    if _claim_for(db, stack_id, today) is not None:
        return stack_streak_before(db, stack_id, today + timedelta(days=1))
    return stack_streak_before(db, stack_id, today)


# ---------------------------------------------------------------------------
# Claim
# ---------------------------------------------------------------------------

def _claim_for(db: Session, stack_id: int, day: date) -> Optional[StackCompletion]:
    return (
        db.query(StackCompletion)
        .filter(StackCompletion.stack_id == stack_id, StackCompletion.completed_on == day)
        .populate_existing()
        .first()
    )


def complete_stack(db: Session, stack: HabitStack, day: date) -> StackCompletionResult:
    """Claim the bonus for (stack, day) once. Repeat calls return the same row."""
    stack_id, user_id, completion_bonus = stack.id, stack.user_id, stack.completion_bonus
    try:
        begin_write(db)
        existing = _claim_for(db, stack_id, day)
        if existing is not None:
            db.commit()
            return StackCompletionResult(existing, created=False)

        streak_day = stack_streak_before(db, stack_id, day) + 1
        claim = StackCompletion(
            stack_id=stack_id,
            user_id=user_id,
            completed_on=day,
            bonus_points_earned=bonus_points(completion_bonus, streak_day),
            streak_day=streak_day,
        )
        savepoint = db.begin_nested()
        try:
            db.add(claim)
            db.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            winner = _claim_for(db, stack_id, day)
            db.commit()
            logger.info("stack %s bonus for %s claimed concurrently; using winner", stack_id, day)
            return StackCompletionResult(winner, created=False)

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(claim)
    logger.info(
        "stack %s completed on %s: day %d, +%d bonus",
        stack_id, day, streak_day, claim.bonus_points_earned,
    )
    return StackCompletionResult(claim, created=True)


# ---------------------------------------------------------------------------
# Completion detection (read-only)
# ---------------------------------------------------------------------------

def completed_member_ids(db: Session, stack: HabitStack, day: date, clock: Clock) -> set[int]:
    if not stack.activity_ids:
        return set()
    start, end = clock.day_bounds(day)
    rows = (
        db.query(ActivityCompletion.activity_id)
        .filter(
            ActivityCompletion.activity_id.in_(stack.activity_ids),
            ActivityCompletion.completed_at >= start,
            ActivityCompletion.completed_at < end,
        )
        .distinct()
        .all()
    )
    return {r.activity_id for r in rows}


def is_stack_completed(db: Session, stack: HabitStack, day: date, clock: Clock) -> bool:
    members = set(stack.activity_ids or [])
    return bool(members) and completed_member_ids(db, stack, day, clock) >= members


def stack_status(db: Session, stack: HabitStack, day: date, clock: Clock) -> StackStatus:
    done = completed_member_ids(db, stack, day, clock)
    claimed = _claim_for(db, stack.id, day) is not None
    prior = stack_streak_before(db, stack.id, day)
    return StackStatus(
        stack_id=stack.id,
        day=day,
        activity_ids=list(stack.activity_ids),
        completed_activity_ids=[a for a in stack.activity_ids if a in done],
        is_completed=is_stack_completed(db, stack, day, clock),
        bonus_claimed=claimed,
        current_streak=prior + 1 if claimed else prior,
        next_bonus_points=bonus_points(stack.completion_bonus, prior + 1),
    )


# ---------------------------------------------------------------------------
# Execute
# ---------------------------------------------------------------------------

def execute_stack(db: Session, user_id: str, stack_id: int, clock: Clock) -> StackExecution:
    """
    Complete every member activity not yet done today, then claim the bonus.

    Order: member completions (one commit) -> DailyScore recompute ->
    bonus claim -> BODY / MIND / OVERALL streaks.
    """
    stack = get_owned_stack(db, user_id, stack_id, active_only=True)
    activities = _member_activities(db, user_id, stack.activity_ids)
    if not activities:
        raise StackNotFoundError(stack_id, reason="no valid activities")

    today = clock.today()
    now = clock.now()
    execution = StackExecution(stack=stack, day=today)
    try:
        begin_write(db)
        done = completed_member_ids(db, stack, today, clock)
        for activity in activities:
            if activity.id in done:
                execution.already_completed += 1
                continue
            completion = add_completion(
                db,
                activity,
                now,
                details=f"Completed as part of stack: {stack.name}",
                source=Source.MANUAL,
            )
            execution.new_completions.append(completion)
            execution.points_earned += completion.points_earned
        db.commit()
    except Exception:
        db.rollback()
        raise

    execution.daily_score = recompute_daily_score(db, user_id, today, clock)
    execution.bonus = complete_stack(db, stack, today)
    execution.streaks = update_all_streaks(db, user_id, today, clock)
    return execution


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

def _member_activities(db: Session, user_id: str, activity_ids: list[int]) -> list[Activity]:
    """Owned, unarchived activities in stack order."""
    if not activity_ids:
        return []
    rows = (
        db.query(Activity)
        .filter(
            Activity.id.in_(activity_ids),
            Activity.user_id == user_id,
            Activity.archived.is_(False),
        )
        .all()
    )
    by_id = {a.id: a for a in rows}
    return [by_id[i] for i in activity_ids if i in by_id]


def _validate_activity_ids(db: Session, user_id: str, activity_ids: Any) -> list[int]:
    ids = list(activity_ids or [])
    if len(ids) < MIN_STACK_SIZE:
        raise ValidationFailedError(
            f"A habit stack needs at least {MIN_STACK_SIZE} activities.", field="activity_ids"
        )
    if len(set(ids)) != len(ids):
        raise ValidationFailedError("Activities in a stack must be distinct.", field="activity_ids")
    found = {a.id for a in _member_activities(db, user_id, ids)}
    missing = [i for i in ids if i not in found]
    if missing:
        raise ValidationFailedError(
            f"Unknown or archived activities: {missing}.", field="activity_ids"
        )
    return ids


def _validate_bonus(value: int) -> None:
    if value is None or not 0 <= value <= MAX_COMPLETION_BONUS:
        raise ValidationFailedError(
            f"completion_bonus must be between 0 and {MAX_COMPLETION_BONUS}.",
            field="completion_bonus",
        )


def get_owned_stack(
    db: Session, user_id: str, stack_id: int, active_only: bool = False
) -> HabitStack:
    q = db.query(HabitStack).filter(HabitStack.id == stack_id, HabitStack.user_id == user_id)
    if active_only:
        q = q.filter(HabitStack.is_active.is_(True))
    stack = q.first()
    if stack is None:
        raise StackNotFoundError(stack_id, reason="or not active" if active_only else None)
    return stack


def list_stacks(db: Session, user_id: str, active_only: bool = False) -> list[HabitStack]:
    q = db.query(HabitStack).filter(HabitStack.user_id == user_id)
    if active_only:
        q = q.filter(HabitStack.is_active.is_(True))
    return q.order_by(HabitStack.created_at, HabitStack.id).all()


def create_stack(
    db: Session,
    user_id: str,
    *,
    name: str,
    activity_ids: list[int],
    description: Optional[str] = None,
    completion_bonus: int = 20,
    cue_type: Optional[CueType | str] = None,
    cue_value: Optional[str] = None,
    is_active: bool = True,
) -> HabitStack:
    clean_name = validate_name(name)
    ids = _validate_activity_ids(db, user_id, activity_ids)
    _validate_bonus(completion_bonus)
    validate_cue(cue_type, cue_value)

    stack = HabitStack(
        user_id=user_id,
        name=clean_name,
        description=(description or "").strip() or None,
        activity_ids=ids,
        completion_bonus=completion_bonus,
        cue_type=CueType(cue_type) if cue_type else None,
        cue_value=cue_value.strip() if cue_type and cue_value else None,
        is_active=is_active,
    )
    db.add(stack)
    db.commit()
    db.refresh(stack)
    return stack


def update_stack(
    db: Session, user_id: str, stack_id: int, changes: dict[str, Any]
) -> HabitStack:
    stack = get_owned_stack(db, user_id, stack_id)
    changes = {k: v for k, v in changes.items() if k in _EDITABLE_FIELDS}

    if "name" in changes:
        changes["name"] = validate_name(changes["name"])
    if "activity_ids" in changes:
        changes["activity_ids"] = _validate_activity_ids(db, user_id, changes["activity_ids"])
    if "completion_bonus" in changes:
        _validate_bonus(changes["completion_bonus"])
    if "is_active" in changes and changes["is_active"] is None:
        del changes["is_active"]

    cue_type = changes.get("cue_type", stack.cue_type)
    cue_value = changes.get("cue_value", stack.cue_value)
    validate_cue(cue_type, cue_value)
    if "cue_type" in changes:
        changes["cue_type"] = CueType(cue_type) if cue_type else None
        if cue_type is None:
            changes["cue_value"] = None

    for name, value in changes.items():
        setattr(stack, name, value)
    db.commit()
    db.refresh(stack)
    return stack


def delete_stack(db: Session, user_id: str, stack_id: int) -> None:
    stack = get_owned_stack(db, user_id, stack_id)
    db.delete(stack)
    db.commit()
