"""
Streak State Machine — consecutive complete days per pillar key.

Transition (pure, see `advance`)
--------------------------------
  last_active_date == day          -> unchanged (already processed today)
  day complete                     -> current = current + 1 if gap == 1 else 1
                                      longest = max(longest, current)
                                      last_active_date = day
  day not complete, gap > 1        -> current = 0 (streak broken)
  day not complete, gap <= 1       -> unchanged (today has not ended yet)

  gap = whole days since last_active_date, infinite when there is none.

Pillar keys: BODY, MIND and OVERALL, where an OVERALL day is complete only
when both BODY and MIND are.

Persistence
-----------
`update_streak` runs fetch-or-create, lock, transition and write inside one
transaction per (user, pillar_key). The "already processed today" check
happens after the row lock is taken, so two completions racing on the same
day cannot both increment `current`.

`at_risk` and `hours_remaining` are derived on every read and never stored.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.errors import StreakInvariantError
from app.db.base import begin_write
from app.models.streak import PillarKey, Streak
from app.services.daily_scores import DayTotals, day_totals
from app.services.day_counter import day_gap

logger = logging.getLogger(__name__)

PILLAR_KEYS = (PillarKey.OVERALL, PillarKey.BODY, PillarKey.MIND)


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StreakState:
    current: int = 0
    longest: int = 0
    last_active_date: Optional[date] = None


@dataclass(frozen=True)
class StreakInfo:
    pillar_key: str
    current: int
    longest: int
    last_active_date: Optional[date]
    at_risk: bool
    hours_remaining: float


@dataclass(frozen=True)
class StreakUpdate:
    pillar_key: str
    before: StreakState
    after: StreakState

    @property
    def changed(self) -> bool:
        return self.before != self.after

    @property
    def increased(self) -> bool:
        return self.after.current > self.before.current


# ---------------------------------------------------------------------------
# Pure transition and derived signals
# ---------------------------------------------------------------------------

def advance(
    state: StreakState,
    day: date,
    day_is_complete: bool,
    pillar_key: str = "?",
) -> StreakState:
    """Next streak state after evaluating *day*."""
    if state.last_active_date == day:
        return state

    gap = day_gap(state.last_active_date, day)
    if gap is not None and gap < 0:
        raise StreakInvariantError(pillar_key, day, state.last_active_date)

    if day_is_complete:
        current = state.current + 1 if gap == 1 else 1
        return StreakState(
            current=current,
            longest=max(state.longest, current),
            last_active_date=day,
        )

    if gap is None or gap > 1:
        return replace(state, current=0)
    return state


def at_risk(state: StreakState, day_is_complete_today: bool) -> bool:
    return state.current > 0 and not day_is_complete_today


def hours_remaining_today(clock: Clock) -> float:
    return clock.hours_until_midnight()


def pillar_completion(totals: DayTotals) -> dict[str, bool]:
    return {
        PillarKey.BODY.value: totals.body_complete,
        PillarKey.MIND.value: totals.mind_complete,
        PillarKey.OVERALL.value: totals.overall_complete,
    }


def ember_intensity(days: int) -> tuple[str, bool]:
    """(level, has_particles) used by clients to render the streak flame."""
    if days >= 14:
        return "golden", True
    if days >= 7:
        return "bright", False
    if days >= 4:
        return "steady", False
    return "dim", False


def _key(pillar_key: PillarKey | str) -> str:
    return pillar_key.value if hasattr(pillar_key, "value") else str(pillar_key)


def _state(row: Optional[Streak]) -> StreakState:
    if row is None:
        return StreakState()
    return StreakState(
        current=row.current,
        longest=row.longest,
        last_active_date=row.last_active_date,
    )


# ---------------------------------------------------------------------------
# Read path: never writes
# ---------------------------------------------------------------------------

def _info(key: str, state: StreakState, complete_today: bool, clock: Clock) -> StreakInfo:
    return StreakInfo(
        pillar_key=key,
        current=state.current,
        longest=state.longest,
        last_active_date=state.last_active_date,
        at_risk=at_risk(state, complete_today),
        hours_remaining=hours_remaining_today(clock),
    )


def get_streak(
    db: Session,
    user_id: str,
    pillar_key: PillarKey | str,
    clock: Clock,
    today_totals: Optional[DayTotals] = None,
) -> StreakInfo:
    """Stored streak for one pillar key plus freshly derived at-risk signals."""
    key = _key(pillar_key)
    row = (
        db.query(Streak)
        .filter(Streak.user_id == user_id, Streak.pillar_key == key)
        .first()
    )
    totals = today_totals or day_totals(db, user_id, clock.today(), clock)
    return _info(key, _state(row), pillar_completion(totals)[key], clock)


def get_all_streaks(
    db: Session,
    user_id: str,
    clock: Clock,
    today_totals: Optional[DayTotals] = None,
) -> dict[str, StreakInfo]:
    totals = today_totals or day_totals(db, user_id, clock.today(), clock)
    return {
        _key(k): get_streak(db, user_id, k, clock, today_totals=totals)
        for k in PILLAR_KEYS
    }


# ---------------------------------------------------------------------------
# Write path: one transaction per (user, pillar_key)
# ---------------------------------------------------------------------------

def _ensure_row(db: Session, user_id: str, key: str) -> None:
    exists = (
        db.query(Streak.id)
        .filter(Streak.user_id == user_id, Streak.pillar_key == key)
        .first()
    )
    if exists is not None:
        return
    savepoint = db.begin_nested()
    try:
        db.add(Streak(user_id=user_id, pillar_key=key, current=0, longest=0))
        db.flush()
        savepoint.commit()
    except IntegrityError:
        # Another writer created it first; theirs is as good as ours.
        savepoint.rollback()


def update_streak(
    db: Session,
    user_id: str,
    pillar_key: PillarKey | str,
    day: date,
    day_is_complete: bool,
    allow_stale: bool = False,
) -> StreakUpdate:
    """
    Apply `advance` to the stored streak and commit.

    allow_stale=True makes a *day* older than last_active_date a no-op
    instead of an invariant violation (backfilled wearable data).
    """
    key = _key(pillar_key)
    try:
        begin_write(db)
        _ensure_row(db, user_id, key)
        row = db.execute(
            select(Streak)
            .where(Streak.user_id == user_id, Streak.pillar_key == key)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()
        before = _state(row)

        # Already processed today: checked under the row lock.
        if before.last_active_date == day:
            db.commit()
            return StreakUpdate(key, before, before)

        if (
            allow_stale
            and before.last_active_date is not None
            and day < before.last_active_date
        ):
            logger.debug("skipping stale %s streak update for %s on %s", key, user_id, day)
            db.commit()
            return StreakUpdate(key, before, before)

        after = advance(before, day, day_is_complete, pillar_key=key)
        if after != before:
            row.current = after.current
            row.longest = after.longest
            row.last_active_date = after.last_active_date
        db.commit()
    except Exception:
        db.rollback()
        raise

    if after.current == 0 and before.current > 0:
        logger.info("%s streak for %s broken on %s (was %d)", key, user_id, day, before.current)
    return StreakUpdate(key, before, after)


def update_all_streaks(
    db: Session,
    user_id: str,
    day: date,
    clock: Clock,
    allow_stale: bool = False,
) -> dict[str, StreakUpdate]:
    """Evaluate *day* for BODY, MIND and OVERALL."""
    flags = pillar_completion(day_totals(db, user_id, day, clock))
    return {
        _key(k): update_streak(
            db, user_id, k, day, flags[_key(k)], allow_stale=allow_stale
        )
        for k in PILLAR_KEYS
    }
