"""
Daily Score service — per-day point totals persisted to `daily_scores`.

Public API
----------
completions_for_day(db, user_id, day, clock)   -> list[ActivityCompletion]
compute_day(day, completions)                  -> DayTotals          (pure)
recompute_daily_score(db, user_id, day, clock) -> DailyScore         (upsert)
recent_scores(db, user_id, end, days)          -> list[DailyScore]

The persisted row is never patched incrementally: every write recomputes the
whole day from its completions and overwrites, so retried or out-of-order
writes converge on the same row.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, contains_eager

from app.core.clock import Clock
from app.db.base import begin_write
from app.models.activity import Activity, Pillar
from app.models.activity_completion import ActivityCompletion
from app.models.daily_score import DailyScore
from app.services.points import (
    balance_index,
    clamped_score,
    is_pillar_complete,
    pillar_points,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DayTotals:
    day: date
    body_points: int
    mind_points: int
    body_score: int
    mind_score: int
    balance_index: Decimal
    body_complete: bool
    mind_complete: bool

    @property
    def overall_complete(self) -> bool:
        return self.body_complete and self.mind_complete


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def completions_for_day(
    db: Session, user_id: str, day: date, clock: Clock
) -> list[ActivityCompletion]:
    """The user's completions inside [local midnight, next local midnight).

    Completions of archived activities do not count.
    """
    start, end = clock.day_bounds(day)
    return (
        db.query(ActivityCompletion)
        .join(ActivityCompletion.activity)
        .options(contains_eager(ActivityCompletion.activity))
        .filter(
            ActivityCompletion.user_id == user_id,
            Activity.archived.is_(False),
            ActivityCompletion.completed_at >= start,
            ActivityCompletion.completed_at < end,
        )
        .order_by(ActivityCompletion.completed_at.desc())
        .all()
    )


def compute_day(day: date, completions) -> DayTotals:
    body = pillar_points(completions, Pillar.BODY)
    mind = pillar_points(completions, Pillar.MIND)
    body_score = clamped_score(body)
    mind_score = clamped_score(mind)
    return DayTotals(
        day=day,
        body_points=body,
        mind_points=mind,
        body_score=body_score,
        mind_score=mind_score,
        balance_index=balance_index(body_score, mind_score),
        body_complete=is_pillar_complete(body),
        mind_complete=is_pillar_complete(mind),
    )


def day_totals(db: Session, user_id: str, day: date, clock: Clock) -> DayTotals:
    return compute_day(day, completions_for_day(db, user_id, day, clock))


def recent_scores(
    db: Session, user_id: str, end: date, days: int = 7
) -> list[DailyScore]:
    """Persisted scores for [end - days + 1, end], oldest first."""
    start = end - timedelta(days=days - 1)
    return (
        db.query(DailyScore)
        .filter(
            DailyScore.user_id == user_id,
            DailyScore.date >= start,
            DailyScore.date <= end,
        )
        .order_by(DailyScore.date.asc())
        .all()
    )


# ---------------------------------------------------------------------------
# Write: recompute and overwrite
# ---------------------------------------------------------------------------

def _score_row(db: Session, user_id: str, day: date) -> Optional[DailyScore]:
    return (
        db.query(DailyScore)
        .filter(DailyScore.user_id == user_id, DailyScore.date == day)
        .populate_existing()
        .first()
    )


def _write(db: Session, user_id: str, totals: DayTotals) -> DailyScore:
    row = _score_row(db, user_id, totals.day)
    if row is None:
        row = DailyScore(user_id=user_id, date=totals.day)
        db.add(row)
    row.body_points = totals.body_points
    row.mind_points = totals.mind_points
    row.body_score = totals.body_score
    row.mind_score = totals.mind_score
    row.balance_index = totals.balance_index
    row.body_complete = totals.body_complete
    row.mind_complete = totals.mind_complete
    db.flush()
    return row


def recompute_daily_score(db: Session, user_id: str, day: date, clock: Clock) -> DailyScore:
    """
    Recompute the (user, day) score from scratch, upsert it and commit.

    If a concurrent writer inserts the same (user_id, date) first, the
    savepoint is rolled back and the write is retried as an update; both
    writers computed from the same completions so the result is identical.
    """
    try:
        begin_write(db)
        totals = day_totals(db, user_id, day, clock)

        savepoint = db.begin_nested()
        try:
            row = _write(db, user_id, totals)
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.info("daily score for %s on %s inserted concurrently; updating", user_id, day)
            row = _write(db, user_id, totals)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(row)
    return row
