"""
Achievement Unlocker — streak milestone badges.

Only the OVERALL streak unlocks achievements. For every milestone at or
below the new streak length an `Achievement(user_id, "streak_<n>")` insert
is attempted; the unique (user_id, type) constraint turns repeats into
no-ops, so retried requests and concurrent unlocks converge on one row.

Unlocking is best-effort: it runs after the streak transaction has
committed (FastAPI BackgroundTasks) and failures are logged, never raised
into the request that earned them.
"""
from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.base import begin_write
from app.models.achievement import Achievement

logger = logging.getLogger(__name__)

STREAK_MILESTONES = (3, 7, 14, 30, 60, 100, 365)

ACHIEVEMENT_DEFINITIONS: dict[str, dict[str, str]] = {
    "streak_3":   {"title": "Getting Started",     "description": "3 day streak",   "icon": "flame"},
    "streak_7":   {"title": "One Week Strong",     "description": "7 day streak",   "icon": "fire"},
    "streak_14":  {"title": "Two Weeks In",        "description": "14 day streak",  "icon": "fire-plus"},
    "streak_30":  {"title": "Monthly Master",      "description": "30 day streak",  "icon": "medal"},
    "streak_60":  {"title": "Consistency King",    "description": "60 day streak",  "icon": "crown"},
    "streak_100": {"title": "Century Club",        "description": "100 day streak", "icon": "trophy"},
    "streak_365": {"title": "Year of Excellence",  "description": "365 day streak", "icon": "star"},
}


def milestone_type(milestone: int) -> str:
    return f"streak_{milestone}"


def reached_milestones(current: int) -> list[int]:
    return [m for m in STREAK_MILESTONES if m <= current]


def unlock_streak_achievements(db: Session, user_id: str, current: int) -> list[str]:
    """
    Create any missing streak achievements for a streak of *current* days.
    Returns the types unlocked by this call (empty when all existed).
    """
    unlocked: list[str] = []
    try:
        begin_write(db)
        for milestone in reached_milestones(current):
            type_ = milestone_type(milestone)
            exists = (
                db.query(Achievement.id)
                .filter(Achievement.user_id == user_id, Achievement.type == type_)
                .first()
            )
            if exists is not None:
                continue
            savepoint = db.begin_nested()
            try:
                db.add(Achievement(user_id=user_id, type=type_))
                db.flush()
                savepoint.commit()
                unlocked.append(type_)
            except IntegrityError:
                # Unlocked concurrently by another request.
                savepoint.rollback()
        db.commit()
    except Exception:
        db.rollback()
        raise

    if unlocked:
        logger.info("user %s unlocked %s", user_id, ", ".join(unlocked))
    return unlocked


def dispatch_streak_achievements(
    user_id: str,
    current: int,
    session_factory: Callable[[], Session],
) -> list[str]:
    """
    Fire-and-forget wrapper run after the core transaction commits.
    Uses its own session; errors are logged and swallowed.
    """
    db = session_factory()
    try:
        return unlock_streak_achievements(db, user_id, current)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("achievement unlock failed for user %s (streak %d)", user_id, current)
        return []
    finally:
        db.close()


def list_achievements(db: Session, user_id: str) -> list[Achievement]:
    return (
        db.query(Achievement)
        .filter(Achievement.user_id == user_id)
        .order_by(Achievement.unlocked_at.desc(), Achievement.id.desc())
        .all()
    )
