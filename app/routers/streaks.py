"""
Streaks and achievements router (read-only).

GET /streaks                — OVERALL, BODY and MIND
GET /streaks/{pillar_key}   — one pillar key
GET /achievements           — unlocked milestone badges
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.clock import Clock, get_clock
from app.core.identity import current_user_id
from app.db.base import get_db
from app.models.streak import PillarKey
from app.routers.common import streak_list_to_response, streak_to_response
from app.schemas.streak import AchievementResponse, StreakListResponse, StreakResponse
from app.services.achievements import ACHIEVEMENT_DEFINITIONS, list_achievements
from app.services.streaks import get_all_streaks, get_streak

router = APIRouter(tags=["streaks"])


@router.get("/streaks", response_model=StreakListResponse, summary="All streaks")
def all_streaks(
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return streak_list_to_response(get_all_streaks(db, user_id, clock))


@router.get("/streaks/{pillar_key}", response_model=StreakResponse, summary="One streak")
def one_streak(
    pillar_key: PillarKey,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Stored streak plus at-risk signals derived at read time. A user with no
    history gets a zero streak; nothing is created.
    """
    return streak_to_response(get_streak(db, user_id, pillar_key, clock))


@router.get("/achievements", response_model=list[AchievementResponse], summary="Achievements")
def achievements(
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    out = []
    for a in list_achievements(db, user_id):
        meta = ACHIEVEMENT_DEFINITIONS.get(a.type, {})
        out.append(AchievementResponse(
            type=a.type,
            title=meta.get("title", a.type),
            description=meta.get("description", ""),
            icon=meta.get("icon", ""),
            unlocked_at=a.unlocked_at.isoformat() if a.unlocked_at else "",
        ))
    return out
