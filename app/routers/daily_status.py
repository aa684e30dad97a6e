"""
Daily status router.

GET /daily-status   — snapshot for one day (optional WHOOP data)
GET /daily-scores   — persisted scores for the last N days
"""
from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.clock import Clock, get_clock
from app.core.identity import current_user_id, whoop_access_token
from app.db.base import get_db
from app.routers.common import daily_score_to_response, streak_list_to_response
from app.schemas.daily_status import (
    CompletedActivityOut,
    DailyStatusResponse,
    PillarStatusOut,
    QuoteOut,
    RecoveryOut,
    SleepOut,
    TrainingOut,
    WearableOut,
    WorkoutOut,
)
from app.schemas.streak import DailyScoreResponse
from app.services.daily_scores import recent_scores
from app.services.daily_status import (
    DailyStatus,
    PillarStatus,
    WearableSnapshot,
    fetch_wearable_snapshot,
    get_daily_status,
)
from app.services.whoop_client import WhoopClient, get_whoop_client_factory

router = APIRouter(tags=["daily-status"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _pillar_out(p: PillarStatus) -> PillarStatusOut:
    return PillarStatusOut(
        points=p.points,
        score=p.score,
        completed=p.completed,
        points_remaining=p.points_remaining,
        progress=p.progress,
        activities=[
            CompletedActivityOut(
                completion_id=a.completion_id,
                activity_id=a.activity_id,
                name=a.name,
                sub_category=a.sub_category,
                points=a.points,
                source=a.source,
                completed_at=a.completed_at.isoformat(),
            )
            for a in p.activities
        ],
    )


def _wearable_out(w: Optional[WearableSnapshot]) -> Optional[WearableOut]:
    if w is None:
        return None
    return WearableOut(
        connected=True,
        recovery=RecoveryOut(**vars(w.recovery)) if w.recovery else None,
        sleep=SleepOut(**vars(w.sleep)) if w.sleep else None,
        training=TrainingOut(
            strain=w.training.strain,
            calories=w.training.calories,
            workouts=[WorkoutOut(**vars(x)) for x in w.training.workouts],
        ) if w.training else None,
    )


def _to_response(s: DailyStatus) -> DailyStatusResponse:
    return DailyStatusResponse(
        date=str(s.date),
        body=_pillar_out(s.body),
        mind=_pillar_out(s.mind),
        balance_index=float(s.balance_index),
        overall_complete=s.overall_complete,
        streaks=streak_list_to_response(s.streaks),
        stack_bonus_points=s.stack_bonus_points,
        quote=QuoteOut(text=s.quote.text, author=s.quote.author),
        wearable=_wearable_out(s.wearable),
        recommendations=list(s.recommendations),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/daily-status", response_model=DailyStatusResponse, summary="Daily status snapshot")
def daily_status(
    day: Optional[date] = Query(default=None, description="Defaults to today (local)."),
    user_id: str = Depends(current_user_id),
    token: Optional[str] = Depends(whoop_access_token),
    client_factory: Callable[[str], WhoopClient] = Depends(get_whoop_client_factory),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Read-only. When `X-Whoop-Token` is sent the latest recovery, sleep and
    today's training are included; a WHOOP outage only blanks those parts.
    """
    wearable = fetch_wearable_snapshot(client_factory(token), clock) if token else None
    status = get_daily_status(db, user_id, day or clock.today(), clock, wearable=wearable)
    return _to_response(status)


@router.get("/daily-scores", response_model=list[DailyScoreResponse], summary="Recent daily scores")
def daily_scores(
    days: int = Query(default=7, ge=1, le=90),
    end: Optional[date] = Query(default=None, description="Last day; defaults to today."),
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    rows = recent_scores(db, user_id, end or clock.today(), days=days)
    return [daily_score_to_response(r) for r in rows]
