"""
Activities router.

POST  /activities                  — create
GET   /activities                  — list (optional pillar filter)
PATCH /activities/{id}             — partial update
POST  /activities/{id}/archive     — soft delete
POST  /activities/{id}/complete    — record a completion
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.clock import Clock, get_clock
from app.core.identity import current_user_id
from app.db.base import SessionLocal, get_db
from app.models.activity import Activity, Pillar
from app.routers.common import _ev, daily_score_to_response, streak_changes
from app.schemas.activity import (
    ActivityCreate,
    ActivityResponse,
    ActivityUpdate,
    CompletionOut,
    CompletionRequest,
    CompletionResponse,
)
from app.schemas.common import ErrorResponse
from app.services.achievements import dispatch_streak_achievements
from app.services.activities import (
    archive_activity,
    create_activity,
    list_activities,
    record_completion,
    update_activity,
)
from app.services.auto_triggers import dispatch_activity_triggers

router = APIRouter(prefix="/activities", tags=["activities"])


# ---------------------------------------------------------------------------
# Serialization helper
# ---------------------------------------------------------------------------

def _to_response(a: Activity) -> ActivityResponse:
    return ActivityResponse(
        id=a.id,
        name=a.name,
        description=a.description,
        pillar=_ev(a.pillar),
        sub_category=a.sub_category,
        points=a.points,
        is_habit=a.is_habit,
        cue_type=_ev(a.cue_type),
        cue_value=a.cue_value,
        archived=a.archived,
        created_at=a.created_at.isoformat() if a.created_at else "",
    )


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=ActivityResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an activity",
    responses={422: {"model": ErrorResponse}},
)
def create(
    payload: ActivityCreate,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    activity = create_activity(db, user_id, **payload.model_dump())
    return _to_response(activity)


@router.get("", response_model=list[ActivityResponse], summary="List activities")
def list_(
    pillar: Optional[Pillar] = Query(default=None),
    include_archived: bool = Query(default=False),
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return [
        _to_response(a)
        for a in list_activities(db, user_id, pillar=pillar, include_archived=include_archived)
    ]


@router.patch(
    "/{activity_id}",
    response_model=ActivityResponse,
    summary="Update an activity",
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def update(
    activity_id: int,
    payload: ActivityUpdate,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    return _to_response(update_activity(db, user_id, activity_id, changes))


@router.post(
    "/{activity_id}/archive",
    response_model=ActivityResponse,
    summary="Archive an activity",
    responses={404: {"model": ErrorResponse}},
)
def archive(
    activity_id: int,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return _to_response(archive_activity(db, user_id, activity_id))


# ---------------------------------------------------------------------------
# POST /activities/{id}/complete
# ---------------------------------------------------------------------------

@router.post(
    "/{activity_id}/complete",
    response_model=CompletionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a completion",
    responses={
        404: {"model": ErrorResponse, "description": "Activity not found or archived."},
        409: {"model": ErrorResponse, "description": "Habit already completed today."},
        422: {"model": ErrorResponse},
    },
)
def complete(
    activity_id: int,
    background: BackgroundTasks,
    payload: Optional[CompletionRequest] = None,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Log a completion, recompute the day's score and advance the BODY, MIND
    and OVERALL streaks.

    After the response is sent: OVERALL milestone achievements are unlocked
    and, for a completion logged on today, ACTIVITY_COMPLETED auto-triggers
    linked to this activity run. Backdated completions fire no triggers.
    """
    payload = payload or CompletionRequest()
    outcome = record_completion(
        db,
        user_id,
        activity_id,
        clock,
        points=payload.points,
        details=payload.details,
        completed_at=payload.completed_at,
    )

    if outcome.overall_increased:
        background.add_task(
            dispatch_streak_achievements, user_id, outcome.overall_streak, SessionLocal
        )
    if outcome.day == clock.today():
        background.add_task(dispatch_activity_triggers, user_id, activity_id, clock, SessionLocal)

    c = outcome.completion
    return CompletionResponse(
        completion=CompletionOut(
            id=c.id,
            activity_id=c.activity_id,
            points_earned=c.points_earned,
            completed_at=c.completed_at.isoformat(),
            source=_ev(c.source),
            details=c.details,
        ),
        day=str(outcome.day),
        daily_score=daily_score_to_response(outcome.daily_score),
        streaks=streak_changes(outcome.streaks),
    )
