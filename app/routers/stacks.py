"""
Habit stacks router.

POST   /stacks                 — create
GET    /stacks                 — list
PATCH  /stacks/{id}            — partial update
DELETE /stacks/{id}            — delete (claimed bonuses go with it)
GET    /stacks/{id}/status     — today's progress, read-only
POST   /stacks/{id}/execute    — complete all members and claim the bonus
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.core.clock import Clock, get_clock
from app.core.identity import current_user_id
from app.db.base import SessionLocal, get_db
from app.models.habit_stack import HabitStack
from app.models.streak import PillarKey
from app.routers.common import _ev, daily_score_to_response, streak_changes
from app.schemas.common import ErrorResponse
from app.schemas.stack import (
    StackCreate,
    StackExecutionResponse,
    StackMemberCompletion,
    StackResponse,
    StackStatusResponse,
    StackUpdate,
)
from app.services.achievements import dispatch_streak_achievements
from app.services.habit_stacks import (
    create_stack,
    current_stack_streak,
    delete_stack,
    execute_stack,
    get_owned_stack,
    list_stacks,
    stack_status,
    update_stack,
)

router = APIRouter(prefix="/stacks", tags=["stacks"])


def _to_response(db: Session, s: HabitStack, today: date) -> StackResponse:
    return StackResponse(
        id=s.id,
        name=s.name,
        description=s.description,
        activity_ids=list(s.activity_ids),
        completion_bonus=s.completion_bonus,
        cue_type=_ev(s.cue_type),
        cue_value=s.cue_value,
        is_active=s.is_active,
        current_streak=current_stack_streak(db, s.id, today),
        created_at=s.created_at.isoformat() if s.created_at else "",
    )


@router.post(
    "",
    response_model=StackResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a habit stack",
    responses={422: {"model": ErrorResponse}},
)
def create(
    payload: StackCreate,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    stack = create_stack(db, user_id, **payload.model_dump())
    return _to_response(db, stack, clock.today())


@router.get("", response_model=list[StackResponse], summary="List habit stacks")
def list_(
    active_only: bool = Query(default=False),
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    today = clock.today()
    return [_to_response(db, s, today) for s in list_stacks(db, user_id, active_only=active_only)]


@router.patch(
    "/{stack_id}",
    response_model=StackResponse,
    summary="Update a habit stack",
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def update(
    stack_id: int,
    payload: StackUpdate,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    stack = update_stack(db, user_id, stack_id, payload.model_dump(exclude_unset=True))
    return _to_response(db, stack, clock.today())


@router.delete(
    "/{stack_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a habit stack",
    responses={404: {"model": ErrorResponse}},
)
def delete(
    stack_id: int,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    delete_stack(db, user_id, stack_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{stack_id}/status",
    response_model=StackStatusResponse,
    summary="Stack progress for a day",
    responses={404: {"model": ErrorResponse}},
)
def get_status(
    stack_id: int,
    day: Optional[date] = Query(default=None, description="Defaults to today (local)."),
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Which members are done and whether the bonus is claimed. Never claims."""
    stack = get_owned_stack(db, user_id, stack_id)
    st = stack_status(db, stack, day or clock.today(), clock)
    return StackStatusResponse(
        stack_id=st.stack_id,
        day=str(st.day),
        activity_ids=st.activity_ids,
        completed_activity_ids=st.completed_activity_ids,
        is_completed=st.is_completed,
        bonus_claimed=st.bonus_claimed,
        current_streak=st.current_streak,
        next_bonus_points=st.next_bonus_points,
    )


@router.post(
    "/{stack_id}/execute",
    response_model=StackExecutionResponse,
    summary="Execute a habit stack",
    responses={404: {"model": ErrorResponse, "description": "Stack not found or not active."}},
)
def execute(
    stack_id: int,
    background: BackgroundTasks,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Complete every member activity not already done today, then claim the
    stack bonus. Executing twice on one day returns the same bonus.
    """
    ex = execute_stack(db, user_id, stack_id, clock)

    overall = ex.streaks[PillarKey.OVERALL.value]
    if overall.increased:
        background.add_task(
            dispatch_streak_achievements, user_id, overall.after.current, SessionLocal
        )

    return StackExecutionResponse(
        stack_id=ex.stack.id,
        name=ex.stack.name,
        day=str(ex.day),
        completions=[
            StackMemberCompletion(
                completion_id=c.id,
                activity_id=c.activity_id,
                points_earned=c.points_earned,
            )
            for c in ex.new_completions
        ],
        already_completed=ex.already_completed,
        newly_completed=len(ex.new_completions),
        points_earned=ex.points_earned,
        bonus_points=ex.bonus.bonus_points,
        streak_day=ex.bonus.streak_day,
        total_points=ex.total_points,
        daily_score=daily_score_to_response(ex.daily_score),
        streaks=streak_changes(ex.streaks),
    )
