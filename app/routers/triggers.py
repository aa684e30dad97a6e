"""
Auto-triggers router.

POST   /triggers        — create
GET    /triggers        — list (optional activity filter)
DELETE /triggers/{id}   — delete
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.core.identity import current_user_id
from app.db.base import get_db
from app.models.auto_trigger import AutoTrigger
from app.routers.common import _ev
from app.schemas.common import ErrorResponse
from app.schemas.trigger import TriggerCreate, TriggerResponse
from app.services.auto_triggers import create_trigger, delete_trigger, list_triggers

router = APIRouter(prefix="/triggers", tags=["triggers"])


def _to_response(t: AutoTrigger) -> TriggerResponse:
    return TriggerResponse(
        id=t.id,
        activity_id=t.activity_id,
        activity_name=t.activity.name,
        trigger_type=_ev(t.trigger_type),
        threshold_value=t.threshold_value,
        workout_type_id=t.workout_type_id,
        trigger_activity_id=t.trigger_activity_id,
        is_active=t.is_active,
        created_at=t.created_at.isoformat() if t.created_at else "",
    )


@router.post(
    "",
    response_model=TriggerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an auto-trigger",
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def create(
    payload: TriggerCreate,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return _to_response(create_trigger(db, user_id, **payload.model_dump()))


@router.get("", response_model=list[TriggerResponse], summary="List auto-triggers")
def list_(
    activity_id: Optional[int] = Query(default=None),
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return [_to_response(t) for t in list_triggers(db, user_id, activity_id=activity_id)]


@router.delete(
    "/{trigger_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an auto-trigger",
    responses={404: {"model": ErrorResponse}},
)
def delete(
    trigger_id: int,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    delete_trigger(db, user_id, trigger_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
