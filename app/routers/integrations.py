"""
Integrations router.

POST /integrations/whoop/sync — reconcile WHOOP records into completions
"""
from __future__ import annotations

from collections.abc import Callable
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends
from sqlalchemy.orm import Session

from app.core.clock import Clock, get_clock
from app.core.errors import ValidationFailedError
from app.core.identity import current_user_id, whoop_access_token
from app.db.base import SessionLocal, get_db
from app.schemas.common import ErrorResponse
from app.schemas.sync import SyncPoints, SyncRequest, SyncResponse
from app.services.achievements import dispatch_streak_achievements
from app.services.reconciler import reconcile_whoop
from app.services.whoop_client import WhoopClient, get_whoop_client_factory

router = APIRouter(prefix="/integrations", tags=["integrations"])


@router.post(
    "/whoop/sync",
    response_model=SyncResponse,
    summary="Sync WHOOP sleeps and workouts",
    responses={422: {"model": ErrorResponse, "description": "X-Whoop-Token missing."}},
)
def whoop_sync(
    background: BackgroundTasks,
    payload: Optional[SyncRequest] = Body(default=None),
    user_id: str = Depends(current_user_id),
    token: Optional[str] = Depends(whoop_access_token),
    client_factory: Callable[[str], WhoopClient] = Depends(get_whoop_client_factory),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Fetch the recent window from WHOOP and book new records as completions.

    Vendor failures never fail the request: each category that could not be
    fetched is listed in `errors` and the rest of the pass still runs.
    Re-running over the same window creates nothing new.
    """
    if token is None:
        raise ValidationFailedError("X-Whoop-Token header is required.", field="X-Whoop-Token")

    since = payload.since if payload else None
    result = reconcile_whoop(db, user_id, client_factory(token), clock, since=since)

    if result.overall_streak is not None:
        background.add_task(
            dispatch_streak_achievements, user_id, result.overall_streak, SessionLocal
        )

    return SyncResponse(
        sleep_synced=result.sleep_synced,
        workouts_synced=result.workouts_synced,
        points=SyncPoints(**result.points),
        days_updated=[str(d) for d in result.days_updated],
        triggers_evaluated=result.triggers_evaluated,
        triggers_activated=result.triggers_activated,
        errors=result.errors,
    )
