"""
Serialization helpers shared by several routers.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from app.models.daily_score import DailyScore
from app.schemas.streak import (
    DailyScoreResponse,
    StreakChange,
    StreakListResponse,
    StreakResponse,
)
from app.services.streaks import StreakInfo, StreakUpdate, ember_intensity


def _ev(v) -> Optional[str]:
    """Extract bare string value from a str-enum or plain str."""
    if v is None:
        return None
    return v.value if hasattr(v, "value") else str(v)


def _iso(v: Optional[date | datetime]) -> Optional[str]:
    return v.isoformat() if v is not None else None


def daily_score_to_response(row: DailyScore) -> DailyScoreResponse:
    return DailyScoreResponse(
        date=str(row.date),
        body_points=row.body_points,
        mind_points=row.mind_points,
        body_score=row.body_score,
        mind_score=row.mind_score,
        balance_index=float(row.balance_index),
        body_complete=row.body_complete,
        mind_complete=row.mind_complete,
    )


def streak_to_response(info: StreakInfo) -> StreakResponse:
    ember, particles = ember_intensity(info.current)
    return StreakResponse(
        pillar_key=info.pillar_key,
        current=info.current,
        longest=info.longest,
        last_active_date=_iso(info.last_active_date),
        at_risk=info.at_risk,
        hours_remaining=info.hours_remaining,
        ember=ember,
        has_particles=particles,
    )


def streak_list_to_response(infos: dict[str, StreakInfo]) -> StreakListResponse:
    return StreakListResponse(
        overall=streak_to_response(infos["OVERALL"]),
        body=streak_to_response(infos["BODY"]),
        mind=streak_to_response(infos["MIND"]),
    )


def streak_changes(updates: dict[str, StreakUpdate]) -> list[StreakChange]:
    return [
        StreakChange(
            pillar_key=u.pillar_key,
            previous=u.before.current,
            current=u.after.current,
            longest=u.after.longest,
            last_active_date=_iso(u.after.last_active_date),
            increased=u.increased,
        )
        for u in updates.values()
    ]
