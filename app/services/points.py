"""
Points Model — the only numeric policies the engine relies on.

Pure functions, no I/O. A "completion" here is anything exposing
`points_earned` and `activity.pillar` (ORM rows or plain objects), already
restricted to one calendar day by the caller.
"""
from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from app.core.clock import as_utc
from app.models.activity import Pillar

POINTS_THRESHOLD = 100


def _pillar_of(completion: Any) -> str:
    pillar = completion.activity.pillar
    return pillar.value if hasattr(pillar, "value") else str(pillar)


def pillar_points(completions: Iterable[Any], pillar: Pillar | str) -> int:
    """Sum of points_earned for completions whose activity is in *pillar*."""
    key = pillar.value if hasattr(pillar, "value") else str(pillar)
    return sum(c.points_earned for c in completions if _pillar_of(c) == key)


def is_pillar_complete(points: int) -> bool:
    return points >= POINTS_THRESHOLD


def clamped_score(points: int) -> int:
    """Raw points clamped to [0, 100]."""
    return max(0, min(points, POINTS_THRESHOLD))


def points_remaining(points: int) -> int:
    return max(POINTS_THRESHOLD - points, 0)


def points_progress(points: int) -> float:
    """Percent of the daily threshold reached, capped at 100."""
    return min(points / POINTS_THRESHOLD * 100, 100.0)


def balance_index(body_score: int, mind_score: int) -> Decimal:
    """Mean of the two clamped scores, one decimal."""
    mean = (Decimal(body_score) + Decimal(mind_score)) / 2
    return mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def completions_in_window(
    completions: Iterable[Any], start: datetime, end: datetime
) -> list[Any]:
    """Completions with start <= completed_at < end (all compared in UTC)."""
    lo, hi = as_utc(start), as_utc(end)
    return [c for c in completions if lo <= as_utc(c.completed_at) < hi]
