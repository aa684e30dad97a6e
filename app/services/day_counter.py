"""
Consecutive-day counting shared by pillar streaks and habit-stack streaks.

Pillar streaks move forward one day at a time (`day_gap`); stack streaks
are recomputed by scanning history backwards (`run_length`). Both reduce to
"how many whole days separate these dates".
"""
from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta


def day_gap(earlier: date | None, later: date) -> int | None:
    """Whole days from *earlier* to *later*; None stands for an infinite gap."""
    if earlier is None:
        return None
    return (later - earlier).days


def run_length(dates: Iterable[date], ending: date) -> int:
    """Length of the unbroken run of consecutive dates that ends on *ending*.

    Duplicates and ordering of *dates* do not matter. Returns 0 when
    *ending* itself is not present.
    """
    present = set(dates)
    count = 0
    cursor = ending
    while cursor in present:
        count += 1
        cursor -= timedelta(days=1)
    return count
