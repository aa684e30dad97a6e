"""
Injected clock.

Core logic never calls ``datetime.now()`` directly: every "today" decision
goes through a Clock so tests can pin time and the local day boundary.

Day bucketing is local midnight to next local midnight (start inclusive,
end exclusive). Bounds are handed to the database in UTC, matching how
``completed_at`` is stored.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from decimal import Decimal, ROUND_HALF_UP
from zoneinfo import ZoneInfo

from app.core.config import settings


def as_utc(ts: datetime) -> datetime:
    """Normalise a timestamp to aware UTC. Naive values are taken as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


class Clock:
    """Wall clock bound to the local timezone that defines a "day"."""

    def __init__(self, tz: tzinfo):
        self.tz = tz

    def now(self) -> datetime:
        return datetime.now(tz=self.tz)

    def today(self) -> date:
        return self.now().date()

    def local_date(self, ts: datetime) -> date:
        """Calendar date of *ts* in the local timezone."""
        return as_utc(ts).astimezone(self.tz).date()

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        """[local midnight, next local midnight) for *day*, in UTC."""
        start = datetime.combine(day, time.min, tzinfo=self.tz)
        end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=self.tz)
        return as_utc(start), as_utc(end)

    def hours_until_midnight(self) -> float:
        """Hours left until the next local midnight, one decimal, never negative."""
        now = as_utc(self.now())
        _, midnight = self.day_bounds(self.today())
        hours = Decimal((midnight - now).total_seconds()) / Decimal(3600)
        rounded = hours.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
        return max(0.0, float(rounded))


class FixedClock(Clock):
    """Clock frozen at a given aware instant (tests, replays)."""

    def __init__(self, now: datetime):
        if now.tzinfo is None:
            raise ValueError("FixedClock needs a timezone-aware datetime")
        super().__init__(now.tzinfo)
        self._now = now

    def now(self) -> datetime:
        return self._now

    def advance(self, **delta) -> "FixedClock":
        return FixedClock(self._now + timedelta(**delta))


def get_clock() -> Clock:
    """FastAPI dependency; overridden with a FixedClock in tests."""
    return Clock(ZoneInfo(settings.TIMEZONE))
