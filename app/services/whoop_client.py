"""
Thin WHOOP developer API (v2) client.

Every request carries an explicit timeout. Transport failures and non-2xx
responses surface as WearableAPIError; a timeout surfaces as
WearableTimeoutError so callers can treat it as "no data for this
category". Token refresh is out of scope: the client is handed a valid
access token.
"""
from __future__ import annotations

import logging
from datetime import datetime
from collections.abc import Callable
from typing import Any, Optional, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from app.core.clock import as_utc
from app.core.config import settings
from app.core.errors import WearableAPIError, WearableTimeoutError
from app.schemas.whoop import (
    WhoopCycle,
    WhoopPage,
    WhoopRecovery,
    WhoopSleep,
    WhoopWorkout,
)

logger = logging.getLogger(__name__)

SLEEP_PATH = "/developer/v2/activity/sleep"
WORKOUT_PATH = "/developer/v2/activity/workout"
RECOVERY_PATH = "/developer/v2/recovery"
CYCLE_PATH = "/developer/v2/cycle"

PAGE_LIMIT = 25

M = TypeVar("M", bound=BaseModel)


def _iso(ts: datetime) -> str:
    return as_utc(ts).isoformat().replace("+00:00", "Z")


class WhoopClient:
    def __init__(
        self,
        access_token: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        max_pages: Optional[int] = None,
    ):
        self.base_url = (base_url or settings.WHOOP_API_BASE).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.WHOOP_FETCH_TIMEOUT_SECONDS
        self.max_pages = max_pages or settings.WHOOP_MAX_PAGES
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        })

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout as exc:
            raise WearableTimeoutError(path, self.timeout) from exc
        except requests.RequestException as exc:
            raise WearableAPIError(f"WHOOP request {path} failed: {exc}") from exc

        if not resp.ok:
            raise WearableAPIError(
                f"WHOOP API error: {resp.status_code} {resp.reason} on {path}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise WearableAPIError(f"WHOOP returned invalid JSON on {path}") from exc

    @staticmethod
    def _parse(model: type[M], payload: Any, path: str) -> M:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise WearableAPIError(f"Unexpected WHOOP payload on {path}: {exc}") from exc

    def _collect(
        self, path: str, model: type[M], start: datetime, end: datetime
    ) -> list[M]:
        """All records in [start, end], following next_token up to max_pages."""
        params: dict[str, Any] = {"start": _iso(start), "end": _iso(end), "limit": PAGE_LIMIT}
        records: list[M] = []
        for _ in range(self.max_pages):
            page = self._parse(WhoopPage[model], self._get(path, params), path)
            records.extend(page.records)
            if not page.next_token:
                return records
            params["nextToken"] = page.next_token
        logger.warning("WHOOP %s: stopped after %d pages", path, self.max_pages)
        return records

    def _latest(self, path: str, model: type[M], limit: int = 1) -> list[M]:
        return self._parse(WhoopPage[model], self._get(path, {"limit": limit}), path).records

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def sleeps(self, start: datetime, end: datetime) -> list[WhoopSleep]:
        return self._collect(SLEEP_PATH, WhoopSleep, start, end)

    def workouts(self, start: datetime, end: datetime) -> list[WhoopWorkout]:
        return self._collect(WORKOUT_PATH, WhoopWorkout, start, end)

    def recoveries(self, start: datetime, end: datetime) -> list[WhoopRecovery]:
        return self._collect(RECOVERY_PATH, WhoopRecovery, start, end)

    # ------------------------------------------------------------------
    # Latest values
    # ------------------------------------------------------------------

    def latest_cycle(self) -> Optional[WhoopCycle]:
        cycles = self._latest(CYCLE_PATH, WhoopCycle)
        return cycles[0] if cycles else None

    def cycle_recovery(self, cycle_id: str) -> Optional[WhoopRecovery]:
        path = f"{CYCLE_PATH}/{cycle_id}/recovery"
        try:
            body = self._get(path)
        except WearableAPIError as exc:
            # No recovery scored yet for this cycle.
            if exc.status_code == 404:
                return None
            raise
        return self._parse(WhoopRecovery, body, path)

    def latest_sleep(self) -> Optional[WhoopSleep]:
        sleeps = self._latest(SLEEP_PATH, WhoopSleep)
        return sleeps[0] if sleeps else None

    def recent_workouts(self, limit: int = 5) -> list[WhoopWorkout]:
        return self._latest(WORKOUT_PATH, WhoopWorkout, limit=limit)


def get_whoop_client_factory() -> Callable[[str], WhoopClient]:
    """FastAPI dependency; tests override it with a factory returning a fake."""
    return WhoopClient
