"""
Tests for the WHOOP HTTP client against a scripted requests session.
"""
from datetime import datetime, timezone

import pytest
import requests

from app.core.errors import WearableAPIError, WearableTimeoutError
from app.services.whoop_client import (
    CYCLE_PATH,
    SLEEP_PATH,
    WORKOUT_PATH,
    WhoopClient,
)

START = datetime(2026, 3, 3, 15, 0, tzinfo=timezone.utc)
END = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


class _Response:
    def __init__(self, status_code=200, body=None, reason="OK"):
        self.status_code = status_code
        self.reason = reason
        self._body = body

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("no JSON")
        return self._body


class _Session:
    """Returns scripted responses (or raises scripted exceptions) in order."""

    def __init__(self, *responses):
        self.headers = {}
        self.responses = list(responses)
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _sleep_record(id_):
    return {
        "id": id_,
        "cycle_id": 7,
        "start": "2026-03-09T23:00:00.000Z",
        "end": "2026-03-10T07:00:00.000Z",
        "score": {"stage_summary": {"total_in_bed_time_milli": 28_800_000}},
    }


def _client(session, **kwargs):
    return WhoopClient("token-123", base_url="https://whoop.test", session=session, **kwargs)


class TestTransport:
    def test_sets_bearer_token(self):
        session = _Session()
        _client(session)
        assert session.headers["Authorization"] == "Bearer token-123"

    def test_every_request_has_a_timeout(self):
        session = _Session(_Response(body={"records": []}))
        _client(session, timeout=2.5).sleeps(START, END)
        assert session.requests[0]["timeout"] == 2.5
        assert session.requests[0]["url"] == f"https://whoop.test{SLEEP_PATH}"

    def test_window_sent_as_utc_iso(self):
        session = _Session(_Response(body={"records": []}))
        _client(session).workouts(START, END)
        params = session.requests[0]["params"]
        assert params["start"] == "2026-03-03T15:00:00Z"
        assert params["end"] == "2026-03-10T15:00:00Z"
        assert session.requests[0]["url"].endswith(WORKOUT_PATH)

    def test_timeout_raises_wearable_timeout(self):
        session = _Session(requests.Timeout("read timed out"))
        with pytest.raises(WearableTimeoutError) as exc_info:
            _client(session, timeout=5.0).sleeps(START, END)
        assert exc_info.value.code == "WEARABLE_TIMEOUT"
        assert exc_info.value.details["timeout"] == 5.0

    def test_connection_error_raises_api_error(self):
        session = _Session(requests.ConnectionError("refused"))
        with pytest.raises(WearableAPIError) as exc_info:
            _client(session).sleeps(START, END)
        assert not isinstance(exc_info.value, WearableTimeoutError)

    def test_non_2xx_raises_with_status(self):
        session = _Session(_Response(status_code=401, reason="Unauthorized", body={}))
        with pytest.raises(WearableAPIError) as exc_info:
            _client(session).sleeps(START, END)
        assert exc_info.value.status_code == 401
        assert "401" in exc_info.value.message

    def test_invalid_json_raises(self):
        session = _Session(_Response(body=None))
        with pytest.raises(WearableAPIError):
            _client(session).sleeps(START, END)

    def test_unexpected_payload_raises(self):
        session = _Session(_Response(body={"records": [{"id": "x"}]}))
        with pytest.raises(WearableAPIError):
            _client(session).sleeps(START, END)


class TestPagination:
    def test_follows_next_token(self):
        session = _Session(
            _Response(body={"records": [_sleep_record("a")], "next_token": "page-2"}),
            _Response(body={"records": [_sleep_record("b")], "next_token": None}),
        )
        sleeps = _client(session).sleeps(START, END)

        assert [s.id for s in sleeps] == ["a", "b"]
        assert "nextToken" not in session.requests[0]["params"]
        assert session.requests[1]["params"]["nextToken"] == "page-2"

    def test_camel_case_cursor_is_followed(self):
        session = _Session(
            _Response(body={"records": [_sleep_record("a")], "nextToken": "page-2"}),
            _Response(body={"records": [_sleep_record("b")]}),
        )
        sleeps = _client(session).sleeps(START, END)

        assert [s.id for s in sleeps] == ["a", "b"]
        assert session.requests[1]["params"]["nextToken"] == "page-2"

    def test_null_records_is_an_empty_page(self):
        session = _Session(_Response(body={"records": None, "next_token": None}))
        assert _client(session).sleeps(START, END) == []

    def test_non_object_page_raises(self):
        session = _Session(_Response(body=[_sleep_record("a")]))
        with pytest.raises(WearableAPIError):
            _client(session).sleeps(START, END)

    def test_stops_at_max_pages(self):
        session = _Session(*[
            _Response(body={"records": [_sleep_record(str(i))], "next_token": "more"})
            for i in range(3)
        ])
        sleeps = _client(session, max_pages=2).sleeps(START, END)
        assert len(sleeps) == 2
        assert len(session.requests) == 2

    def test_integer_ids_become_strings(self):
        session = _Session(_Response(body={"records": [_sleep_record("a")]}))
        sleep = _client(session).sleeps(START, END)[0]
        assert sleep.cycle_id == "7"
        assert sleep.hours_in_bed == 8.0


class TestLatest:
    def test_latest_cycle(self):
        session = _Session(_Response(body={"records": [{"id": 42, "score": {"strain": 11.3}}]}))
        cycle = _client(session).latest_cycle()
        assert cycle.id == "42"
        assert cycle.strain == 11.3
        assert session.requests[0]["params"] == {"limit": 1}

    def test_no_cycle(self):
        session = _Session(_Response(body={"records": []}))
        assert _client(session).latest_cycle() is None

    def test_cycle_recovery(self):
        session = _Session(_Response(body={
            "cycle_id": 42, "sleep_id": "s-1",
            "score": {"recovery_score": 71, "hrv_rmssd_milli": 48.2},
        }))
        rec = _client(session).cycle_recovery("42")
        assert rec.recovery_score == 71
        assert rec.hrv == 48.2
        assert session.requests[0]["url"].endswith(f"{CYCLE_PATH}/42/recovery")

    def test_unscored_cycle_recovery_is_none(self):
        session = _Session(_Response(status_code=404, reason="Not Found", body={}))
        assert _client(session).cycle_recovery("42") is None

    def test_cycle_recovery_server_error_propagates(self):
        session = _Session(_Response(status_code=503, reason="Unavailable", body={}))
        with pytest.raises(WearableAPIError):
            _client(session).cycle_recovery("42")
