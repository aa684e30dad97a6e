"""
Tests for error handling: structured error responses, HTTP status codes,
and the custom exception classes.
"""
from datetime import date

from app.core.errors import (
    ActivityAlreadyCompletedError,
    ActivityNotFoundError,
    MissingIdentityError,
    StackNotFoundError,
    StreakInvariantError,
    ValidationFailedError,
    WearableAPIError,
    WearableTimeoutError,
)


# ---------------------------------------------------------------------------
# Unit tests on exception classes
# ---------------------------------------------------------------------------

class TestExceptionClasses:
    def test_missing_identity(self):
        err = MissingIdentityError()
        assert err.http_status == 401
        assert err.code == "MISSING_IDENTITY"

    def test_validation_failed_carries_field(self):
        err = ValidationFailedError("Name must not be empty.", field="name")
        assert err.http_status == 422
        assert err.to_dict() == {
            "code": "VALIDATION_FAILED",
            "message": "Name must not be empty.",
            "details": {"field": "name"},
        }

    def test_to_dict_without_details(self):
        d = ValidationFailedError("nope").to_dict()
        assert "details" not in d

    def test_not_found_errors(self):
        assert ActivityNotFoundError(5).http_status == 404
        err = StackNotFoundError(3, reason="no valid activities")
        assert err.code == "STACK_NOT_FOUND"
        assert "no valid activities" in err.message

    def test_already_completed(self):
        err = ActivityAlreadyCompletedError(7, date(2026, 3, 10))
        assert err.http_status == 409
        assert err.details == {"activity_id": 7, "day": "2026-03-10"}

    def test_wearable_errors(self):
        api = WearableAPIError("WHOOP API error: 500", status_code=500)
        assert api.http_status == 502
        assert api.details == {"status_code": 500}

        timeout = WearableTimeoutError("/developer/v2/cycle", 5.0)
        assert isinstance(timeout, WearableAPIError)
        assert timeout.http_status == 504
        assert timeout.status_code is None
        assert timeout.details == {"endpoint": "/developer/v2/cycle", "timeout": 5.0}

    def test_streak_invariant_is_internal(self):
        err = StreakInvariantError("BODY", date(2026, 3, 9), date(2026, 3, 10))
        assert err.http_status == 500
        assert err.code == "STREAK_INVARIANT_VIOLATION"


# ---------------------------------------------------------------------------
# HTTP responses
# ---------------------------------------------------------------------------

class TestErrorResponses:
    def test_missing_user_header_is_401(self, client):
        r = client.get("/streaks")
        assert r.status_code == 401
        assert r.json()["code"] == "MISSING_IDENTITY"

    def test_blank_user_header_is_401(self, client):
        r = client.get("/streaks", headers={"X-User-Id": "   "})
        assert r.status_code == 401

    def test_request_validation_shape(self, client, headers):
        r = client.post("/activities", json={"name": "   ", "pillar": "BODY"}, headers=headers)
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "VALIDATION_ERROR"
        fields = {e["field"] for e in body["details"]["errors"]}
        assert {"name", "sub_category"} <= fields

    def test_unknown_pillar_rejected(self, client, headers):
        r = client.post(
            "/activities",
            json={"name": "Swim", "pillar": "SOUL", "sub_category": "TRAINING"},
            headers=headers,
        )
        assert r.status_code == 422

    def test_business_validation_shape(self, client, headers):
        r = client.post(
            "/activities",
            json={"name": "Run", "pillar": "BODY", "sub_category": "TRAINING",
                  "cue_type": "TIME", "cue_value": "25:99"},
            headers=headers,
        )
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_FAILED"
        assert r.json()["details"]["field"] == "cue_value"

    def test_not_found_shape(self, client, headers):
        r = client.post("/activities/999999/complete", headers=headers)
        assert r.status_code == 404
        body = r.json()
        assert body["code"] == "ACTIVITY_NOT_FOUND"
        assert body["details"]["activity_id"] == 999999
