"""
Custom exception hierarchy for the Body & Mind engine.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class AppException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class MissingIdentityError(AppException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "MISSING_IDENTITY"

    def __init__(self):
        super().__init__(message="X-User-Id header is required.")


class ValidationFailedError(AppException):
    """Business-rule validation; nothing is persisted."""
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_FAILED"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message=message,
            details={"field": field} if field else {},
        )


class ActivityNotFoundError(AppException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "ACTIVITY_NOT_FOUND"

    def __init__(self, activity_id: int):
        super().__init__(
            message=f"Activity {activity_id} not found.",
            details={"activity_id": activity_id},
        )


class StackNotFoundError(AppException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "STACK_NOT_FOUND"

    def __init__(self, stack_id: int, reason: str | None = None):
        super().__init__(
            message=f"Habit stack {stack_id} not found{' (' + reason + ')' if reason else ''}.",
            details={"stack_id": stack_id},
        )


class TriggerNotFoundError(AppException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "TRIGGER_NOT_FOUND"

    def __init__(self, trigger_id: int):
        super().__init__(
            message=f"Auto-trigger {trigger_id} not found.",
            details={"trigger_id": trigger_id},
        )


class ActivityAlreadyCompletedError(AppException):
    http_status = status.HTTP_409_CONFLICT
    code = "ACTIVITY_ALREADY_COMPLETED"

    def __init__(self, activity_id: int, day: date):
        super().__init__(
            message=f"Habit activity {activity_id} is already completed on {day}.",
            details={"activity_id": activity_id, "day": str(day)},
        )


class WearableAPIError(AppException):
    """WHOOP returned a non-2xx response or could not be reached."""
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "WEARABLE_API_ERROR"

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(
            message=message,
            details={"status_code": status_code} if status_code else {},
        )


class WearableTimeoutError(WearableAPIError):
    http_status = status.HTTP_504_GATEWAY_TIMEOUT
    code = "WEARABLE_TIMEOUT"

    def __init__(self, endpoint: str, timeout: float):
        super().__init__(message=f"WHOOP request {endpoint} timed out after {timeout}s.")
        self.details = {"endpoint": endpoint, "timeout": timeout}


class StreakInvariantError(AppException):
    """A streak transition was asked to move backwards in time. Programming error."""
    code = "STREAK_INVARIANT_VIOLATION"

    def __init__(self, pillar_key: str, day: date, last_active_date: date):
        super().__init__(
            message=(
                f"Cannot advance {pillar_key} streak to {day}: "
                f"last active date is {last_active_date}."
            ),
            details={
                "pillar_key": pillar_key,
                "day": str(day),
                "last_active_date": str(last_active_date),
            },
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
