"""
Request identity.

Authentication happens upstream; by the time a request reaches this service
the caller's id is carried in the ``X-User-Id`` header.
"""
from fastapi import Header

from app.core.errors import MissingIdentityError


def current_user_id(
    x_user_id: str | None = Header(default=None, description="Authenticated user id."),
) -> str:
    if x_user_id is None or not x_user_id.strip():
        raise MissingIdentityError()
    return x_user_id.strip()


def whoop_access_token(
    x_whoop_token: str | None = Header(
        default=None,
        description="Already-refreshed WHOOP access token.",
    ),
) -> str | None:
    if x_whoop_token is None or not x_whoop_token.strip():
        return None
    return x_whoop_token.strip()
