"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are checked in priority order:
  1. "token" cookie -- set by POST /users/login and the OAuth callback.
  2. Authorization: Bearer <token> header -- API clients and tests.

Only the signed JWT identifies the caller. The "role" cookie is ignored here;
handlers that need roles reload the user record by id.

try_get_current_user_id() is the soft variant (returns None on failure).
get_current_user_id() wraps it and raises AuthenticationError (401).
"""

from __future__ import annotations

from fastapi import Request

from auth.tokens import TOKEN_COOKIE, decode_access_token
from core.errors import AuthenticationError


def try_get_current_user_id(request: Request) -> int | None:
    """Return the user id from a valid session token, or None. Never raises."""
    token: str | None = request.cookies.get(TOKEN_COOKIE)

    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]

    if not token:
        return None
    payload = decode_access_token(token)
    if payload is None:
        return None
    return payload["user_id"]


def get_current_user_id(request: Request) -> int:
    """Require a valid session token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user_id: int = Depends(get_current_user_id)): ...
    """
    user_id = try_get_current_user_id(request)
    if user_id is None:
        raise AuthenticationError("Authentication required")
    return user_id
