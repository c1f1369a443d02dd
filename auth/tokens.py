"""
auth/tokens.py -- Session token issuance, verification and cookie transport.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the user id (as both `sub` and `user_id`), email, roles, issue time and
       expiry. Verification returns None on any failure -- the dependency layer
       turns that into a 401.

  Cookies: a session is two cookies.
       token -- the signed JWT. The only thing trusted on later requests.
       role  -- space-joined role labels for the front end's convenience,
                percent-encoded so the cookie value carries no quotes.
                Never read back for authorization: protected routes reload
                roles from the user record.
       Both cookies are written and cleared through cookie_options(), so the
       attributes on the clear match the ones on the set. A browser ignores
       a clear whose path/domain differ from the original cookie.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Iterable
from urllib.parse import quote

from jose import JWTError, jwt

from core.config import get_settings
from core.errors import IssuanceError

if TYPE_CHECKING:
    from auth.models import User

logger = logging.getLogger("accounts.auth")

_ALGORITHM = "HS256"

TOKEN_COOKIE = "token"
ROLE_COOKIE = "role"


# ---------------------------------------------------------------------------
# Role string
# ---------------------------------------------------------------------------


def role_string(roles: Iterable[str]) -> str:
    """Render role labels as one space-separated string.

    Order of first appearance is kept, duplicates and blank labels dropped.
    """
    seen: set[str] = set()
    ordered: list[str] = []
    for label in roles:
        label = label.strip()
        if label and label not in seen:
            seen.add(label)
            ordered.append(label)
    return " ".join(ordered)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(user: User, expire_seconds: int = 0) -> str:
    """Encode a signed JWT binding the user's identity and roles.

    Args:
        user:           Persisted user (id must be set).
        expire_seconds: Token lifetime. If 0 (default), uses
                        Settings.token_expire_seconds.

    Raises:
        IssuanceError: no signing key is configured, the user has no id, or
                       jose fails to sign.
    """
    settings = get_settings()
    if not settings.secret_key:
        raise IssuanceError("token generation failed: signing key unavailable")
    if user.id is None:
        raise IssuanceError("token generation failed: user is not persisted")

    duration = expire_seconds if expire_seconds > 0 else settings.token_expire_seconds
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "user_id": user.id,
        "email": user.email,
        "roles": list(user.roles),
        "iat": now,
        "exp": now + timedelta(seconds=duration),
    }
    try:
        return jwt.encode(payload, settings.secret_key, algorithm=_ALGORITHM)
    except JWTError as exc:
        logger.error("JWT signing failed for user_id=%s", user.id)
        raise IssuanceError() from exc


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Returning None (rather than raising) keeps the caller simple: any invalid
    token is treated as unauthenticated.
    """
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if not isinstance(payload.get("user_id"), int):
        return None
    return payload


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def cookie_options() -> dict:
    """Attributes applied to both session cookies, on set and on clear.

    httponly: JS cannot read the cookies (XSS mitigation).
    samesite/secure/path/domain: from Settings.
    """
    settings = get_settings()
    return {
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": settings.cookie_samesite,
        "path": settings.cookie_path,
        "domain": settings.cookie_domain,
    }


def set_session_cookies(response, token: str, roles: Iterable[str], expire_seconds: int = 0) -> None:
    """Write the `token` and `role` cookies on a Starlette response.

    max_age matches the JWT expiry so the cookie and token expire together.
    """
    duration = expire_seconds if expire_seconds > 0 else get_settings().token_expire_seconds
    options = cookie_options()
    response.set_cookie(TOKEN_COOKIE, value=token, max_age=duration, **options)
    response.set_cookie(ROLE_COOKIE, value=quote(role_string(roles)), max_age=duration, **options)


def clear_session_cookies(response) -> None:
    """Expire both session cookies using the same attributes they were set with."""
    options = cookie_options()
    response.delete_cookie(TOKEN_COOKIE, **options)
    response.delete_cookie(ROLE_COOKIE, **options)
