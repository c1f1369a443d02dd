"""
auth/passwords.py -- Credential hashing and verification.

bcrypt is used directly (no passlib wrapper). Its cost factor makes offline
brute force of leaked hashes expensive, and checkpw() compares in constant
time. The cost is read from Settings.bcrypt_rounds so tests can run with the
minimum of 4.

bcrypt only looks at the first 72 bytes of input, and bcrypt >= 4.1 refuses
longer inputs outright. Route handlers reject passwords over
MAX_PASSWORD_BYTES with a 400 before they get here.

Hashing is CPU-bound. Route handlers that call into this module are plain
`def` functions, which FastAPI runs in its worker thread pool, so a slow hash
never stalls the event loop.

Plaintext passwords are never logged or included in exception messages.
"""

from __future__ import annotations

import logging

import bcrypt

from core.config import get_settings
from core.errors import HashingError

logger = logging.getLogger("accounts.auth")

MAX_PASSWORD_BYTES = 72


def password_too_long(plain: str) -> bool:
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Raises HashingError if bcrypt fails (over-long input, unavailable entropy).
    """
    try:
        salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
        return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")
    except (ValueError, TypeError, OSError) as exc:
        logger.error("Password hashing failed: %s", type(exc).__name__)
        raise HashingError() from exc


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A mismatching or over-long plaintext returns False. Only a malformed
    stored hash raises HashingError, since that is a data problem rather
    than a bad login.
    """
    if password_too_long(plain):
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError) as exc:
        logger.error("Stored password hash is malformed")
        raise HashingError("Stored password hash is malformed") from exc
