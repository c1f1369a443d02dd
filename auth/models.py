"""
auth/models.py -- Domain dataclass for the user account entity.

Pattern: Data class (pure data container, zero logic). The store does the
persistence work and api/models.py owns the HTTP representation.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from core.config import get_settings


def default_roles() -> list[str]:
    return [get_settings().default_role]


@dataclass
class User:
    """A registered account.

    name is derived from first_name + " " + last_name on every write that
    touches either part; it is stored so list/sort queries do not rebuild it.

    hashed_password is None for accounts provisioned by an OAuth login that
    never set a local password. Password login always fails for them.

    roles is an ordered list of role labels. The session "role" cookie is
    rendered from it, but authorization must re-read it from this record.
    New accounts start with Settings.default_role.
    """

    email: str
    first_name: str
    last_name: str
    id: int | None = None
    name: str = ""
    hashed_password: str | None = None
    date_of_birth: str | None = None  # ISO 8601 date
    phone_no: str | None = None
    roles: list[str] = field(default_factory=default_roles)
    email_notifications: bool = True
    oauth_provider: str | None = None  # "google"
    oauth_subject: str | None = None  # provider's stable user ID
    created_at: str | None = None
    updated_at: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            self.name = full_name(self.first_name, self.last_name)


def full_name(first_name: str, last_name: str) -> str:
    return f"{first_name} {last_name}".strip()
