"""
API request and response models for the accounts REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are kept
separate from the dataclass in auth/models.py, which owns the internal domain
representation. Route handlers map between the two.

Wire names are camelCase (firstName, phoneNo, statusCode) to match the front
end; Python attribute names stay snake_case via the to_camel alias generator.

Request fields are all Optional on purpose: a missing field must produce the
400 "Please fill all fields." envelope from the handler, not pydantic's
generic validation error.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from auth.models import User

_REQUEST_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    str_strip_whitespace=True,
)
# Bodies carrying passwords must not be whitespace-stripped.
_SECRET_REQUEST_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class ApiResponse(BaseModel):
    """Uniform envelope for every JSON response, success or error."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    status_code: int
    data: Any = None
    message: str
    success: bool

    @classmethod
    def build(cls, status_code: int, data: Any = None, message: str = "Success") -> "ApiResponse":
        return cls(status_code=status_code, data=data, message=message, success=status_code < 400)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/users/register."""

    model_config = _SECRET_REQUEST_CONFIG

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/users/login."""

    model_config = _SECRET_REQUEST_CONFIG

    email: Optional[str] = None
    password: Optional[str] = None


class AddDetailsRequest(BaseModel):
    """Request body for PATCH /api/v1/users/addDetails.

    dateOfBirth accepts an ISO 8601 date; anything unparseable is rejected by
    the RequestValidationError handler as a 400.
    """

    model_config = _REQUEST_CONFIG

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    email: Optional[str] = None
    phone_no: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    """Request body for PATCH /api/v1/users/changePassword."""

    model_config = _SECRET_REQUEST_CONFIG

    current_password: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None


class ToggleEmailRequest(BaseModel):
    """Request body for PATCH /api/v1/users/toggleEmail. status is "true" or "false"."""

    model_config = _REQUEST_CONFIG

    status: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user account.

    There is deliberately no password field: every handler that returns a
    user goes through from_user(), so the hash cannot leak from any route.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    name: str
    first_name: str
    last_name: str
    email: str
    date_of_birth: Optional[str] = None
    phone_no: Optional[str] = None
    role: list[str]
    email_notifications_enabled: bool
    oauth_provider: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Build the public view from a domain User (Factory Method)."""
        return cls(
            id=user.id,
            name=user.name,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            date_of_birth=user.date_of_birth,
            phone_no=user.phone_no,
            role=list(user.roles),
            email_notifications_enabled=user.email_notifications,
            oauth_provider=user.oauth_provider,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class HealthData(BaseModel):
    """Payload for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
