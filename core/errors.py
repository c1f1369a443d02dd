"""
core/errors.py -- Error taxonomy shared by auth/ and api/.

Every failure a handler can report is an ApiError carrying the HTTP status
and the client-facing message. api/main.py registers one exception handler
for ApiError that renders the standard response envelope, so route code just
raises and never builds error responses by hand.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""


class ApiError(Exception):
    """Base class for errors that map directly onto an HTTP status code."""

    status_code: int = 500
    default_message: str = "Internal Server Error"

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(ApiError):
    """Missing or malformed request fields."""

    status_code = 400
    default_message = "Please fill all fields."


class AuthenticationError(ApiError):
    """Bad credentials or missing/invalid session token."""

    status_code = 401
    default_message = "Invalid credentials"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "User not found"


class ConflictError(ApiError):
    """A unique field (email) is already taken."""

    status_code = 409
    default_message = "User already exists"


class HashingError(ApiError):
    default_message = "Password hashing failed"


class IssuanceError(ApiError):
    default_message = "token generation failed"


class StorageError(ApiError):
    default_message = "Database operation failed"
