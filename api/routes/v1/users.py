"""
api/routes/v1/users.py -- Account registration, session and profile endpoints.

Routes:
  POST  /api/v1/users/register                  -- create account; 201 with user
  POST  /api/v1/users/login                     -- password login; sets token + role cookies
  POST  /api/v1/users/logout                    -- clears both cookies; 200
  GET   /api/v1/users/auth/{provider}           -- redirect to OAuth provider
  GET   /api/v1/users/auth/{provider}/callback  -- OAuth callback; sets cookies, 302 to client
  PATCH /api/v1/users/addDetails                -- update profile fields (requires auth)
  PATCH /api/v1/users/changePassword            -- change password (requires auth)
  GET   /api/v1/users/getUser                   -- current user profile (requires auth)
  PATCH /api/v1/users/toggleEmail               -- email notification flag (requires auth)

Every JSON response is the ApiResponse envelope. Failures are raised as
core.errors.ApiError subclasses and rendered by the handler in api/main.py,
so a failed request never writes cookies or a partial response.

The password-handling routes are plain `def`: FastAPI runs them in its worker
thread pool, which keeps bcrypt off the event loop. The OAuth routes must be
async for authlib and push store work to the pool with run_in_threadpool().

Security:
  Cache-Control: no-store on responses that set session cookies.
  User payloads always go through UserResponse.from_user(), which has no
  password field.
  Protected routes take the caller's id from the verified JWT only. The role
  cookie is never consulted.
"""

from __future__ import annotations

import logging

import httpx
from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from api.models import (
    AddDetailsRequest,
    ApiResponse,
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    ToggleEmailRequest,
    UserResponse,
)
from auth.dependencies import get_current_user_id
from auth.models import User
from auth.oauth import OAuthIdentity, get_oauth_user_info
from auth.passwords import MAX_PASSWORD_BYTES, hash_password, password_too_long, verify_password
from auth.store import UserStore
from auth.tokens import clear_session_cookies, create_access_token, set_session_cookies
from core.config import get_settings
from core.errors import (
    ApiError,
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger("accounts.api.users")

# Auth policy:
# - register, login, logout, OAuth start/callback: public
# - addDetails, changePassword, getUser, toggleEmail: require a valid token
router = APIRouter()

_PASSWORD_TOO_LONG = f"Password must be at most {MAX_PASSWORD_BYTES} bytes."


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _respond(status_code: int, data=None, message: str = "Success") -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ApiResponse.build(status_code, data, message).to_json())


def _missing(*values) -> bool:
    """True if any value is None or a blank string."""
    return any(v is None or (isinstance(v, str) and not v.strip()) for v in values)


def _missing_secret(*values) -> bool:
    """True if any value is None or empty. Whitespace is a valid password."""
    return any(v is None or v == "" for v in values)


def _store(request: Request) -> UserStore:
    return request.app.state.user_store


def _client_redirect(path: str) -> RedirectResponse:
    return RedirectResponse(f"{get_settings().client_url.rstrip('/')}{path}", status_code=302)


def _load_user(store: UserStore, user_id: int) -> User:
    user = store.find_by_id(user_id)
    if user is None:
        raise NotFoundError()
    return user


# ---------------------------------------------------------------------------
# Registration and session
# ---------------------------------------------------------------------------


@router.post("/users/register", status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account. The password is hashed before it reaches the store.

    The find_by_email() pre-check only gives the common duplicate case a
    clear 409. Concurrent duplicates are rejected by the UNIQUE(email)
    constraint inside store.create(), which raises the same ConflictError.
    """
    if _missing(body.first_name, body.last_name, body.email) or _missing_secret(body.password):
        raise ValidationError("Please fill all fields.")
    if password_too_long(body.password):
        raise ValidationError(_PASSWORD_TOO_LONG)

    store = _store(request)
    if store.find_by_email(body.email) is not None:
        raise ConflictError("User already exists")

    user = store.create(
        User(
            email=body.email,
            first_name=body.first_name.strip(),
            last_name=body.last_name.strip(),
            hashed_password=hash_password(body.password),
        )
    )
    logger.info("Registered user id=%s", user.id)
    return _respond(201, UserResponse.from_user(user).to_json(), "User created successfully")


@router.post("/users/login")
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Verify email + password and start a session.

    Sets the `token` cookie (signed JWT) and the `role` cookie (space-joined
    role labels). Nothing is written on any failure path.
    """
    if _missing(body.email) or _missing_secret(body.password):
        raise ValidationError("Please fill all fields")

    user = _store(request).find_by_email(body.email)
    if user is None:
        raise NotFoundError("User not found")
    if user.hashed_password is None or not verify_password(body.password, user.hashed_password):
        logger.warning("Failed login for user id=%s", user.id)
        raise AuthenticationError("Invalid credentials")

    token = create_access_token(user)
    resp = _respond(200, None, "User logged in successfully")
    set_session_cookies(resp, token, user.roles)
    resp.headers["Cache-Control"] = "no-store"
    logger.info("Login: user id=%s", user.id)
    return resp


@router.post("/users/logout")
def logout() -> JSONResponse:
    """Clear both session cookies. Needs no prior authentication."""
    resp = _respond(200, None, "User logged out successfully")
    clear_session_cookies(resp)
    return resp


# ---------------------------------------------------------------------------
# OAuth
# ---------------------------------------------------------------------------


@router.get("/users/auth/{provider}")
async def oauth_login(request: Request, provider: str):
    """Redirect the browser to the provider's authorization page.

    create_client() returns None for names that were never registered, so a
    spoofed provider cannot send the browser anywhere but the client's login.
    """
    client = request.app.state.oauth.create_client(provider)
    if client is None:
        return _client_redirect("/login?error=oauth_failed")
    redirect_uri = str(request.url_for("oauth_callback", provider=provider))
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/users/auth/{provider}/callback", name="oauth_callback")
async def oauth_callback(request: Request, provider: str) -> RedirectResponse:
    """Complete the OAuth flow, start a session, and send the browser to the client.

    Flow:
      1. Exchange the authorization code (authlib checks the session state).
         A provider error or an unreachable provider ends the flow.
      2. Extract a verified email and stable subject id.
      3. Resolve the account: linked identity, else same email (then link),
         else provision a new account without a local password.
      4. Issue the JWT, set both cookies, 302 to {CLIENT_URL}/landingPage.
    Any failure redirects to {CLIENT_URL}/login?error=oauth_failed without cookies.
    """
    client = request.app.state.oauth.create_client(provider)
    if client is None:
        return _client_redirect("/login?error=oauth_failed")

    try:
        token = await client.authorize_access_token(request)
    except (OAuthError, httpx.HTTPError):
        logger.exception("OAuth token exchange failed for provider %r", provider)
        return _client_redirect("/login?error=oauth_failed")

    try:
        identity = get_oauth_user_info(provider, token)
    except ValueError:
        logger.warning("OAuth login rejected: unverified or missing email from %r", provider)
        return _client_redirect("/login?error=oauth_failed")

    try:
        user = await run_in_threadpool(_resolve_oauth_user, _store(request), provider, identity)
        session_token = create_access_token(user)
    except ApiError as exc:
        logger.warning("OAuth login failed for provider %r: %s", provider, exc.message)
        return _client_redirect("/login?error=oauth_failed")

    resp = _client_redirect("/landingPage")
    set_session_cookies(resp, session_token, user.roles)
    resp.headers["Cache-Control"] = "no-store"
    logger.info("OAuth login: user id=%s via %s", user.id, provider)
    return resp


def _resolve_oauth_user(store: UserStore, provider: str, identity: OAuthIdentity) -> User:
    user = store.find_by_oauth(provider, identity.subject)
    if user is not None:
        return user

    user = store.find_by_email(identity.email)
    if user is not None:
        if user.oauth_subject is not None:
            raise ConflictError("Account is linked to a different OAuth identity")
        return store.link_oauth(user.id, provider, identity.subject)

    return store.create(
        User(
            email=identity.email,
            first_name=identity.first_name,
            last_name=identity.last_name,
            oauth_provider=provider,
            oauth_subject=identity.subject,
        )
    )


# ---------------------------------------------------------------------------
# Profile (authenticated)
# ---------------------------------------------------------------------------


@router.patch("/users/addDetails")
def add_details(
    request: Request,
    body: AddDetailsRequest,
    user_id: int = Depends(get_current_user_id),
) -> JSONResponse:
    """Replace the caller's name, date of birth, email and phone number."""
    if _missing(body.first_name, body.last_name, body.date_of_birth, body.email, body.phone_no):
        raise ValidationError("Please fill all fields")

    updated = _store(request).update_by_id(
        user_id,
        first_name=body.first_name,
        last_name=body.last_name,
        date_of_birth=body.date_of_birth.isoformat(),
        email=body.email,
        phone_no=body.phone_no,
    )
    return _respond(200, UserResponse.from_user(updated).to_json(), "User details added successfully")


@router.patch("/users/changePassword")
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    user_id: int = Depends(get_current_user_id),
) -> JSONResponse:
    """Change the caller's password after re-verifying the current one.

    All input checks run before the store is touched, so a rejected request
    leaves the stored hash unchanged.
    """
    if _missing_secret(body.current_password, body.new_password, body.confirm_password):
        raise ValidationError("Please fill all fields")
    if body.current_password == body.new_password:
        raise ValidationError("New password cannot be same as current password")
    if body.new_password != body.confirm_password:
        raise ValidationError("Passwords do not match")
    if password_too_long(body.new_password):
        raise ValidationError(_PASSWORD_TOO_LONG)

    store = _store(request)
    user = _load_user(store, user_id)
    if user.hashed_password is None or not verify_password(body.current_password, user.hashed_password):
        raise AuthenticationError("Invalid credentials")

    updated = store.update_by_id(user_id, hashed_password=hash_password(body.new_password))
    logger.info("Password changed for user id=%s", user_id)
    return _respond(200, UserResponse.from_user(updated).to_json(), "Password changed successfully")


@router.get("/users/getUser")
def get_user(request: Request, user_id: int = Depends(get_current_user_id)) -> JSONResponse:
    """Return the caller's profile."""
    user = _load_user(_store(request), user_id)
    return _respond(200, UserResponse.from_user(user).to_json(), "User fetched successfully!!")


@router.patch("/users/toggleEmail")
def toggle_email(
    request: Request,
    body: ToggleEmailRequest,
    user_id: int = Depends(get_current_user_id),
) -> JSONResponse:
    """Turn email notifications on ("true") or off ("false")."""
    if _missing(body.status):
        raise ValidationError("Please fill all fields")
    if body.status not in ("true", "false"):
        raise ValidationError("Invalid status value")

    updated = _store(request).update_by_id(user_id, email_notifications=body.status == "true")
    return _respond(200, UserResponse.from_user(updated).to_json(), "Email notification updated successfully")
