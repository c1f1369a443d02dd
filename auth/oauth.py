"""
auth/oauth.py -- Authlib OAuth/OIDC provider configuration.

Reads configuration from core.config.get_settings() at module load to decide
which providers are active. Only providers with both client ID and secret
configured get registered; OAuth.create_client() returns None for any other
name, which the routes treat as "provider unavailable".

Security notes:
  Email verification is mandatory. get_oauth_user_info() raises ValueError
  if the provider does not confirm the email is verified -- an unverified
  address could belong to someone else and would otherwise be linked to an
  existing local account with the same email.

  OAuth state (CSRF protection) is handled by authlib via Starlette
  SessionMiddleware, registered in api/main.py.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from authlib.integrations.starlette_client import OAuth

from core.config import get_settings

logger = logging.getLogger("accounts.auth.oauth")

oauth = OAuth()

_cfg = get_settings()

# Google -- OIDC discovery
if _cfg.google_client_id and _cfg.google_client_secret:
    oauth.register(
        name="google",
        client_id=_cfg.google_client_id,
        client_secret=_cfg.google_client_secret,
        server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
        client_kwargs={"scope": "openid email profile"},
    )
    logger.info("Google OAuth provider registered")


@dataclass
class OAuthIdentity:
    """Normalized identity returned by a provider after code exchange."""

    email: str
    subject: str
    first_name: str
    last_name: str


def get_enabled_providers() -> list[str]:
    """Return the names of every configured OAuth provider."""
    cfg = get_settings()
    providers: list[str] = []
    if cfg.google_client_id and cfg.google_client_secret:
        providers.append("google")
    return providers


def get_oauth_user_info(provider: str, token: dict) -> OAuthIdentity:
    """Extract a verified identity from an OIDC token response.

    The id_token claims (parsed by authlib into token["userinfo"]) must carry
    email, email_verified=True and sub. Missing given/family names fall back
    to the display name, then to the email local part.

    Raises:
        ValueError: If a verified email cannot be confirmed.
    """
    userinfo = token.get("userinfo")
    if not userinfo:
        raise ValueError(f"{provider} OAuth: no userinfo in token response")

    if not userinfo.get("email_verified", False):
        raise ValueError(f"{provider} OAuth: email is not verified")

    email = userinfo.get("email")
    subject = userinfo.get("sub")
    if not email or not subject:
        raise ValueError(f"{provider} OAuth: missing email or sub claim in userinfo")

    first_name = userinfo.get("given_name") or ""
    last_name = userinfo.get("family_name") or ""
    if not first_name:
        display = (userinfo.get("name") or "").strip()
        if display:
            first_name, _, rest = display.partition(" ")
            last_name = last_name or rest
        else:
            first_name = email.split("@", 1)[0]

    return OAuthIdentity(email=email, subject=str(subject), first_name=first_name, last_name=last_name)
