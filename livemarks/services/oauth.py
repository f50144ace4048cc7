"""Google sign-in through Authlib's Flask client.

Each application gets its own ``OAuth`` registry, so credentials are read from
that application's config (``GOOGLE_CLIENT_ID`` / ``GOOGLE_CLIENT_SECRET``).
Authlib keeps the state, nonce and redirect URI in the Flask session between
the redirect and the callback.
"""

from __future__ import annotations

from dataclasses import dataclass

from authlib.integrations.flask_client import OAuth, OAuthError
from flask import current_app

GOOGLE_METADATA_URL = "https://accounts.google.com/.well-known/openid-configuration"

REGISTRY_KEY = "authlib.integrations.flask_client"


@dataclass
class OAuthProfile:
    provider: str
    subject: str
    email: str | None
    full_name: str | None
    avatar_url: str | None


def init_oauth(app) -> OAuth:
    oauth = OAuth(app)
    oauth.register(
        name="google",
        server_metadata_url=GOOGLE_METADATA_URL,
        client_kwargs={
            "scope": "openid email profile",
            "default_timeout": app.config["OAUTH_TIMEOUT"],
        },
        authorize_params={"access_type": "offline", "prompt": "consent"},
    )
    return oauth


def get_client(name: str | None):
    """Return the registered client for ``name``, or raise ``OAuthError``."""
    registry = current_app.extensions[REGISTRY_KEY]
    provider = (name or "").strip().lower()
    client = registry.create_client(provider) if provider else None
    if client is None:
        raise OAuthError(
            error="unsupported_provider", description=f"unsupported provider: {name}"
        )
    if not client.client_id or not client.client_secret:
        raise OAuthError(
            error="not_configured", description=f"{provider} sign-in is not configured"
        )
    return client


def profile_from_token(client, token: dict) -> OAuthProfile:
    info = token.get("userinfo") or client.userinfo(token=token)
    subject = str(info.get("sub") or "").strip()
    if not subject:
        raise OAuthError(
            error="missing_subject", description="provider did not return a user id"
        )
    return OAuthProfile(
        provider=client.name,
        subject=subject,
        email=info.get("email"),
        full_name=info.get("name"),
        avatar_url=info.get("picture"),
    )
