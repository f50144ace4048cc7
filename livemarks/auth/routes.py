from flask import current_app, redirect, session, url_for
from flask_login import login_required, login_user, logout_user
from requests import RequestException

from livemarks.auth import auth_bp
from livemarks.extensions import db
from livemarks.models import User, utcnow
from livemarks.services.oauth import (
    OAuthError,
    OAuthProfile,
    get_client,
    profile_from_token,
)

OAUTH_PROVIDER_KEY = "oauth_provider"


def _oauth_failed(exc: Exception):
    current_app.logger.warning("OAuth sign-in failed: %s", exc)
    return redirect(url_for("web.landing", error="oauth_error"))


def _upsert_user(profile: OAuthProfile) -> User:
    user = User.query.filter_by(
        provider=profile.provider, subject=profile.subject
    ).first()
    if not user:
        user = User(provider=profile.provider, subject=profile.subject)
        db.session.add(user)
    user.email = profile.email or user.email
    user.full_name = profile.full_name or user.full_name
    user.avatar_url = profile.avatar_url or user.avatar_url
    user.last_login_at = utcnow()
    db.session.commit()
    return user


@auth_bp.route("/auth/<provider>")
def begin(provider: str):
    try:
        client = get_client(provider)
        response = client.authorize_redirect(url_for("auth.callback", _external=True))
    except (OAuthError, RequestException) as exc:
        return _oauth_failed(exc)
    session[OAUTH_PROVIDER_KEY] = client.name
    return response


@auth_bp.route("/auth/callback")
def callback():
    try:
        client = get_client(session.pop(OAUTH_PROVIDER_KEY, None))
        token = client.authorize_access_token()
        profile = profile_from_token(client, token)
    except (OAuthError, RequestException) as exc:
        return _oauth_failed(exc)

    user = _upsert_user(profile)
    login_user(user, remember=True)
    return redirect(url_for("web.dashboard"))


@auth_bp.route("/auth/signout", methods=["POST"])
@login_required
def signout():
    logout_user()
    return redirect(url_for("web.landing"))
