from __future__ import annotations

from flask import (
    current_app,
    flash,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_login import current_user, login_required

from livemarks.extensions import db
from livemarks.models import ApiToken, utcnow
from livemarks.services.changes import latest_cursor
from livemarks.services.controller import BookmarkListController
from livemarks.services.presentation import build_list_view, view_from_state
from livemarks.services.session_gate import SessionLookupError, get_session_user
from livemarks.services.store import SqlRecordStore
from livemarks.web import web_bp

LANDING_ERRORS = {
    "oauth_error": "Sign-in with the provider failed. Please try again.",
    "auth_error": "We could not check your session. Please sign in again.",
}


def _active_tokens(user_id: int):
    return (
        ApiToken.query.filter_by(user_id=user_id)
        .filter(ApiToken.revoked_at.is_(None))
        .order_by(ApiToken.created_at.desc())
        .all()
    )


def _render_dashboard(user, view, cursor: int):
    return render_template(
        "dashboard.html",
        user=user,
        view=view,
        cursor=cursor,
        live_seconds=current_app.config["LIVE_INDICATOR_SECONDS"],
        tokens=_active_tokens(user.id),
        issued_token=session.pop("latest_token", None),
    )


def _open_controller(user) -> tuple[BookmarkListController, int]:
    cursor = latest_cursor(user.id)
    controller = BookmarkListController.open(
        SqlRecordStore(user.id),
        live_seconds=current_app.config["LIVE_INDICATOR_SECONDS"],
    )
    return controller, cursor


@web_bp.route("/")
def landing():
    error_key = request.args.get("error")
    try:
        user = get_session_user()
    except SessionLookupError:
        user = None
        error_key = "auth_error"
    if user is not None:
        return redirect(url_for("web.dashboard"))
    return render_template(
        "landing.html",
        error=LANDING_ERRORS.get(error_key or "", ""),
    )


@web_bp.route("/dashboard")
def dashboard():
    try:
        user = get_session_user()
    except SessionLookupError:
        return redirect(url_for("web.landing", error="auth_error"))
    if user is None:
        return redirect(url_for("web.landing"))

    # Read the cursor before the snapshot so a concurrent write is replayed, not lost.
    cursor = latest_cursor(user.id)
    bookmarks = SqlRecordStore(user.id).fetch_all()
    return _render_dashboard(user, build_list_view(bookmarks), cursor)


@web_bp.route("/bookmarks", methods=["POST"])
@login_required
def bookmarks_add():
    controller, cursor = _open_controller(current_user)
    with controller:
        record = controller.add(
            request.form.get("url") or "", request.form.get("title") or ""
        )
        if record is None:
            return _render_dashboard(
                current_user, view_from_state(controller.state()), cursor
            )
    return redirect(url_for("web.dashboard"))


@web_bp.route("/bookmarks/<int:bookmark_id>/delete", methods=["POST"])
@login_required
def bookmarks_delete(bookmark_id: int):
    controller, cursor = _open_controller(current_user)
    with controller:
        if not controller.delete(bookmark_id):
            return _render_dashboard(
                current_user, view_from_state(controller.state()), cursor
            )
    return redirect(url_for("web.dashboard"))


@web_bp.route("/tokens", methods=["POST"])
@login_required
def tokens_create():
    name = (request.form.get("name") or "Python client").strip()
    token, token_hash = ApiToken.issue_token()
    db.session.add(ApiToken(user_id=current_user.id, name=name, token_hash=token_hash))
    db.session.commit()
    session["latest_token"] = token
    return redirect(url_for("web.dashboard"))


@web_bp.route("/tokens/<int:token_id>/revoke", methods=["POST"])
@login_required
def tokens_revoke(token_id: int):
    row = ApiToken.query.filter_by(id=token_id, user_id=current_user.id).first_or_404()
    row.revoked_at = utcnow()
    db.session.commit()
    flash("Token revoked.", "success")
    return redirect(url_for("web.dashboard"))
