from __future__ import annotations

from flask import current_app, g, jsonify, request

from livemarks.api import api_bp
from livemarks.services.changes import latest_cursor, list_changes_since
from livemarks.services.common import (
    BookmarkValidationError,
    resolve_title,
    validate_bookmark_url,
)
from livemarks.services.security import api_auth_required
from livemarks.services.store import RemoteStoreError, SqlRecordStore


def _store_error(exc: RemoteStoreError):
    return jsonify({"error": exc.message}), exc.status_code or 500


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "LiveMarks"})


@api_bp.route("/me", methods=["GET"])
@api_auth_required
def me():
    return jsonify(g.api_user.as_dict())


@api_bp.route("/bookmarks", methods=["GET"])
@api_auth_required
def bookmarks_list_api():
    user = g.api_user
    # Cursor first, so anything committed during the snapshot shows up in /changes.
    cursor = latest_cursor(user.id)
    items = SqlRecordStore(user.id).fetch_all()
    return jsonify({"items": [item.as_dict() for item in items], "cursor": cursor})


@api_bp.route("/bookmarks", methods=["POST"])
@api_auth_required
def bookmarks_create_api():
    user = g.api_user
    payload = request.get_json(silent=True) or {}
    try:
        url = validate_bookmark_url(payload.get("url") or "")
    except BookmarkValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    try:
        record = SqlRecordStore(user.id).create(
            {
                "user_id": user.id,
                "url": url,
                "title": resolve_title(url, payload.get("title")),
            }
        )
    except RemoteStoreError as exc:
        return _store_error(exc)
    return jsonify(record.as_dict()), 201


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["GET"])
@api_auth_required
def bookmarks_get_api(bookmark_id: int):
    record = SqlRecordStore(g.api_user.id).fetch_one(bookmark_id)
    if record is None:
        return jsonify({"error": "bookmark not found"}), 404
    return jsonify(record.as_dict())


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["DELETE"])
@api_auth_required
def bookmarks_delete_api(bookmark_id: int):
    try:
        SqlRecordStore(g.api_user.id).delete(bookmark_id)
    except RemoteStoreError as exc:
        return _store_error(exc)
    return jsonify({"status": "deleted", "id": bookmark_id})


@api_bp.route("/changes", methods=["GET"])
@api_auth_required
def changes_api():
    user = g.api_user
    since = request.args.get("since", type=int)
    if since is None:
        return jsonify(
            {"events": [], "cursor": latest_cursor(user.id), "has_more": False}
        )
    page_size = current_app.config["CHANGE_FEED_PAGE_SIZE"]
    limit = request.args.get("limit", default=page_size, type=int)
    limit = max(1, min(limit, page_size))
    return jsonify(list_changes_since(user.id, since, limit))
