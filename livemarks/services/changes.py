from __future__ import annotations

from datetime import datetime

from livemarks.extensions import db
from livemarks.models import Bookmark, ChangeEvent

CHANGE_INSERT = "insert"
CHANGE_DELETE = "delete"

CHANGE_ACTIONS = {CHANGE_INSERT, CHANGE_DELETE}


def serialize_bookmark_for_feed(bookmark: Bookmark) -> dict:
    return bookmark.as_dict()


def log_change_event(user_id: int, action: str, bookmark: Bookmark) -> ChangeEvent:
    if action not in CHANGE_ACTIONS:
        raise ValueError(f"unsupported change action: {action}")
    event = ChangeEvent(
        user_id=user_id,
        bookmark_id=bookmark.id,
        action=action,
        payload=serialize_bookmark_for_feed(bookmark),
    )
    db.session.add(event)
    return event


def latest_cursor(user_id: int) -> int:
    query = db.session.query(db.func.max(ChangeEvent.id)).filter_by(user_id=user_id)
    return query.scalar() or 0


def list_changes_since(user_id: int, since: int, limit: int) -> dict:
    events = (
        ChangeEvent.query.filter_by(user_id=user_id)
        .filter(ChangeEvent.id > since)
        .order_by(ChangeEvent.id.asc())
        .limit(limit)
        .all()
    )
    cursor = events[-1].id if events else max(since, 0)
    return {
        "events": [event.as_dict() for event in events],
        "cursor": cursor,
        "has_more": len(events) == limit,
    }


def prune_change_events(older_than: datetime) -> int:
    deleted = ChangeEvent.query.filter(ChangeEvent.created_at < older_than).delete(
        synchronize_session=False
    )
    db.session.commit()
    return deleted


class SqlChangeSource:
    """Change source reading the log directly, for in-process subscribers."""

    def __init__(self, app, page_size: int | None = None):
        self.app = app
        self.page_size = page_size or app.config["CHANGE_FEED_PAGE_SIZE"]

    def latest_cursor(self, owner: int) -> int:
        with self.app.app_context():
            try:
                return latest_cursor(owner)
            finally:
                db.session.remove()

    def fetch_changes(self, owner: int, since: int) -> dict:
        with self.app.app_context():
            try:
                return list_changes_since(owner, since, self.page_size)
            finally:
                db.session.remove()
