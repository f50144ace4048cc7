"""Record stores the list controller reads from and writes to.

A store is bound to one owner. ``SqlRecordStore`` talks to the database
directly and logs every insert/delete to the change log, so subscribers of
the change feed observe mutations made through it. ``HttpRecordStore`` in
``livemarks.client`` implements the same four calls against the JSON API.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone

from dateutil import parser as dt_parser
from sqlalchemy.exc import SQLAlchemyError

from livemarks.extensions import db
from livemarks.models import Bookmark
from livemarks.services.changes import CHANGE_DELETE, CHANGE_INSERT, log_change_event


class RemoteStoreError(Exception):
    """A store call failed; ``message`` is surfaced to the user verbatim."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class BookmarkRecord:
    id: int
    user_id: int
    url: str
    title: str
    created_at: datetime

    @classmethod
    def from_model(cls, bookmark: Bookmark) -> "BookmarkRecord":
        return cls(
            id=bookmark.id,
            user_id=bookmark.user_id,
            url=bookmark.url,
            title=bookmark.title,
            created_at=_as_aware(bookmark.created_at),
        )

    @classmethod
    def from_dict(cls, payload: dict) -> "BookmarkRecord":
        raw_created = payload.get("created_at")
        if isinstance(raw_created, datetime):
            created_at = raw_created
        else:
            created_at = dt_parser.isoparse(raw_created)
        return cls(
            id=int(payload["id"]),
            user_id=int(payload["user_id"]),
            url=payload.get("url") or "",
            title=payload.get("title") or "",
            created_at=_as_aware(created_at),
        )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "url": self.url,
            "title": self.title,
            "created_at": self.created_at.isoformat(),
        }


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RecordStore(ABC):
    """Owner-scoped bookmark store."""

    owner: int

    @abstractmethod
    def fetch_all(self) -> list[BookmarkRecord]:
        raise NotImplementedError

    @abstractmethod
    def create(self, fields: dict) -> BookmarkRecord:
        raise NotImplementedError

    @abstractmethod
    def delete(self, bookmark_id: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def fetch_one(self, bookmark_id: int) -> BookmarkRecord | None:
        raise NotImplementedError


class SqlRecordStore(RecordStore):
    def __init__(self, owner: int):
        self.owner = owner

    def _query(self):
        return Bookmark.query.filter_by(user_id=self.owner)

    def fetch_all(self) -> list[BookmarkRecord]:
        rows = self._query().order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
        return [BookmarkRecord.from_model(row) for row in rows.all()]

    def create(self, fields: dict) -> BookmarkRecord:
        owner = fields.get("user_id", self.owner)
        if owner != self.owner:
            raise RemoteStoreError("bookmarks can only be created for yourself", 403)

        bookmark = Bookmark(
            user_id=self.owner,
            url=fields["url"],
            title=fields["title"],
        )
        try:
            db.session.add(bookmark)
            db.session.flush()
            log_change_event(self.owner, CHANGE_INSERT, bookmark)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise RemoteStoreError(str(exc), 500) from exc
        return BookmarkRecord.from_model(bookmark)

    def delete(self, bookmark_id: int) -> None:
        bookmark = self._query().filter_by(id=bookmark_id).first()
        if not bookmark:
            raise RemoteStoreError("bookmark not found", 404)
        try:
            log_change_event(self.owner, CHANGE_DELETE, bookmark)
            db.session.delete(bookmark)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise RemoteStoreError(str(exc), 500) from exc

    def fetch_one(self, bookmark_id: int) -> BookmarkRecord | None:
        bookmark = self._query().filter_by(id=bookmark_id).first()
        if not bookmark:
            return None
        return BookmarkRecord.from_model(bookmark)
