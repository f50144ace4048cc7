"""Client-side list reconciliation.

``BookmarkListController`` owns one user's newest-first bookmark list and
merges three sources into it: the snapshot it was seeded with, the user's own
add/delete calls, and insert/delete events pushed by a change feed. Every
merge goes through the same id-existence check, so duplicate deliveries and
the race between an add's response and the feed's insert event both settle
on a single entry.

Add and delete are deliberately asymmetric. Delete removes the entry before
the store is called and puts it back (at the front) if the store refuses.
Add only touches the list once the store has returned the created record.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable

from livemarks.services.changes import CHANGE_DELETE, CHANGE_INSERT
from livemarks.services.common import (
    BookmarkValidationError,
    resolve_title,
    validate_bookmark_url,
)
from livemarks.services.store import BookmarkRecord, RecordStore, RemoteStoreError

logger = logging.getLogger(__name__)

DEFAULT_LIVE_SECONDS = 1.5


@dataclass(frozen=True)
class ListState:
    bookmarks: tuple[BookmarkRecord, ...]
    error: str
    adding: bool
    deleting_id: int | None
    live: bool
    url_input: str
    title_input: str


class BookmarkListController:
    OPTIMISTIC_ADD = False
    OPTIMISTIC_DELETE = True

    def __init__(
        self,
        store: RecordStore,
        snapshot: Iterable[BookmarkRecord],
        feed=None,
        since: int | None = None,
        live_seconds: float = DEFAULT_LIVE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        on_change: Callable[[], None] | None = None,
    ):
        self.store = store
        self.owner = store.owner
        self.live_seconds = live_seconds
        self.on_change = on_change
        self._clock = clock
        self._lock = threading.RLock()
        self._bookmarks: list[BookmarkRecord] = list(snapshot)
        self._live_until = 0.0
        self._closed = False
        self._feed = feed
        self._subscription = None

        self.error = ""
        self.adding = False
        self.deleting_id: int | None = None
        self.url_input = ""
        self.title_input = ""

        if feed is not None:
            self._subscription = feed.subscribe(
                self.owner, self.on_remote_change, since=since
            )

    @classmethod
    def open(cls, store: RecordStore, feed=None, **kwargs):
        """Fetch the owner's snapshot, then subscribe to the feed."""
        return cls(store, store.fetch_all(), feed=feed, **kwargs)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subscription, self._subscription = self._subscription, None
        if subscription is not None:
            self._feed.unsubscribe(subscription)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscription(self):
        return self._subscription

    @property
    def bookmarks(self) -> list[BookmarkRecord]:
        with self._lock:
            return list(self._bookmarks)

    @property
    def live(self) -> bool:
        return self._clock() < self._live_until

    def state(self) -> ListState:
        with self._lock:
            return ListState(
                bookmarks=tuple(self._bookmarks),
                error=self.error,
                adding=self.adding,
                deleting_id=self.deleting_id,
                live=self.live,
                url_input=self.url_input,
                title_input=self.title_input,
            )

    def _prepend_if_absent(self, record: BookmarkRecord) -> bool:
        if any(item.id == record.id for item in self._bookmarks):
            return False
        self._bookmarks.insert(0, record)
        return True

    def _remove(self, bookmark_id: int) -> None:
        self._bookmarks = [item for item in self._bookmarks if item.id != bookmark_id]

    def _notify(self) -> None:
        if self.on_change is not None and not self._closed:
            self.on_change()

    def add(self, url: str, title: str = "") -> BookmarkRecord | None:
        with self._lock:
            if self._closed:
                return None
            if self.adding:
                logger.debug("Add ignored for owner %s: already in flight", self.owner)
                return None
            self.error = ""
            self.url_input = url or ""
            self.title_input = title or ""
            try:
                clean_url = validate_bookmark_url(url)
            except BookmarkValidationError as exc:
                self.error = str(exc)
                validation_failed = True
            else:
                validation_failed = False
                fields = {
                    "user_id": self.owner,
                    "url": clean_url,
                    "title": resolve_title(clean_url, title),
                }
                self.adding = True
        self._notify()
        if validation_failed:
            return None

        failure = None
        try:
            record = self.store.create(fields)
        except RemoteStoreError as exc:
            record = None
            failure = exc.message
        finally:
            with self._lock:
                self.adding = False

        with self._lock:
            if self._closed:
                return None
            if failure is not None:
                self.error = failure
            else:
                if not self._prepend_if_absent(record):
                    logger.debug("Bookmark %s already delivered by the feed", record.id)
                self.url_input = ""
                self.title_input = ""
        self._notify()
        return record

    def delete(self, bookmark_id: int) -> bool:
        with self._lock:
            if self._closed:
                return False
            self._remove(bookmark_id)
            self.deleting_id = bookmark_id
        self._notify()

        try:
            self.store.delete(bookmark_id)
        except RemoteStoreError as exc:
            self._roll_back_delete(bookmark_id, exc)
            return False
        finally:
            with self._lock:
                if self.deleting_id == bookmark_id:
                    self.deleting_id = None
        self._notify()
        return True

    def _roll_back_delete(self, bookmark_id: int, exc: RemoteStoreError) -> None:
        # Restored entries go to the front, not back to their old position.
        try:
            restored = self.store.fetch_one(bookmark_id)
        except RemoteStoreError as fetch_exc:
            logger.warning(
                "Could not re-fetch bookmark %s after failed delete: %s",
                bookmark_id,
                fetch_exc.message,
            )
            restored = None
        with self._lock:
            if self._closed:
                return
            if restored is not None:
                self._prepend_if_absent(restored)
            self.error = exc.message
            if self.deleting_id == bookmark_id:
                self.deleting_id = None
        self._notify()

    def on_remote_change(self, kind: str, record: BookmarkRecord) -> None:
        with self._lock:
            if self._closed:
                return
            if kind == CHANGE_INSERT:
                self._prepend_if_absent(record)
            elif kind == CHANGE_DELETE:
                self._remove(record.id)
            else:
                logger.debug("Ignoring change kind %r for bookmark %s", kind, record.id)
            self._live_until = self._clock() + self.live_seconds
        self._notify()
