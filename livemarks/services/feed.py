"""Polled change feed.

A change source exposes two calls, both scoped to an owner:

* ``latest_cursor(owner) -> int``
* ``fetch_changes(owner, since) -> {"events": [...], "cursor": int, "has_more": bool}``

where each event is ``{"cursor": int, "action": "insert" | "delete", "record": {...}}``.
``PollingChangeFeed`` turns a source into per-subscription callbacks delivered
in cursor order on a background thread.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable

from livemarks.services.store import BookmarkRecord

logger = logging.getLogger(__name__)

EventCallback = Callable[[str, BookmarkRecord], None]


class Subscription:
    def __init__(
        self,
        source,
        owner: int,
        on_event: EventCallback,
        cursor: int,
        interval: float,
    ):
        self.source = source
        self.owner = owner
        self.on_event = on_event
        self.cursor = cursor
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def active(self) -> bool:
        return not self._stop.is_set()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name=f"change-feed-{self.owner}",
        )
        self._thread.start()

    def poll(self) -> bool:
        """Fetch one page and deliver it. Returns True when more pages are waiting."""
        page = self.source.fetch_changes(self.owner, self.cursor)
        for event in page.get("events") or []:
            if self._stop.is_set():
                return False
            self._deliver(event)
            self.cursor = max(self.cursor, int(event["cursor"]))
        return bool(page.get("has_more"))

    def _deliver(self, event: dict) -> None:
        try:
            record = BookmarkRecord.from_dict(event["record"])
            self.on_event(event["action"], record)
        except Exception as exc:
            logger.warning(
                "Dropped change event %s for owner %s: %s",
                event.get("cursor"),
                self.owner,
                exc,
            )

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                has_more = self.poll()
            except Exception as exc:
                logger.warning(
                    "Change feed poll failed for owner %s: %s", self.owner, exc
                )
                has_more = False
            if not has_more:
                self._stop.wait(self.interval)

    def close(self) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval + 1)


class ChangeFeed(ABC):
    @abstractmethod
    def subscribe(
        self, owner: int, on_event: EventCallback, since: int | None = None
    ) -> Subscription:
        raise NotImplementedError

    @abstractmethod
    def unsubscribe(self, handle: Subscription) -> None:
        raise NotImplementedError


class PollingChangeFeed(ChangeFeed):
    def __init__(self, source, interval: float = 1.0, autostart: bool = True):
        self.source = source
        self.interval = interval
        self.autostart = autostart
        self._lock = threading.Lock()
        self._subscriptions: set[Subscription] = set()

    def subscribe(
        self, owner: int, on_event: EventCallback, since: int | None = None
    ) -> Subscription:
        cursor = self.source.latest_cursor(owner) if since is None else since
        handle = Subscription(self.source, owner, on_event, cursor, self.interval)
        with self._lock:
            self._subscriptions.add(handle)
        if self.autostart:
            handle.start()
        return handle

    def unsubscribe(self, handle: Subscription) -> None:
        with self._lock:
            self._subscriptions.discard(handle)
        handle.close()

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)
