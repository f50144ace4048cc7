"""httpx client for the LiveMarks JSON API.

``open_live_list`` wires a ``BookmarkListController`` to a running server:
the snapshot and the change feed cursor come from one ``GET /bookmarks``
call, so no change made between the two is missed.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

import httpx

from livemarks.services.controller import BookmarkListController
from livemarks.services.feed import PollingChangeFeed
from livemarks.services.store import BookmarkRecord, RecordStore, RemoteStoreError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "LiveMarksClient/1.0",
    "Accept": "application/json",
}


class LiveMarksClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        headers = dict(DEFAULT_HEADERS)
        headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.Client(
            base_url=f"{base_url.rstrip('/')}/api/v1",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        self._http.close()

    def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteStoreError(str(exc) or exc.__class__.__name__) from exc

    def json(self, method: str, path: str, **kwargs):
        response = self.request(method, path, **kwargs)
        if response.status_code >= 400:
            raise RemoteStoreError(_error_message(response), response.status_code)
        return response.json()

    def me(self) -> dict:
        return self.json("GET", "/me")


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return f"HTTP {response.status_code}"


class HttpRecordStore(RecordStore):
    def __init__(self, client: LiveMarksClient, owner: int):
        self.client = client
        self.owner = owner

    def fetch_page(self) -> tuple[list[BookmarkRecord], int]:
        payload = self.client.json("GET", "/bookmarks")
        items = [BookmarkRecord.from_dict(item) for item in payload.get("items") or []]
        return items, int(payload.get("cursor") or 0)

    def fetch_all(self) -> list[BookmarkRecord]:
        items, _ = self.fetch_page()
        return items

    def create(self, fields: dict) -> BookmarkRecord:
        payload = self.client.json(
            "POST",
            "/bookmarks",
            json={"url": fields["url"], "title": fields.get("title") or ""},
        )
        return BookmarkRecord.from_dict(payload)

    def delete(self, bookmark_id: int) -> None:
        self.client.json("DELETE", f"/bookmarks/{bookmark_id}")

    def fetch_one(self, bookmark_id: int) -> BookmarkRecord | None:
        response = self.client.request("GET", f"/bookmarks/{bookmark_id}")
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise RemoteStoreError(_error_message(response), response.status_code)
        return BookmarkRecord.from_dict(response.json())


class HttpChangeSource:
    def __init__(self, client: LiveMarksClient, page_size: int | None = None):
        self.client = client
        self.page_size = page_size

    def latest_cursor(self, owner: int) -> int:
        return int(self.client.json("GET", "/changes").get("cursor") or 0)

    def fetch_changes(self, owner: int, since: int) -> dict:
        params = {"since": since}
        if self.page_size:
            params["limit"] = self.page_size
        return self.client.json("GET", "/changes", params=params)


@contextmanager
def open_live_list(
    base_url: str,
    token: str,
    interval: float = 1.0,
    autostart: bool = True,
    transport: httpx.BaseTransport | None = None,
    **controller_kwargs,
):
    with LiveMarksClient(base_url, token, transport=transport) as client:
        owner = int(client.me()["id"])
        store = HttpRecordStore(client, owner)
        snapshot, cursor = store.fetch_page()
        feed = PollingChangeFeed(
            HttpChangeSource(client), interval=interval, autostart=autostart
        )
        controller = BookmarkListController(
            store, snapshot, feed=feed, since=cursor, **controller_kwargs
        )
        logger.debug(
            "Opened live list for owner %s at cursor %s (%s bookmarks)",
            owner,
            cursor,
            len(snapshot),
        )
        try:
            yield controller
        finally:
            controller.close()
