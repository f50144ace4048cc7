from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from urllib.parse import quote

from livemarks.services.common import bookmark_domain

FAVICON_URL = "https://www.google.com/s2/favicons?domain={domain}&sz=32"


@dataclass
class BookmarkRow:
    id: int
    title: str
    url: str
    domain: str
    created_label: str
    favicon_url: str
    deleting: bool = False


@dataclass
class ListView:
    rows: list[BookmarkRow]
    count_label: str
    error: str = ""
    adding: bool = False
    live: bool = False
    url_input: str = ""
    title_input: str = ""

    @property
    def empty(self) -> bool:
        return not self.rows

    @property
    def submit_label(self) -> str:
        return "Saving..." if self.adding else "Save Bookmark"


def format_created(value: datetime) -> str:
    return f"{value:%b} {value.day}, {value.year}"


def count_label(count: int) -> str:
    if count == 0:
        return "No bookmarks yet, add your first below."
    return f"{count} bookmark{'' if count == 1 else 's'}"


def build_row(bookmark, deleting_id: int | None = None) -> BookmarkRow:
    domain = bookmark_domain(bookmark.url)
    return BookmarkRow(
        id=bookmark.id,
        title=bookmark.title,
        url=bookmark.url,
        domain=domain,
        created_label=format_created(bookmark.created_at),
        favicon_url=FAVICON_URL.format(domain=quote(domain, safe="")),
        deleting=deleting_id is not None and bookmark.id == deleting_id,
    )


def build_list_view(bookmarks, **state) -> ListView:
    """Render-ready view of a bookmark sequence, kept in the order given."""
    deleting_id = state.pop("deleting_id", None)
    rows = [build_row(bookmark, deleting_id) for bookmark in bookmarks]
    return ListView(rows=rows, count_label=count_label(len(rows)), **state)


def view_from_state(state) -> ListView:
    return build_list_view(
        state.bookmarks,
        deleting_id=state.deleting_id,
        error=state.error,
        adding=state.adding,
        live=state.live,
        url_input=state.url_input,
        title_input=state.title_input,
    )
