"""Pure derivation of the rendered bookmark sequence and dashboard summary."""
from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from datetime import timezone

from dateutil import parser as dt_parser

from smartmark.models import CATEGORIES, DEFAULT_CATEGORY, Bookmark

CATEGORY_ALL = "All"
FAVORITES_ALL = "all"
FAVORITES_ONLY = "favorites"

SORT_NEWEST = "newest"
SORT_OLDEST = "oldest"
SORT_AZ = "az"
SORT_ZA = "za"

CATEGORY_FILTERS = (CATEGORY_ALL, *CATEGORIES)
FAVORITES_FILTERS = (FAVORITES_ALL, FAVORITES_ONLY)
SORT_OPTIONS = {
    SORT_NEWEST: "Newest First",
    SORT_OLDEST: "Oldest First",
    SORT_AZ: "Title A–Z",
    SORT_ZA: "Title Z–A",
}

EMPTY_NONE = None
EMPTY_NO_BOOKMARKS = "no_bookmarks"
EMPTY_NO_RESULTS = "no_results"

LATEST_PLACEHOLDER = "-"


@dataclass(frozen=True)
class ViewControls:
    search: str = ""
    category: str = CATEGORY_ALL
    favorites: str = FAVORITES_ALL
    sort: str = SORT_NEWEST


@dataclass(frozen=True)
class Summary:
    total_bookmarks: int
    total_favorites: int
    categories_used: int
    latest_title: str

    def as_dict(self) -> dict:
        return {
            "total_bookmarks": self.total_bookmarks,
            "total_favorites": self.total_favorites,
            "categories_used": self.categories_used,
            "latest_title": self.latest_title,
        }


@dataclass(frozen=True)
class DerivedView:
    visible: list[Bookmark] = field(default_factory=list)
    summary: Summary = Summary(0, 0, 0, LATEST_PLACEHOLDER)
    empty_state: str | None = EMPTY_NO_BOOKMARKS


def created_timestamp(bookmark: Bookmark) -> float:
    if not bookmark.created_at:
        return 0.0
    try:
        parsed = dt_parser.parse(bookmark.created_at)
    except (ValueError, OverflowError):
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def title_collation_key(title: str) -> tuple[str, str]:
    decomposed = unicodedata.normalize("NFKD", title or "")
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), title or ""


def apply_search(bookmarks: list[Bookmark], search: str) -> list[Bookmark]:
    q = (search or "").strip().casefold()
    if not q:
        return list(bookmarks)
    return [
        bk
        for bk in bookmarks
        if q in (bk.title or "").casefold() or q in (bk.url or "").casefold()
    ]


def apply_category(bookmarks: list[Bookmark], category: str) -> list[Bookmark]:
    if category == CATEGORY_ALL:
        return list(bookmarks)
    return [bk for bk in bookmarks if (bk.category or DEFAULT_CATEGORY) == category]


def apply_favorites(bookmarks: list[Bookmark], favorites: str) -> list[Bookmark]:
    if favorites != FAVORITES_ONLY:
        return list(bookmarks)
    return [bk for bk in bookmarks if bk.is_favorite]


def apply_sort(bookmarks: list[Bookmark], sort: str) -> list[Bookmark]:
    if sort == SORT_NEWEST:
        return sorted(bookmarks, key=created_timestamp, reverse=True)
    if sort == SORT_OLDEST:
        return sorted(bookmarks, key=created_timestamp)
    if sort == SORT_AZ:
        return sorted(bookmarks, key=lambda bk: title_collation_key(bk.title))
    if sort == SORT_ZA:
        return sorted(
            bookmarks, key=lambda bk: title_collation_key(bk.title), reverse=True
        )
    return list(bookmarks)


def summarize(bookmarks: list[Bookmark]) -> Summary:
    """Aggregates over the unfiltered list; ``bookmarks[0]`` is the newest fetched row."""
    return Summary(
        total_bookmarks=len(bookmarks),
        total_favorites=sum(1 for bk in bookmarks if bk.is_favorite),
        categories_used=len({bk.category or DEFAULT_CATEGORY for bk in bookmarks}),
        latest_title=bookmarks[0].title if bookmarks else LATEST_PLACEHOLDER,
    )


def derive_view(bookmarks: list[Bookmark], controls: ViewControls) -> DerivedView:
    searched = apply_search(bookmarks, controls.search)
    filtered = apply_category(searched, controls.category)
    favorites = apply_favorites(filtered, controls.favorites)
    visible = apply_sort(favorites, controls.sort)

    if not bookmarks:
        empty_state = EMPTY_NO_BOOKMARKS
    elif not visible:
        empty_state = EMPTY_NO_RESULTS
    else:
        empty_state = EMPTY_NONE

    return DerivedView(
        visible=visible, summary=summarize(bookmarks), empty_state=empty_state
    )
