from __future__ import annotations

import re

from smartmark.models import CATEGORIES, DEFAULT_CATEGORY, Bookmark
from smartmark.services.errors import StoreError, ValidationError
from smartmark.store.tables import BookmarkTable

URL_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def validate_bookmark_input(title: str, url: str, user_id: str | None = None) -> None:
    if not title or not url:
        raise ValidationError("Title and URL are required.")
    if not URL_SCHEME_RE.match(url):
        raise ValidationError("URL must start with http:// or https://")
    if not user_id:
        raise ValidationError("Authentication required. Please log in.")


def coerce_category(value: str | None) -> str:
    category = (value or "").strip()
    return category if category in CATEGORIES else DEFAULT_CATEGORY


class BookmarkStore:
    """CRUD calls against the persistence collaborator, scoped to one identity."""

    def __init__(self, table: BookmarkTable, user_id: str | None):
        self.table = table
        self.user_id = user_id

    def _require_identity(self, operation: str) -> str:
        if not self.user_id:
            raise StoreError(operation, "no authenticated identity")
        return self.user_id

    def list(self) -> list[Bookmark]:
        user_id = self._require_identity("Bookmarks")
        return [Bookmark.from_row(row) for row in self.table.select(user_id)]

    def create(self, title: str, url: str, category: str | None = None) -> Bookmark:
        validate_bookmark_input(title, url, self.user_id)
        row = self.table.insert(
            {
                "title": title,
                "url": url,
                "category": coerce_category(category),
                "user_id": self.user_id,
            }
        )
        return Bookmark.from_row(row)

    def update(self, bookmark_id: str, title: str, url: str) -> Bookmark:
        validate_bookmark_input(title, url, self.user_id)
        # Category and favorite state are owned by their own actions.
        rows = self.table.update(bookmark_id, {"title": title, "url": url})
        if not rows:
            raise StoreError("UpdateBookmark", f"bookmark {bookmark_id} not found")
        return Bookmark.from_row(rows[0])

    def set_favorite(self, bookmark_id: str, value: bool) -> None:
        self._require_identity("ToggleFavorite")
        try:
            rows = self.table.update(bookmark_id, {"is_favorite": value})
        except StoreError as exc:
            raise StoreError("ToggleFavorite", exc.message) from exc
        if not rows:
            raise StoreError("ToggleFavorite", f"bookmark {bookmark_id} not found")

    def delete(self, bookmark_id: str) -> None:
        self._require_identity("DeleteBookmark")
        self.table.delete(bookmark_id)
