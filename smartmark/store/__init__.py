from smartmark.store.client import BookmarkStore, validate_bookmark_input
from smartmark.store.tables import (
    BookmarkTable,
    RestBookmarkTable,
    SqlBookmarkTable,
    bookmark_table_for,
)

__all__ = [
    "BookmarkStore",
    "BookmarkTable",
    "RestBookmarkTable",
    "SqlBookmarkTable",
    "bookmark_table_for",
    "validate_bookmark_input",
]
