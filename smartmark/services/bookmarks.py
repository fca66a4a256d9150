from __future__ import annotations

import logging

from flask import current_app

from smartmark.services.derive import DerivedView, derive_view
from smartmark.services.errors import StoreError, ValidationError
from smartmark.services.view_state import (
    STATUS_LOADING,
    ViewState,
    current_view_id,
    view_states,
)
from smartmark.store.client import BookmarkStore
from smartmark.store.tables import bookmark_table_for

ADD_FAILED_MESSAGE = "Failed to add bookmark. Please try again."
UPDATE_FAILED_MESSAGE = "Failed to update bookmark. Please try again."
TOGGLE_FAILED_MESSAGE = "Could not update favorite. Please try again."
DELETE_FAILED_MESSAGE = "Failed to delete bookmark. Please try again."
FETCH_FAILED_MESSAGE = "Could not load bookmarks. Please refresh."

ADDING = "adding"
UPDATING = "updating"

FAILED_VALIDATION = "validation"
FAILED_STORE = "store"
FAILED_BUSY = "busy"


class BookmarkController:
    """
    Owns one session's view state and dispatches user intents to the store.

    Store failures never escape: they are logged with their operation tag,
    turned into a short notice on the view state, and the list is left in its
    last known good state (or explicitly reverted for favorite toggles).
    """

    def __init__(
        self,
        state: ViewState,
        store: BookmarkStore,
        logger: logging.Logger | None = None,
    ):
        self.state = state
        self.store = store
        self.logger = logger or logging.getLogger(__name__)
        self.last_failure: str | None = None

    def _log_store_error(self, exc: StoreError, action: str) -> None:
        self.last_failure = FAILED_STORE
        self.logger.warning("[%s] %s error: %s", exc.operation, action, exc.message)

    def refresh(self) -> bool:
        ticket = self.state.begin_list()
        try:
            bookmarks = self.store.list()
        except StoreError as exc:
            self._log_store_error(exc, "Fetch")
            self.state.notice = FETCH_FAILED_MESSAGE
            return False
        return self.state.apply_list(ticket, bookmarks)

    def load(self) -> bool:
        """Loading -> Ready. The view becomes ready even when the fetch fails."""
        loaded = self.refresh()
        self.state.mark_ready()
        return loaded

    def ensure_loaded(self) -> None:
        if self.state.status == STATUS_LOADING:
            self.load()

    def add_bookmark(self, title: str, url: str, category: str | None = None) -> bool:
        self.last_failure = None
        title = (title or "").strip()
        url = (url or "").strip()
        self.state.set_form(title, url, category)

        if not self.state.try_begin(ADDING):
            self.last_failure = FAILED_BUSY
            return False
        try:
            bookmark = self.store.create(title, url, self.state.form.category)
        except ValidationError as exc:
            self.last_failure = FAILED_VALIDATION
            self.state.form.error = exc.message
            return False
        except StoreError as exc:
            self._log_store_error(exc, "Insert")
            self.state.form.error = ADD_FAILED_MESSAGE
            return False
        finally:
            self.state.finish(ADDING)

        self.state.prepend(bookmark)
        self.state.form.title = ""
        self.state.form.url = ""
        self.state.form.error = ""
        return True

    def clear_form_error(self) -> None:
        self.state.form.error = ""

    def begin_edit(self, bookmark_id: str) -> bool:
        return self.state.begin_edit(bookmark_id)

    def cancel_edit(self) -> None:
        self.state.cancel_edit()

    def update_bookmark(self, title: str | None = None, url: str | None = None) -> bool:
        self.last_failure = None
        edit = self.state.edit
        if not edit.active:
            return False
        if title is not None:
            edit.title = title.strip()
        if url is not None:
            edit.url = url.strip()

        if not self.state.try_begin(UPDATING):
            self.last_failure = FAILED_BUSY
            return False
        try:
            self.store.update(edit.target_id, edit.title, edit.url)
        except ValidationError as exc:
            self.last_failure = FAILED_VALIDATION
            self.state.notice = exc.message
            return False
        except StoreError as exc:
            self._log_store_error(exc, "Update")
            self.state.notice = UPDATE_FAILED_MESSAGE
            return False
        finally:
            self.state.finish(UPDATING)

        self.state.cancel_edit()
        self.refresh()
        return True

    def toggle_favorite(self, bookmark_id: str) -> bool:
        self.last_failure = None
        bookmark = self.state.find(bookmark_id)
        if bookmark is None:
            return False
        current = bookmark.is_favorite

        self.state.replace_favorite(bookmark_id, not current)
        try:
            self.store.set_favorite(bookmark_id, not current)
        except StoreError as exc:
            self._log_store_error(exc, "Update")
            self.state.replace_favorite(bookmark_id, current)
            self.state.notice = TOGGLE_FAILED_MESSAGE
            return False
        return True

    def delete_bookmark(self, bookmark_id: str) -> bool:
        self.last_failure = None
        try:
            self.store.delete(bookmark_id)
        except StoreError as exc:
            self._log_store_error(exc, "Delete")
            self.state.notice = DELETE_FAILED_MESSAGE
            return False
        self.state.remove(bookmark_id)
        return True

    def set_controls(self, **controls) -> None:
        self.state.set_controls(**controls)

    def pop_notice(self) -> str:
        notice, self.state.notice = self.state.notice, ""
        return notice

    def view(self) -> DerivedView:
        return derive_view(self.state.bookmarks, self.state.controls)


def controller_for(user, reload: bool = False) -> BookmarkController:
    """Controller over the calling session's view state.

    Page loads pass ``reload`` so the list is fetched fresh; other actions
    only fetch when the session has never loaded.
    """
    state = view_states().for_session(current_view_id(), user)
    store = BookmarkStore(bookmark_table_for(user), user.user_id)
    controller = BookmarkController(state, store, current_app.logger)
    if reload:
        controller.load()
    else:
        controller.ensure_loaded()
    return controller
