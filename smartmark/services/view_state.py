from __future__ import annotations

import hashlib
import secrets
import threading
import time
from dataclasses import dataclass, field, replace

from flask import current_app, request, session

from smartmark.models import CATEGORIES, DEFAULT_CATEGORY, AuthenticatedUser, Bookmark
from smartmark.services.derive import (
    CATEGORY_FILTERS,
    FAVORITES_FILTERS,
    SORT_OPTIONS,
    ViewControls,
)

STATUS_UNAUTHENTICATED = "unauthenticated"
STATUS_LOADING = "loading"
STATUS_READY = "ready"

IN_FLIGHT_FLAGS = ("adding", "updating")

VIEW_STATE_KEY = "smartmark.view_id"


@dataclass
class AddForm:
    title: str = ""
    url: str = ""
    category: str = DEFAULT_CATEGORY
    error: str = ""


@dataclass
class EditFields:
    target_id: str | None = None
    title: str = ""
    url: str = ""

    @property
    def active(self) -> bool:
        return self.target_id is not None


@dataclass
class ViewState:
    status: str = STATUS_UNAUTHENTICATED
    user: AuthenticatedUser | None = None
    bookmarks: list[Bookmark] = field(default_factory=list)
    form: AddForm = field(default_factory=AddForm)
    edit: EditFields = field(default_factory=EditFields)
    controls: ViewControls = field(default_factory=ViewControls)
    adding: bool = False
    updating: bool = False
    notice: str = ""
    list_generation: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def authenticate(self, user: AuthenticatedUser) -> None:
        self.user = user
        if self.status == STATUS_UNAUTHENTICATED:
            self.status = STATUS_LOADING

    def begin_list(self) -> int:
        with self._lock:
            self.list_generation += 1
            return self.list_generation

    def apply_list(self, ticket: int, bookmarks: list[Bookmark]) -> bool:
        """Install a fetched list unless a newer fetch was started meanwhile."""
        with self._lock:
            if ticket != self.list_generation:
                return False
            self.bookmarks = list(bookmarks)
        if self.edit.active and self.find(self.edit.target_id) is None:
            self.cancel_edit()
        return True

    def mark_ready(self) -> None:
        self.status = STATUS_READY

    def try_begin(self, flag: str) -> bool:
        if flag not in IN_FLIGHT_FLAGS:
            raise ValueError(f"unknown in-flight flag: {flag}")
        with self._lock:
            if getattr(self, flag):
                return False
            setattr(self, flag, True)
            return True

    def finish(self, flag: str) -> None:
        if flag not in IN_FLIGHT_FLAGS:
            raise ValueError(f"unknown in-flight flag: {flag}")
        with self._lock:
            setattr(self, flag, False)

    def find(self, bookmark_id: str) -> Bookmark | None:
        for bookmark in self.bookmarks:
            if bookmark.id == bookmark_id:
                return bookmark
        return None

    def begin_edit(self, bookmark_id: str) -> bool:
        bookmark = self.find(bookmark_id)
        if bookmark is None:
            return False
        self.edit = EditFields(bookmark.id, bookmark.title, bookmark.url)
        return True

    def cancel_edit(self) -> None:
        self.edit = EditFields()

    def set_controls(
        self,
        search: str | None = None,
        category: str | None = None,
        favorites: str | None = None,
        sort: str | None = None,
    ) -> ViewControls:
        changes = {}
        if search is not None:
            changes["search"] = search
        if category is not None:
            changes["category"] = (
                category if category in CATEGORY_FILTERS else ViewControls.category
            )
        if favorites is not None:
            changes["favorites"] = (
                favorites if favorites in FAVORITES_FILTERS else ViewControls.favorites
            )
        if sort is not None:
            changes["sort"] = sort if sort in SORT_OPTIONS else ViewControls.sort
        self.controls = replace(self.controls, **changes)
        return self.controls

    def set_form(self, title: str, url: str, category: str | None) -> None:
        self.form.title = title
        self.form.url = url
        self.form.category = category if category in CATEGORIES else DEFAULT_CATEGORY

    def prepend(self, bookmark: Bookmark) -> None:
        with self._lock:
            self.bookmarks = [bookmark, *self.bookmarks]

    def replace_favorite(self, bookmark_id: str, value: bool) -> None:
        with self._lock:
            self.bookmarks = [
                bk.with_favorite(value) if bk.id == bookmark_id else bk
                for bk in self.bookmarks
            ]

    def remove(self, bookmark_id: str) -> None:
        with self._lock:
            self.bookmarks = [bk for bk in self.bookmarks if bk.id != bookmark_id]
        if self.edit.target_id == bookmark_id:
            self.cancel_edit()



class ViewStateRegistry:
    """
    Process-local view states, one per login session.

    Entries idle for longer than ``idle_seconds`` are evicted on the next
    lookup. A session id that resurfaces under a different identity gets a
    fresh state.
    """

    def __init__(self, idle_seconds: float = 3600, clock=time.monotonic):
        self.idle_seconds = idle_seconds
        self.clock = clock
        self._lock = threading.Lock()
        self._states: dict[str, ViewState] = {}
        self._touched: dict[str, float] = {}

    def _evict_idle(self, now: float) -> None:
        cutoff = now - self.idle_seconds
        for view_id in [key for key, seen in self._touched.items() if seen < cutoff]:
            self._states.pop(view_id, None)
            self._touched.pop(view_id, None)

    def for_session(self, view_id: str, user: AuthenticatedUser) -> ViewState:
        now = self.clock()
        with self._lock:
            self._evict_idle(now)
            state = self._states.get(view_id)
            if state is None or (
                state.user is not None and state.user.user_id != user.user_id
            ):
                state = ViewState()
                self._states[view_id] = state
            self._touched[view_id] = now
        state.authenticate(user)
        return state

    def get(self, view_id: str | None) -> ViewState | None:
        with self._lock:
            return self._states.get(view_id)

    def drop(self, view_id: str | None) -> None:
        if view_id is None:
            return
        with self._lock:
            self._states.pop(view_id, None)
            self._touched.pop(view_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)


def current_view_id() -> str:
    """Bearer callers get one state per token, browsers one per Flask session."""
    auth_header = request.headers.get("Authorization", "")
    token = auth_header.removeprefix("Bearer ").strip()
    if auth_header.startswith("Bearer ") and token:
        return "bearer:" + hashlib.sha256(token.encode("utf-8")).hexdigest()

    view_id = session.get(VIEW_STATE_KEY)
    if not view_id:
        view_id = secrets.token_urlsafe(16)
        session[VIEW_STATE_KEY] = view_id
    return view_id


def view_states() -> ViewStateRegistry:
    return current_app.extensions["smartmark.view_states"]
