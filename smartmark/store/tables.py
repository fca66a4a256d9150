from __future__ import annotations

from typing import Protocol

import httpx
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from smartmark.extensions import backend, db
from smartmark.models import AuthenticatedUser, BookmarkRow
from smartmark.services.errors import StoreError

TABLE_PATH = "/rest/v1/bookmarks"
MUTABLE_COLUMNS = {"title", "url", "category", "is_favorite"}


class BookmarkTable(Protocol):
    """Row interface of the persistence collaborator's bookmarks table."""

    def select(self, owner_id: str) -> list[dict]: ...

    def insert(self, values: dict) -> dict: ...

    def update(self, row_id: str, values: dict) -> list[dict]: ...

    def delete(self, row_id: str) -> None: ...


def _response_error(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return f"HTTP {response.status_code}"


class RestBookmarkTable:
    """
    PostgREST-style table on the managed backend.

    Rows are isolated per owner by the backend's row-level policies, which
    evaluate the bearer token sent with every request.
    """

    def __init__(self, http: httpx.Client, access_token: str | None):
        self.http = http
        self.headers = {}
        if access_token:
            self.headers["Authorization"] = f"Bearer {access_token}"

    def _request(self, operation: str, method: str, **kwargs) -> httpx.Response:
        headers = dict(self.headers)
        headers.update(kwargs.pop("headers", {}))
        try:
            response = self.http.request(method, TABLE_PATH, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise StoreError(operation, f"backend unreachable: {exc}") from exc
        if response.status_code >= 400:
            raise StoreError(operation, _response_error(response))
        return response

    @staticmethod
    def _rows(operation: str, response: httpx.Response) -> list[dict]:
        try:
            rows = response.json()
        except ValueError as exc:
            raise StoreError(operation, "backend returned a non-JSON body") from exc
        return rows if isinstance(rows, list) else []

    def select(self, owner_id: str) -> list[dict]:
        response = self._request(
            "Bookmarks",
            "GET",
            params={
                "select": "*",
                "user_id": f"eq.{owner_id}",
                "order": "created_at.desc",
            },
        )
        return self._rows("Bookmarks", response)

    def insert(self, values: dict) -> dict:
        response = self._request(
            "AddBookmark",
            "POST",
            json=[values],
            headers={"Prefer": "return=representation"},
        )
        rows = self._rows("AddBookmark", response)
        if not rows:
            raise StoreError("AddBookmark", "insert returned no row")
        return rows[0]

    def update(self, row_id: str, values: dict) -> list[dict]:
        response = self._request(
            "UpdateBookmark",
            "PATCH",
            params={"id": f"eq.{row_id}"},
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return self._rows("UpdateBookmark", response)

    def delete(self, row_id: str) -> None:
        self._request("DeleteBookmark", "DELETE", params={"id": f"eq.{row_id}"})


class SqlBookmarkTable:
    """Local table that enforces the same owner isolation as the managed backend."""

    def __init__(self, owner_id: str):
        self.owner_id = owner_id

    def _owned(self, row_id: str) -> BookmarkRow | None:
        try:
            pk = int(row_id)
        except (TypeError, ValueError):
            return None
        return BookmarkRow.query.filter_by(id=pk, user_id=self.owner_id).first()

    def _commit(self, operation: str) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(operation, str(exc)) from exc

    def select(self, owner_id: str) -> list[dict]:
        if owner_id != self.owner_id:
            return []
        try:
            rows = (
                BookmarkRow.query.filter_by(user_id=owner_id)
                .order_by(BookmarkRow.created_at.desc(), BookmarkRow.id.desc())
                .all()
            )
        except SQLAlchemyError as exc:
            raise StoreError("Bookmarks", str(exc)) from exc
        return [row.as_dict() for row in rows]

    def insert(self, values: dict) -> dict:
        if values.get("user_id") != self.owner_id:
            raise StoreError(
                "AddBookmark", "new row violates row-level security policy"
            )
        row = BookmarkRow(
            user_id=self.owner_id,
            title=values["title"],
            url=values["url"],
            category=values.get("category"),
            is_favorite=bool(values.get("is_favorite", False)),
        )
        db.session.add(row)
        self._commit("AddBookmark")
        return row.as_dict()

    def update(self, row_id: str, values: dict) -> list[dict]:
        row = self._owned(row_id)
        if row is None:
            return []
        for key, value in values.items():
            if key in MUTABLE_COLUMNS:
                setattr(row, key, value)
        self._commit("UpdateBookmark")
        return [row.as_dict()]

    def delete(self, row_id: str) -> None:
        row = self._owned(row_id)
        if row is None:
            return
        db.session.delete(row)
        self._commit("DeleteBookmark")


def bookmark_table_for(user: AuthenticatedUser) -> BookmarkTable:
    if current_app.config.get("STORE_BACKEND") == "sql":
        return SqlBookmarkTable(user.user_id)
    return RestBookmarkTable(backend.http, user.access_token)
