from __future__ import annotations

from flask import g, jsonify, request

from smartmark.api import api_bp
from smartmark.services.bookmarks import (
    FAILED_BUSY,
    FAILED_VALIDATION,
    BookmarkController,
    controller_for,
)
from smartmark.services.derive import ViewControls
from smartmark.services.security import api_auth_required


def _serialize_view(controller: BookmarkController) -> dict:
    view = controller.view()
    controls = controller.state.controls
    return {
        "items": [bookmark.as_dict() for bookmark in view.visible],
        "summary": view.summary.as_dict(),
        "empty_state": view.empty_state,
        "controls": {
            "search": controls.search,
            "category": controls.category,
            "favorites": controls.favorites,
            "sort": controls.sort,
        },
    }


FAILURE_STATUS = {FAILED_VALIDATION: 400, FAILED_BUSY: 409}


def _failure(controller: BookmarkController, message: str | None = None):
    status = FAILURE_STATUS.get(controller.last_failure, 502)
    if controller.last_failure == FAILED_BUSY:
        message = "a request for this action is already in flight"
    notice = controller.pop_notice()
    return jsonify({"error": message or notice or "request failed"}), status


@api_bp.get("/session")
@api_auth_required
def session_info():
    user = g.api_user
    return jsonify({"user_id": user.user_id, "email": user.email})


@api_bp.get("/bookmarks")
@api_auth_required
def list_bookmarks():
    controller = controller_for(g.api_user, reload=True)
    controller.set_controls(
        search=request.args.get("q", ViewControls.search),
        category=request.args.get("category", ViewControls.category),
        favorites=request.args.get("favorites", ViewControls.favorites),
        sort=request.args.get("sort", ViewControls.sort),
    )
    payload = _serialize_view(controller)
    notice = controller.pop_notice()
    if notice:
        payload["notice"] = notice
    return jsonify(payload)


@api_bp.post("/bookmarks")
@api_auth_required
def create_bookmark():
    controller = controller_for(g.api_user)
    payload = request.get_json(silent=True) or {}
    if controller.add_bookmark(
        str(payload.get("title") or ""),
        str(payload.get("url") or ""),
        payload.get("category"),
    ):
        return jsonify(controller.state.bookmarks[0].as_dict()), 201

    return _failure(controller, controller.state.form.error)


@api_bp.patch("/bookmarks/<bookmark_id>")
@api_auth_required
def update_bookmark(bookmark_id: str):
    controller = controller_for(g.api_user)
    if not controller.begin_edit(bookmark_id):
        return jsonify({"error": "bookmark not found"}), 404

    payload = request.get_json(silent=True) or {}
    title = payload.get("title")
    url = payload.get("url")
    if not controller.update_bookmark(
        None if title is None else str(title),
        None if url is None else str(url),
    ):
        return _failure(controller)

    bookmark = controller.state.find(bookmark_id)
    return jsonify(bookmark.as_dict() if bookmark else {"id": bookmark_id})


@api_bp.post("/bookmarks/<bookmark_id>/favorite")
@api_auth_required
def toggle_favorite(bookmark_id: str):
    controller = controller_for(g.api_user)
    if controller.state.find(bookmark_id) is None:
        return jsonify({"error": "bookmark not found"}), 404
    if not controller.toggle_favorite(bookmark_id):
        return _failure(controller)
    return jsonify(controller.state.find(bookmark_id).as_dict())


@api_bp.delete("/bookmarks/<bookmark_id>")
@api_auth_required
def delete_bookmark(bookmark_id: str):
    controller = controller_for(g.api_user)
    if controller.state.find(bookmark_id) is None:
        return jsonify({"error": "bookmark not found"}), 404
    if not controller.delete_bookmark(bookmark_id):
        return _failure(controller)
    return jsonify({"status": "deleted", "id": bookmark_id})
