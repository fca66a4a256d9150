from __future__ import annotations

from flask import flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required

from smartmark.models import CATEGORIES
from smartmark.services.bookmarks import BookmarkController, controller_for
from smartmark.services.derive import (
    CATEGORY_FILTERS,
    EMPTY_NO_BOOKMARKS,
    EMPTY_NO_RESULTS,
    FAVORITES_ONLY,
    SORT_OPTIONS,
    ViewControls,
)
from smartmark.web import web_bp

CONTROL_ARGS = {"q": "search", "category": "category", "favorites": "favorites", "sort": "sort"}


def _control_query(controller: BookmarkController) -> dict:
    controls = controller.state.controls
    query = {}
    for arg, attr in CONTROL_ARGS.items():
        value = getattr(controls, attr)
        if value:
            query[arg] = value
    return query


def _controller(reload: bool = False) -> BookmarkController:
    return controller_for(current_user._get_current_object(), reload=reload)


def _back_to_dashboard(controller: BookmarkController):
    notice = controller.pop_notice()
    if notice:
        flash(notice, "error")
    return redirect(url_for("web.dashboard", **_control_query(controller)))


@web_bp.route("/", methods=["GET"])
@login_required
def dashboard():
    controller = _controller(reload=True)
    # The query string carries the controls; omitted ones are defaults.
    controller.set_controls(
        **{
            attr: request.args.get(arg, getattr(ViewControls, attr))
            for arg, attr in CONTROL_ARGS.items()
        }
    )
    notice = controller.pop_notice()
    if notice:
        flash(notice, "error")

    view = controller.view()
    page = render_template(
        "index.html",
        email=current_user.email,
        state=controller.state,
        view=view,
        categories=CATEGORIES,
        category_filters=CATEGORY_FILTERS,
        sort_options=SORT_OPTIONS,
        favorites_only=FAVORITES_ONLY,
        empty_no_bookmarks=view.empty_state == EMPTY_NO_BOOKMARKS,
        empty_no_results=view.empty_state == EMPTY_NO_RESULTS,
    )
    # Form errors render once.
    controller.clear_form_error()
    return page


@web_bp.route("/bookmarks", methods=["POST"])
@login_required
def add_bookmark():
    controller = _controller()
    controller.add_bookmark(
        request.form.get("title", ""),
        request.form.get("url", ""),
        request.form.get("category"),
    )
    return _back_to_dashboard(controller)


@web_bp.route("/bookmarks/<bookmark_id>/edit", methods=["POST"])
@login_required
def edit_bookmark(bookmark_id: str):
    controller = _controller()
    if not controller.begin_edit(bookmark_id):
        flash("Bookmark not found.", "error")
    return _back_to_dashboard(controller)


@web_bp.route("/bookmarks/edit/cancel", methods=["POST"])
@login_required
def cancel_edit():
    controller = _controller()
    controller.cancel_edit()
    return _back_to_dashboard(controller)


@web_bp.route("/bookmarks/edit/save", methods=["POST"])
@login_required
def save_bookmark():
    controller = _controller()
    if controller.update_bookmark(
        request.form.get("title"), request.form.get("url")
    ):
        flash("Bookmark updated.", "success")
    return _back_to_dashboard(controller)


@web_bp.route("/bookmarks/<bookmark_id>/favorite", methods=["POST"])
@login_required
def toggle_favorite(bookmark_id: str):
    controller = _controller()
    controller.toggle_favorite(bookmark_id)
    return _back_to_dashboard(controller)


@web_bp.route("/bookmarks/<bookmark_id>/delete", methods=["POST"])
@login_required
def delete_bookmark(bookmark_id: str):
    controller = _controller()
    if controller.delete_bookmark(bookmark_id):
        flash("Bookmark deleted.", "success")
    return _back_to_dashboard(controller)
