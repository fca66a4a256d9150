from flask import abort, current_app, flash, redirect, render_template, request, url_for
from flask_login import current_user

from smartmark.auth import auth_bp
from smartmark.extensions import backend
from smartmark.services.errors import AuthError
from smartmark.services.redirects import (
    build_callback_url,
    safe_redirect_target,
    sign_return_target,
    verify_return_target,
)


@auth_bp.route("/login", methods=["GET"])
def login():
    if current_user.is_authenticated:
        return redirect(url_for("web.dashboard"))

    return render_template(
        "login.html",
        provider=current_app.config["OAUTH_PROVIDER"],
        next_path=safe_redirect_target(request.args.get("next"), ""),
    )


@auth_bp.route("/login/<provider>", methods=["POST"])
def login_with_provider(provider: str):
    if provider != current_app.config["OAUTH_PROVIDER"]:
        abort(404)

    next_path = safe_redirect_target(
        request.form.get("next"), url_for("web.dashboard")
    )
    state = sign_return_target(current_app.config["SECRET_KEY"], next_path)
    return_url = build_callback_url(
        current_app.config["SITE_URL"], url_for("auth.callback"), state
    )
    authorize_url = backend.identity().sign_in_with_redirect(provider, return_url)
    return redirect(authorize_url)


@auth_bp.route("/auth/callback", methods=["GET"])
def callback():
    provider_error = request.args.get("error_description") or request.args.get("error")
    if provider_error:
        current_app.logger.warning("[Auth] Provider returned error: %s", provider_error)
        flash("Sign-in was cancelled or failed. Please try again.", "error")
        return redirect(url_for("auth.login"))

    try:
        backend.identity().exchange_code_for_session(request.args.get("code", ""))
    except AuthError as exc:
        current_app.logger.warning("[Auth] Code exchange error: %s", exc.message)
        flash("Sign-in failed. Please try again.", "error")
        return redirect(url_for("auth.login"))

    target = verify_return_target(
        current_app.config["SECRET_KEY"],
        request.args.get("next"),
        current_app.config["RETURN_TARGET_MAX_AGE_SECONDS"],
        url_for("web.dashboard"),
    )
    return redirect(target)


@auth_bp.route("/logout", methods=["POST"])
def logout():
    try:
        backend.identity().sign_out()
    except AuthError as exc:
        current_app.logger.warning("[Logout] Sign out error: %s", exc.message)
        flash("Could not sign out. Please try again.", "error")
        return redirect(url_for("web.dashboard"))
    return redirect(url_for("auth.login"))
