from functools import wraps

from flask import current_app, g, jsonify, request
from flask_login import current_user

from smartmark.extensions import backend
from smartmark.models import AuthenticatedUser
from smartmark.services.errors import AuthError
from smartmark.services.session import DEV_USER_EMAIL, DEV_USER_ID


def _user_from_bearer_token():
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header.removeprefix("Bearer ").strip()
    if not token:
        return None
    if current_app.config.get("DEV_MODE"):
        return AuthenticatedUser(DEV_USER_ID, DEV_USER_EMAIL)
    try:
        auth_session = backend.identity(storage={}).get_user(token)
    except AuthError as exc:
        current_app.logger.warning("[Auth] Bearer token rejected: %s", exc.message)
        return None
    return AuthenticatedUser(
        auth_session.user_id, auth_session.email, access_token=token
    )


def get_authenticated_api_user():
    user = _user_from_bearer_token()
    if user is not None:
        return user
    if current_user.is_authenticated:
        return current_user._get_current_object()
    return None


def api_auth_required(func):
    @wraps(func)
    def wrapped(*args, **kwargs):
        user = get_authenticated_api_user()
        if not user:
            return jsonify({"error": "authentication required"}), 401
        g.api_user = user
        return func(*args, **kwargs)

    return wrapped
