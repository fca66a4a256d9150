from __future__ import annotations

from flask import current_app

from smartmark.extensions import backend, login_manager
from smartmark.models import AuthenticatedUser
from smartmark.services.errors import AuthError

DEV_USER_ID = "dev|local-development-user"
DEV_USER_EMAIL = "dev@localhost"


def resolve_session(storage=None) -> AuthenticatedUser | None:
    """
    Resolve the caller's identity from the identity collaborator.

    A failed lookup is treated exactly like a missing session; there is no
    retry.
    """
    if current_app.config.get("DEV_MODE"):
        return AuthenticatedUser(DEV_USER_ID, DEV_USER_EMAIL)

    try:
        auth_session = backend.identity(storage).get_current_session()
    except AuthError as exc:
        current_app.logger.warning("[Auth] Session retrieval error: %s", exc.message)
        return None

    if auth_session is None:
        return None
    return AuthenticatedUser(
        auth_session.user_id,
        auth_session.email,
        access_token=auth_session.access_token,
    )


@login_manager.request_loader
def load_user_from_request(_request):
    return resolve_session()
