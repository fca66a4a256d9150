from dataclasses import dataclass

import httpx
from flask import current_app, session
from flask_login import LoginManager
from flask_sqlalchemy import SQLAlchemy

from smartmark.services.identity import AuthEvents, IdentityClient

db = SQLAlchemy()
login_manager = LoginManager()
login_manager.login_view = "auth.login"
login_manager.login_message = None


@dataclass
class _BackendState:
    http: httpx.Client
    events: AuthEvents
    base_url: str


class Backend:
    """Shared connection to the managed backend (identity and REST tables)."""

    extension_key = "smartmark.backend"

    def init_app(self, app):
        base_url = app.config.get("BACKEND_URL", "")
        headers = {}
        if app.config.get("BACKEND_ANON_KEY"):
            headers["apikey"] = app.config["BACKEND_ANON_KEY"]
        http = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=app.config.get("BACKEND_TIMEOUT", 10),
            transport=app.config.get("BACKEND_TRANSPORT"),
        )
        app.extensions[self.extension_key] = _BackendState(
            http=http, events=AuthEvents(), base_url=base_url
        )

    @property
    def _state(self) -> _BackendState:
        return current_app.extensions[self.extension_key]

    @property
    def http(self) -> httpx.Client:
        return self._state.http

    @property
    def events(self) -> AuthEvents:
        return self._state.events

    def identity(self, storage=None) -> IdentityClient:
        state = self._state
        return IdentityClient(
            state.http,
            session if storage is None else storage,
            events=state.events,
            base_url=state.base_url,
        )


backend = Backend()
