from __future__ import annotations

import base64
import hashlib
import secrets
import threading
import time
from collections.abc import Callable, MutableMapping
from dataclasses import asdict, dataclass
from urllib.parse import urlencode

import httpx

from smartmark.services.errors import AuthError

SESSION_KEY = "smartmark.auth"
VERIFIER_KEY = "smartmark.pkce_verifier"

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"

# Refresh slightly before the advertised expiry.
EXPIRY_MARGIN_SECONDS = 10


@dataclass
class AuthSession:
    user_id: str
    email: str | None
    access_token: str
    refresh_token: str | None = None
    expires_at: int | None = None

    @classmethod
    def from_token_payload(cls, payload: dict) -> AuthSession:
        user = payload.get("user")
        if not isinstance(user, dict):
            user = {}
        user_id = user.get("id")
        access_token = payload.get("access_token")
        if not user_id or not access_token:
            raise AuthError("identity response is missing user or access token")
        expires_at = payload.get("expires_at")
        try:
            if expires_at is None and payload.get("expires_in") is not None:
                expires_at = time.time() + float(payload["expires_in"])
            expires_at = int(expires_at) if expires_at is not None else None
        except (TypeError, ValueError) as exc:
            raise AuthError("identity response has an invalid expiry") from exc
        return cls(
            user_id=str(user_id),
            email=user.get("email"),
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expires_at=expires_at,
        )

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return current >= self.expires_at - EXPIRY_MARGIN_SECONDS


class AuthEvents:
    """Change-notification subscription for session transitions."""

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: list[Callable[[str, AuthSession | None], None]] = []

    def subscribe(self, callback: Callable[[str, AuthSession | None], None]):
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def emit(self, event: str, session: AuthSession | None) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            callback(event, session)


def _code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def _json_object(response: httpx.Response) -> dict:
    try:
        payload = response.json()
    except ValueError as exc:
        raise AuthError(
            f"identity service returned a non-JSON body (HTTP {response.status_code})"
        ) from exc
    if not isinstance(payload, dict):
        raise AuthError("identity service returned an unexpected payload")
    return payload


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        for key in ("error_description", "msg", "message", "error"):
            if payload.get(key):
                return str(payload[key])
    return f"HTTP {response.status_code}"


class IdentityClient:
    """
    Client for the identity collaborator's GoTrue-style endpoints.

    The session is persisted in ``storage``, normally the Flask session of the
    current request, so the client itself holds no per-user state.
    """

    def __init__(
        self,
        http: httpx.Client,
        storage: MutableMapping,
        events: AuthEvents | None = None,
        base_url: str = "",
    ):
        self.http = http
        self.storage = storage
        self.events = events or AuthEvents()
        self.base_url = base_url.rstrip("/")

    def _post_token(self, grant_type: str, body: dict) -> AuthSession:
        try:
            response = self.http.post(
                "/auth/v1/token", params={"grant_type": grant_type}, json=body
            )
        except httpx.HTTPError as exc:
            raise AuthError(f"identity service unreachable: {exc}") from exc
        if response.status_code >= 400:
            raise AuthError(_error_message(response))
        return AuthSession.from_token_payload(_json_object(response))

    def _store(self, session: AuthSession) -> None:
        self.storage[SESSION_KEY] = asdict(session)

    def _stored_session(self) -> AuthSession | None:
        raw = self.storage.get(SESSION_KEY)
        if not isinstance(raw, dict):
            return None
        try:
            return AuthSession(**raw)
        except TypeError:
            self.storage.pop(SESSION_KEY, None)
            return None

    def get_current_session(self) -> AuthSession | None:
        session = self._stored_session()
        if session is None:
            return None
        if not session.is_expired():
            return session
        if not session.refresh_token:
            self.storage.pop(SESSION_KEY, None)
            return None

        try:
            refreshed = self._post_token(
                "refresh_token", {"refresh_token": session.refresh_token}
            )
        except AuthError:
            self.storage.pop(SESSION_KEY, None)
            raise
        self._store(refreshed)
        self.events.emit(TOKEN_REFRESHED, refreshed)
        return refreshed

    def sign_in_with_redirect(self, provider: str, return_url: str) -> str:
        verifier = secrets.token_urlsafe(48)
        self.storage[VERIFIER_KEY] = verifier
        query = urlencode(
            {
                "provider": provider,
                "redirect_to": return_url,
                "code_challenge": _code_challenge(verifier),
                "code_challenge_method": "s256",
            }
        )
        return f"{self.base_url}/auth/v1/authorize?{query}"

    def exchange_code_for_session(self, code: str) -> AuthSession:
        verifier = self.storage.pop(VERIFIER_KEY, None)
        if not code:
            raise AuthError("missing authorization code")
        if not verifier:
            raise AuthError("sign-in was not started from this browser")

        session = self._post_token(
            "pkce", {"auth_code": code, "code_verifier": verifier}
        )
        self._store(session)
        self.events.emit(SIGNED_IN, session)
        return session

    def get_user(self, access_token: str) -> AuthSession:
        try:
            response = self.http.get(
                "/auth/v1/user",
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as exc:
            raise AuthError(f"identity service unreachable: {exc}") from exc
        if response.status_code >= 400:
            raise AuthError(_error_message(response))
        user = _json_object(response)
        if not user.get("id"):
            raise AuthError("identity response is missing user id")
        return AuthSession(
            user_id=str(user["id"]),
            email=user.get("email"),
            access_token=access_token,
        )

    def sign_out(self) -> None:
        session = self._stored_session()
        if session is not None:
            try:
                response = self.http.post(
                    "/auth/v1/logout",
                    headers={"Authorization": f"Bearer {session.access_token}"},
                )
            except httpx.HTTPError as exc:
                raise AuthError(f"identity service unreachable: {exc}") from exc
            # An already-invalid token means the session is gone remotely.
            if response.status_code >= 400 and response.status_code not in (401, 404):
                raise AuthError(_error_message(response))

        self.storage.pop(SESSION_KEY, None)
        self.storage.pop(VERIFIER_KEY, None)
        self.events.emit(SIGNED_OUT, session)
