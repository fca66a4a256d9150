import json
import time
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from smartmark.services.errors import AuthError
from smartmark.services.identity import (
    SESSION_KEY,
    SIGNED_IN,
    SIGNED_OUT,
    TOKEN_REFRESHED,
    VERIFIER_KEY,
    AuthEvents,
    AuthSession,
    IdentityClient,
    _code_challenge,
)


def _token_payload(access="access-1", refresh="refresh-1", expires_in=3600):
    return {
        "access_token": access,
        "refresh_token": refresh,
        "expires_in": expires_in,
        "user": {"id": "user-1", "email": "user@example.com"},
    }


def _client(handler, storage=None, events=None):
    http = httpx.Client(
        base_url="https://backend.test",
        headers={"apikey": "anon"},
        transport=httpx.MockTransport(handler),
    )
    return IdentityClient(
        http,
        {} if storage is None else storage,
        events=events,
        base_url="https://backend.test",
    )


def _unexpected(request):
    raise AssertionError(f"unexpected request to {request.url}")


def test_no_stored_session_means_unauthenticated():
    assert _client(_unexpected).get_current_session() is None


def test_sign_in_builds_pkce_authorize_url():
    storage = {}
    client = _client(_unexpected, storage)

    url = client.sign_in_with_redirect("google", "http://localhost:3000/auth/callback")

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert parsed.netloc == "backend.test"
    assert parsed.path == "/auth/v1/authorize"
    assert query["provider"] == ["google"]
    assert query["redirect_to"] == ["http://localhost:3000/auth/callback"]
    assert query["code_challenge_method"] == ["s256"]
    assert query["code_challenge"] == [_code_challenge(storage[VERIFIER_KEY])]


def test_code_exchange_stores_session_and_notifies():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(200, json=_token_payload())

    storage = {VERIFIER_KEY: "verifier-123"}
    events = AuthEvents()
    received = []
    events.subscribe(lambda event, session: received.append((event, session.user_id)))
    client = _client(handler, storage, events)

    session = client.exchange_code_for_session("code-abc")

    request = seen["request"]
    assert request.url.params["grant_type"] == "pkce"
    assert json.loads(request.content) == {
        "auth_code": "code-abc",
        "code_verifier": "verifier-123",
    }
    assert session.user_id == "user-1"
    assert session.email == "user@example.com"
    assert VERIFIER_KEY not in storage
    assert client.get_current_session() == session
    assert received == [(SIGNED_IN, "user-1")]


def test_code_exchange_without_verifier_fails():
    with pytest.raises(AuthError):
        _client(_unexpected).exchange_code_for_session("code-abc")


def test_code_exchange_rejected_by_provider():
    storage = {VERIFIER_KEY: "verifier-123"}
    client = _client(
        lambda request: httpx.Response(400, json={"error_description": "bad code"}),
        storage,
    )

    with pytest.raises(AuthError, match="bad code"):
        client.exchange_code_for_session("code-abc")
    assert SESSION_KEY not in storage


def test_expired_session_is_refreshed():
    storage = {
        SESSION_KEY: {
            "user_id": "user-1",
            "email": "user@example.com",
            "access_token": "old",
            "refresh_token": "refresh-1",
            "expires_at": int(time.time()) - 5,
        }
    }
    events = AuthEvents()
    received = []
    events.subscribe(lambda event, session: received.append(event))

    def handler(request):
        assert request.url.params["grant_type"] == "refresh_token"
        assert json.loads(request.content) == {"refresh_token": "refresh-1"}
        return httpx.Response(200, json=_token_payload(access="new", refresh="refresh-2"))

    session = _client(handler, storage, events).get_current_session()

    assert session.access_token == "new"
    assert storage[SESSION_KEY]["refresh_token"] == "refresh-2"
    assert received == [TOKEN_REFRESHED]


def test_failed_refresh_clears_session_and_raises():
    storage = {
        SESSION_KEY: {
            "user_id": "user-1",
            "email": None,
            "access_token": "old",
            "refresh_token": "refresh-1",
            "expires_at": int(time.time()) - 5,
        }
    }
    client = _client(lambda request: httpx.Response(401, json={"msg": "expired"}), storage)

    with pytest.raises(AuthError, match="expired"):
        client.get_current_session()
    assert SESSION_KEY not in storage


def test_sign_out_clears_storage_and_notifies():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(204)

    session = AuthSession("user-1", "user@example.com", "access-1", "refresh-1")
    storage = {SESSION_KEY: session.__dict__.copy()}
    events = AuthEvents()
    received = []
    events.subscribe(lambda event, auth_session: received.append((event, auth_session)))

    _client(handler, storage, events).sign_out()

    assert seen["request"].url.path == "/auth/v1/logout"
    assert seen["request"].headers["authorization"] == "Bearer access-1"
    assert SESSION_KEY not in storage
    assert received == [(SIGNED_OUT, session)]


def test_sign_out_failure_keeps_session():
    session = AuthSession("user-1", None, "access-1")
    storage = {SESSION_KEY: session.__dict__.copy()}
    client = _client(lambda request: httpx.Response(500, json={"msg": "down"}), storage)

    with pytest.raises(AuthError):
        client.sign_out()
    assert SESSION_KEY in storage


def test_get_user_validates_bearer_token():
    def handler(request):
        assert request.url.path == "/auth/v1/user"
        assert request.headers["authorization"] == "Bearer token-1"
        return httpx.Response(200, json={"id": "user-1", "email": "user@example.com"})

    session = _client(handler).get_user("token-1")

    assert session.user_id == "user-1"
    assert session.access_token == "token-1"


def test_unsubscribe_stops_notifications():
    events = AuthEvents()
    received = []
    unsubscribe = events.subscribe(lambda event, session: received.append(event))

    unsubscribe()
    events.emit(SIGNED_OUT, None)

    assert received == []


def test_non_json_refresh_response_is_an_auth_error():
    storage = {
        SESSION_KEY: {
            "user_id": "user-1",
            "email": None,
            "access_token": "old",
            "refresh_token": "refresh-1",
            "expires_at": int(time.time()) - 5,
        }
    }
    client = _client(
        lambda request: httpx.Response(200, text="<html>proxy error</html>"), storage
    )

    with pytest.raises(AuthError, match="non-JSON"):
        client.get_current_session()
    assert SESSION_KEY not in storage


def test_get_user_rejects_unexpected_payloads():
    with pytest.raises(AuthError):
        _client(lambda request: httpx.Response(200, text="not json")).get_user("t")
    with pytest.raises(AuthError):
        _client(lambda request: httpx.Response(200, json=["user-1"])).get_user("t")


def test_token_payload_with_bad_expiry_is_an_auth_error():
    payload = _token_payload()
    payload["expires_in"] = "soon"

    with pytest.raises(AuthError, match="expiry"):
        AuthSession.from_token_payload(payload)
