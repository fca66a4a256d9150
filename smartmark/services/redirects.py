from __future__ import annotations

from itsdangerous import BadData, URLSafeTimedSerializer


def _serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=secret_key, salt="auth-return-target")


def safe_redirect_target(raw_next: str | None, fallback: str) -> str:
    candidate = (raw_next or "").strip()
    if candidate.startswith("/") and not candidate.startswith("//"):
        return candidate
    return fallback


def sign_return_target(secret_key: str, target: str) -> str:
    return _serializer(secret_key).dumps({"next": target})


def verify_return_target(
    secret_key: str, token: str | None, max_age: int, fallback: str
) -> str:
    """Return the signed in-app path, or ``fallback`` if it was tampered with or expired."""
    if not token:
        return fallback
    try:
        payload = _serializer(secret_key).loads(token, max_age=max_age)
    except BadData:
        return fallback
    if not isinstance(payload, dict):
        return fallback
    return safe_redirect_target(payload.get("next"), fallback)


def build_callback_url(site_url: str, callback_path: str, state: str) -> str:
    return f"{site_url.rstrip('/')}{callback_path}?next={state}"
