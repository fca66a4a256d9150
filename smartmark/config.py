import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_SITE_URL = "http://localhost:3000"


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    BACKEND_URL = os.environ.get("BACKEND_URL", "").rstrip("/")
    BACKEND_ANON_KEY = os.environ.get("BACKEND_ANON_KEY", "")
    BACKEND_TIMEOUT = float(os.environ.get("BACKEND_TIMEOUT", "10"))
    BACKEND_TRANSPORT = None
    SITE_URL = (os.environ.get("SITE_URL") or DEFAULT_SITE_URL).rstrip("/")
    OAUTH_PROVIDER = os.environ.get("OAUTH_PROVIDER", "google")
    STORE_BACKEND = os.environ.get("STORE_BACKEND", "rest")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'smartmark.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    DEV_MODE = os.environ.get("DEV_MODE", "0") == "1"
    RETURN_TARGET_MAX_AGE_SECONDS = int(
        os.environ.get("RETURN_TARGET_MAX_AGE_SECONDS", "900")
    )
    VIEW_STATE_IDLE_SECONDS = int(os.environ.get("VIEW_STATE_IDLE_SECONDS", "3600"))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    BACKEND_URL = "https://backend.test"
    BACKEND_ANON_KEY = "anon-test-key"
    SITE_URL = "http://localhost:3000"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    STORE_BACKEND = "sql"
    DEV_MODE = False
