import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'livemarks.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "1") == "1"
    GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID", "")
    GOOGLE_CLIENT_SECRET = os.environ.get("GOOGLE_CLIENT_SECRET", "")
    OAUTH_TIMEOUT = float(os.environ.get("OAUTH_TIMEOUT", "10"))
    LIVE_INDICATOR_SECONDS = float(os.environ.get("LIVE_INDICATOR_SECONDS", "1.5"))
    CHANGE_FEED_PAGE_SIZE = int(os.environ.get("CHANGE_FEED_PAGE_SIZE", "200"))
    CHANGE_RETENTION_HOURS = int(os.environ.get("CHANGE_RETENTION_HOURS", "72"))
    CHANGE_PRUNE_INTERVAL_MINUTES = int(
        os.environ.get("CHANGE_PRUNE_INTERVAL_MINUTES", "60")
    )


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SCHEDULER_ENABLED = False
    GOOGLE_CLIENT_ID = "test-client-id"
    GOOGLE_CLIENT_SECRET = "test-client-secret"
