import pytest
from authlib.integrations.flask_client import FlaskOAuth2App

from livemarks import create_app
from livemarks.config import TestConfig
from livemarks.extensions import db

GOOGLE_METADATA = {
    "issuer": "https://accounts.google.com",
    "authorization_endpoint": "https://accounts.google.com/o/oauth2/v2/auth",
    "token_endpoint": "https://oauth2.googleapis.com/token",
    "userinfo_endpoint": "https://openidconnect.googleapis.com/v1/userinfo",
    "jwks_uri": "https://www.googleapis.com/oauth2/v3/certs",
}


@pytest.fixture(autouse=True)
def google_metadata(monkeypatch):
    monkeypatch.setattr(
        FlaskOAuth2App, "load_server_metadata", lambda self: dict(GOOGLE_METADATA)
    )


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()
