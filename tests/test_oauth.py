from types import SimpleNamespace

import pytest

from livemarks import create_app
from livemarks.config import TestConfig
from livemarks.services.oauth import (
    GOOGLE_METADATA_URL,
    OAuthError,
    get_client,
    profile_from_token,
)


class OtherClientConfig(TestConfig):
    GOOGLE_CLIENT_ID = "other-client-id"


def test_google_client_is_registered_from_app_config(app):
    with app.test_request_context():
        client = get_client(" Google ")

    assert client.name == "google"
    assert client.client_id == "test-client-id"
    assert client.client_secret == "test-client-secret"
    assert client.client_kwargs["scope"] == "openid email profile"
    assert client.authorize_params == {"access_type": "offline", "prompt": "consent"}
    assert client._server_metadata_url == GOOGLE_METADATA_URL


def test_each_app_reads_its_own_credentials(app):
    other = create_app(OtherClientConfig)
    with other.test_request_context():
        assert get_client("google").client_id == "other-client-id"
    with app.test_request_context():
        assert get_client("google").client_id == "test-client-id"


def test_unknown_or_missing_provider_is_rejected(app):
    with app.test_request_context():
        with pytest.raises(OAuthError, match="unsupported provider"):
            get_client("myspace")
        with pytest.raises(OAuthError, match="unsupported provider"):
            get_client(None)


def test_profile_comes_from_id_token_userinfo():
    client = SimpleNamespace(name="google")
    token = {
        "access_token": "at-1",
        "userinfo": {
            "sub": "1234",
            "email": "ada@example.com",
            "name": "Ada Lovelace",
            "picture": "https://example.com/ada.png",
        },
    }

    profile = profile_from_token(client, token)

    assert profile.provider == "google"
    assert profile.subject == "1234"
    assert profile.email == "ada@example.com"
    assert profile.full_name == "Ada Lovelace"
    assert profile.avatar_url == "https://example.com/ada.png"


def test_profile_falls_back_to_userinfo_endpoint():
    seen = []

    def _userinfo(token):
        seen.append(token["access_token"])
        return {"sub": 99, "email": "bob@example.com"}

    client = SimpleNamespace(name="google", userinfo=_userinfo)
    profile = profile_from_token(client, {"access_token": "at-2"})

    assert seen == ["at-2"]
    assert profile.subject == "99"
    assert profile.full_name is None


def test_profile_without_subject_is_an_error():
    client = SimpleNamespace(name="google")
    with pytest.raises(OAuthError, match="user id"):
        profile_from_token(client, {"userinfo": {"email": "x@example.com"}})
