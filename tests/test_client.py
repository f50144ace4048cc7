import httpx
import pytest

from livemarks.client import HttpRecordStore, LiveMarksClient, open_live_list
from livemarks.extensions import db
from livemarks.models import ApiToken, User
from livemarks.services.store import RemoteStoreError

BASE_URL = "http://testserver"


def _create_user_with_token(subject: str):
    user = User(provider="google", subject=subject, email=f"{subject}@example.com")
    db.session.add(user)
    db.session.commit()
    token, token_hash = ApiToken.issue_token()
    db.session.add(ApiToken(user_id=user.id, name="client", token_hash=token_hash))
    db.session.commit()
    return user.id, token


@pytest.fixture
def transport(app):
    return httpx.WSGITransport(app=app)


def test_live_list_tracks_other_writers(app, transport):
    with app.app_context():
        owner, token = _create_user_with_token("client-owner")

    with LiveMarksClient(BASE_URL, token, transport=transport) as other_tab:
        other_store = HttpRecordStore(other_tab, owner)
        first = other_store.create({"url": "https://first.example", "title": ""})

        with open_live_list(
            BASE_URL, token, autostart=False, transport=transport
        ) as view:
            assert [item.id for item in view.bookmarks] == [first.id]

            added = view.add("https://mine.example/page", "")
            assert added.title == "mine.example"

            second = other_store.create({"url": "https://second.example", "title": "2"})
            other_store.delete(first.id)
            view.subscription.poll()

            assert [item.id for item in view.bookmarks] == [second.id, added.id]

            assert view.delete(added.id) is True
            view.subscription.poll()
            assert [item.id for item in view.bookmarks] == [second.id]

        assert view.closed is True


def test_server_errors_are_surfaced_verbatim(app, transport):
    with app.app_context():
        owner, token = _create_user_with_token("client-errors")

    with LiveMarksClient(BASE_URL, token, transport=transport) as client:
        store = HttpRecordStore(client, owner)

        with pytest.raises(RemoteStoreError) as excinfo:
            store.create({"url": "ftp://host", "title": ""})
        assert excinfo.value.message == 'URL must start with "http://" or "https://".'
        assert excinfo.value.status_code == 400

        with pytest.raises(RemoteStoreError, match="bookmark not found"):
            store.delete(12345)

        assert store.fetch_one(12345) is None


def test_bad_token_is_rejected(app, transport):
    with LiveMarksClient(BASE_URL, "lm_nope", transport=transport) as client:
        with pytest.raises(RemoteStoreError, match="authentication required"):
            client.me()


def test_transport_failures_become_store_errors():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with LiveMarksClient(
        BASE_URL, "token", transport=httpx.MockTransport(handler)
    ) as client:
        with pytest.raises(RemoteStoreError, match="connection refused"):
            HttpRecordStore(client, 1).fetch_all()
