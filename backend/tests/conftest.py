import mongomock
import pytest

from game_catalog import database
from game_catalog.oauth import OAuthError


class FakeOAuthClient:
    """Stands in for the identity provider; `good-code` is the only valid code."""

    def __init__(self):
        self.exchanged = []

    def authorization_url(self, state):
        return f"https://id.example.test/authorize?client_id=catalog&state={state}"

    def exchange_code(self, code):
        self.exchanged.append(code)
        if code != "good-code":
            raise OAuthError("identity provider returned 400: invalid_grant")
        return {"access_token": "access-123", "id_token": "id-456", "expires_in": 3600}

    def fetch_userinfo(self, access_token):
        return {"sub": "user-1", "email": "player@example.com"}


@pytest.fixture(autouse=True)
def mongo(monkeypatch):
    """Fresh in-memory MongoDB for every test."""
    client = mongomock.MongoClient()
    monkeypatch.setattr(database, "client", client)
    db = database.get_db()
    database.ensure_indexes(db)
    yield db


@pytest.fixture(autouse=True)
def oauth(monkeypatch):
    """Keep tests away from the real identity provider."""
    fake = FakeOAuthClient()
    monkeypatch.setattr("game_catalog.main.oauth_client", fake)
    return fake
