import pytest
from fastapi.testclient import TestClient

from chatrooms.core.config import Settings
from chatrooms.main import create_app
from chatrooms.models.models import Account
from chatrooms.services.data_store import InMemoryDataStore
from chatrooms.services.hasher import CredentialHasher
from chatrooms.services.room_access import RoomAccessService


@pytest.fixture
def store():
    return InMemoryDataStore()


@pytest.fixture
def hasher():
    return CredentialHasher("test_salt")


@pytest.fixture
def service(store, hasher):
    return RoomAccessService(store, hasher, history_limit=50)


@pytest.fixture
def alice():
    return Account(id="account-a", email="alice@example.com", display_name="Alice")


@pytest.fixture
def bob():
    return Account(id="account-b", email="bob@example.com", display_name="Bob")


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.setenv("DATA_STORE", "memory")
    monkeypatch.setenv("AUTH_PROVIDER", "local")
    monkeypatch.setenv("PUB_SUB_SERVICE", "local")
    monkeypatch.setenv("SESSION_SECRET", "test-secret")
    monkeypatch.setenv("CLEANUP_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("CORS_ORIGINS", "*")
    return Settings()


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c


def signup(client, email, password="secret-pass", display_name=None):
    """Sign up and return an Authorization header for the new account."""
    response = client.post(
        "/auth/signup",
        json={"email": email, "password": password, "display_name": display_name},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
