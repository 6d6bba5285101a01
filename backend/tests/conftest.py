"""Shared test fixtures and configuration for backend tests."""
import pytest
from fastapi.testclient import TestClient

from fuelq_chat import database
from fuelq_chat.chat import uploads
from fuelq_chat.chat.contacts import accept_request, send_request
from fuelq_chat.chat.hub import hub
from fuelq_chat.main import app


@pytest.fixture(autouse=True)
def chat_db(tmp_path, monkeypatch):
    """Point the database and upload dir at a per-test temp location.

    Also clears the in-memory hub, which outlives individual tests.
    """
    monkeypatch.setattr(database, "DB_FILE", tmp_path / "chat.db")
    monkeypatch.setattr(uploads, "UPLOAD_DIR", tmp_path / "uploads")
    database.close_db()
    hub.reset()
    database.init_db()
    yield tmp_path
    database.close_db()
    hub.reset()


@pytest.fixture
def client():
    """TestClient with the app's lifespan running.

    HTTP calls and WebSocket sessions share one event loop, so pushes
    triggered by a request reach sockets opened from the same client.
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register(client):
    """Register a user through the API and return its auth headers."""
    def _register(username: str, display_name: str = None) -> dict:
        response = client.post(
            "/api/auth/register",
            json={"username": username, "displayName": display_name or username.title()},
        )
        assert response.status_code == 201, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}
    return _register


@pytest.fixture
def connect():
    """Make two registered users contacts."""
    def _connect(user_a: str, user_b: str):
        send_request(user_a, user_b)
        accept_request(user_b, user_a)
    return _connect
