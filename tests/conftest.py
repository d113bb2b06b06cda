"""Shared test fixtures for the story API test suite."""

import json

import pytest
from fastapi.testclient import TestClient

from core import store
from main import app

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "test-admin-pass"


@pytest.fixture(autouse=True)
def test_env(tmp_path, monkeypatch):
    """Point the app at a temporary file store with fast password hashing."""
    data_dir = tmp_path / "data"
    monkeypatch.setenv("STORAGE_BACKEND", "file")
    monkeypatch.setenv("DATA_DIR", str(data_dir))
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("ADMIN_USERNAME", ADMIN_USERNAME)
    monkeypatch.setenv("ADMIN_PASSWORD", ADMIN_PASSWORD)
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://stories.test")
    yield data_dir


@pytest.fixture
def api_client(test_env):
    """Create a test client; entering it runs the app lifespan."""
    with TestClient(app) as client:
        yield client
    # Lifespan shutdown resets the module-level store.
    assert store._store is None


def register_user(client, username="alice", email="alice@example.com", password="s3cret-pass"):
    response = client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()["user"]


@pytest.fixture
def registered_user(api_client):
    """Register one user and return the response user payload."""
    return register_user(api_client)


@pytest.fixture
def admin_token(api_client):
    """Log in as the configured admin and return the session token."""
    response = api_client.post(
        "/api/auth/admin-login",
        json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200, response.text
    return response.json()["token"]


def publish_story(client, token, **overrides):
    payload = {
        "title": "The Lighthouse",
        "content": "It was a dark and stormy night.",
        "publish_type": "fullstory",
        "token": token,
    }
    payload.update(overrides)
    return client.post("/api/publish/story", json=payload)


def post_escaped_json(client, url, payload, **kwargs):
    # \u escapes keep lone surrogates intact on the wire.
    return client.post(
        url,
        content=json.dumps(payload, ensure_ascii=True),
        headers={"Content-Type": "application/json", **kwargs.pop("headers", {})},
        **kwargs,
    )
