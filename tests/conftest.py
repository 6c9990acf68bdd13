"""
Shared fixtures.

Every test gets its own app over a fresh in-memory SQLite database, with the
bcrypt cost turned down so hashing stays fast.
"""

import os

# main.py builds a module-level app from the environment at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        log_level="WARNING",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_client(app, client):
    """Extra clients share the running app but keep their own cookie jars."""
    def _make(**kwargs):
        return TestClient(app, **kwargs)
    return _make


@pytest.fixture
def signup():
    """Register and log in `username` on `client`; returns the public user."""
    def _signup(client, username="alice", password="correct-horse"):
        resp = client.post("/auth/register", json={"username": username, "password": password})
        assert resp.status_code == 201, resp.text
        resp = client.post("/auth/login", json={"username": username, "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()
    return _signup


@pytest.fixture
def alice(client, signup):
    signup(client, "alice")
    return client


@pytest.fixture
def bob(make_client, signup):
    c = make_client()
    signup(c, "bob")
    return c
