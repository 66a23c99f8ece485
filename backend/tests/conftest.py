"""Pytest configuration and fixtures."""

import os
import secrets
import tempfile
from pathlib import Path

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"
_TEST_DB_DIR = tempfile.mkdtemp(prefix="vaultsync-test-")

TEST_ENCRYPT_KEY = "0123456789abcdef0123456789abcdef"

os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)
os.environ.setdefault("ENCRYPT_KEY", TEST_ENCRYPT_KEY)
os.environ.setdefault("DATABASE_PATH", str(Path(_TEST_DB_DIR) / "metadata.db"))

from app.database import get_store  # noqa: E402
from app.main import app  # noqa: E402
from app.rate_limit import limiter  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from vaultsync.crypto import EnvelopeCodec  # noqa: E402
from vaultsync.storage import SQLiteRecordStore  # noqa: E402


@pytest.fixture
def store(tmp_path):
    """A fresh record store per test, injected into the app."""
    s = SQLiteRecordStore(tmp_path / "metadata.db")
    app.dependency_overrides[get_store] = lambda: s
    yield s
    app.dependency_overrides.pop(get_store, None)
    s.close()


@pytest.fixture
def client(store):
    """Create a test client with rate limiting switched off."""
    limiter.enabled = False
    yield TestClient(app)
    limiter.enabled = True


@pytest.fixture
def codec():
    """Codec sharing the server's key, as a device would."""
    return EnvelopeCodec(os.environ["ENCRYPT_KEY"])


@pytest.fixture
def register(client):
    """Register a user and return the auth response body."""

    def _register(username="alice", password="correct horse", device_id="laptop"):
        response = client.post(
            "/api/auth/register",
            json={"username": username, "password": password, "device_id": device_id},
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _register


@pytest.fixture
def auth_headers(register):
    """Auth headers for a freshly registered user."""
    body = register()
    return {"Authorization": f"Bearer {body['token']}"}
