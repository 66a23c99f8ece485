"""Tests for service status and health endpoints."""

from app.config import get_settings
from app.main import app

from vaultsync.storage import TransientStoreFailure


class TestStatusEndpoints:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        body = response.json()
        assert body["service"] == "vaultsync-backend"
        assert body["status"] == "ok"
        assert "version" in body

    def test_api_status(self, client):
        response = client.get("/api/status")
        assert response.status_code == 200
        assert response.json() == {"status": "online", "service": get_settings().service_name}


class TestHealth:
    def test_healthy(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "database": "connected",
            "envelope": "ok",
        }

    def test_store_down_is_degraded(self, client, store, monkeypatch):
        def locked_unit_of_work():
            raise TransientStoreFailure("database is locked")

        monkeypatch.setattr(store, "unit_of_work", locked_unit_of_work)
        body = client.get("/health").json()
        assert body["status"] == "degraded"
        assert body["database"].startswith("error:")
        assert body["envelope"] == "ok"

    def test_bad_key_is_degraded(self, client):
        settings = get_settings().model_copy(update={"encrypt_key": "too-short"})
        app.dependency_overrides[get_settings] = lambda: settings
        try:
            body = client.get("/health").json()
        finally:
            app.dependency_overrides.pop(get_settings, None)
        assert body["status"] == "degraded"
        assert body["envelope"] == "error: CryptoFailure"
