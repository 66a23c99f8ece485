"""Tests for the sync routes."""

from vaultsync.storage import TransientStoreFailure
from vaultsync.sync_engine import SyncEngine


def _item(codec, record_id, version=1, text=None, is_deleted=False):
    return {
        "id": record_id,
        "payload": codec.encrypt((text or f"{record_id} v{version}").encode()),
        "version": version,
        "last_modified_at": "2024-01-15T12:00:00Z",
        "is_deleted": is_deleted,
    }


def _sync(client, headers, items, **extra):
    return client.post("/api/sync", json={"items": items, **extra}, headers=headers)


class TestSync:
    def test_empty_sync(self, client, auth_headers):
        response = _sync(client, auth_headers, [])
        assert response.status_code == 200
        body = response.json()
        assert body["updated_items"] == []
        assert body["deleted_ids"] == []
        assert body["sync_token"].startswith("st1.")
        assert body["timestamp"]

    def test_two_device_scenario(self, client, register, codec):
        """Laptop creates two records; phone edits one and deletes the other."""
        user = register(username="alice", password="pw", device_id="laptop")
        laptop = {"Authorization": f"Bearer {user['token']}"}
        phone_token = client.post(
            "/api/auth/login",
            json={"username": "alice", "password": "pw", "device_id": "phone"},
        ).json()["token"]
        phone = {"Authorization": f"Bearer {phone_token}"}

        first = _sync(client, laptop, [_item(codec, "doc-1"), _item(codec, "doc-2")])
        assert [i["id"] for i in first.json()["updated_items"]] == ["doc-1", "doc-2"]

        second = _sync(
            client,
            phone,
            [
                _item(codec, "doc-1", version=2, text="edited on phone"),
                _item(codec, "doc-2", version=2, is_deleted=True),
            ],
            device_id="phone",
            sync_token=first.json()["sync_token"],
        ).json()
        assert [i["id"] for i in second["updated_items"]] == ["doc-1"]
        assert second["deleted_ids"] == ["doc-2"]

        # Laptop pulls with an empty batch and sees the phone's changes
        pulled = _sync(client, laptop, []).json()
        assert codec.decrypt(pulled["updated_items"][0]["payload"]) == b"edited on phone"
        assert pulled["updated_items"][0]["version"] == 2
        assert pulled["deleted_ids"] == ["doc-2"]

    def test_last_writer_wins_by_version(self, client, auth_headers, codec):
        _sync(client, auth_headers, [_item(codec, "a", version=3, text="server")])

        older = _sync(client, auth_headers, [_item(codec, "a", version=2, text="older")]).json()
        assert codec.decrypt(older["updated_items"][0]["payload"]) == b"server"

        newer = _sync(client, auth_headers, [_item(codec, "a", version=4, text="newer")]).json()
        assert newer["updated_items"][0]["version"] == 4
        assert codec.decrypt(newer["updated_items"][0]["payload"]) == b"newer"

    def test_legacy_payload_field(self, client, auth_headers, codec):
        item = _item(codec, "a")
        item["encrypted_data"] = item.pop("payload")
        response = _sync(client, auth_headers, [item])
        assert response.status_code == 200
        assert response.json()["updated_items"][0]["payload"] == item["encrypted_data"]

    def test_response_uses_snake_case(self, client, auth_headers, codec):
        body = _sync(client, auth_headers, [_item(codec, "a")]).json()
        assert set(body) == {"updated_items", "deleted_ids", "sync_token", "timestamp"}
        assert set(body["updated_items"][0]) == {
            "id",
            "payload",
            "version",
            "last_modified_at",
            "is_deleted",
        }

    def test_garbage_sync_token_is_ignored(self, client, auth_headers, codec):
        response = _sync(client, auth_headers, [_item(codec, "a")], sync_token="garbage")
        assert response.status_code == 200

    def test_users_are_isolated(self, client, register, codec):
        alice = {"Authorization": f"Bearer {register(username='alice')['token']}"}
        bob = {"Authorization": f"Bearer {register(username='bob')['token']}"}

        _sync(client, alice, [_item(codec, "shared", version=5)])
        body = _sync(client, bob, [_item(codec, "shared", version=1)]).json()
        assert body["updated_items"][0]["version"] == 1
        assert _sync(client, alice, []).json()["updated_items"][0]["version"] == 5


class TestSyncErrors:
    def test_requires_auth(self, client, codec):
        response = client.post("/api/sync", json={"items": [_item(codec, "a")]})
        assert response.status_code == 401

    def test_invalid_version_rejected(self, client, auth_headers, codec):
        response = _sync(client, auth_headers, [_item(codec, "a"), _item(codec, "b", version=0)])
        assert response.status_code == 422
        assert _sync(client, auth_headers, []).json()["updated_items"] == []

    def test_missing_payload_rejected(self, client, auth_headers, codec):
        item = _item(codec, "a")
        del item["payload"]
        assert _sync(client, auth_headers, [item]).status_code == 422

    def test_blank_id_rejected_by_engine(self, client, auth_headers, codec):
        response = _sync(client, auth_headers, [_item(codec, "   ")])
        assert response.status_code == 422
        body = response.json()
        assert body["detail"] == "Invalid sync batch"
        assert body["errors"] == ["items[0]: missing id"]

    def test_store_failure_is_503(self, client, auth_headers, codec, monkeypatch):
        def unavailable(self, owner, items, sync_token=None):
            raise TransientStoreFailure("database is locked")

        monkeypatch.setattr(SyncEngine, "sync", unavailable)
        response = _sync(client, auth_headers, [_item(codec, "a")])
        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"

    def test_failed_sync_leaves_store_untouched(self, client, auth_headers, codec, store, monkeypatch):
        _sync(client, auth_headers, [_item(codec, "keep")])

        def locked_unit_of_work():
            raise TransientStoreFailure("database is locked")

        monkeypatch.setattr(store, "unit_of_work", locked_unit_of_work)
        response = _sync(client, auth_headers, [_item(codec, "new")])
        assert response.status_code == 503
        monkeypatch.undo()

        ids = [i["id"] for i in _sync(client, auth_headers, []).json()["updated_items"]]
        assert ids == ["keep"]


class TestSyncStatus:
    def test_status_before_sync(self, client, auth_headers):
        response = client.get("/api/sync/status", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["last_sync_at"] is None
        assert body["item_count"] == 0
        assert body["sync_token"] is None
        assert body["device_id"] == "laptop"

    def test_status_after_sync(self, client, auth_headers, codec):
        synced = _sync(
            client,
            auth_headers,
            [_item(codec, "a"), _item(codec, "b"), _item(codec, "c", is_deleted=True)],
        ).json()
        body = client.get("/api/sync/status", headers=auth_headers).json()
        assert body["item_count"] == 2
        assert body["sync_token"] == synced["sync_token"]
        assert body["last_sync_at"] is not None

    def test_status_requires_auth(self, client):
        assert client.get("/api/sync/status").status_code == 401
