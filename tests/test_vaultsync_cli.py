"""Tests for the vaultsync command-line tool."""

import io
import json

import pytest

from vaultsync.cli.__main__ import build_parser, main
from vaultsync.crypto import EnvelopeCodec
from vaultsync.sync_engine import SyncEngine

TEST_KEY = "0123456789abcdef0123456789abcdef"
OWNER = "usr_aaaaaaaaaaaa"


@pytest.fixture
def key_env(monkeypatch):
    monkeypatch.setenv("ENCRYPT_KEY", TEST_KEY)


@pytest.fixture
def populated_store(store, make_record):
    SyncEngine(store).sync(
        OWNER,
        [
            make_record("doc-1", plaintext="hello"),
            make_record("doc-2", plaintext="gone", is_deleted=True),
        ],
    )
    return store


class TestParser:
    def test_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_keygen_length_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["keygen", "--length", "20"])


class TestKeygen:
    def test_keygen(self, capsys):
        assert main(["keygen"]) == 0
        key = capsys.readouterr().out.strip()
        assert len(key) == 32
        EnvelopeCodec(key)

    def test_keygen_length(self, capsys):
        assert main(["keygen", "--length", "16"]) == 0
        assert len(capsys.readouterr().out.strip()) == 16


class TestEncryptDecrypt:
    def test_encrypt_file(self, tmp_path, capsys, key_env):
        source = tmp_path / "plain.txt"
        source.write_bytes(b"file metadata")
        assert main(["encrypt", "--input", str(source)]) == 0
        envelope = capsys.readouterr().out.strip()
        assert EnvelopeCodec(TEST_KEY).decrypt(envelope) == b"file metadata"

    def test_encrypt_stdin(self, monkeypatch, capsys, key_env):
        monkeypatch.setattr("sys.stdin", io.TextIOWrapper(io.BytesIO(b"from stdin")))
        assert main(["encrypt"]) == 0
        envelope = capsys.readouterr().out.strip()
        assert EnvelopeCodec(TEST_KEY).decrypt(envelope) == b"from stdin"

    def test_decrypt(self, capsysbinary):
        envelope = EnvelopeCodec(TEST_KEY).encrypt(b"round trip")
        assert main(["decrypt", envelope, "--key", TEST_KEY]) == 0
        assert capsysbinary.readouterr().out == b"round trip"

    def test_decrypt_wrong_key(self, capsys):
        envelope = EnvelopeCodec(TEST_KEY).encrypt(b"secret")
        assert main(["decrypt", envelope, "--key", "fedcba9876543210fedcba9876543210"]) == 1
        assert "AuthenticationFailure" in capsys.readouterr().err

    def test_decrypt_garbage(self, capsys, key_env):
        assert main(["decrypt", "not base64!"]) == 1
        assert "DecodeFailure" in capsys.readouterr().err

    def test_missing_key(self, monkeypatch, capsys):
        monkeypatch.delenv("ENCRYPT_KEY", raising=False)
        assert main(["decrypt", "AAAA"]) == 1
        assert "ENCRYPT_KEY" in capsys.readouterr().err

    def test_bad_key_size(self, capsys):
        assert main(["decrypt", "AAAA", "--key", "short"]) == 1
        assert "CryptoFailure" in capsys.readouterr().err


class TestDump:
    def test_dump_json(self, populated_store, capsys):
        assert main(["dump", "--db", str(populated_store.db_path), "--owner", OWNER, "--json"]) == 0
        rows = json.loads(capsys.readouterr().out)
        assert [r["id"] for r in rows] == ["doc-1", "doc-2"]
        assert rows[1]["is_deleted"] is True
        assert "payload" in rows[0]

    def test_dump_decrypt(self, populated_store, capsys, key_env):
        args = ["dump", "--db", str(populated_store.db_path), "--owner", OWNER, "--decrypt", "--json"]
        assert main(args) == 0
        rows = json.loads(capsys.readouterr().out)
        assert rows[0]["plaintext"] == "hello"
        assert rows[1]["plaintext"] == "gone"

    def test_dump_decrypt_wrong_key_reports_per_row(self, populated_store, capsys):
        args = [
            "dump", "--db", str(populated_store.db_path), "--owner", OWNER,
            "--decrypt", "--key", "fedcba9876543210fedcba9876543210", "--json",
        ]
        assert main(args) == 0
        rows = json.loads(capsys.readouterr().out)
        assert all(r["error"].startswith("AuthenticationFailure") for r in rows)

    def test_dump_text(self, populated_store, capsys):
        assert main(["dump", "--db", str(populated_store.db_path), "--owner", OWNER]) == 0
        out = capsys.readouterr().out
        assert "doc-1" in out and "doc-2" in out

    def test_dump_empty_owner(self, populated_store, capsys):
        assert main(["dump", "--db", str(populated_store.db_path), "--owner", "usr_nobody"]) == 0
        assert "No records" in capsys.readouterr().out

    def test_dump_missing_database(self, tmp_path, capsys):
        assert main(["dump", "--db", str(tmp_path / "absent.db"), "--owner", OWNER]) == 1
        assert "Database not found" in capsys.readouterr().err


class TestStatus:
    def test_status_json(self, populated_store, capsys):
        assert main(["status", "--db", str(populated_store.db_path), "--owner", OWNER, "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["owner"] == OWNER
        assert data["item_count"] == 1
        assert data["last_sync_at"] is not None
        assert data["sync_token"].startswith("st1.")

    def test_status_never_synced(self, populated_store, capsys):
        assert main(["status", "--db", str(populated_store.db_path), "--owner", "usr_nobody"]) == 0
        out = capsys.readouterr().out
        assert "never" in out
