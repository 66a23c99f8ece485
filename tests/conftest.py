"""
Pytest fixtures and test configuration for vaultsync tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from vaultsync.crypto import EnvelopeCodec
from vaultsync.storage import SQLiteRecordStore
from vaultsync.types import MetadataRecord

TEST_KEY = "0123456789abcdef0123456789abcdef"
OWNER = "usr_aaaaaaaaaaaa"
OTHER_OWNER = "usr_bbbbbbbbbbbb"

BASE_TIME = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_db(tmp_path):
    """Create a temporary database path."""
    return tmp_path / "metadata.db"


@pytest.fixture
def store(temp_db):
    """Create a SQLiteRecordStore backed by a temporary file."""
    s = SQLiteRecordStore(temp_db, timeout=5.0)
    yield s
    s.close()


@pytest.fixture
def codec():
    """Envelope codec with a fixed 32-byte test key."""
    return EnvelopeCodec(TEST_KEY)


@pytest.fixture
def make_record(codec):
    """Factory for client-side records with real envelopes as payloads."""

    def _make(
        record_id: str,
        version: int = 1,
        plaintext: str | None = None,
        is_deleted: bool = False,
        owner: str = OWNER,
        minutes: int = 0,
    ) -> MetadataRecord:
        text = plaintext if plaintext is not None else f"{record_id} v{version}"
        return MetadataRecord(
            id=record_id,
            owner=owner,
            payload=codec.encrypt(text.encode()),
            version=version,
            last_modified_at=BASE_TIME + timedelta(minutes=minutes),
            is_deleted=is_deleted,
        )

    return _make
