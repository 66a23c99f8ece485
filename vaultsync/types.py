"""
Shared record types for vaultsync.

These are the vocabulary between the store, the sync engine, the catalog
and the HTTP layer. A record's payload is always an encrypted envelope
string; nothing here looks inside it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive input is taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_datetime(value: datetime) -> str:
    """Serialize a datetime as an ISO string in UTC."""
    return ensure_utc(value).isoformat()


def parse_datetime(s: Optional[str]) -> Optional[datetime]:
    """Parse an ISO datetime string into an aware UTC datetime."""
    if not s:
        return None
    return ensure_utc(datetime.fromisoformat(s.replace("Z", "+00:00")))


@dataclass(frozen=True)
class MetadataRecord:
    """One encrypted file-metadata record.

    Attributes:
        id: Opaque identifier, stable for the record's lifetime
        owner: User the record belongs to
        payload: Envelope produced by the codec (opaque to the server)
        version: Strictly positive, never decreases once committed
        last_modified_at: Time of the last accepted mutation
        is_deleted: Tombstone flag; deleted rows are kept
    """

    id: str
    owner: str
    payload: str
    version: int
    last_modified_at: datetime
    is_deleted: bool = False


@dataclass
class SyncResult:
    """Outcome of one sync call: the owner's full snapshot plus a token."""

    updated_items: List[MetadataRecord] = field(default_factory=list)
    deleted_ids: List[str] = field(default_factory=list)
    sync_token: str = ""
    timestamp: Optional[datetime] = None
    inserted: int = 0  # Client items stored as new records
    updated: int = 0  # Client items that overwrote an older server version
    ignored: int = 0  # Client items at or below the server version


@dataclass
class SyncStatus:
    """Sync bookkeeping for one owner."""

    owner: str
    last_sync_at: Optional[datetime]
    item_count: int
    sync_token: Optional[str] = None
