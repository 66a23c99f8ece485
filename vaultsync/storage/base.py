"""Record store protocol for vaultsync backends.

A record store keeps metadata records keyed by (owner, id) and hands out
units of work: one transaction that either commits every read and write
made through it or none of them.

Currently supported:
- SQLiteRecordStore: single-file store with serialized writers
"""

import logging
from datetime import datetime
from typing import (
    Any,
    Callable,
    ContextManager,
    Dict,
    List,
    Optional,
    Protocol,
    TypeVar,
    runtime_checkable,
)

from ..types import MetadataRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


class TransientStoreFailure(Exception):
    """The store could not complete a read or write; safe to retry.

    Nothing from the failed unit of work has been persisted.
    """

    pass


class StaleVersion(TransientStoreFailure):
    """A conditional write found a different version than the one read."""

    def __init__(self, owner: str, record_id: str, expected: Optional[int] = None):
        if expected is None:
            message = f"Record {owner}/{record_id} was created concurrently"
        else:
            message = f"Record {owner}/{record_id} changed since version {expected} was read"
        super().__init__(message)
        self.owner = owner
        self.record_id = record_id
        self.expected = expected


class UsernameTaken(Exception):
    """A user with this username already exists."""

    pass


@runtime_checkable
class UnitOfWork(Protocol):
    """Operations available inside one transaction."""

    def get_record(self, owner: str, record_id: str) -> Optional[MetadataRecord]:
        """Get one record, tombstones included."""
        ...

    def insert_record(self, record: MetadataRecord) -> None:
        """Insert a new record. Raises StaleVersion if (owner, id) exists."""
        ...

    def update_record(self, record: MetadataRecord, expected_version: int) -> None:
        """Overwrite a record only if its stored version is ``expected_version``."""
        ...

    def list_records(self, owner: str) -> List[MetadataRecord]:
        """All records of an owner, tombstones included, ordered by id."""
        ...

    def count_live_records(self, owner: str) -> int:
        """Number of non-deleted records of an owner."""
        ...

    def stamp_last_sync(self, owner: str, when: datetime) -> None:
        """Record the owner's last successful sync time."""
        ...

    def get_last_sync(self, owner: str) -> Optional[datetime]:
        """Owner's last successful sync time, if any."""
        ...

    def create_user(
        self, user_id: str, username: str, password_hash: str, device_id: str, created_at: datetime
    ) -> Dict[str, Any]:
        """Create a user row. Raises UsernameTaken."""
        ...

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get a user row by id."""
        ...

    def get_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        """Get a user row by username."""
        ...

    def set_device_id(self, user_id: str, device_id: str) -> None:
        """Remember the device a user last logged in from."""
        ...


@runtime_checkable
class RecordStore(Protocol):
    """A durable store that hands out all-or-nothing units of work."""

    def unit_of_work(self) -> ContextManager[UnitOfWork]:
        ...

    def close(self) -> None:
        ...


def run_in_transaction(
    store: RecordStore,
    work: Callable[[UnitOfWork], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> T:
    """Run ``work`` inside a unit of work, retrying when a write went stale.

    Each attempt starts a fresh unit of work, so a retried attempt re-reads
    every version it depends on.

    Raises:
        TransientStoreFailure: The store failed, or every attempt went stale
    """
    attempts = max(1, max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            with store.unit_of_work() as uow:
                return work(uow)
        except StaleVersion as e:
            logger.warning(f"Stale write on attempt {attempt}/{attempts}: {e}")
            if attempt == attempts:
                raise TransientStoreFailure(
                    f"Gave up after {attempts} attempts: {e}"
                ) from e
    raise AssertionError("unreachable")
