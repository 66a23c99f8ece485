"""Single-record metadata operations.

These back the per-record endpoints. Unlike sync, the server assigns
versions here: a new record starts at 1 and every update or delete moves
the stored version up by one.
"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable, List

from .storage.base import DEFAULT_MAX_ATTEMPTS, RecordStore, UnitOfWork, run_in_transaction
from .types import MetadataRecord, utc_now

logger = logging.getLogger(__name__)


class RecordNotFound(LookupError):
    """No record with this id exists for the owner."""

    def __init__(self, owner: str, record_id: str):
        super().__init__(f"Metadata record {record_id} not found")
        self.owner = owner
        self.record_id = record_id


class MetadataCatalog:
    """CRUD over one owner's records with server-assigned versions."""

    def __init__(
        self,
        store: RecordStore,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._max_attempts = max_attempts
        self._clock = clock

    def _run(self, work: Callable[[UnitOfWork], MetadataRecord]) -> MetadataRecord:
        return run_in_transaction(self._store, work, max_attempts=self._max_attempts)

    def list_records(self, owner: str) -> List[MetadataRecord]:
        """Every record of the owner, tombstones included."""
        return run_in_transaction(self._store, lambda uow: uow.list_records(owner), 1)

    def get_record(self, owner: str, record_id: str) -> MetadataRecord:
        def read(uow: UnitOfWork) -> MetadataRecord:
            record = uow.get_record(owner, record_id)
            if record is None:
                raise RecordNotFound(owner, record_id)
            return record

        return run_in_transaction(self._store, read, 1)

    def add_record(self, owner: str, payload: str) -> MetadataRecord:
        """Store a new record under a fresh server-generated id."""
        record = MetadataRecord(
            id=str(uuid.uuid4()),
            owner=owner,
            payload=payload,
            version=1,
            last_modified_at=self._clock(),
            is_deleted=False,
        )

        def insert(uow: UnitOfWork) -> MetadataRecord:
            uow.insert_record(record)
            return record

        created = self._run(insert)
        logger.info(f"CATALOG | {owner} | add {created.id}")
        return created

    def _bump(self, owner: str, record_id: str, **changes) -> MetadataRecord:
        def write(uow: UnitOfWork) -> MetadataRecord:
            current = uow.get_record(owner, record_id)
            if current is None:
                raise RecordNotFound(owner, record_id)
            updated = replace(
                current,
                version=current.version + 1,
                last_modified_at=self._clock(),
                **changes,
            )
            uow.update_record(updated, expected_version=current.version)
            return updated

        return self._run(write)

    def update_record(
        self, owner: str, record_id: str, payload: str, is_deleted: bool = False
    ) -> MetadataRecord:
        """Replace a record's payload; the version moves to stored + 1."""
        updated = self._bump(owner, record_id, payload=payload, is_deleted=is_deleted)
        logger.info(f"CATALOG | {owner} | update {record_id} -> v{updated.version}")
        return updated

    def delete_record(self, owner: str, record_id: str) -> MetadataRecord:
        """Tombstone a record, keeping its last payload."""
        deleted = self._bump(owner, record_id, is_deleted=True)
        logger.info(f"CATALOG | {owner} | delete {record_id} -> v{deleted.version}")
        return deleted
