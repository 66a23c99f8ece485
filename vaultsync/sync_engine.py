"""Sync engine for vaultsync.

Reconciles a batch of client-submitted records against the server's
records for one owner and returns the owner's full snapshot.

Per item, in the order the client listed them:
- unknown (owner, id): stored verbatim, client version becomes the baseline
- client version > stored version: client values overwrite the record
- otherwise: the item is ignored and the stored record stands

The merge, the snapshot read and the last-sync stamp share one unit of
work. Equal versions are not a conflict: the first write to reach the
server wins and the other device learns that from its next snapshot.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from .storage.base import (
    DEFAULT_MAX_ATTEMPTS,
    RecordStore,
    UnitOfWork,
    run_in_transaction,
)
from .tokens import issue_token, token_timestamp
from .types import MetadataRecord, SyncResult, SyncStatus, ensure_utc, utc_now

logger = logging.getLogger(__name__)


class ValidationFailure(ValueError):
    """A sync batch contained malformed items; nothing was applied."""

    def __init__(self, problems: List[str]):
        super().__init__("; ".join(problems))
        self.problems = problems


def validate_items(items: Sequence[MetadataRecord]) -> List[str]:
    """Collect every problem in a batch (empty list when the batch is valid)."""
    problems: List[str] = []
    for index, item in enumerate(items):
        label = f"items[{index}]"
        if not isinstance(item, MetadataRecord):
            problems.append(f"{label}: not a metadata record")
            continue
        if not isinstance(item.id, str) or not item.id.strip():
            problems.append(f"{label}: missing id")
        if isinstance(item.version, bool) or not isinstance(item.version, int):
            problems.append(f"{label}: version must be an integer")
        elif item.version < 1:
            problems.append(f"{label}: version must be >= 1, got {item.version}")
        if not isinstance(item.payload, str):
            problems.append(f"{label}: payload must be an envelope string")
        if not isinstance(item.is_deleted, bool):
            problems.append(f"{label}: is_deleted must be a boolean")
        if not isinstance(item.last_modified_at, datetime):
            problems.append(f"{label}: last_modified_at must be a datetime")
    return problems


class SyncEngine:
    """Merges client batches into the store with last-writer-wins by version.

    Args:
        store: Record store providing all-or-nothing units of work.
        max_attempts: How many times to rerun a sync whose conditional write
            went stale before reporting a transient failure.
        clock: Source of the sync timestamp.
        token_issuer: Derives the sync token from (owner, timestamp).
    """

    def __init__(
        self,
        store: RecordStore,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = utc_now,
        token_issuer: Callable[[str, datetime], str] = issue_token,
    ):
        self._store = store
        self._max_attempts = max_attempts
        self._clock = clock
        self._issue_token = token_issuer

    def sync(
        self,
        owner: str,
        items: Sequence[MetadataRecord],
        sync_token: Optional[str] = None,
    ) -> SyncResult:
        """Apply a client batch for ``owner`` and return the full snapshot.

        Args:
            owner: Identity established by the caller
            items: Client records; any owner they carry is replaced by ``owner``
            sync_token: Token the client last received (advisory, never checked)

        Raises:
            ValidationFailure: The batch is malformed (nothing applied)
            TransientStoreFailure: The store failed (nothing applied)
        """
        if not isinstance(owner, str) or not owner.strip():
            raise ValidationFailure(["owner is required"])
        items = list(items)
        problems = validate_items(items)
        if problems:
            logger.info(f"SYNC REJECTED | {owner} | {len(problems)} invalid items")
            raise ValidationFailure(problems)

        previous = token_timestamp(sync_token)
        if previous is not None:
            logger.debug(f"SYNC | {owner} | client token from {previous.isoformat()}")

        batch = [
            replace(item, owner=owner, last_modified_at=ensure_utc(item.last_modified_at))
            for item in items
        ]
        result = run_in_transaction(
            self._store,
            lambda uow: self._merge(uow, owner, batch),
            max_attempts=self._max_attempts,
        )
        result.sync_token = self._issue_token(owner, result.timestamp)

        logger.info(
            f"SYNC COMPLETE | {owner} | inserted={result.inserted} updated={result.updated} "
            f"ignored={result.ignored} live={len(result.updated_items)} "
            f"deleted={len(result.deleted_ids)}"
        )
        return result

    def _merge(self, uow: UnitOfWork, owner: str, batch: List[MetadataRecord]) -> SyncResult:
        result = SyncResult()

        for item in batch:
            existing = uow.get_record(owner, item.id)
            if existing is None:
                uow.insert_record(item)
                result.inserted += 1
                logger.debug(f"SYNC | {owner} | insert {item.id} v{item.version}")
            elif item.version > existing.version:
                uow.update_record(item, expected_version=existing.version)
                result.updated += 1
                logger.debug(
                    f"SYNC | {owner} | update {item.id} v{existing.version} -> v{item.version}"
                )
            else:
                result.ignored += 1
                logger.debug(
                    f"SYNC | {owner} | keep {item.id} v{existing.version} "
                    f"(client v{item.version})"
                )

        for record in uow.list_records(owner):
            if record.is_deleted:
                result.deleted_ids.append(record.id)
            else:
                result.updated_items.append(record)

        result.timestamp = self._clock()
        uow.stamp_last_sync(owner, result.timestamp)
        return result

    def status(self, owner: str) -> SyncStatus:
        """Last sync time, live record count and current token for ``owner``."""

        def read(uow: UnitOfWork) -> SyncStatus:
            return SyncStatus(
                owner=owner,
                last_sync_at=uow.get_last_sync(owner),
                item_count=uow.count_live_records(owner),
            )

        status = run_in_transaction(self._store, read, max_attempts=1)
        if status.last_sync_at is not None:
            status.sync_token = self._issue_token(owner, status.last_sync_at)
        return status
