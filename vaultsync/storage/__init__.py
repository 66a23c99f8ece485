"""Record store adapters for vaultsync."""

from .base import (
    DEFAULT_MAX_ATTEMPTS,
    RecordStore,
    StaleVersion,
    TransientStoreFailure,
    UnitOfWork,
    UsernameTaken,
    run_in_transaction,
)
from .sqlite import SQLiteRecordStore, SQLiteUnitOfWork

__all__ = [
    "DEFAULT_MAX_ATTEMPTS",
    "RecordStore",
    "UnitOfWork",
    "StaleVersion",
    "TransientStoreFailure",
    "UsernameTaken",
    "run_in_transaction",
    "SQLiteRecordStore",
    "SQLiteUnitOfWork",
]
