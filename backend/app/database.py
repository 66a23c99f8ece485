"""Record store wiring for the vault sync backend."""

import threading
from datetime import datetime
from typing import Annotated

from fastapi import Depends

from vaultsync.storage import SQLiteRecordStore, run_in_transaction

from .config import Settings, get_settings

_store: SQLiteRecordStore | None = None
_store_lock = threading.Lock()


def get_record_store(settings: Settings | None = None) -> SQLiteRecordStore:
    """Get the process-wide record store, opening it on first use."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                if settings is None:
                    settings = get_settings()
                _store = SQLiteRecordStore(
                    settings.database_path,
                    timeout=settings.store_timeout_seconds,
                )
    return _store


def get_store(settings: Annotated[Settings, Depends(get_settings)]) -> SQLiteRecordStore:
    """FastAPI dependency for the record store."""
    return get_record_store(settings)


# Type alias for dependency injection
Store = Annotated[SQLiteRecordStore, Depends(get_store)]


# =============================================================================
# User Operations
# =============================================================================

def create_user(
    store: SQLiteRecordStore,
    user_id: str,
    username: str,
    password_hash: str,
    device_id: str,
    created_at: datetime,
) -> dict:
    """Create a user. Raises UsernameTaken."""
    return run_in_transaction(
        store,
        lambda uow: uow.create_user(user_id, username, password_hash, device_id, created_at),
        max_attempts=1,
    )


def get_user(store: SQLiteRecordStore, user_id: str) -> dict | None:
    """Get a user by id."""
    return run_in_transaction(store, lambda uow: uow.get_user(user_id), max_attempts=1)


def get_user_by_username(store: SQLiteRecordStore, username: str) -> dict | None:
    """Get a user by username."""
    return run_in_transaction(
        store, lambda uow: uow.get_user_by_username(username), max_attempts=1
    )


def update_device_id(store: SQLiteRecordStore, user_id: str, device_id: str) -> None:
    """Remember the device a user last logged in from."""
    run_in_transaction(store, lambda uow: uow.set_device_id(user_id, device_id), max_attempts=1)
