"""SQLite record store for vaultsync.

Every unit of work is one connection and one ``BEGIN IMMEDIATE``
transaction. IMMEDIATE takes the write lock up front, so two syncs for the
same owner cannot both read a version and then both write over it; the
conditional UPDATE in ``update_record`` is the second line of that guard.
"""

import contextlib
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from ..types import MetadataRecord, format_datetime, parse_datetime
from .base import StaleVersion, TransientStoreFailure, UsernameTaken
from .schema import init_db

logger = logging.getLogger(__name__)

_RECORD_COLUMNS = "owner, id, payload, version, last_modified_at, is_deleted"


def _row_to_record(row: sqlite3.Row) -> MetadataRecord:
    return MetadataRecord(
        id=row["id"],
        owner=row["owner"],
        payload=row["payload"],
        version=row["version"],
        last_modified_at=parse_datetime(row["last_modified_at"]),
        is_deleted=bool(row["is_deleted"]),
    )


class SQLiteUnitOfWork:
    """Reads and writes bound to one open transaction.

    Obtained from ``SQLiteRecordStore.unit_of_work()``; never committed or
    rolled back directly.
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    # === Records ===

    def get_record(self, owner: str, record_id: str) -> Optional[MetadataRecord]:
        row = self._conn.execute(
            f"SELECT {_RECORD_COLUMNS} FROM metadata_records WHERE owner = ? AND id = ?",
            (owner, record_id),
        ).fetchone()
        return _row_to_record(row) if row else None

    def insert_record(self, record: MetadataRecord) -> None:
        try:
            self._conn.execute(
                f"INSERT INTO metadata_records ({_RECORD_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    record.owner,
                    record.id,
                    record.payload,
                    record.version,
                    format_datetime(record.last_modified_at),
                    int(record.is_deleted),
                ),
            )
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e) or "PRIMARY KEY" in str(e):
                raise StaleVersion(record.owner, record.id) from e
            raise

    def update_record(self, record: MetadataRecord, expected_version: int) -> None:
        cursor = self._conn.execute(
            """UPDATE metadata_records
               SET payload = ?, version = ?, last_modified_at = ?, is_deleted = ?
               WHERE owner = ? AND id = ? AND version = ?""",
            (
                record.payload,
                record.version,
                format_datetime(record.last_modified_at),
                int(record.is_deleted),
                record.owner,
                record.id,
                expected_version,
            ),
        )
        if cursor.rowcount != 1:
            raise StaleVersion(record.owner, record.id, expected_version)

    def list_records(self, owner: str) -> List[MetadataRecord]:
        rows = self._conn.execute(
            f"SELECT {_RECORD_COLUMNS} FROM metadata_records WHERE owner = ? ORDER BY id",
            (owner,),
        ).fetchall()
        return [_row_to_record(row) for row in rows]

    def count_live_records(self, owner: str) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) FROM metadata_records WHERE owner = ? AND is_deleted = 0",
            (owner,),
        ).fetchone()
        return row[0]

    # === Sync bookkeeping ===

    def stamp_last_sync(self, owner: str, when: datetime) -> None:
        self._conn.execute(
            """INSERT INTO sync_state (owner, last_sync_at) VALUES (?, ?)
               ON CONFLICT(owner) DO UPDATE SET last_sync_at = excluded.last_sync_at""",
            (owner, format_datetime(when)),
        )

    def get_last_sync(self, owner: str) -> Optional[datetime]:
        row = self._conn.execute(
            "SELECT last_sync_at FROM sync_state WHERE owner = ?", (owner,)
        ).fetchone()
        return parse_datetime(row["last_sync_at"]) if row else None

    # === Users ===

    def create_user(
        self,
        user_id: str,
        username: str,
        password_hash: str,
        device_id: str,
        created_at: datetime,
    ) -> Dict[str, Any]:
        try:
            self._conn.execute(
                """INSERT INTO users (id, username, password_hash, device_id, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (user_id, username, password_hash, device_id, format_datetime(created_at)),
            )
        except sqlite3.IntegrityError as e:
            raise UsernameTaken(username) from e
        return self.get_user(user_id)

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        row = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return dict(row) if row else None

    def get_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        row = self._conn.execute(
            "SELECT * FROM users WHERE username = ?", (username,)
        ).fetchone()
        return dict(row) if row else None

    def set_device_id(self, user_id: str, device_id: str) -> None:
        self._conn.execute("UPDATE users SET device_id = ? WHERE id = ?", (device_id, user_id))


class SQLiteRecordStore:
    """SQLite-backed record store.

    Connections are opened per unit of work, so one store instance can be
    shared by every request thread.

    Args:
        db_path: Database file; its directory is created if missing.
        timeout: Seconds to wait for the write lock before giving up.
    """

    def __init__(self, db_path: Union[str, Path], timeout: float = 5.0):
        self.db_path = Path(db_path).expanduser()
        self.timeout = timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        """Open a connection in autocommit mode; transactions are explicit."""
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute(f"PRAGMA busy_timeout={int(self.timeout * 1000)}")
        return conn

    def _init_db(self) -> None:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise TransientStoreFailure(f"Cannot open database {self.db_path}: {e}") from e
        try:
            init_db(conn, self.db_path)
        finally:
            conn.close()

    @contextlib.contextmanager
    def unit_of_work(self) -> Iterator[SQLiteUnitOfWork]:
        """Context manager for one all-or-nothing transaction.

        - Commit on success
        - Rollback on any exception, including interrupts
        - Connection closed in all cases
        - sqlite3.OperationalError (locked, busy, I/O) surfaces as
          TransientStoreFailure
        """
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise TransientStoreFailure(f"Cannot open database {self.db_path}: {e}") from e
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.OperationalError as e:
            conn.close()
            raise TransientStoreFailure(f"Could not start transaction: {e}") from e

        try:
            yield SQLiteUnitOfWork(conn)
            conn.commit()
        except sqlite3.OperationalError as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise TransientStoreFailure(f"Store operation failed: {e}") from e
        except BaseException as e:
            logger.debug(f"Transaction aborted, rolling back: {e!r}")
            conn.rollback()
            raise
        finally:
            conn.close()

    def close(self) -> None:
        """Close any resources.

        Connections are per unit of work, so there is nothing held open.
        """
        pass
