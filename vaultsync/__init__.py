"""
vaultsync - Encrypted metadata sync for a single user's devices.

Records travel as AES-GCM envelopes; the server merges them by version
and answers every sync with the owner's full snapshot.
"""

from .catalog import MetadataCatalog, RecordNotFound
from .crypto import EnvelopeCodec
from .storage import SQLiteRecordStore, TransientStoreFailure
from .sync_engine import SyncEngine, ValidationFailure
from .tokens import issue_token
from .types import MetadataRecord, SyncResult, SyncStatus

try:
    from importlib.metadata import version

    __version__ = version("vaultsync")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    "EnvelopeCodec",
    "MetadataCatalog",
    "MetadataRecord",
    "RecordNotFound",
    "SQLiteRecordStore",
    "SyncEngine",
    "SyncResult",
    "SyncStatus",
    "TransientStoreFailure",
    "ValidationFailure",
    "issue_token",
]
