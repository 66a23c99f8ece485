"""Pydantic models for API requests and responses."""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field

from vaultsync.types import MetadataRecord, SyncResult

# =============================================================================
# Auth Models
# =============================================================================

class AuthRequest(BaseModel):
    """Register or log in from a device."""
    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1, max_length=256)
    device_id: str = Field(..., min_length=1, max_length=128)


class AuthResponse(BaseModel):
    """JWT token response."""
    token: str
    expires_at: int  # Unix seconds
    user_id: str


# =============================================================================
# Metadata Models
# =============================================================================

class MetadataItem(BaseModel):
    """Wire shape of one encrypted metadata record."""
    id: str = Field(..., min_length=1, max_length=128)
    # Older clients send the envelope as "encrypted_data"
    payload: str = Field(..., validation_alias=AliasChoices("payload", "encrypted_data"))
    version: int = Field(..., ge=1)
    last_modified_at: datetime
    is_deleted: bool = False

    def to_record(self, owner: str) -> MetadataRecord:
        return MetadataRecord(
            id=self.id,
            owner=owner,
            payload=self.payload,
            version=self.version,
            last_modified_at=self.last_modified_at,
            is_deleted=self.is_deleted,
        )

    @classmethod
    def from_record(cls, record: MetadataRecord) -> "MetadataItem":
        return cls(
            id=record.id,
            payload=record.payload,
            version=record.version,
            last_modified_at=record.last_modified_at,
            is_deleted=record.is_deleted,
        )


class MetadataCreate(BaseModel):
    """Request to store a new record; the server assigns id and version."""
    payload: str = Field(..., validation_alias=AliasChoices("payload", "encrypted_data"))


class MetadataUpdate(BaseModel):
    """Request to replace a record's payload."""
    payload: str = Field(..., validation_alias=AliasChoices("payload", "encrypted_data"))
    is_deleted: bool = False


class MessageResponse(BaseModel):
    message: str


# =============================================================================
# Sync Models
# =============================================================================

class SyncRequest(BaseModel):
    """A device's batch of locally mutated records."""
    device_id: str | None = None
    items: list[MetadataItem] = []
    sync_token: str | None = None  # Advisory only


class SyncResponse(BaseModel):
    """The caller's full remote view; clients replace their cache with it."""
    updated_items: list[MetadataItem]
    deleted_ids: list[str]
    sync_token: str
    timestamp: datetime

    @classmethod
    def from_result(cls, result: SyncResult) -> "SyncResponse":
        return cls(
            updated_items=[MetadataItem.from_record(r) for r in result.updated_items],
            deleted_ids=result.deleted_ids,
            sync_token=result.sync_token,
            timestamp=result.timestamp,
        )


class SyncStatusResponse(BaseModel):
    """Sync bookkeeping for the caller."""
    last_sync_at: datetime | None
    device_id: str | None
    item_count: int
    sync_token: str | None
