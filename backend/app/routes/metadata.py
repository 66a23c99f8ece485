"""Per-record metadata routes.

Versions here are assigned by the server. Devices that edit offline should
use /api/sync instead, which keeps client-side version numbers.
"""

from fastapi import APIRouter, HTTPException, status

from vaultsync.catalog import MetadataCatalog, RecordNotFound

from ..auth import CurrentUser
from ..database import Store
from ..logging_config import get_logger
from ..models import MessageResponse, MetadataCreate, MetadataItem, MetadataUpdate

logger = get_logger("vaultsync.metadata")
router = APIRouter(prefix="/api/metadata", tags=["metadata"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Metadata not found")


@router.get("", response_model=list[MetadataItem])
def list_metadata(auth: CurrentUser, store: Store):
    """All of the caller's records, tombstones included."""
    records = MetadataCatalog(store).list_records(auth.user_id)
    return [MetadataItem.from_record(r) for r in records]


@router.get("/{record_id}", response_model=MetadataItem)
def get_metadata(record_id: str, auth: CurrentUser, store: Store):
    try:
        record = MetadataCatalog(store).get_record(auth.user_id, record_id)
    except RecordNotFound:
        raise _not_found()
    return MetadataItem.from_record(record)


@router.post("", response_model=MetadataItem, status_code=status.HTTP_201_CREATED)
def add_metadata(request: MetadataCreate, auth: CurrentUser, store: Store):
    """Store a new record; the server assigns its id and version 1."""
    record = MetadataCatalog(store).add_record(auth.user_id, request.payload)
    return MetadataItem.from_record(record)


@router.put("/{record_id}", response_model=MetadataItem)
def update_metadata(record_id: str, request: MetadataUpdate, auth: CurrentUser, store: Store):
    try:
        record = MetadataCatalog(store).update_record(
            auth.user_id, record_id, request.payload, is_deleted=request.is_deleted
        )
    except RecordNotFound:
        raise _not_found()
    return MetadataItem.from_record(record)


@router.delete("/{record_id}", response_model=MessageResponse)
def delete_metadata(record_id: str, auth: CurrentUser, store: Store):
    """Tombstone a record so other devices see the deletion."""
    try:
        MetadataCatalog(store).delete_record(auth.user_id, record_id)
    except RecordNotFound:
        raise _not_found()
    return MessageResponse(message="Metadata deleted")
