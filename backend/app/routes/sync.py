"""Sync routes for device-to-server metadata reconciliation."""

from typing import Annotated

from fastapi import APIRouter, Depends

from vaultsync.storage import TransientStoreFailure
from vaultsync.sync_engine import SyncEngine, ValidationFailure

from ..auth import CurrentUser
from ..config import Settings, get_settings
from ..database import Store, get_user
from ..logging_config import get_logger, log_sync_operation
from ..models import SyncRequest, SyncResponse, SyncStatusResponse

logger = get_logger("vaultsync.sync")
router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.post("", response_model=SyncResponse)
def sync_metadata(
    request: SyncRequest,
    auth: CurrentUser,
    store: Store,
    settings: Annotated[Settings, Depends(get_settings)],
):
    """
    Merge the device's records and return the caller's full snapshot.

    For each submitted record:
    - unknown id: stored as sent
    - higher version than the server's: overwrites the server copy
    - same or lower version: ignored, the server copy stands

    The response is the complete remote view (not a delta); clients replace
    their cache with updated_items and drop everything in deleted_ids.
    """
    log_prefix = auth.log_prefix
    if request.device_id:
        log_prefix = f"{log_prefix}@{request.device_id}"
    logger.info(f"SYNC | {log_prefix} | {len(request.items)} items")

    engine = SyncEngine(store, max_attempts=settings.sync_max_attempts)
    try:
        result = engine.sync(
            auth.user_id,
            [item.to_record(auth.user_id) for item in request.items],
            sync_token=request.sync_token,
        )
    except (ValidationFailure, TransientStoreFailure) as e:
        log_sync_operation(log_prefix, "sync", len(request.items), False, str(e))
        raise

    log_sync_operation(log_prefix, "sync", len(request.items), True)
    return SyncResponse.from_result(result)


@router.get("/status", response_model=SyncStatusResponse)
def sync_status(auth: CurrentUser, store: Store):
    """Last sync time, live record count and current token for the caller."""
    status = SyncEngine(store).status(auth.user_id)
    user = get_user(store, auth.user_id)

    return SyncStatusResponse(
        last_sync_at=status.last_sync_at,
        device_id=user["device_id"] if user else None,
        item_count=status.item_count,
        sync_token=status.sync_token,
    )
