"""
Sync API Routes

This module exposes the offline content sync to clients:
- Trigger a sync
- Inspect the local snapshot and sync history
- Read one content type from the snapshot
- Save, list and remove individually stored offline items
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Query, status

from studypilot.api.deps import Container
from studypilot.core.exceptions import NoOfflineContentError, StorageLimitExceededError
from studypilot.schemas.sync import (
    Entity,
    OfflineContentView,
    OfflineItem,
    StorageUsage,
    SyncLogEntry,
    SyncResult,
    SyncStatusResponse,
)
from studypilot.services.sync.coordinator import NO_CONNECTION, SYNC_IN_PROGRESS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])

_FAILURE_STATUS = {
    SYNC_IN_PROGRESS: status.HTTP_409_CONFLICT,
    NO_CONNECTION: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@router.post("", response_model=SyncResult)
async def trigger_sync(container: Container):
    """
    Run a sync now.

    Returns:
        The merged snapshot on success

    Raises:
        409 if a sync is already running, 503 if offline or the sync failed
    """
    result = await container.sync_coordinator.force_sync_content()
    if not result.success:
        raise HTTPException(
            status_code=_FAILURE_STATUS.get(result.error, status.HTTP_503_SERVICE_UNAVAILABLE),
            detail=result.error,
        )
    return result


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(container: Container):
    """Whether content is available offline, and when it was last synced."""
    content = await container.sync_coordinator.get_local_content()
    if content is None:
        return SyncStatusResponse(available_offline=False)
    return SyncStatusResponse(
        available_offline=True,
        last_sync=content.last_sync_timestamp,
        entity_counts=content.entity_counts(),
    )


@router.get("/history", response_model=List[SyncLogEntry])
async def get_sync_history(
    container: Container,
    limit: int = Query(default=10, ge=1, le=10),
):
    """Most recent sync attempts first."""
    return await container.sync_coordinator.get_sync_history(limit=limit)


@router.get("/content/{key}", response_model=List[Entity])
async def get_offline_content(key: str, container: Container):
    """One entity array from the local snapshot."""
    try:
        return await container.sync_coordinator.get_offline_content(key)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except NoOfflineContentError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/content/{key}/view", response_model=OfflineContentView)
async def load_content(key: str, container: Container):
    """Cached content for one type, refreshed by a sync when online."""
    try:
        return await container.sync_coordinator.load_content(key)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# ================================
# Offline items
# ================================

@router.get("/items", response_model=List[OfflineItem])
async def list_offline_items(container: Container):
    return await container.content_store.list_items()


@router.post("/items", response_model=OfflineItem, status_code=status.HTTP_201_CREATED)
async def save_offline_item(item: OfflineItem, container: Container):
    """
    Store an item for offline use, replacing one with the same id.

    Raises:
        507 if the stored items would exceed the storage cap
    """
    try:
        await container.content_store.save_item(item)
    except StorageLimitExceededError as e:
        logger.warning(f"Offline item {item.id} rejected: {e}")
        raise HTTPException(status_code=status.HTTP_507_INSUFFICIENT_STORAGE, detail=str(e))
    return item


@router.get("/items/usage", response_model=StorageUsage)
async def get_storage_usage(container: Container):
    return await container.content_store.get_storage_usage()


@router.get("/items/{item_id}", response_model=OfflineItem)
async def get_offline_item(item_id: str, container: Container):
    item = await container.content_store.get_item(item_id)
    if item is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Offline item {item_id} not found",
        )
    return item


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_offline_item(item_id: str, container: Container):
    await container.content_store.remove_item(item_id)


@router.delete("/items", status_code=status.HTTP_204_NO_CONTENT)
async def clear_offline_items(container: Container):
    await container.content_store.clear_items()
