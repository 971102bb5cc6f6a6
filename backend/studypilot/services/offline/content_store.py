"""
Local Content Store

Everything the device keeps between syncs lives here, one JSON document
per key in a KeyValueStorage:

    offline_content              SyncableContent snapshot (camelCase wire form)
    offline_items                individually saved OfflineItems
    sync_history                 last SYNC_HISTORY_LIMIT SyncLogEntries
    processing_status:{id}       cached task list for a material

The snapshot is only ever replaced whole, in a single write.
"""

import json
import logging
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from studypilot.core.config import settings
from studypilot.core.exceptions import StorageLimitExceededError
from studypilot.schemas.processing import ProcessingTaskRead
from studypilot.schemas.sync import OfflineItem, StorageUsage, SyncableContent, SyncLogEntry
from studypilot.services.storage.key_value import KeyValueStorage

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "offline_content"
OFFLINE_ITEMS_KEY = "offline_items"
SYNC_HISTORY_KEY = "sync_history"
PROCESSING_STATUS_PREFIX = "processing_status:"

SYNC_HISTORY_LIMIT = 10

_items_adapter = TypeAdapter(List[OfflineItem])
_history_adapter = TypeAdapter(List[SyncLogEntry])
_tasks_adapter = TypeAdapter(List[ProcessingTaskRead])


class LocalContentStore:
    """Typed access to locally persisted offline state."""

    def __init__(self, storage: KeyValueStorage, max_storage_bytes: Optional[int] = None):
        self.storage = storage
        self.max_storage_bytes = (
            max_storage_bytes if max_storage_bytes is not None
            else settings.OFFLINE_STORAGE_MAX_BYTES
        )

    # ========================================
    # Snapshot
    # ========================================

    async def load_snapshot(self) -> Optional[SyncableContent]:
        """
        Return the stored snapshot, or None.

        A document that no longer parses is logged and treated as absent so
        the next sync can replace it.
        """
        raw = await self.storage.get(SNAPSHOT_KEY)
        if raw is None:
            return None
        try:
            return SyncableContent.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Stored offline content is unreadable: {e}")
            return None

    async def save_snapshot(self, content: SyncableContent) -> None:
        await self.storage.set(SNAPSHOT_KEY, content.model_dump_json(by_alias=True))

    async def clear_snapshot(self) -> None:
        await self.storage.remove(SNAPSHOT_KEY)

    # ========================================
    # Offline items
    # ========================================

    async def list_items(self) -> List[OfflineItem]:
        raw = await self.storage.get(OFFLINE_ITEMS_KEY)
        if raw is None:
            return []
        return _items_adapter.validate_json(raw)

    async def get_item(self, item_id: str) -> Optional[OfflineItem]:
        for item in await self.list_items():
            if item.id == item_id:
                return item
        return None

    async def save_item(self, item: OfflineItem) -> None:
        """
        Save an item, replacing any stored item with the same id.

        Raises:
            StorageLimitExceededError: if the resulting document would exceed
                the configured cap. Nothing is written in that case.
        """
        items = [existing for existing in await self.list_items() if existing.id != item.id]
        items.append(item)

        payload = _items_adapter.dump_json(items)
        if len(payload) > self.max_storage_bytes:
            raise StorageLimitExceededError(len(payload), self.max_storage_bytes)

        await self.storage.set(OFFLINE_ITEMS_KEY, payload.decode("utf-8"))

    async def remove_item(self, item_id: str) -> None:
        items = [item for item in await self.list_items() if item.id != item_id]
        await self.storage.set(OFFLINE_ITEMS_KEY, _items_adapter.dump_json(items).decode("utf-8"))

    async def clear_items(self) -> None:
        await self.storage.remove(OFFLINE_ITEMS_KEY)

    async def get_storage_usage(self) -> StorageUsage:
        used = len(_items_adapter.dump_json(await self.list_items()))
        return StorageUsage(
            used=used,
            total=self.max_storage_bytes,
            percentage=(used / self.max_storage_bytes) * 100 if self.max_storage_bytes else 0.0,
        )

    # ========================================
    # Sync history
    # ========================================

    async def get_sync_history(self) -> List[SyncLogEntry]:
        """Most recent first."""
        raw = await self.storage.get(SYNC_HISTORY_KEY)
        if raw is None:
            return []
        try:
            return _history_adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable sync history: {e}")
            return []

    async def append_sync_log(self, entry: SyncLogEntry) -> None:
        history = [entry, *await self.get_sync_history()][:SYNC_HISTORY_LIMIT]
        await self.storage.set(SYNC_HISTORY_KEY, _history_adapter.dump_json(history).decode("utf-8"))

    # ========================================
    # Cached processing status
    # ========================================

    async def save_task_status(self, material_id: int, tasks: List[ProcessingTaskRead]) -> None:
        await self.storage.set(
            f"{PROCESSING_STATUS_PREFIX}{material_id}",
            _tasks_adapter.dump_json(tasks).decode("utf-8"),
        )

    async def load_task_status(self, material_id: int) -> Optional[List[ProcessingTaskRead]]:
        raw = await self.storage.get(f"{PROCESSING_STATUS_PREFIX}{material_id}")
        if raw is None:
            return None
        return _tasks_adapter.validate_json(raw)
