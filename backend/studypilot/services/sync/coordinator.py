"""
Sync Coordinator

Keeps the local snapshot in step with the server:

    Idle --perform_sync--> Syncing --success--> Idle (snapshot replaced)
                              |
                              +--failure--> Idle (snapshot unchanged)

Only one sync runs at a time; a second caller gets an immediate "Sync
already in progress" result instead of waiting. Each coordinator checks its
own asyncio lock first, then the shared SyncLock that the web process and
the Celery workers all contend for. There is no internal retry; the periodic
background task is the retry.
"""

import asyncio
from datetime import timedelta
from typing import Callable, List, Optional

from studypilot.core.config import settings
from studypilot.core.exceptions import NoOfflineContentError
from studypilot.core.logging import get_logger
from studypilot.db.base import utcnow
from studypilot.schemas.sync import (
    CONTENT_KEYS,
    Entity,
    OfflineContentView,
    SyncableContent,
    SyncLogEntry,
    SyncResult,
)
from studypilot.services.offline.content_store import SYNC_HISTORY_LIMIT, LocalContentStore
from studypilot.services.sync.lock import SyncLock
from studypilot.services.sync.merge import current_time_ms, merge_content
from studypilot.services.sync.network import ReachabilityOracle
from studypilot.services.sync.remote import RemoteDeltaSource
from studypilot.services.sync.scheduler import BackgroundScheduler

logger = get_logger(__name__)

BACKGROUND_SYNC_TASK = "background-sync"
SYNC_TASK_NAME = "sync.perform_sync"

SYNC_IN_PROGRESS = "Sync already in progress"
NO_CONNECTION = "No internet connection"
SYNC_FAILED = "Sync failed"


class SyncCoordinator:
    """
    Pulls remote deltas and merges them into the local content store.

    Collaborators are passed in explicitly; build one per process (see
    studypilot.services.container).
    """

    def __init__(
        self,
        store: LocalContentStore,
        oracle: ReachabilityOracle,
        delta_source: RemoteDeltaSource,
        scheduler: BackgroundScheduler,
        sync_interval: Optional[timedelta] = None,
        clock: Callable[[], int] = current_time_ms,
        lock: Optional[SyncLock] = None,
    ):
        self.store = store
        self.oracle = oracle
        self.delta_source = delta_source
        self.scheduler = scheduler
        self.sync_interval = sync_interval or timedelta(minutes=settings.SYNC_INTERVAL_MINUTES)
        self.clock = clock
        self.lock = lock

        self._lock = asyncio.Lock()
        self._initialized = False

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    def initialize(self) -> None:
        """Register the periodic background sync. Later calls do nothing."""
        if self._initialized:
            return
        self.scheduler.register(BACKGROUND_SYNC_TASK, self.sync_interval, SYNC_TASK_NAME)
        self._initialized = True
        logger.info("background_sync_registered", interval_seconds=self.sync_interval.total_seconds())

    # ========================================
    # Sync
    # ========================================

    async def perform_sync(self) -> SyncResult:
        """
        Run one sync attempt. Never raises.

        On the very first sync there is no local snapshot to merge into, so
        the remote arrays are kept as they are but ``last_sync_timestamp`` is
        set from this coordinator's clock. ``synced_data`` therefore differs
        from ``merge_content(None, remote)`` in that one field.

        Returns:
            SyncResult with the merged snapshot on success, otherwise one of
            "Sync already in progress", "No internet connection" or
            "Sync failed".
        """
        if self._lock.locked():
            logger.info("sync_skipped_in_progress")
            return SyncResult(success=False, error=SYNC_IN_PROGRESS)

        async with self._lock:
            try:
                acquired = self.lock is None or await self.lock.acquire()
            except Exception as e:
                logger.error("sync_lock_unavailable", error=str(e), exc_info=True)
                return SyncResult(success=False, error=SYNC_FAILED)

            if not acquired:
                logger.info("sync_skipped_in_progress", held_elsewhere=True)
                return SyncResult(success=False, error=SYNC_IN_PROGRESS)

            try:
                return await self._sync_once()
            finally:
                await self._release_lock()

    async def _sync_once(self) -> SyncResult:
        try:
            connected = await self.oracle.is_connected()
        except Exception as e:
            logger.error("connectivity_check_failed", error=str(e), exc_info=True)
            return SyncResult(success=False, error=SYNC_FAILED)

        if not connected:
            logger.info("sync_skipped_offline")
            return SyncResult(success=False, error=NO_CONNECTION)

        started_at = utcnow()
        try:
            merged = await self._pull_and_merge()
        except Exception as e:
            logger.error("sync_failed", error=str(e), exc_info=True)
            result = SyncResult(success=False, error=SYNC_FAILED)
            await self._record(started_at, result, error_detail=str(e))
            return result

        logger.info("sync_completed", **merged.entity_counts())
        result = SyncResult(success=True, synced_data=merged)
        await self._record(started_at, result)
        return result

    async def _release_lock(self) -> None:
        if self.lock is None:
            return
        try:
            await self.lock.release()
        except Exception as e:
            logger.error("sync_lock_release_failed", error=str(e), exc_info=True)

    async def _pull_and_merge(self) -> SyncableContent:
        local = await self.store.load_snapshot()
        last_sync = local.last_sync_timestamp if local else 0

        remote = await self.delta_source.fetch_since(last_sync)

        synced_at = self.clock()
        merged = merge_content(local, remote, now_ms=synced_at)
        if local is None:
            # First sync keeps the remote arrays but is stamped locally
            merged = merged.model_copy(update={"last_sync_timestamp": synced_at})

        await self.store.save_snapshot(merged)
        return merged

    async def _record(
        self,
        started_at,
        result: SyncResult,
        error_detail: Optional[str] = None,
    ) -> None:
        entry = SyncLogEntry(
            started_at=started_at,
            completed_at=utcnow(),
            success=result.success,
            error=error_detail or result.error,
            entity_counts=result.synced_data.entity_counts() if result.synced_data else {},
        )
        try:
            await self.store.append_sync_log(entry)
        except Exception as e:
            logger.warning("sync_history_write_failed", error=str(e))

    async def force_sync_content(self) -> SyncResult:
        return await self.perform_sync()

    # ========================================
    # Local content
    # ========================================

    async def get_local_content(self) -> Optional[SyncableContent]:
        return await self.store.load_snapshot()

    async def clear_local_content(self) -> None:
        await self.store.clear_snapshot()
        logger.info("local_content_cleared")

    async def is_content_available_offline(self) -> bool:
        return await self.store.load_snapshot() is not None

    async def get_offline_content(self, key: str) -> List[Entity]:
        """
        Return one entity array from the local snapshot.

        Raises:
            ValueError: if key is not one of topics, explanations, progress, quizzes
            NoOfflineContentError: if nothing has been synced yet
        """
        if key not in CONTENT_KEYS:
            raise ValueError(f"Unknown content key: {key}")
        content = await self.store.load_snapshot()
        if content is None:
            raise NoOfflineContentError()
        return content.entities(key)

    async def get_sync_history(self, limit: int = SYNC_HISTORY_LIMIT) -> List[SyncLogEntry]:
        history = await self.store.get_sync_history()
        return history[:limit]

    async def load_content(self, key: str) -> OfflineContentView:
        """
        Offline-first read of one content type.

        Cached data is returned as is when offline. When online a sync is
        attempted and, if it succeeds, the view carries the fresh data. A
        failed sync only sets ``error`` when there is no cached data.
        """
        if key not in CONTENT_KEYS:
            raise ValueError(f"Unknown content key: {key}")

        view = OfflineContentView(content_type=key)

        local = await self.store.load_snapshot()
        if local is not None:
            view.data = local.entities(key)
            view.last_sync = local.last_sync_timestamp

        try:
            connected = await self.oracle.is_connected()
        except Exception as e:
            logger.warning("connectivity_check_failed", error=str(e))
            connected = False
        view.is_offline = not connected

        if connected:
            result = await self.perform_sync()
            if result.success and result.synced_data is not None:
                view.data = result.synced_data.entities(key)
                view.last_sync = result.synced_data.last_sync_timestamp
            elif view.data is None:
                view.error = result.error or SYNC_FAILED

        return view
