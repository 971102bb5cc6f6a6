"""
Cross-process sync lock.

The web process and every Celery sync task write the same snapshot, so the
coordinator's in-process guard is backed by a lock in Redis. Acquisition
never waits: a second holder is told the sync is already running.

The lock expires after SYNC_LOCK_TIMEOUT_SECONDS so a worker that dies mid
sync cannot block later ones.
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from redis.asyncio import Redis
from redis.exceptions import LockError

from studypilot.core.config import settings

logger = logging.getLogger(__name__)


@runtime_checkable
class SyncLock(Protocol):
    async def acquire(self) -> bool:
        """Take the lock without waiting. Return False if someone holds it."""
        ...

    async def release(self) -> None:
        ...


class RedisSyncLock:
    """SyncLock on a redis.asyncio lock, one lock object per acquisition."""

    def __init__(
        self,
        redis: Redis,
        name: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.redis = redis
        self.name = name or f"{settings.LOCAL_STORE_NAMESPACE}:sync-lock"
        self.timeout = timeout if timeout is not None else settings.SYNC_LOCK_TIMEOUT_SECONDS
        self._held = None

    async def acquire(self) -> bool:
        lock = self.redis.lock(self.name, timeout=self.timeout, blocking=False)
        if not await lock.acquire():
            return False
        self._held = lock
        return True

    async def release(self) -> None:
        lock, self._held = self._held, None
        if lock is None:
            return
        try:
            await lock.release()
        except LockError as e:
            # Expired and possibly taken by another sync
            logger.warning(f"Sync lock {self.name} was lost before release: {e}")
