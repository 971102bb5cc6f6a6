"""
Durable key-value storage.

KeyValueStorage is the string-in/string-out contract the local content
store is written against. RedisKeyValueStorage implements it on redis.asyncio
under a key namespace so several stores can share one Redis database.
"""

import logging
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from redis.asyncio import Redis

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStorage(Protocol):
    """Async string key-value storage."""

    async def get(self, key: str) -> Optional[str]:
        """Return the value stored under key, or None."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Replace the value stored under key in a single write."""
        ...

    async def remove(self, key: str) -> None:
        ...

    async def get_all_keys(self) -> List[str]:
        ...

    async def multi_remove(self, keys: Sequence[str]) -> None:
        ...


class RedisKeyValueStorage:
    """
    KeyValueStorage backed by Redis.

    Keys are stored as ``{namespace}:{key}``; get_all_keys() returns them
    without the prefix. The client must be created with decode_responses=True
    (see studypilot.db.redis.create_redis).
    """

    def __init__(self, redis: Redis, namespace: str = "studypilot"):
        self.redis = redis
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(self._key(key))

    async def set(self, key: str, value: str) -> None:
        await self.redis.set(self._key(key), value)

    async def remove(self, key: str) -> None:
        await self.redis.delete(self._key(key))

    async def get_all_keys(self) -> List[str]:
        prefix = f"{self.namespace}:"
        keys = []
        async for full_key in self.redis.scan_iter(match=f"{prefix}*"):
            keys.append(full_key[len(prefix):])
        return keys

    async def multi_remove(self, keys: Sequence[str]) -> None:
        if not keys:
            return
        await self.redis.delete(*(self._key(k) for k in keys))
        logger.debug(f"Removed {len(keys)} keys from {self.namespace}")
