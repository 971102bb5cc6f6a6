"""Key-value storage backends."""

from studypilot.services.storage.key_value import KeyValueStorage, RedisKeyValueStorage

__all__ = ["KeyValueStorage", "RedisKeyValueStorage"]
