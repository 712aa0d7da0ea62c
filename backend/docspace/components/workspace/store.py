"""Persistent key/value store for the local document cache.

Automatically selects between in-memory storage (for local-dev and tests)
and Redis storage (fakeredis or a real instance).

Usage:
    from docspace.components.workspace.store import get_document_store

    store = get_document_store()
    store.set("documents_office", "[]")
    keys = store.keys_with_prefix("documents_")
"""

import logging
import re
import threading
from typing import Protocol

import redis

from docspace.db.redis_db import RedisKeyPrefix
from docspace.db.redis_factory import create_redis_client
from docspace.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

_GLOB_SPECIAL = re.compile(r"([\\*?\[\]])")


class StoreFull(Exception):
    """The backing store refused a write because it is out of space."""


class StoreUnavailable(Exception):
    """The backing store could not be reached; a missing key is NOT reported this way."""


class PersistentKeyValueStore(Protocol):
    """Protocol defining the persistent store interface."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> bool: ...
    def remove(self, key: str) -> bool: ...
    def keys_with_prefix(self, prefix: str) -> list[str]: ...
    def estimate_size(self, key: str, value: str) -> int: ...
    def total_size(self) -> int: ...
    def clear_all(self) -> None: ...


def estimate_entry_size(key: str, value: str) -> int:
    """Bytes a key/value pair occupies: UTF-8 length of key plus value."""
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class MemoryKeyValueStore:
    """Thread-safe in-memory store.

    ``capacity_bytes`` emulates a hard storage quota: a ``set`` that would push
    the total over it raises ``StoreFull`` and leaves the prior value in place.
    """

    def __init__(self, capacity_bytes: int | None = None):
        self._lock = threading.RLock()
        self._data: dict[str, str] = {}
        self.capacity_bytes = capacity_bytes

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> bool:
        with self._lock:
            if self.capacity_bytes is not None:
                existing = self._data.get(key)
                freed = estimate_entry_size(key, existing) if existing is not None else 0
                projected = self.total_size() - freed + estimate_entry_size(key, value)
                if projected > self.capacity_bytes:
                    raise StoreFull(f"{projected} bytes exceeds capacity {self.capacity_bytes}")
            self._data[key] = value
            return True

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys_with_prefix(self, prefix: str) -> list[str]:
        with self._lock:
            return [key for key in self._data if key.startswith(prefix)]

    def estimate_size(self, key: str, value: str) -> int:
        return estimate_entry_size(key, value)

    def total_size(self) -> int:
        with self._lock:
            return sum(estimate_entry_size(k, v) for k, v in self._data.items())

    def clear_all(self) -> None:
        """Clear all data (useful for testing)."""
        with self._lock:
            self._data.clear()


class RedisKeyValueStore:
    """Redis-backed store.

    Keys are namespaced with ``RedisKeyPrefix.STORE``; prefix iteration uses
    SCAN so it never blocks the server. An OOM reply (maxmemory reached) is
    reported as ``StoreFull``. Read failures raise ``StoreUnavailable`` so callers
    never mistake an outage for an empty key.
    """

    def __init__(self, client: redis.Redis | None = None, config: Settings | None = None):
        self._client = client
        self._config = config

    @property
    def client(self) -> redis.Redis:
        """Lazy initialization of the Redis client."""
        if self._client is None:
            self._client = create_redis_client(self._config)
        return self._client

    def get(self, key: str) -> str | None:
        try:
            return self.client.get(RedisKeyPrefix.store_key(key))
        except redis.RedisError as e:
            logger.error(f"Redis get error for key {key}: {e}")
            raise StoreUnavailable(str(e)) from e

    def set(self, key: str, value: str) -> bool:
        try:
            return bool(self.client.set(RedisKeyPrefix.store_key(key), value))
        except redis.ResponseError as e:
            if str(e).startswith("OOM"):
                raise StoreFull(str(e)) from e
            logger.error(f"Redis set error for key {key}: {e}")
            return False
        except redis.RedisError as e:
            logger.error(f"Redis set error for key {key}: {e}")
            return False

    def remove(self, key: str) -> bool:
        try:
            return bool(self.client.delete(RedisKeyPrefix.store_key(key)))
        except redis.RedisError as e:
            logger.error(f"Redis delete error for key {key}: {e}")
            return False

    def keys_with_prefix(self, prefix: str) -> list[str]:
        pattern = RedisKeyPrefix.store_key(_GLOB_SPECIAL.sub(r"\\\1", prefix)) + "*"
        try:
            return [RedisKeyPrefix.strip_store_key(k) for k in self.client.scan_iter(match=pattern)]
        except redis.RedisError as e:
            logger.error(f"Redis scan error for prefix {prefix}: {e}")
            raise StoreUnavailable(str(e)) from e

    def estimate_size(self, key: str, value: str) -> int:
        return estimate_entry_size(key, value)

    def total_size(self) -> int:
        total = 0
        for key in self.keys_with_prefix(""):
            value = self.get(key)
            if value is not None:
                total += estimate_entry_size(key, value)
        return total

    def clear_all(self) -> None:
        """Remove every docspace store key (useful for testing)."""
        keys = [RedisKeyPrefix.store_key(k) for k in self.keys_with_prefix("")]
        if keys:
            self.client.delete(*keys)
        logger.warning(f"Cleared {len(keys)} store keys from Redis")


# Singleton store instance
_document_store: PersistentKeyValueStore | None = None
_store_type: str | None = None


def get_document_store(config: Settings | None = None) -> PersistentKeyValueStore:
    """Get the persistent store selected by configuration.

    Returns:
        MemoryKeyValueStore when store_type == "memory"
        RedisKeyValueStore for "fake" (fakeredis) and "redis"
    """
    global _document_store, _store_type

    if _document_store is not None:
        return _document_store

    config = config or default_settings
    if config.store_type == "memory":
        _document_store = MemoryKeyValueStore()
        logger.info("DocumentStore: Using in-memory storage (single instance only)")
    else:
        _document_store = RedisKeyValueStore(config=config)
        logger.info(f"DocumentStore: Using Redis storage ({config.store_type})")
    _store_type = config.store_type
    return _document_store


def get_store_type() -> str:
    """Get the current storage type ('memory', 'fake' or 'redis')."""
    if _store_type is None:
        get_document_store()
    return _store_type or "unknown"


def reset_document_store() -> None:
    """Reset the store singleton (for testing)."""
    global _document_store, _store_type
    _document_store = None
    _store_type = None
