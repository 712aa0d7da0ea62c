"""
Redis Key Prefix Strategy (Single DB + Key Prefix Pattern)

All docspace data lives in db=0 and is isolated by key prefix, which keeps the
layout Redis Cluster compatible and lets prefix scans stay cheap.

Usage:
    from docspace.db.redis_db import RedisKeyPrefix

    key = RedisKeyPrefix.store_key("documents_office")
    # Result: "docspace:store:documents_office"
"""

from enum import Enum


class RedisKeyPrefix(str, Enum):
    """Redis key prefixes.

    Key format:
        {prefix}:{store_key}

    Examples:
        docspace:store:documents_office
        docspace:store:documents_project_42/drawings
        docspace:store:documents_trash
    """

    # Persistent key/value store backing the local document cache
    STORE = "docspace:store"

    @classmethod
    def store_key(cls, key: str) -> str:
        """Namespaced Redis key for a store key."""
        return f"{cls.STORE.value}:{key}"

    @classmethod
    def strip_store_key(cls, redis_key: str) -> str:
        """Inverse of store_key."""
        return redis_key[len(cls.STORE.value) + 1:]

    @classmethod
    def get_description(cls, prefix: "RedisKeyPrefix") -> str:
        descriptions = {
            cls.STORE: "Local document cache (per-location entry lists)",
        }
        return descriptions.get(prefix, "undefined")
