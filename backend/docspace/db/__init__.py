"""Persistence backends for the local document store."""

from docspace.db.redis_db import RedisKeyPrefix
from docspace.db.redis_factory import create_redis_client

__all__ = ["RedisKeyPrefix", "create_redis_client"]
