"""Redis client factory for different deployment modes.

Creates either an in-process FakeRedis (no external service) or a real Redis
client, based on ``settings.store_type``.
"""

import logging

import redis

from docspace.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def create_redis_client(config: Settings | None = None) -> redis.Redis:
    """Create Redis client based on settings.

    Args:
        config: Settings to read connection values from (default: global settings)

    Returns:
        Redis client (either fakeredis or real redis)
    """
    config = config or default_settings

    if config.store_type == "fake":
        import fakeredis

        client = fakeredis.FakeRedis(db=config.redis_index, decode_responses=True)
        logger.info(f"Using FakeRedis (in-memory): db={config.redis_index}")
        return client

    redis_config = {
        "host": config.redis_host,
        "port": config.redis_port,
        "db": config.redis_index,
        "socket_connect_timeout": config.redis_socket_connect_timeout,
        "socket_timeout": config.redis_socket_timeout,
        "decode_responses": True,
    }
    if config.redis_password:
        redis_config["password"] = config.redis_password

    client = redis.Redis(**redis_config)
    logger.info(f"Using real Redis: {config.redis_host}:{config.redis_port}, db={config.redis_index}")
    return client
