"""
Redis Client

Provides a shared Redis client for the session cache and realtime presence.
"""
import redis
from typing import Optional
from functools import lru_cache
from core.config import get_settings
from core.logger import get_logger

logger = get_logger(__name__)


@lru_cache()
def get_redis_client() -> Optional[redis.Redis]:
    """
    Get Redis client instance (singleton).

    Returns:
        Redis client instance or None if Redis is not reachable
    """
    settings = get_settings()

    try:
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,  # Session entries are stored as JSON strings
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30
        )
        client.ping()
        logger.info("Redis connection established")
        return client

    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {str(e)}")
        return None


def is_redis_available() -> bool:
    """
    Check if Redis is available.

    Returns:
        bool: True if Redis answers a ping, False otherwise
    """
    client = get_redis_client()
    if client is None:
        return False

    try:
        client.ping()
        return True
    except redis.RedisError:
        return False
