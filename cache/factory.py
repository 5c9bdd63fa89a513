"""
Cache Backend Factory

Builds the session cache and presence tracker once at application startup.
"""

from typing import Tuple

from cache.base import PresenceTracker, SessionCache
from cache.memory import InMemoryPresenceTracker, InMemorySessionCache
from cache.redis_cache import RedisPresenceTracker, RedisSessionCache
from core.config import get_settings
from core.logger import get_logger
from core.redis_client import get_redis_client

logger = get_logger(__name__)


def create_cache_backends() -> Tuple[SessionCache, PresenceTracker]:
    """
    Create the configured session cache and presence tracker.

    CACHE_BACKEND=redis falls back to in-memory storage when Redis is not
    reachable, which only makes sense for a single-process deployment.

    Returns:
        (session_cache, presence_tracker)
    """
    settings = get_settings()
    backend = settings.CACHE_BACKEND.lower()

    if backend == "redis":
        client = get_redis_client()
        if client is not None:
            logger.info("Session cache and presence backed by Redis")
            return RedisSessionCache(client), RedisPresenceTracker(client)
        logger.warning("Redis not available. Falling back to in-memory session cache.")
    elif backend != "memory":
        logger.warning(f"Unknown CACHE_BACKEND '{settings.CACHE_BACKEND}', using in-memory cache")

    return InMemorySessionCache(), InMemoryPresenceTracker()
