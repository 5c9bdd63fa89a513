"""
Redis Session Cache and Presence

Production backends. Key layout:

- session:{visitorId}         JSON session entry, EX = session TTL
- realtime:visitors           SET of visitor ids, EXPIRE refreshed on write
- realtime:slide:{slideId}    SET of visitor ids per slide
"""

import json
from typing import Dict, Iterable, Optional

import redis

from cache.base import PresenceTracker, SessionCache, SessionCacheEntry
from core.config import get_settings
from core.exceptions import CacheError
from core.logger import get_logger

logger = get_logger(__name__)

SESSION_KEY = "session:{visitor_id}"
REALTIME_VISITORS_KEY = "realtime:visitors"
SLIDE_VISITORS_KEY = "realtime:slide:{slide_id}"


class RedisSessionCache(SessionCache):
    """Session cache stored as one JSON string per visitor."""

    def __init__(self, client: redis.Redis, ttl_seconds: Optional[int] = None):
        self._client = client
        self._ttl = ttl_seconds if ttl_seconds is not None else get_settings().SESSION_CACHE_TTL_SECONDS

    def get(self, visitor_id: str) -> Optional[SessionCacheEntry]:
        try:
            raw = self._client.get(SESSION_KEY.format(visitor_id=visitor_id))
        except redis.RedisError as e:
            raise CacheError(f"Failed to read session cache: {e}") from e

        if raw is None:
            return None
        try:
            return SessionCacheEntry.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError):
            # An unreadable entry is treated as expired
            logger.warning(f"Discarding malformed session cache entry for visitor {visitor_id}")
            return None

    def set(self, visitor_id: str, entry: SessionCacheEntry) -> None:
        try:
            self._client.set(
                SESSION_KEY.format(visitor_id=visitor_id),
                json.dumps(entry.to_dict()),
                ex=self._ttl
            )
        except redis.RedisError as e:
            raise CacheError(f"Failed to write session cache: {e}") from e


class RedisPresenceTracker(PresenceTracker):
    """Realtime visitor sets with whole-key TTLs."""

    def __init__(
        self,
        client: redis.Redis,
        visitor_ttl_seconds: Optional[int] = None,
        slide_ttl_seconds: Optional[int] = None
    ):
        settings = get_settings()
        self._client = client
        self._visitor_ttl = visitor_ttl_seconds if visitor_ttl_seconds is not None else settings.REALTIME_VISITOR_TTL_SECONDS
        self._slide_ttl = slide_ttl_seconds if slide_ttl_seconds is not None else settings.SLIDE_VISITOR_TTL_SECONDS

    def track(self, visitor_id: str, slide_id: str) -> None:
        slide_key = SLIDE_VISITORS_KEY.format(slide_id=slide_id)
        try:
            pipe = self._client.pipeline()
            pipe.sadd(REALTIME_VISITORS_KEY, visitor_id)
            pipe.expire(REALTIME_VISITORS_KEY, self._visitor_ttl)
            pipe.sadd(slide_key, visitor_id)
            pipe.expire(slide_key, self._slide_ttl)
            pipe.execute()
        except redis.RedisError as e:
            raise CacheError(f"Failed to update realtime presence: {e}") from e

    def current_visitors(self) -> int:
        try:
            return int(self._client.scard(REALTIME_VISITORS_KEY))
        except redis.RedisError as e:
            raise CacheError(f"Failed to read realtime presence: {e}") from e

    def slide_breakdown(self, slide_ids: Iterable[str]) -> Dict[str, int]:
        slide_ids = list(slide_ids)
        if not slide_ids:
            return {}
        try:
            pipe = self._client.pipeline()
            for slide_id in slide_ids:
                pipe.scard(SLIDE_VISITORS_KEY.format(slide_id=slide_id))
            counts = pipe.execute()
        except redis.RedisError as e:
            raise CacheError(f"Failed to read slide presence: {e}") from e
        return {
            slide_id: int(count)
            for slide_id, count in zip(slide_ids, counts)
            if count
        }
