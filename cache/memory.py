"""
In-Memory Session Cache and Presence

Single-process backends with lazy expiry. Used by the test-suite and when
CACHE_BACKEND=memory (local development without Redis).
"""

import threading
import time
from typing import Callable, Dict, Iterable, Optional, Set, Tuple

from cache.base import PresenceTracker, SessionCache, SessionCacheEntry
from core.config import get_settings

Clock = Callable[[], float]


class InMemorySessionCache(SessionCache):
    """
    Dict-backed session cache.

    Entries are copied on the way in and out so callers never share a
    mutable entry with the cache, matching the Redis round-trip.
    """

    def __init__(self, ttl_seconds: Optional[int] = None, clock: Clock = time.monotonic):
        self._ttl = ttl_seconds if ttl_seconds is not None else get_settings().SESSION_CACHE_TTL_SECONDS
        self._clock = clock
        self._entries: Dict[str, Tuple[float, dict]] = {}
        self._lock = threading.Lock()

    def get(self, visitor_id: str) -> Optional[SessionCacheEntry]:
        with self._lock:
            item = self._entries.get(visitor_id)
            if item is None:
                return None
            expires_at, data = item
            if self._clock() >= expires_at:
                del self._entries[visitor_id]
                return None
            return SessionCacheEntry.from_dict(data)

    def set(self, visitor_id: str, entry: SessionCacheEntry) -> None:
        with self._lock:
            self._entries[visitor_id] = (self._clock() + self._ttl, entry.to_dict())


class _ExpiringSet:
    """A set whose whole content expires together, like a Redis key with EXPIRE."""

    def __init__(self):
        self.members: Set[str] = set()
        self.expires_at = 0.0


class InMemoryPresenceTracker(PresenceTracker):
    """Dict-of-sets presence tracker with whole-key TTL refresh on write."""

    def __init__(
        self,
        visitor_ttl_seconds: Optional[int] = None,
        slide_ttl_seconds: Optional[int] = None,
        clock: Clock = time.monotonic
    ):
        settings = get_settings()
        self._visitor_ttl = visitor_ttl_seconds if visitor_ttl_seconds is not None else settings.REALTIME_VISITOR_TTL_SECONDS
        self._slide_ttl = slide_ttl_seconds if slide_ttl_seconds is not None else settings.SLIDE_VISITOR_TTL_SECONDS
        self._clock = clock
        self._visitors = _ExpiringSet()
        self._slides: Dict[str, _ExpiringSet] = {}
        self._lock = threading.Lock()

    def _live_members(self, bucket: Optional[_ExpiringSet]) -> Set[str]:
        if bucket is None or self._clock() >= bucket.expires_at:
            return set()
        return bucket.members

    def _add(self, bucket: _ExpiringSet, visitor_id: str, ttl: int) -> None:
        now = self._clock()
        if now >= bucket.expires_at:
            bucket.members = set()
        bucket.members.add(visitor_id)
        bucket.expires_at = now + ttl

    def track(self, visitor_id: str, slide_id: str) -> None:
        with self._lock:
            self._add(self._visitors, visitor_id, self._visitor_ttl)
            bucket = self._slides.setdefault(slide_id, _ExpiringSet())
            self._add(bucket, visitor_id, self._slide_ttl)

    def current_visitors(self) -> int:
        with self._lock:
            return len(self._live_members(self._visitors))

    def slide_breakdown(self, slide_ids: Iterable[str]) -> Dict[str, int]:
        breakdown = {}
        with self._lock:
            for slide_id in slide_ids:
                count = len(self._live_members(self._slides.get(slide_id)))
                if count > 0:
                    breakdown[slide_id] = count
        return breakdown
