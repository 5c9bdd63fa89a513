"""
Session Cache and Presence Interfaces

Short-lived per-visitor state that sits in front of the durable store:

- SessionCache: one live session entry per visitor, expiring after a
  period of inactivity. Authoritative for session identity once created.
- PresenceTracker: "who is on the page right now" sets with short TTLs.

Implementations live in cache.memory (tests, single process) and
cache.redis_cache (production).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional


@dataclass
class SessionCacheEntry:
    """
    Live state of one visit.

    Timestamps are epoch milliseconds as sent by the browser client.
    slides_viewed keeps insertion order and holds each slide id once.
    """
    session_id: str
    current_slide: str
    started_at: float
    last_active: float
    slides_viewed: List[str] = field(default_factory=list)

    def record_view(self, slide_id: str, timestamp: float) -> None:
        """Move to a slide; revisits do not grow slides_viewed."""
        self.current_slide = slide_id
        self.last_active = timestamp
        if slide_id not in self.slides_viewed:
            self.slides_viewed.append(slide_id)

    @property
    def distinct_slides(self) -> int:
        return len(self.slides_viewed)

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "currentSlide": self.current_slide,
            "startedAt": self.started_at,
            "lastActive": self.last_active,
            "slidesViewed": list(self.slides_viewed),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionCacheEntry":
        return cls(
            session_id=data["sessionId"],
            current_slide=data["currentSlide"],
            started_at=data["startedAt"],
            last_active=data["lastActive"],
            slides_viewed=list(data.get("slidesViewed") or []),
        )


class SessionCache(ABC):
    """Per-visitor live session store with expiry."""

    @abstractmethod
    def get(self, visitor_id: str) -> Optional[SessionCacheEntry]:
        """
        Get the live session of a visitor.

        Args:
            visitor_id: Client visitor identifier

        Returns:
            The entry, or None if it never existed or has expired

        Raises:
            CacheError: If the backend cannot be read
        """
        ...

    @abstractmethod
    def set(self, visitor_id: str, entry: SessionCacheEntry) -> None:
        """
        Store (or overwrite) the live session, restarting its expiry.

        Last write wins; there is no compare-and-set.

        Raises:
            CacheError: If the backend cannot be written
        """
        ...


class PresenceTracker(ABC):
    """Self-expiring sets of currently active visitors."""

    @abstractmethod
    def track(self, visitor_id: str, slide_id: str) -> None:
        """
        Mark a visitor as active, globally and on one slide.

        Each write refreshes the TTL of the whole set it touches.

        Raises:
            CacheError: If the backend cannot be written
        """
        ...

    @abstractmethod
    def current_visitors(self) -> int:
        """Number of distinct visitors active right now."""
        ...

    @abstractmethod
    def slide_breakdown(self, slide_ids: Iterable[str]) -> Dict[str, int]:
        """
        Active visitors per slide.

        Args:
            slide_ids: Slides to look up

        Returns:
            Mapping of slide id to visitor count; slides with nobody on
            them are omitted
        """
        ...
