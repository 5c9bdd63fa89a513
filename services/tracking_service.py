"""
Tracking Service

Handles ingestion of browser analytics events:
- session_start: create the durable session and the live cache entry
- page_view: record a slide view with server-computed dwell time
- click / cta_click: record interactions for the live session
- session_end: close the durable session from the unload beacon

The session cache is authoritative for session identity: every event
after session_start is routed by visitor id through the cache, never by
the session id the client echoes back.
"""

from typing import Optional, Type, TypeVar

from fastapi import HTTPException, status
from pydantic import BaseModel, ValidationError

from cache.base import PresenceTracker, SessionCache, SessionCacheEntry
from core.config import get_settings
from core.exceptions import CacheError, StoreError
from core.logger import get_logger
from models.base import from_epoch_ms, now_ms
from models.click_event import ClickEvent
from models.cta_click import CTAClick
from models.page_view import PageView
from repositories.base import AnalyticsStore
from schemas.analytics import (
    CTAClickData,
    ClickData,
    EventType,
    PageViewData,
    SessionEndData,
    SessionStartData,
    TrackEventRequest,
)

logger = get_logger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)

SESSION_NOT_FOUND = "Session not found"
INTERNAL_ERROR = "Internal server error"


def detect_device_type(user_agent: Optional[str]) -> Optional[str]:
    """
    Simple device type detection from user agent.

    Returns: 'mobile', 'tablet', 'desktop', or None without a user agent
    """
    if not user_agent:
        return None

    user_agent_lower = user_agent.lower()

    if any(pattern in user_agent_lower for pattern in ('ipad', 'tablet', 'playbook')):
        return 'tablet'

    mobile_patterns = ['mobile', 'android', 'iphone', 'ipod', 'blackberry', 'windows phone']
    if any(pattern in user_agent_lower for pattern in mobile_patterns):
        return 'mobile'

    return 'desktop'


def _truncate(value: Optional[str], limit: int) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value[:limit] if value else None


def _internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=INTERNAL_ERROR
    )


class TrackingService:
    """Service applying tracking events to the session cache and the store."""

    def __init__(
        self,
        store: AnalyticsStore,
        session_cache: SessionCache,
        presence: PresenceTracker
    ):
        self.store = store
        self.session_cache = session_cache
        self.presence = presence
        self.settings = get_settings()

    def track(self, event: TrackEventRequest) -> dict:
        """
        Apply one event.

        Args:
            event: Parsed event envelope

        Returns:
            dict: {"success": True} plus "sessionId" for session_start

        Raises:
            HTTPException: 400 for unknown kinds, bad payloads and missing
                sessions; 500 when a backend fails
        """
        try:
            event_type = EventType(event.type)
        except ValueError:
            logger.info(f"Rejected event with unknown type '{event.type}' from visitor {event.visitor_id}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Unknown event type"
            )

        timestamp = event.timestamp if event.timestamp is not None else now_ms()
        handlers = {
            EventType.SESSION_START: self.start_session,
            EventType.PAGE_VIEW: self.record_page_view,
            EventType.CLICK: self.record_click,
            EventType.CTA_CLICK: self.record_cta_click,
            EventType.SESSION_END: self.end_session,
        }
        return handlers[event_type](event.visitor_id, timestamp, event.data)

    @staticmethod
    def _parse(model: Type[PayloadT], event_type: EventType, data: dict) -> PayloadT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in e.errors())
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid {event_type.value} payload: {fields}"
            )

    def _touch_presence(self, visitor_id: str, slide_id: str) -> None:
        """Refresh realtime presence. A failure here only degrades the realtime view."""
        try:
            self.presence.track(visitor_id, slide_id)
        except CacheError as e:
            logger.warning(f"Presence update failed for visitor {visitor_id}: {str(e)}")

    def _require_session(self, visitor_id: str, event_type: EventType) -> SessionCacheEntry:
        """Resolve the live session of a visitor or reject the event."""
        try:
            entry = self.session_cache.get(visitor_id)
        except CacheError as e:
            logger.error(f"Session cache read failed for {event_type.value}: {str(e)}")
            raise _internal_error()

        if entry is None:
            logger.info(f"{event_type.value} rejected: no live session for visitor {visitor_id}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=SESSION_NOT_FOUND
            )
        return entry

    def start_session(self, visitor_id: str, timestamp: float, data: dict) -> dict:
        payload = self._parse(SessionStartData, EventType.SESSION_START, data)
        user_agent = _truncate(payload.user_agent, 500)

        try:
            session = self.store.create_session(
                visitor_id=visitor_id,
                started_at=from_epoch_ms(timestamp),
                entry_slide=payload.entry_slide,
                device_type=payload.device_type or detect_device_type(user_agent),
                user_agent=user_agent,
                referrer=_truncate(payload.referrer, 1000) or "direct",
            )
        except StoreError as e:
            logger.error(f"Error creating session for visitor {visitor_id}: {str(e)}")
            raise _internal_error()

        session_id = session.id
        entry = SessionCacheEntry(
            session_id=session_id,
            current_slide=payload.entry_slide,
            started_at=timestamp,
            last_active=timestamp,
            slides_viewed=[payload.entry_slide],
        )
        try:
            self.session_cache.set(visitor_id, entry)
        except CacheError as e:
            # The durable session exists but will never receive events
            logger.error(f"Session {session_id} abandoned, cache write failed: {str(e)}")
            raise _internal_error()
        self._touch_presence(visitor_id, payload.entry_slide)

        logger.debug(
            f"Session started: {session_id} for visitor {visitor_id}",
            extra={"session_id": session_id, "entry_slide": payload.entry_slide}
        )
        return {"success": True, "sessionId": session_id}

    def record_page_view(self, visitor_id: str, timestamp: float, data: dict) -> dict:
        payload = self._parse(PageViewData, EventType.PAGE_VIEW, data)
        entry = self._require_session(visitor_id, EventType.PAGE_VIEW)

        # Dwell time on the slide being left, by processing order
        duration_ms = max(0, int(round(timestamp - entry.last_active)))

        try:
            self.store.add_page_view(PageView(
                session_id=entry.session_id,
                slide_id=payload.slide_id,
                slide_type=payload.slide_type,
                parent_slide_id=payload.parent_slide_id,
                viewed_at=from_epoch_ms(timestamp),
                duration_ms=duration_ms,
                scroll_direction=payload.scroll_direction,
            ))
        except StoreError as e:
            logger.error(f"Error creating page view for session {entry.session_id}: {str(e)}")
            raise _internal_error()

        entry.record_view(payload.slide_id, timestamp)
        try:
            self.session_cache.set(visitor_id, entry)
        except CacheError as e:
            logger.error(f"Session cache update failed for session {entry.session_id}: {str(e)}")
            raise _internal_error()
        self._touch_presence(visitor_id, payload.slide_id)

        logger.debug(f"Page view: session {entry.session_id} -> slide {payload.slide_id} ({duration_ms}ms)")
        return {"success": True}

    def record_click(self, visitor_id: str, timestamp: float, data: dict) -> dict:
        payload = self._parse(ClickData, EventType.CLICK, data)
        entry = self._require_session(visitor_id, EventType.CLICK)

        try:
            self.store.add_click_event(ClickEvent(
                session_id=entry.session_id,
                slide_id=payload.slide_id,
                x_percent=payload.x_percent,
                y_percent=payload.y_percent,
                element_type=payload.element_type,
                element_text=_truncate(payload.element_text, self.settings.ELEMENT_TEXT_MAX_LENGTH),
                clicked_at=from_epoch_ms(timestamp),
            ))
        except StoreError as e:
            logger.error(f"Error creating click event for session {entry.session_id}: {str(e)}")
            raise _internal_error()

        return {"success": True}

    def record_cta_click(self, visitor_id: str, timestamp: float, data: dict) -> dict:
        payload = self._parse(CTAClickData, EventType.CTA_CLICK, data)
        entry = self._require_session(visitor_id, EventType.CTA_CLICK)

        try:
            self.store.add_cta_click(CTAClick(
                session_id=entry.session_id,
                slide_id=payload.slide_id,
                cta_text=payload.cta_text,
                cta_action=payload.cta_action,
                cta_href=payload.cta_href,
                clicked_at=from_epoch_ms(timestamp),
            ))
        except StoreError as e:
            logger.error(f"Error creating CTA click for session {entry.session_id}: {str(e)}")
            raise _internal_error()

        logger.debug(f"CTA click: session {entry.session_id} '{payload.cta_action}' on slide {payload.slide_id}")
        return {"success": True}

    def end_session(self, visitor_id: str, timestamp: float, data: dict) -> dict:
        """
        Close the durable session.

        The cache entry is left to expire on its own. If the cache already
        expired the event is rejected and the session stays open for good.
        """
        payload = self._parse(SessionEndData, EventType.SESSION_END, data)
        entry = self._require_session(visitor_id, EventType.SESSION_END)

        try:
            found = self.store.close_session(
                session_id=entry.session_id,
                ended_at=from_epoch_ms(timestamp),
                exit_slide=payload.exit_slide,
                total_slides_viewed=entry.distinct_slides,
            )
        except StoreError as e:
            logger.error(f"Error closing session {entry.session_id}: {str(e)}")
            raise _internal_error()

        if not found:
            logger.warning(f"session_end for {entry.session_id} matched no stored session (data reset?)")

        logger.debug(f"Session ended: {entry.session_id} at slide {payload.exit_slide} ({entry.distinct_slides} slides)")
        return {"success": True}
