"""
Tracking Service Tests

Session lifecycle, dwell time, rejection paths and backend failures,
exercised against the in-memory store and cache.
"""

from datetime import datetime, timezone

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from cache.memory import InMemoryPresenceTracker, InMemorySessionCache
from core.exceptions import CacheError, StoreError
from repositories.memory_store import InMemoryAnalyticsStore
from schemas.analytics import MAX_TIMESTAMP_MS, TrackEventRequest
from services.tracking_service import TrackingService, detect_device_type

T0 = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc).timestamp() * 1000


def _event(event_type: str, timestamp: float, visitor_id: str = "visitor-1", **data) -> TrackEventRequest:
    return TrackEventRequest.model_validate({
        "type": event_type,
        "visitorId": visitor_id,
        "timestamp": timestamp,
        "data": data,
    })


def _stored_session(store, session_id: str):
    sessions = store.list_sessions(datetime(2000, 1, 1), datetime(2100, 1, 1))
    return next((s for s in sessions if s.id == session_id), None)


def _start(service: TrackingService, visitor_id: str = "visitor-1", entry_slide: str = "01", timestamp: float = T0) -> str:
    result = service.track(_event(
        "session_start", timestamp, visitor_id,
        entrySlide=entry_slide,
        userAgent="Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0)",
        referrer="https://google.com/"
    ))
    return result["sessionId"]


def test_session_start_creates_session_and_cache_entry(tracking_service, memory_store, session_cache, presence):
    """Test session_start persists the session and seeds the cache."""
    result = tracking_service.track(_event(
        "session_start", T0, entrySlide="01", deviceType="mobile", userAgent="Mozilla/5.0"
    ))

    assert result["success"] is True
    session = _stored_session(memory_store, result["sessionId"])
    assert session is not None
    assert session.visitor_id == "visitor-1"
    assert session.entry_slide == "01"
    assert session.device_type == "mobile"
    assert session.referrer == "direct"
    assert session.ended_at is None

    entry = session_cache.get("visitor-1")
    assert entry.session_id == result["sessionId"]
    assert entry.current_slide == "01"
    assert entry.slides_viewed == ["01"]
    assert entry.last_active == T0
    assert presence.current_visitors() == 1


def test_session_start_detects_device_from_user_agent(tracking_service, memory_store):
    """Test device type falls back to user agent detection."""
    result = tracking_service.track(_event(
        "session_start", T0, entrySlide="01",
        userAgent="Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile/15E148"
    ))

    assert _stored_session(memory_store, result["sessionId"]).device_type == "mobile"


def test_detect_device_type():
    assert detect_device_type("Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X)") == "tablet"
    assert detect_device_type("Mozilla/5.0 (Linux; Android 14) Mobile") == "mobile"
    assert detect_device_type("Mozilla/5.0 (Windows NT 10.0; Win64; x64)") == "desktop"
    assert detect_device_type(None) is None


def test_page_view_duration_is_time_since_last_activity(tracking_service, memory_store):
    """Test each page view carries the dwell time of the previous slide."""
    _start(tracking_service)

    tracking_service.track(_event("page_view", T0 + 5000, slideId="02", scrollDirection="next"))
    tracking_service.track(_event("page_view", T0 + 7000, slideId="03", scrollDirection="next"))

    views = memory_store.list_page_views(datetime(2026, 3, 10), datetime(2026, 3, 11))
    assert [(pv.slide_id, pv.duration_ms) for pv in views] == [("02", 5000), ("03", 2000)]


def test_page_view_with_earlier_timestamp_clamps_duration(tracking_service, memory_store):
    """Test a stale timestamp never produces a negative duration."""
    _start(tracking_service)

    tracking_service.track(_event("page_view", T0 - 3000, slideId="02"))

    views = memory_store.list_page_views(datetime(2026, 3, 9), datetime(2026, 3, 11))
    assert views[0].duration_ms == 0


def test_client_duration_is_ignored(tracking_service, memory_store):
    _start(tracking_service)

    tracking_service.track(_event("page_view", T0 + 4000, slideId="02", durationMs=999999))

    views = memory_store.list_page_views(datetime(2026, 3, 10), datetime(2026, 3, 11))
    assert views[0].duration_ms == 4000


def test_session_end_records_distinct_slide_count(tracking_service, memory_store):
    """Test revisited slides are counted once in total_slides_viewed."""
    session_id = _start(tracking_service, entry_slide="01")

    for offset, slide_id in enumerate(["02", "01", "03", "02"], start=1):
        tracking_service.track(_event("page_view", T0 + offset * 1000, slideId=slide_id))
    result = tracking_service.track(_event("session_end", T0 + 10000, exitSlide="02"))

    assert result == {"success": True}
    session = _stored_session(memory_store, session_id)
    assert session.total_slides_viewed == 3
    assert session.exit_slide == "02"
    assert session.ended_at == datetime(2026, 3, 10, 12, 0, 10)


def test_duplicate_page_view_is_stored_twice(tracking_service, memory_store, session_cache):
    """Test retried page views are not deduplicated."""
    _start(tracking_service)

    tracking_service.track(_event("page_view", T0 + 1000, slideId="02"))
    tracking_service.track(_event("page_view", T0 + 1000, slideId="02"))

    views = memory_store.list_page_views(datetime(2026, 3, 10), datetime(2026, 3, 11))
    assert len(views) == 2
    assert session_cache.get("visitor-1").distinct_slides == 2


@pytest.mark.parametrize("event_type,data", [
    ("page_view", {"slideId": "02"}),
    ("click", {"slideId": "02", "xPercent": 10, "yPercent": 20}),
    ("cta_click", {"slideId": "02", "ctaText": "Book now", "ctaAction": "form"}),
    ("session_end", {"exitSlide": "02"}),
])
def test_events_without_live_session_are_rejected(tracking_service, memory_store, event_type, data):
    """Test events for an unknown visitor write nothing."""
    with pytest.raises(HTTPException) as exc_info:
        tracking_service.track(_event(event_type, T0, "stranger", **data))

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail == "Session not found"

    start, end = datetime(2026, 3, 1), datetime(2026, 4, 1)
    assert memory_store.list_sessions(start, end) == []
    assert memory_store.list_page_views(start, end) == []
    assert memory_store.list_click_events(start, end) == []
    assert memory_store.list_cta_clicks(start, end) == []


def test_expired_session_is_rejected(memory_store, presence):
    """Test the cache TTL ends the session for ingestion purposes."""
    now = [1000.0]
    cache = InMemorySessionCache(ttl_seconds=1800, clock=lambda: now[0])
    service = TrackingService(memory_store, cache, presence)
    _start(service)

    now[0] += 1700
    service.track(_event("page_view", T0 + 1000, slideId="02"))

    # The page view restarted the TTL
    now[0] += 1700
    service.track(_event("page_view", T0 + 2000, slideId="03"))

    now[0] += 1800
    with pytest.raises(HTTPException) as exc_info:
        service.track(_event("page_view", T0 + 3000, slideId="04"))
    assert exc_info.value.detail == "Session not found"


def test_session_id_from_client_is_not_used_for_routing(tracking_service, memory_store):
    """Test events are attributed through the cache, not the echoed sessionId."""
    session_id = _start(tracking_service)

    event = TrackEventRequest.model_validate({
        "type": "page_view",
        "visitorId": "visitor-1",
        "sessionId": "forged-session-id",
        "timestamp": T0 + 1000,
        "data": {"slideId": "02"},
    })
    tracking_service.track(event)

    views = memory_store.list_page_views(datetime(2026, 3, 10), datetime(2026, 3, 11))
    assert views[0].session_id == session_id


def test_click_truncates_element_text(tracking_service, memory_store):
    _start(tracking_service)

    tracking_service.track(_event(
        "click", T0 + 1000,
        slideId="01", xPercent=53, yPercent=77, elementType="image", elementText="x" * 80
    ))

    clicks = memory_store.list_click_events(datetime(2026, 3, 10), datetime(2026, 3, 11))
    assert len(clicks) == 1
    assert clicks[0].element_text == "x" * 50
    assert clicks[0].element_type == "image"


def test_click_does_not_touch_session_cache(tracking_service, session_cache):
    _start(tracking_service)
    before = session_cache.get("visitor-1")

    tracking_service.track(_event("click", T0 + 9000, slideId="01", xPercent=1, yPercent=2))

    assert session_cache.get("visitor-1") == before


def test_cta_click_is_recorded_separately_from_clicks(tracking_service, memory_store):
    _start(tracking_service)

    tracking_service.track(_event(
        "cta_click", T0 + 1000,
        slideId="05", ctaText="Contact on LINE", ctaAction="line", ctaHref="https://line.me/x"
    ))

    start, end = datetime(2026, 3, 10), datetime(2026, 3, 11)
    ctas = memory_store.list_cta_clicks(start, end)
    assert [(c.slide_id, c.cta_action) for c in ctas] == [("05", "line")]
    assert memory_store.list_click_events(start, end) == []


def test_unknown_event_type_is_rejected(tracking_service):
    with pytest.raises(HTTPException) as exc_info:
        tracking_service.track(_event("scroll", T0, slideId="01"))

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail == "Unknown event type"


def test_invalid_payload_is_rejected(tracking_service):
    _start(tracking_service)

    with pytest.raises(HTTPException) as exc_info:
        tracking_service.track(_event("click", T0, slideId="01", xPercent=150, yPercent=20))

    assert exc_info.value.status_code == 400
    assert "xPercent" in exc_info.value.detail


def test_session_end_after_reset_still_succeeds(tracking_service, memory_store):
    """Test the unload beacon for a deleted session is acknowledged."""
    _start(tracking_service)
    memory_store.delete_all_sessions()

    result = tracking_service.track(_event("session_end", T0 + 5000, exitSlide="01"))

    assert result == {"success": True}


def test_new_session_start_replaces_live_session(tracking_service, session_cache):
    first = _start(tracking_service)
    second = _start(tracking_service, timestamp=T0 + 60000)

    assert first != second
    assert session_cache.get("visitor-1").session_id == second


class _FailingPageViewStore(InMemoryAnalyticsStore):
    def add_page_view(self, page_view):
        raise StoreError("database unavailable")


def test_store_failure_returns_internal_error_and_keeps_cache(session_cache, presence):
    """Test a failed insert leaves the cache entry as it was."""
    service = TrackingService(_FailingPageViewStore(), session_cache, presence)
    _start(service)

    with pytest.raises(HTTPException) as exc_info:
        service.track(_event("page_view", T0 + 5000, slideId="02"))

    assert exc_info.value.status_code == 500
    entry = session_cache.get("visitor-1")
    assert entry.last_active == T0
    assert entry.slides_viewed == ["01"]


def test_missing_timestamp_defaults_to_server_time(tracking_service, memory_store):
    event = TrackEventRequest.model_validate({
        "type": "session_start",
        "visitorId": "visitor-1",
        "data": {"entrySlide": "01"},
    })

    session_id = tracking_service.track(event)["sessionId"]

    started_at = _stored_session(memory_store, session_id).started_at
    assert abs((datetime.utcnow() - started_at).total_seconds()) < 60


def test_presence_tracks_current_slide(tracking_service, presence):
    _start(tracking_service, visitor_id="a")
    _start(tracking_service, visitor_id="b")
    tracking_service.track(_event("page_view", T0 + 1000, "b", slideId="02"))

    assert presence.current_visitors() == 2
    assert presence.slide_breakdown(["01", "02", "03"]) == {"01": 2, "02": 1}


def test_presence_expires(memory_store, session_cache):
    now = [0.0]
    tracker = InMemoryPresenceTracker(visitor_ttl_seconds=300, slide_ttl_seconds=60, clock=lambda: now[0])
    service = TrackingService(memory_store, session_cache, tracker)
    _start(service)

    now[0] = 61
    assert tracker.slide_breakdown(["01"]) == {}
    assert tracker.current_visitors() == 1

    now[0] = 301
    assert tracker.current_visitors() == 0


@pytest.mark.parametrize("timestamp", [1e20, float("inf"), float("nan"), -1])
def test_unrepresentable_timestamp_fails_validation(timestamp):
    with pytest.raises(ValidationError):
        _event("session_start", timestamp, entrySlide="01")


def test_latest_representable_timestamp_is_accepted(tracking_service, memory_store):
    session_id = _start(tracking_service, timestamp=MAX_TIMESTAMP_MS)

    session = memory_store.list_sessions(datetime(9999, 12, 31), datetime.max)[0]
    assert session.id == session_id
    assert session.started_at.year == 9999


class _FailingSessionCache(InMemorySessionCache):
    def set(self, visitor_id, entry):
        raise CacheError("redis unavailable")


def test_cache_write_failure_leaves_one_open_session(memory_store, presence):
    """Test a failed cache write after the insert reports 500."""
    service = TrackingService(memory_store, _FailingSessionCache(), presence)

    with pytest.raises(HTTPException) as exc_info:
        _start(service)

    assert exc_info.value.status_code == 500
    assert exc_info.value.detail == "Internal server error"
    sessions = memory_store.list_sessions(datetime(2026, 3, 10), datetime(2026, 3, 11))
    assert len(sessions) == 1
    assert sessions[0].is_open
    assert presence.current_visitors() == 0


class _FailingPresenceTracker(InMemoryPresenceTracker):
    def track(self, visitor_id, slide_id):
        raise CacheError("redis unavailable")


def test_presence_failure_does_not_fail_ingestion(memory_store, session_cache):
    """Test realtime presence is best effort once the session is cached."""
    service = TrackingService(memory_store, session_cache, _FailingPresenceTracker())

    session_id = _start(service)
    result = service.track(_event("page_view", T0 + 3000, slideId="02"))

    assert result == {"success": True}
    entry = session_cache.get("visitor-1")
    assert entry.session_id == session_id
    assert entry.slides_viewed == ["01", "02"]
    views = memory_store.list_page_views(datetime(2026, 3, 10), datetime(2026, 3, 11))
    assert [(pv.slide_id, pv.duration_ms) for pv in views] == [("02", 3000)]
