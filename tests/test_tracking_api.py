"""
Tracking API Tests

Tests for POST /api/analytics/track.
"""

import json
from datetime import datetime, timezone

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from models.click_event import ClickEvent
from models.cta_click import CTAClick
from models.page_view import PageView
from models.visit_session import VisitSession

TRACK_URL = "/api/analytics/track"
T0 = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc).timestamp() * 1000


def _post(client: TestClient, event_type: str, timestamp: float = T0, visitor_id: str = "visitor-1", **data):
    return client.post(TRACK_URL, json={
        "type": event_type,
        "visitorId": visitor_id,
        "timestamp": timestamp,
        "data": data,
    })


def test_session_start_returns_session_id(client: TestClient, db: Session):
    """Test session_start creates a session row."""
    response = _post(client, "session_start", entrySlide="01", deviceType="desktop", referrer="https://x.com/")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    session = db.query(VisitSession).filter(VisitSession.id == data["sessionId"]).first()
    assert session is not None
    assert session.visitor_id == "visitor-1"
    assert session.referrer == "https://x.com/"


def test_full_visit(client: TestClient, db: Session):
    """Test a complete visit lands in every table."""
    session_id = _post(client, "session_start", entrySlide="01").json()["sessionId"]

    assert _post(client, "page_view", T0 + 2000, slideId="02", scrollDirection="next").json() == {"success": True}
    assert _post(client, "click", T0 + 2500, slideId="02", xPercent=53, yPercent=77).status_code == 200
    assert _post(client, "cta_click", T0 + 3000, slideId="02", ctaText="Book", ctaAction="form").status_code == 200
    assert _post(client, "session_end", T0 + 4000, exitSlide="02").status_code == 200

    session = db.query(VisitSession).filter(VisitSession.id == session_id).first()
    db.refresh(session)
    assert session.exit_slide == "02"
    assert session.total_slides_viewed == 2
    assert session.ended_at is not None

    page_view = db.query(PageView).one()
    assert page_view.session_id == session_id
    assert page_view.duration_ms == 2000
    assert db.query(ClickEvent).count() == 1
    assert db.query(CTAClick).count() == 1


def test_beacon_text_plain_body_is_accepted(client: TestClient, db: Session):
    """Test the unload beacon's text/plain body is parsed as JSON."""
    _post(client, "session_start", entrySlide="01")

    response = client.post(
        TRACK_URL,
        content=json.dumps({
            "type": "session_end",
            "visitorId": "visitor-1",
            "timestamp": T0 + 5000,
            "data": {"exitSlide": "01", "sessionId": "ignored"},
        }),
        headers={"Content-Type": "text/plain;charset=UTF-8"}
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert db.query(VisitSession).one().exit_slide == "01"


def test_unknown_session_is_rejected(client: TestClient, db: Session):
    response = _post(client, "page_view", visitor_id="stranger", slideId="02")

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Session not found"}
    assert db.query(PageView).count() == 0


def test_unknown_event_type(client: TestClient):
    response = _post(client, "mouse_move", slideId="01")

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["error"] == "Unknown event type"


def test_invalid_json_body(client: TestClient):
    response = client.post(TRACK_URL, content="{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid JSON body"}


def test_non_object_body(client: TestClient):
    response = client.post(TRACK_URL, json=["session_start"])

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_missing_visitor_id(client: TestClient):
    response = client.post(TRACK_URL, json={"type": "session_start", "data": {"entrySlide": "01"}})

    assert response.status_code == 400
    assert "visitorId" in response.json()["error"]


def test_missing_entry_slide(client: TestClient, db: Session):
    response = _post(client, "session_start", userAgent="Mozilla/5.0")

    assert response.status_code == 400
    assert "entrySlide" in response.json()["error"]
    assert db.query(VisitSession).count() == 0


def test_store_failure_returns_500(client: TestClient, db: Session, monkeypatch):
    """Test a database error is reported as a generic failure."""
    from sqlalchemy.exc import OperationalError

    def fail_commit():
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", fail_commit)

    response = _post(client, "session_start", entrySlide="01")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}


def test_track_requires_no_authentication(client: TestClient):
    response = _post(client, "session_start", entrySlide="01")

    assert response.status_code == 200


def test_timestamp_beyond_datetime_range_is_rejected(client: TestClient, db: Session):
    response = _post(client, "session_start", timestamp=1e20, entrySlide="01")

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid event: timestamp"}
    assert db.query(VisitSession).count() == 0


def test_infinite_timestamp_is_rejected(client: TestClient, db: Session):
    """Test the non-standard Infinity literal never reaches the service."""
    response = client.post(
        TRACK_URL,
        content='{"type": "session_start", "visitorId": "visitor-1", "timestamp": Infinity, '
                '"data": {"entrySlide": "01"}}',
        headers={"Content-Type": "text/plain;charset=UTF-8"}
    )

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid event: timestamp"}
    assert db.query(VisitSession).count() == 0


def test_out_of_range_page_view_leaves_session_untouched(client: TestClient, db: Session):
    _post(client, "session_start", entrySlide="01")

    response = _post(client, "page_view", 1e15, slideId="02")

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid event: timestamp"
    assert db.query(PageView).count() == 0
    assert _post(client, "page_view", T0 + 1000, slideId="02").json() == {"success": True}
    assert db.query(PageView).one().duration_ms == 1000
