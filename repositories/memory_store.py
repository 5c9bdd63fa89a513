"""
In-Memory Analytics Store

List-backed AnalyticsStore for tests and local runs without a database.
Rows are transient model instances; foreign keys and cascade deletes are
enforced by hand.
"""

import threading
from datetime import datetime
from typing import Dict, List, Optional

from core.exceptions import StoreError
from models.base import generate_uuid
from models.click_event import ClickEvent
from models.cta_click import CTAClick
from models.page_view import PageView
from models.visit_session import VisitSession
from repositories.base import AnalyticsStore


class InMemoryAnalyticsStore(AnalyticsStore):
    """Analytics store kept in process memory."""

    def __init__(self):
        self._sessions: Dict[str, VisitSession] = {}
        self._page_views: List[PageView] = []
        self._click_events: List[ClickEvent] = []
        self._cta_clicks: List[CTAClick] = []
        self._lock = threading.Lock()

    def _append_child(self, rows: list, row):
        with self._lock:
            if row.session_id not in self._sessions:
                raise StoreError(f"Session {row.session_id} does not exist")
            if row.id is None:
                row.id = generate_uuid()
            rows.append(row)
        return row

    def create_session(
        self,
        visitor_id: str,
        started_at: datetime,
        entry_slide: str,
        device_type: Optional[str] = None,
        user_agent: Optional[str] = None,
        referrer: Optional[str] = None
    ) -> VisitSession:
        session = VisitSession(
            id=generate_uuid(),
            visitor_id=visitor_id,
            started_at=started_at,
            entry_slide=entry_slide,
            device_type=device_type,
            user_agent=user_agent,
            referrer=referrer,
            total_slides_viewed=0,
        )
        with self._lock:
            self._sessions[session.id] = session
        return session

    def close_session(
        self,
        session_id: str,
        ended_at: datetime,
        exit_slide: Optional[str],
        total_slides_viewed: int
    ) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            session.ended_at = ended_at
            session.exit_slide = exit_slide
            session.total_slides_viewed = total_slides_viewed
            return True

    def add_page_view(self, page_view: PageView) -> PageView:
        return self._append_child(self._page_views, page_view)

    def add_click_event(self, click_event: ClickEvent) -> ClickEvent:
        return self._append_child(self._click_events, click_event)

    def add_cta_click(self, cta_click: CTAClick) -> CTAClick:
        return self._append_child(self._cta_clicks, cta_click)

    def delete_all_sessions(self) -> int:
        with self._lock:
            deleted = len(self._sessions)
            self._sessions.clear()
            self._page_views.clear()
            self._click_events.clear()
            self._cta_clicks.clear()
        return deleted

    def list_sessions(self, start: datetime, end: datetime) -> List[VisitSession]:
        with self._lock:
            rows = [s for s in self._sessions.values() if start <= s.started_at < end]
        return sorted(rows, key=lambda s: s.started_at)

    def list_page_views(self, start: datetime, end: datetime) -> List[PageView]:
        with self._lock:
            rows = [pv for pv in self._page_views if start <= pv.viewed_at < end]
        # sorted() is stable: equal timestamps keep insertion order
        return sorted(rows, key=lambda pv: pv.viewed_at)

    def list_click_events(
        self,
        start: datetime,
        end: datetime,
        slide_id: Optional[str] = None
    ) -> List[ClickEvent]:
        with self._lock:
            return [
                c for c in self._click_events
                if start <= c.clicked_at < end and (slide_id is None or c.slide_id == slide_id)
            ]

    def list_cta_clicks(self, start: datetime, end: datetime) -> List[CTAClick]:
        with self._lock:
            return [c for c in self._cta_clicks if start <= c.clicked_at < end]
