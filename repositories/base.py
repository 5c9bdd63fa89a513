"""
Analytics Store Interface

Append-only durable storage for the four analytics record kinds. The
ingestion and aggregation services only talk to this interface; rows
come back as model instances (VisitSession, PageView, ClickEvent,
CTAClick) regardless of backend.

Time windows are half-open: start <= timestamp < end.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from models.click_event import ClickEvent
from models.cta_click import CTAClick
from models.page_view import PageView
from models.visit_session import VisitSession


class AnalyticsStore(ABC):
    """Durable store for sessions and their child events."""

    # ----- writes -----

    @abstractmethod
    def create_session(
        self,
        visitor_id: str,
        started_at: datetime,
        entry_slide: str,
        device_type: Optional[str] = None,
        user_agent: Optional[str] = None,
        referrer: Optional[str] = None
    ) -> VisitSession:
        """
        Insert a new open session.

        Returns:
            VisitSession: The stored session with its generated id

        Raises:
            StoreError: If the insert fails
        """
        ...

    @abstractmethod
    def close_session(
        self,
        session_id: str,
        ended_at: datetime,
        exit_slide: Optional[str],
        total_slides_viewed: int
    ) -> bool:
        """
        Write the terminating fields of a session.

        Returns:
            bool: False if no session with that id exists

        Raises:
            StoreError: If the update fails
        """
        ...

    @abstractmethod
    def add_page_view(self, page_view: PageView) -> PageView:
        """Insert a page view row. Raises StoreError on failure."""
        ...

    @abstractmethod
    def add_click_event(self, click_event: ClickEvent) -> ClickEvent:
        """Insert a click event row. Raises StoreError on failure."""
        ...

    @abstractmethod
    def add_cta_click(self, cta_click: CTAClick) -> CTAClick:
        """Insert a CTA click row. Raises StoreError on failure."""
        ...

    @abstractmethod
    def delete_all_sessions(self) -> int:
        """
        Delete every session; child rows go with them.

        Returns:
            int: Number of sessions deleted
        """
        ...

    # ----- reads -----

    @abstractmethod
    def list_sessions(self, start: datetime, end: datetime) -> List[VisitSession]:
        """Sessions with started_at in the window."""
        ...

    @abstractmethod
    def list_page_views(self, start: datetime, end: datetime) -> List[PageView]:
        """Page views with viewed_at in the window, oldest first."""
        ...

    @abstractmethod
    def list_click_events(
        self,
        start: datetime,
        end: datetime,
        slide_id: Optional[str] = None
    ) -> List[ClickEvent]:
        """Click events with clicked_at in the window, optionally for one slide."""
        ...

    @abstractmethod
    def list_cta_clicks(self, start: datetime, end: datetime) -> List[CTAClick]:
        """CTA clicks with clicked_at in the window."""
        ...
