"""
SQL Analytics Store

SQLAlchemy implementation of AnalyticsStore, bound to one request-scoped
database session.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import StoreError
from core.logger import get_logger
from models.click_event import ClickEvent
from models.cta_click import CTAClick
from models.page_view import PageView
from models.visit_session import VisitSession
from repositories.base import AnalyticsStore

logger = get_logger(__name__)


class SQLAnalyticsStore(AnalyticsStore):
    """Analytics store backed by PostgreSQL (SQLite in tests)."""

    def __init__(self, db: Session):
        self.db = db

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error while {action}: {str(e)}", exc_info=True)
            raise StoreError(f"Failed while {action}") from e

    def _insert(self, row, action: str):
        self.db.add(row)
        self._commit(action)
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
            visitor_id=visitor_id,
            started_at=started_at,
            entry_slide=entry_slide,
            device_type=device_type,
            user_agent=user_agent,
            referrer=referrer,
            total_slides_viewed=0,
        )
        return self._insert(session, "creating session")

    def close_session(
        self,
        session_id: str,
        ended_at: datetime,
        exit_slide: Optional[str],
        total_slides_viewed: int
    ) -> bool:
        try:
            updated = self.db.query(VisitSession).filter(
                VisitSession.id == session_id
            ).update(
                {
                    VisitSession.ended_at: ended_at,
                    VisitSession.exit_slide: exit_slide,
                    VisitSession.total_slides_viewed: total_slides_viewed,
                },
                synchronize_session=False
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error while closing session {session_id}: {str(e)}", exc_info=True)
            raise StoreError("Failed while closing session") from e

        self._commit("closing session")
        return updated > 0

    def add_page_view(self, page_view: PageView) -> PageView:
        return self._insert(page_view, "creating page view")

    def add_click_event(self, click_event: ClickEvent) -> ClickEvent:
        return self._insert(click_event, "creating click event")

    def add_cta_click(self, cta_click: CTAClick) -> CTAClick:
        return self._insert(cta_click, "creating CTA click")

    def delete_all_sessions(self) -> int:
        # Child rows are removed by ON DELETE CASCADE
        try:
            deleted = self.db.query(VisitSession).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error while resetting analytics: {str(e)}", exc_info=True)
            raise StoreError("Failed while deleting sessions") from e

        self._commit("deleting sessions")
        return deleted

    def _read(self, query, action: str) -> list:
        try:
            return query.all()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error while {action}: {str(e)}", exc_info=True)
            raise StoreError(f"Failed while {action}") from e

    def list_sessions(self, start: datetime, end: datetime) -> List[VisitSession]:
        return self._read(
            self.db.query(VisitSession)
            .filter(VisitSession.started_at >= start, VisitSession.started_at < end)
            .order_by(VisitSession.started_at.asc()),
            "loading sessions"
        )

    def list_page_views(self, start: datetime, end: datetime) -> List[PageView]:
        return self._read(
            self.db.query(PageView)
            .filter(PageView.viewed_at >= start, PageView.viewed_at < end)
            .order_by(PageView.viewed_at.asc()),
            "loading page views"
        )

    def list_click_events(
        self,
        start: datetime,
        end: datetime,
        slide_id: Optional[str] = None
    ) -> List[ClickEvent]:
        query = self.db.query(ClickEvent).filter(
            ClickEvent.clicked_at >= start,
            ClickEvent.clicked_at < end
        )
        if slide_id is not None:
            query = query.filter(ClickEvent.slide_id == slide_id)
        return self._read(query, "loading click events")

    def list_cta_clicks(self, start: datetime, end: datetime) -> List[CTAClick]:
        return self._read(
            self.db.query(CTAClick).filter(
                CTAClick.clicked_at >= start,
                CTAClick.clicked_at < end
            ),
            "loading CTA clicks"
        )
