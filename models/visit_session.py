"""
Visit Session Model

One visit of an anonymous visitor to the landing page, from the first
event until the unload beacon closes it (if it ever arrives).
"""

from sqlalchemy import Column, String, Integer, DateTime, Index
from sqlalchemy.orm import relationship

from core.database import Base
from models.base import generate_uuid, utcnow


class VisitSession(Base):
    """
    Visit session model.

    ended_at, exit_slide and total_slides_viewed are written once, by the
    session_end event. A session without ended_at is still "open".

    Attributes:
        id: Server-generated session identifier (UUID)
        visitor_id: Client-persisted visitor identifier
        started_at: When the session_start event was processed
        ended_at: When session_end was processed (None while open)
        device_type: mobile, tablet or desktop
        user_agent: Browser user agent
        referrer: Document referrer or "direct"
        entry_slide: Slide the visitor landed on
        exit_slide: Last slide reported on unload
        total_slides_viewed: Distinct slides seen, copied from the session cache

    Relationships:
        page_views, click_events, cta_clicks: child rows, deleted with the session
    """

    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    visitor_id = Column(String(100), nullable=False, index=True)

    started_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    ended_at = Column(DateTime, nullable=True)

    device_type = Column(String(20), nullable=True)
    user_agent = Column(String(500), nullable=True)
    referrer = Column(String(1000), nullable=True)

    entry_slide = Column(String(50), nullable=True)
    exit_slide = Column(String(50), nullable=True)
    total_slides_viewed = Column(Integer, nullable=False, default=0)

    page_views = relationship(
        "PageView", back_populates="session",
        cascade="all, delete-orphan", passive_deletes=True
    )
    click_events = relationship(
        "ClickEvent", back_populates="session",
        cascade="all, delete-orphan", passive_deletes=True
    )
    cta_clicks = relationship(
        "CTAClick", back_populates="session",
        cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index('ix_sessions_visitor_started', 'visitor_id', 'started_at'),
    )

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def __repr__(self):
        return f"<VisitSession(id={self.id}, visitor_id={self.visitor_id}, entry_slide={self.entry_slide})>"

