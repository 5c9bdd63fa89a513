"""
Page View Model

One observation of a visitor on one slide.
"""

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from core.database import Base
from models.base import generate_uuid, utcnow


class PageView(Base):
    """
    Page view model.

    duration_ms is retroactive: it measures the time spent on the slide the
    visitor just left, computed when this view was processed.

    Attributes:
        id: Unique page view identifier (UUID)
        session_id: Owning session
        slide_id: Slide identifier (e.g. "04", "04a")
        slide_type: vertical or horizontal
        parent_slide_id: Parent vertical slide for horizontal sub-slides
        viewed_at: When the page_view event was processed
        duration_ms: Time spent on the previous slide
        scroll_direction: next, prev or horizontal
    """

    __tablename__ = "page_views"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    session_id = Column(
        String(36), ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False, index=True
    )

    slide_id = Column(String(50), nullable=False, index=True)
    slide_type = Column(String(20), nullable=False, default="vertical")
    parent_slide_id = Column(String(50), nullable=True)

    viewed_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    duration_ms = Column(Integer, nullable=True)
    scroll_direction = Column(String(20), nullable=True)

    session = relationship("VisitSession", back_populates="page_views")

    __table_args__ = (
        Index('ix_page_views_session_viewed', 'session_id', 'viewed_at'),
    )

    def __repr__(self):
        return f"<PageView(id={self.id}, session_id={self.session_id}, slide_id={self.slide_id})>"

