"""
Click Event Model

Raw clicks on the slide content area, used for heatmaps.
"""

from sqlalchemy import Column, String, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from core.database import Base
from models.base import generate_uuid, utcnow


class ClickEvent(Base):
    """
    Click event model.

    Positions are percentages of the rendered content viewport (0-100).

    Attributes:
        id: Unique click identifier (UUID)
        session_id: Owning session
        slide_id: Slide the click landed on
        x_percent: Horizontal position
        y_percent: Vertical position
        element_type: cta, image or other
        element_text: Text snippet of the clicked element (truncated)
        clicked_at: When the click event was processed
    """

    __tablename__ = "click_events"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    session_id = Column(
        String(36), ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False, index=True
    )

    slide_id = Column(String(50), nullable=False, index=True)
    x_percent = Column(Float, nullable=False)
    y_percent = Column(Float, nullable=False)
    element_type = Column(String(20), nullable=True)
    element_text = Column(String(100), nullable=True)

    clicked_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    session = relationship("VisitSession", back_populates="click_events")

    def __repr__(self):
        return f"<ClickEvent(id={self.id}, slide_id={self.slide_id}, x={self.x_percent}, y={self.y_percent})>"

