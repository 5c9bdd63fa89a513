"""
CTA Click Model

Clicks on call-to-action buttons. Not duplicated into click_events.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from core.database import Base
from models.base import generate_uuid, utcnow


class CTAClick(Base):
    """CTA click model."""

    __tablename__ = "cta_clicks"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    session_id = Column(
        String(36), ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False, index=True
    )

    slide_id = Column(String(50), nullable=False, index=True)
    cta_text = Column(String(200), nullable=False)
    cta_action = Column(String(100), nullable=False)  # e.g. "line", "form", "tel"
    cta_href = Column(String(1000), nullable=True)

    clicked_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    session = relationship("VisitSession", back_populates="cta_clicks")

    def __repr__(self):
        return f"<CTAClick(id={self.id}, slide_id={self.slide_id}, cta_action={self.cta_action})>"

