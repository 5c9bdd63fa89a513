"""
Database Models Package

Contains the SQLAlchemy models for the analytics tables.
"""

from models.visit_session import VisitSession
from models.page_view import PageView
from models.click_event import ClickEvent
from models.cta_click import CTAClick
from models.base import generate_uuid, utcnow, from_epoch_ms, now_ms

__all__ = [
    "VisitSession",
    "PageView",
    "ClickEvent",
    "CTAClick",
    "generate_uuid",
    "utcnow",
    "from_epoch_ms",
    "now_ms",
]
