"""
Analytics Schemas

Pydantic models for the tracking wire format. Field names follow the
browser client (camelCase) and are accepted by attribute name as well.
"""

import enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# 9999-12-31T23:59:59.999Z, the last instant a datetime can hold
MAX_TIMESTAMP_MS = 253402300799999


class EventType(str, enum.Enum):
    """Event kinds accepted by the track endpoint."""
    SESSION_START = "session_start"
    PAGE_VIEW = "page_view"
    CLICK = "click"
    CTA_CLICK = "cta_click"
    SESSION_END = "session_end"


class _ClientModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TrackEventRequest(_ClientModel):
    """
    Envelope of every tracking event.

    `type` is kept as a plain string so unknown kinds can be reported as
    such instead of as a generic validation error. `data` is validated
    per kind by the tracking service.
    """
    type: str = Field(..., max_length=50)
    visitor_id: str = Field(..., alias="visitorId", min_length=1, max_length=100)
    session_id: Optional[str] = Field(None, alias="sessionId", max_length=100)
    timestamp: Optional[float] = Field(
        None, ge=0, le=MAX_TIMESTAMP_MS, allow_inf_nan=False, description="Epoch milliseconds"
    )
    data: Dict[str, Any] = Field(default_factory=dict)


class SessionStartData(_ClientModel):
    device_type: Optional[Literal["mobile", "tablet", "desktop"]] = Field(None, alias="deviceType")
    user_agent: Optional[str] = Field(None, alias="userAgent")
    referrer: Optional[str] = None
    entry_slide: str = Field(..., alias="entrySlide", min_length=1, max_length=50)


class SessionEndData(_ClientModel):
    """The unload beacon resends the session fields; only exitSlide is used."""
    exit_slide: Optional[str] = Field(None, alias="exitSlide", max_length=50)


class PageViewData(_ClientModel):
    """durationMs may be sent by the client but the server computes its own."""
    slide_id: str = Field(..., alias="slideId", min_length=1, max_length=50)
    slide_type: Literal["vertical", "horizontal"] = Field("vertical", alias="slideType")
    parent_slide_id: Optional[str] = Field(None, alias="parentSlideId", max_length=50)
    scroll_direction: Optional[Literal["next", "prev", "horizontal"]] = Field(None, alias="scrollDirection")
    duration_ms: Optional[float] = Field(None, alias="durationMs")


class ClickData(_ClientModel):
    slide_id: str = Field(..., alias="slideId", min_length=1, max_length=50)
    x_percent: float = Field(..., alias="xPercent", ge=0, le=100)
    y_percent: float = Field(..., alias="yPercent", ge=0, le=100)
    element_type: Literal["cta", "image", "other"] = Field("other", alias="elementType")
    element_text: Optional[str] = Field(None, alias="elementText")


class CTAClickData(_ClientModel):
    slide_id: str = Field(..., alias="slideId", min_length=1, max_length=50)
    cta_text: str = Field(..., alias="ctaText", min_length=1, max_length=200)
    cta_action: str = Field(..., alias="ctaAction", min_length=1, max_length=100)
    cta_href: Optional[str] = Field(None, alias="ctaHref", max_length=1000)


class LoginRequest(BaseModel):
    """Dashboard admin login."""
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=1, max_length=256)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
