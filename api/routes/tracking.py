"""
Tracking Routes

Public ingestion endpoint for the landing page's analytics client.
"""

import asyncio
import json

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.dependencies import get_tracking_service
from api.middleware.rate_limit import limiter, track_rate_limit
from core.logger import get_logger
from schemas.analytics import TrackEventRequest
from services.tracking_service import TrackingService

router = APIRouter()
logger = get_logger(__name__)


def _failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@router.post("/track")
@limiter.limit(track_rate_limit)
async def track_event(
    request: Request,
    service: TrackingService = Depends(get_tracking_service)
):
    """
    Record one analytics event.

    Accepts `{type, visitorId, sessionId, timestamp, data}`. The body is
    parsed as JSON whatever the Content-Type, since the unload beacon is
    sent as text/plain.

    **No authentication**: anonymous visitors write here.

    **Response 200**: `{"success": true}` (plus `sessionId` for session_start)
    **Response 400**: malformed event, unknown type, or "Session not found"
    **Response 500**: storage failure
    """
    raw = await request.body()
    try:
        payload = json.loads(raw or b"null")
    except ValueError:
        return _failure(status.HTTP_400_BAD_REQUEST, "Invalid JSON body")
    if not isinstance(payload, dict):
        return _failure(status.HTTP_400_BAD_REQUEST, "Event must be a JSON object")

    try:
        event = TrackEventRequest.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in e.errors())
        return _failure(status.HTTP_400_BAD_REQUEST, f"Invalid event: {fields}")

    try:
        # Blocking store and cache I/O runs off the event loop
        return await asyncio.to_thread(service.track, event)
    except HTTPException as e:
        return _failure(e.status_code, e.detail)
