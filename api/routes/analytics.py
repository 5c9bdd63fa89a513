"""
Analytics Routes

Admin-only read endpoints over the collected events, plus the data reset.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from api.dependencies import get_admin_user, get_aggregation_service, get_store
from api.middleware.rate_limit import limiter
from core.exceptions import StoreError
from core.logger import get_logger
from repositories.base import AnalyticsStore
from services.aggregation_service import AnalyticsAggregationService, resolve_window

router = APIRouter()
logger = get_logger(__name__)


@router.get("/stats")
@limiter.limit("60/minute")
async def get_stats(
    request: Request,
    from_date: Optional[str] = Query(None, alias="from", description="Start date (YYYY-MM-DD)"),
    to_date: Optional[str] = Query(None, alias="to", description="End date (YYYY-MM-DD)"),
    admin: str = Depends(get_admin_user),
    service: AnalyticsAggregationService = Depends(get_aggregation_service)
):
    """
    Dashboard statistics.

    KPIs, daily time series, top / high-bounce slides, the full per-slide
    table and realtime presence. Defaults to the last 7 days.

    **Response 200**: Dashboard statistics
    **Response 400**: Invalid date range
    **Response 401**: Not authenticated
    """
    window = resolve_window(from_date, to_date)
    return service.get_dashboard_stats(window)


@router.get("/funnel")
@limiter.limit("60/minute")
async def get_funnel(
    request: Request,
    from_date: Optional[str] = Query(None, alias="from", description="Start date (YYYY-MM-DD)"),
    to_date: Optional[str] = Query(None, alias="to", description="End date (YYYY-MM-DD)"),
    admin: str = Depends(get_admin_user),
    service: AnalyticsAggregationService = Depends(get_aggregation_service)
):
    """
    Funnel view: slide transitions, per-slide drop-off and entry/exit slides.

    **Response 200**: Funnel data
    **Response 400**: Invalid date range
    **Response 401**: Not authenticated
    """
    window = resolve_window(from_date, to_date)
    return service.get_funnel(window)


@router.get("/heatmap/{slide_id}")
@limiter.limit("60/minute")
async def get_heatmap(
    request: Request,
    slide_id: str,
    from_date: Optional[str] = Query(None, alias="from", description="Start date (YYYY-MM-DD)"),
    to_date: Optional[str] = Query(None, alias="to", description="End date (YYYY-MM-DD)"),
    admin: str = Depends(get_admin_user),
    service: AnalyticsAggregationService = Depends(get_aggregation_service)
):
    """
    Click heatmap for one slide, aggregated on a 2% grid.

    **Response 200**: Heatmap data
    **Response 400**: Invalid date range
    **Response 401**: Not authenticated
    """
    window = resolve_window(from_date, to_date)
    return service.get_heatmap(slide_id, window)


@router.get("/realtime")
@limiter.limit("120/minute")
async def get_realtime(
    request: Request,
    slides: Optional[str] = Query(None, description="Comma-separated slide ids for the breakdown"),
    admin: str = Depends(get_admin_user),
    service: AnalyticsAggregationService = Depends(get_aggregation_service)
):
    """
    Visitors active right now, globally and per requested slide.

    **Response 200**: Realtime presence
    **Response 401**: Not authenticated
    """
    slide_ids = [s.strip() for s in slides.split(",") if s.strip()] if slides else []
    return service.get_realtime(slide_ids)


@router.post("/reset")
@limiter.limit("10/minute")
async def reset_analytics(
    request: Request,
    admin: str = Depends(get_admin_user),
    store: AnalyticsStore = Depends(get_store)
):
    """
    Delete all analytics data.

    Deleting sessions cascades to page views, clicks and CTA clicks.
    Idempotent: resetting an empty store succeeds.

    **Response 200**: Data deleted
    **Response 401**: Not authenticated
    **Response 500**: Storage failure
    """
    try:
        deleted = store.delete_all_sessions()
    except StoreError as e:
        logger.error(f"Analytics reset failed: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reset analytics data"
        )

    logger.warning(f"Analytics data reset by {admin}: {deleted} sessions deleted")
    return {
        "success": True,
        "message": "All analytics data has been reset",
        "deleted_sessions": deleted,
    }
