"""
Aggregation Service

Derives dashboard statistics from the durable store:
- Summary KPIs, time series and per-slide statistics
- Top-slide and high-bounce rankings
- Funnel transitions, funnel steps, entry/exit distributions
- Click heatmaps
- Realtime presence

Every call re-scans the rows of the requested window; nothing is
materialised. Any store failure aborts the whole call.
"""

import math
import re
from collections import OrderedDict, defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from fastapi import HTTPException, status

from cache.base import PresenceTracker
from core.config import get_settings
from core.exceptions import CacheError, StoreError
from core.logger import get_logger
from models.base import now_ms
from repositories.base import AnalyticsStore

logger = get_logger(__name__)

_DIGITS = re.compile(r"(\d+)")


@dataclass(frozen=True)
class DateWindow:
    """Whole-day window from `from_date` to `to_date`, both inclusive."""
    from_date: date
    to_date: date

    @property
    def start(self) -> datetime:
        return datetime.combine(self.from_date, datetime.min.time())

    @property
    def end(self) -> datetime:
        """Exclusive upper bound: midnight after to_date."""
        return datetime.combine(self.to_date + timedelta(days=1), datetime.min.time())


def resolve_window(
    from_str: Optional[str],
    to_str: Optional[str],
    today: Optional[date] = None
) -> DateWindow:
    """
    Build a DateWindow from `YYYY-MM-DD` query strings.

    Missing bounds default to the trailing DEFAULT_WINDOW_DAYS ending today
    (UTC).

    Raises:
        HTTPException: 400 for malformed dates, reversed ranges, or ranges
            longer than MAX_WINDOW_DAYS
    """
    settings = get_settings()
    today = today or datetime.utcnow().date()

    def parse(value: Optional[str], default: date, name: str) -> date:
        if not value:
            return default
        try:
            return date.fromisoformat(value)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid '{name}' date. Use YYYY-MM-DD."
            )

    to_date = parse(to_str, today, "to")
    from_date = parse(from_str, to_date - timedelta(days=settings.DEFAULT_WINDOW_DAYS), "from")

    if from_date > to_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="'from' must not be after 'to'"
        )
    if (to_date - from_date).days > settings.MAX_WINDOW_DAYS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Date range is limited to {settings.MAX_WINDOW_DAYS} days"
        )
    return DateWindow(from_date=from_date, to_date=to_date)


def natural_sort_key(slide_id: str) -> Tuple:
    """
    Sort key comparing digit runs numerically: "9" < "10", "04" < "04a" < "04b".

    Digit chunks sort before text chunks at the same position.
    """
    key = []
    for chunk in _DIGITS.split(slide_id):
        if not chunk:
            continue
        if chunk.isdigit():
            key.append((0, int(chunk), ""))
        else:
            key.append((1, 0, chunk.lower()))
    return tuple(key)


def quantize_percent(value: float, step: int = 2) -> int:
    """
    Snap a percentage to the nearest multiple of `step`, halves rounding up.

    53 -> 54 and 77 -> 78 on the default 2% grid.
    """
    return int(math.floor(value / step + 0.5)) * step


def _percent(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return part * 100 / whole


def _count_by(values: Iterable[Optional[str]]) -> "OrderedDict[str, int]":
    counts: "OrderedDict[str, int]" = OrderedDict()
    for value in values:
        if value:
            counts[value] = counts.get(value, 0) + 1
    return counts


def _ranked(counts: Dict[str, int]) -> List[dict]:
    return [
        {"slideId": slide_id, "count": count}
        for slide_id, count in sorted(counts.items(), key=lambda item: item[1], reverse=True)
    ]


class AnalyticsAggregationService:
    """Read-side service computing dashboard, funnel and heatmap views."""

    def __init__(self, store: AnalyticsStore, presence: PresenceTracker):
        self.store = store
        self.presence = presence
        self.settings = get_settings()

    def _load(self, loader, *args):
        try:
            return loader(*args)
        except StoreError as e:
            logger.error(f"Aggregation aborted, store read failed: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Internal server error"
            )

    def get_realtime(self, slide_ids: Iterable[str] = ()) -> dict:
        """
        Current presence, independent of any date window.

        Returns:
            dict: currentVisitors, slideBreakdown and lastUpdated (epoch ms)
        """
        try:
            current = self.presence.current_visitors()
            breakdown = self.presence.slide_breakdown(slide_ids)
        except CacheError as e:
            logger.error(f"Realtime presence read failed: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Internal server error"
            )
        return {
            "currentVisitors": current,
            "slideBreakdown": breakdown,
            "lastUpdated": int(now_ms()),
        }

    def get_dashboard_stats(self, window: DateWindow) -> dict:
        """
        Summary KPIs, time series, rankings, per-slide table and realtime.

        Args:
            window: Date window to aggregate

        Returns:
            dict: Dashboard statistics (camelCase keys)
        """
        sessions = self._load(self.store.list_sessions, window.start, window.end)
        page_views = self._load(self.store.list_page_views, window.start, window.end)
        cta_clicks = self._load(self.store.list_cta_clicks, window.start, window.end)
        click_events = self._load(self.store.list_click_events, window.start, window.end)

        unique_visitors = len({s.visitor_id for s in sessions})

        # Open sessions are left out of duration and bounce
        closed = [s for s in sessions if not s.is_open]
        avg_session_duration = 0.0
        bounce_rate = 0.0
        if closed:
            durations = [(s.ended_at - s.started_at).total_seconds() * 1000 for s in closed]
            avg_session_duration = sum(durations) / len(durations)
            bounces = sum(1 for s in closed if (s.total_slides_viewed or 0) <= 1)
            bounce_rate = _percent(bounces, len(closed))

        cta_click_rate = _percent(len(cta_clicks), unique_visitors)

        # Per-slide accumulation, in first-seen order
        views: "OrderedDict[str, int]" = OrderedDict()
        total_duration: Dict[str, int] = defaultdict(int)
        slide_sessions: Dict[str, set] = defaultdict(set)
        for pv in page_views:
            views[pv.slide_id] = views.get(pv.slide_id, 0) + 1
            total_duration[pv.slide_id] += pv.duration_ms or 0
            slide_sessions[pv.slide_id].add(pv.session_id)

        exit_counts = _count_by(s.exit_slide for s in sessions)
        cta_by_slide = _count_by(c.slide_id for c in cta_clicks)
        clicks_by_slide = _count_by(c.slide_id for c in click_events)

        slide_stats = OrderedDict()
        for slide_id, view_count in views.items():
            slide_stats[slide_id] = {
                "slideId": slide_id,
                "views": view_count,
                "uniqueVisitors": len(slide_sessions[slide_id]),
                "avgDurationMs": total_duration[slide_id] / view_count,
                # Exits over raw views, not over sessions that saw the slide
                "bounceRate": _percent(exit_counts.get(slide_id, 0), view_count),
                "ctaClicks": cta_by_slide.get(slide_id, 0),
                "totalClicks": clicks_by_slide.get(slide_id, 0),
            }

        limit = self.settings.TOP_SLIDES_LIMIT
        top_slides = sorted(slide_stats.values(), key=lambda s: s["views"], reverse=True)[:limit]
        high_bounce_slides = sorted(
            (slide_stats[slide_id] for slide_id in exit_counts if slide_id in slide_stats),
            key=lambda s: s["bounceRate"],
            reverse=True
        )[:limit]
        all_slides = sorted(slide_stats.values(), key=lambda s: natural_sort_key(s["slideId"]))

        time_series = self._time_series(page_views)

        return {
            "totalPageViews": len(page_views),
            "uniqueVisitors": unique_visitors,
            "avgSessionDuration": avg_session_duration,
            "bounceRate": bounce_rate,
            "ctaClickRate": cta_click_rate,
            "topSlides": top_slides,
            "highBounceSlides": high_bounce_slides,
            "timeSeries": time_series,
            "realtime": self.get_realtime(slide_stats.keys()),
            "allSlides": all_slides,
        }

    @staticmethod
    def _time_series(page_views) -> List[dict]:
        buckets: Dict[str, dict] = {}
        for pv in page_views:
            day = pv.viewed_at.date().isoformat()
            bucket = buckets.setdefault(day, {"pageViews": 0, "sessions": set()})
            bucket["pageViews"] += 1
            bucket["sessions"].add(pv.session_id)

        return [
            {
                "date": day,
                "pageViews": bucket["pageViews"],
                "uniqueVisitors": len(bucket["sessions"]),
                "sessions": len(bucket["sessions"]),
            }
            for day, bucket in sorted(buckets.items())
        ]

    def get_funnel(self, window: DateWindow) -> dict:
        """
        Funnel transitions, steps and entry/exit distributions.

        Args:
            window: Date window to aggregate

        Returns:
            dict: transitions, steps, entryDistribution, exitDistribution,
                totalSessions
        """
        page_views = self._load(self.store.list_page_views, window.start, window.end)
        sessions = self._load(self.store.list_sessions, window.start, window.end)
        cta_clicks = self._load(self.store.list_cta_clicks, window.start, window.end)

        # Page views arrive oldest first, so each list is in view order
        session_views: "OrderedDict[str, list]" = OrderedDict()
        for pv in page_views:
            session_views.setdefault(pv.session_id, []).append(pv)

        transition_counts: "OrderedDict[Tuple[str, str], int]" = OrderedDict()
        for views in session_views.values():
            for current, following in zip(views, views[1:]):
                key = (current.slide_id, following.slide_id)
                transition_counts[key] = transition_counts.get(key, 0) + 1

        transitions = [
            {"from": src, "to": dst, "count": count}
            for (src, dst), count in sorted(
                transition_counts.items(), key=lambda item: item[1], reverse=True
            )[:self.settings.TRANSITIONS_LIMIT]
        ]

        visitors: "OrderedDict[str, set]" = OrderedDict()
        total_duration: Dict[str, int] = defaultdict(int)
        view_counts: Dict[str, int] = defaultdict(int)
        for session_id, views in session_views.items():
            for pv in views:
                visitors.setdefault(pv.slide_id, set()).add(session_id)
                total_duration[pv.slide_id] += pv.duration_ms or 0
                view_counts[pv.slide_id] += 1

        cta_by_slide = _count_by(c.slide_id for c in cta_clicks)
        exit_counts = _count_by(s.exit_slide for s in sessions)
        entry_counts = _count_by(s.entry_slide for s in sessions)

        steps = []
        for slide_id, slide_visitors in visitors.items():
            steps.append({
                "slideId": slide_id,
                "slideName": f"Slide {slide_id}",
                "visitors": len(slide_visitors),
                # Exits over distinct sessions, unlike the per-slide bounceRate
                "dropOffRate": _percent(exit_counts.get(slide_id, 0), len(slide_visitors)),
                "ctaClicks": cta_by_slide.get(slide_id, 0),
                "avgDuration": total_duration[slide_id] / view_counts[slide_id],
            })
        steps.sort(key=lambda step: step["visitors"], reverse=True)

        return {
            "transitions": transitions,
            "steps": steps,
            "entryDistribution": _ranked(entry_counts),
            "exitDistribution": _ranked(exit_counts),
            "totalSessions": len(sessions),
        }

    def get_heatmap(self, slide_id: str, window: DateWindow) -> dict:
        """
        Click density for one slide on a fixed percentage grid.

        Args:
            slide_id: Slide to aggregate
            window: Date window to aggregate

        Returns:
            dict: slideId, totalClicks, ctaClicks and points
        """
        clicks = self._load(self.store.list_click_events, window.start, window.end, slide_id)
        step = self.settings.HEATMAP_GRID_STEP

        cells: "OrderedDict[Tuple[int, int], int]" = OrderedDict()
        for click in clicks:
            cell = (quantize_percent(click.x_percent, step), quantize_percent(click.y_percent, step))
            cells[cell] = cells.get(cell, 0) + 1

        return {
            "slideId": slide_id,
            "totalClicks": len(clicks),
            "ctaClicks": sum(1 for c in clicks if c.element_type == "cta"),
            "points": [
                {"xPercent": x, "yPercent": y, "count": count}
                for (x, y), count in cells.items()
            ],
        }
