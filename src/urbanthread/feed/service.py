"""Feed queries against a report store."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from urbanthread.config import Settings
from urbanthread.db.store import ReportStore
from urbanthread.feed.geo_filter import filter_feed
from urbanthread.models import CityStats, FeedItem, GeoPoint
from urbanthread.utils.time import utc_now


def get_feed(
    store: ReportStore,
    center: Optional[GeoPoint] = None,
    radius_km: Optional[float] = None,
    category: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> list[FeedItem]:
    """Load candidates through the store prefilter, then filter exactly."""
    settings = settings or Settings()
    now = now or utc_now()
    radius = settings.feed_radius_km if radius_km is None else radius_km
    page_size = settings.feed_page_size if limit is None else limit

    candidates = store.list_visible_reports(
        now=now,
        center=center,
        radius_km=radius if center is not None else None,
        category=category,
    )
    return filter_feed(
        center,
        radius,
        candidates,
        now=now,
        category=category,
        limit=page_size,
        offset=offset,
    )


def city_stats(
    store: ReportStore,
    city: str,
    now: Optional[datetime] = None,
    days: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> CityStats:
    """Published-report counts for a city, with a per-category breakdown of recent days."""
    settings = settings or Settings()
    if not city or not city.strip():
        raise ValueError("city is required")
    window_days = settings.city_stats_days if days is None else days
    since = (now or utc_now()) - timedelta(days=window_days)
    return store.city_stats(city.strip(), since)
