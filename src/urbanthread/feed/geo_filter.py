"""Distance-sorted feed of published, unexpired reports."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from urbanthread.geo import haversine_km
from urbanthread.models import FeedItem, GeoPoint, Report
from urbanthread.utils.time import is_expired, utc_now


def is_visible(report: Report, now: datetime) -> bool:
    """Only published reports inside their lifetime reach the feed."""
    return report.status == "published" and not is_expired(report.expires_at, now)


def filter_feed(
    center: Optional[GeoPoint],
    radius_km: float,
    reports: Iterable[Report],
    now: Optional[datetime] = None,
    category: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> list[FeedItem]:
    """Return visible reports within ``radius_km`` of ``center``, nearest first.

    Reports without coordinates cannot be placed; they follow the located
    ones in their original order. Without a centre the feed is newest first.
    """
    now = now or utc_now()
    candidates = [
        report
        for report in reports
        if is_visible(report, now) and (not category or category == "All" or report.category == category)
    ]

    if center is None:
        ordered = sorted(candidates, key=lambda report: report.created_at, reverse=True)
        items = [FeedItem(report=report) for report in ordered]
        return _page(items, limit, offset)

    located: list[tuple[float, int, Report]] = []
    unlocated: list[Report] = []
    for index, report in enumerate(candidates):
        if report.lat is None or report.lng is None:
            unlocated.append(report)
            continue
        distance = haversine_km(center.lat, center.lng, report.lat, report.lng)
        if distance <= radius_km:
            located.append((distance, index, report))

    located.sort(key=lambda row: (row[0], row[1]))
    items = [FeedItem(report=report, distance_km=round(distance, 1)) for distance, _, report in located]
    items.extend(FeedItem(report=report) for report in unlocated)
    return _page(items, limit, offset)


def _page(items: list[FeedItem], limit: Optional[int], offset: int) -> list[FeedItem]:
    start = max(0, offset)
    if limit is None:
        return items[start:]
    return items[start : start + max(0, limit)]
