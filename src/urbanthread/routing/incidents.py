"""Nearby incidents for a trip, taken from the published feed."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from urbanthread.feed.geo_filter import filter_feed
from urbanthread.geo import distance_km, midpoint
from urbanthread.models import GeoPoint, IncidentSummary, Report
from urbanthread.utils.time import age_hours, utc_now


def search_radius_km(origin: GeoPoint, destination: GeoPoint, buffer_km: float) -> float:
    """Circle around the trip midpoint that covers both ends plus a buffer."""
    return distance_km(origin, destination) / 2 + max(0.0, buffer_km)


def find_route_incidents(
    origin: GeoPoint,
    destination: GeoPoint,
    reports: Iterable[Report],
    buffer_km: float = 2.0,
    now: Optional[datetime] = None,
) -> list[IncidentSummary]:
    now = now or utc_now()
    center = midpoint(origin, destination)
    radius = search_radius_km(origin, destination, buffer_km)
    items = filter_feed(center, radius, reports, now=now)
    return [
        IncidentSummary(
            category=item.report.category,
            severity=item.report.severity,
            age_hours=round(age_hours(item.report.created_at, now), 1),
        )
        for item in items
        if item.distance_km is not None
    ]
