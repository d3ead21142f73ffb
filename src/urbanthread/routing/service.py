"""Route planning on top of the live incident feed."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from urbanthread.config import Settings
from urbanthread.db.store import ReportStore
from urbanthread.geo import distance_km, midpoint
from urbanthread.models import GeoPoint, IncidentSummary, RouteComparison, RouteSet
from urbanthread.routing.incidents import find_route_incidents, search_radius_km
from urbanthread.routing.scorer import compare_routes, score_routes
from urbanthread.utils.logging import get_logger
from urbanthread.utils.time import utc_now


logger = get_logger(__name__)


def _incidents(
    store: ReportStore,
    origin: GeoPoint,
    destination: GeoPoint,
    settings: Settings,
    now: datetime,
) -> list[IncidentSummary]:
    buffer_km = settings.route_incident_buffer_km
    candidates = store.list_visible_reports(
        now=now,
        center=midpoint(origin, destination),
        radius_km=search_radius_km(origin, destination, buffer_km),
    )
    incidents = find_route_incidents(origin, destination, candidates, buffer_km=buffer_km, now=now)
    logger.info(
        "routes.incidents distance_km=%.1f candidates=%s incidents=%s",
        distance_km(origin, destination),
        len(candidates),
        len(incidents),
    )
    return incidents


def plan_routes(
    store: ReportStore,
    origin: GeoPoint,
    destination: GeoPoint,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> RouteSet:
    settings = settings or Settings()
    incidents = _incidents(store, origin, destination, settings, now or utc_now())
    return score_routes(origin, destination, incidents, settings.currency_symbol)


def plan_and_compare(
    store: ReportStore,
    origin: GeoPoint,
    destination: GeoPoint,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> RouteComparison:
    settings = settings or Settings()
    incidents = _incidents(store, origin, destination, settings, now or utc_now())
    comparison = compare_routes(origin, destination, incidents, settings.currency_symbol)
    logger.info("routes.compared recommended=%s", comparison.recommended)
    return comparison
