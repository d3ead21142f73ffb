"""Great-circle distance shared by the feed filter and the route scorer."""

from __future__ import annotations

from dataclasses import dataclass
from math import asin, atan2, cos, degrees, radians, sin, sqrt

from urbanthread.models import GeoPoint


EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Spherical-earth distance in kilometres."""
    dlat = radians(lat2 - lat1)
    dlng = radians(lng2 - lng1)
    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlng / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_km(origin: GeoPoint, destination: GeoPoint) -> float:
    return haversine_km(origin.lat, origin.lng, destination.lat, destination.lng)


def midpoint(origin: GeoPoint, destination: GeoPoint) -> GeoPoint:
    """Great-circle midpoint of two coordinates."""
    lat1, lng1 = radians(origin.lat), radians(origin.lng)
    lat2, dlng = radians(destination.lat), radians(destination.lng - origin.lng)
    bx = cos(lat2) * cos(dlng)
    by = cos(lat2) * sin(dlng)
    lat = atan2(sin(lat1) + sin(lat2), sqrt((cos(lat1) + bx) ** 2 + by**2))
    lng = lng1 + atan2(by, cos(lat1) + bx)
    lng_deg = (degrees(lng) + 540) % 360 - 180
    return GeoPoint(lat=degrees(lat), lng=lng_deg)


@dataclass(frozen=True)
class BoundingBox:
    """Coarse lat/lng window used only to prefilter storage queries."""

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng


def bounding_box(center: GeoPoint, radius_km: float) -> BoundingBox:
    """Return a box that fully contains the circle of ``radius_km``."""
    angular = radius_km / EARTH_RADIUS_KM
    lat_delta = degrees(angular)
    min_lat = max(-90.0, center.lat - lat_delta)
    max_lat = min(90.0, center.lat + lat_delta)

    # Circles reaching a pole or wider than the globe span all longitudes.
    if min_lat <= -90.0 or max_lat >= 90.0 or angular >= 1.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    lng_delta = degrees(asin(min(1.0, sin(angular) / cos(radians(center.lat)))))
    min_lng = center.lng - lng_delta
    max_lng = center.lng + lng_delta
    if min_lng < -180.0 or max_lng > 180.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)
    return BoundingBox(min_lat, max_lat, min_lng, max_lng)
