import math

import pytest

from urbanthread.geo import EARTH_RADIUS_KM, bounding_box, distance_km, haversine_km, midpoint
from urbanthread.models import GeoPoint


def test_haversine_one_degree_on_equator():
    assert haversine_km(0, 0, 0, 1) == pytest.approx(EARTH_RADIUS_KM * math.pi / 180)
    assert haversine_km(0, 0, 0, 1) == pytest.approx(111.195, abs=0.001)


def test_haversine_symmetric_and_zero():
    a = GeoPoint(lat=12.9716, lng=77.5946)
    b = GeoPoint(lat=13.0827, lng=80.2707)
    assert distance_km(a, b) == pytest.approx(distance_km(b, a))
    assert distance_km(a, a) == 0


def test_midpoint_on_equator():
    mid = midpoint(GeoPoint(lat=0, lng=0), GeoPoint(lat=0, lng=10))
    assert mid.lat == pytest.approx(0)
    assert mid.lng == pytest.approx(5)


def test_midpoint_across_antimeridian():
    mid = midpoint(GeoPoint(lat=0, lng=179), GeoPoint(lat=0, lng=-179))
    assert abs(mid.lng) == pytest.approx(180)


def test_bounding_box_contains_circle():
    center = GeoPoint(lat=48.8566, lng=2.3522)
    box = bounding_box(center, 10.0)
    # Points just inside the radius along the four compass directions.
    delta_lat = math.degrees(9.99 / EARTH_RADIUS_KM)
    delta_lng = delta_lat / math.cos(math.radians(center.lat))
    for lat, lng in (
        (center.lat + delta_lat, center.lng),
        (center.lat - delta_lat, center.lng),
        (center.lat, center.lng + delta_lng),
        (center.lat, center.lng - delta_lng),
    ):
        assert haversine_km(center.lat, center.lng, lat, lng) <= 10.0
        assert box.contains(lat, lng)
    assert not box.contains(center.lat + 1, center.lng)


def test_bounding_box_near_pole_spans_all_longitudes():
    box = bounding_box(GeoPoint(lat=89.99, lng=0), 5.0)
    assert (box.min_lng, box.max_lng) == (-180.0, 180.0)
    assert box.max_lat == 90.0


def test_bounding_box_crossing_antimeridian_spans_all_longitudes():
    box = bounding_box(GeoPoint(lat=0, lng=179.99), 5.0)
    assert box.contains(0.0, -179.99)
