"""Tests for the geospatial helpers."""

from __future__ import annotations

import pytest

from passage_safety.core import geo
from passage_safety.core.models import GeographicBounds, Waypoint

ONE_DEGREE_NM = 60.04  # EARTH_RADIUS_NM * pi / 180

SQUARE = (Waypoint(0, 0), Waypoint(0, 1), Waypoint(1, 1), Waypoint(1, 0))


def test_haversine_one_degree_of_latitude():
    d = geo.haversine_distance_nm(Waypoint(42.0, -70.0), Waypoint(43.0, -70.0))
    assert d == pytest.approx(ONE_DEGREE_NM, abs=0.01)


def test_haversine_same_point_is_zero():
    p = Waypoint(42.3, -70.9)
    assert geo.haversine_distance_nm(p, p) == 0.0


def test_haversine_antipodal_does_not_overflow():
    d = geo.haversine_distance_nm(Waypoint(0, 0), Waypoint(0, 180))
    assert d == pytest.approx(geo.EARTH_RADIUS_NM * 3.14159265, rel=1e-6)


def test_point_in_bounds_is_inclusive():
    bounds = GeographicBounds(north=42.5, south=42.0, east=-69.5, west=-70.5)
    assert geo.point_in_bounds(Waypoint(42.25, -70.0), bounds)
    assert geo.point_in_bounds(Waypoint(42.5, -70.5), bounds)
    assert not geo.point_in_bounds(Waypoint(42.51, -70.0), bounds)


def test_point_in_polygon():
    assert geo.point_in_polygon(Waypoint(0.5, 0.5), SQUARE)
    assert not geo.point_in_polygon(Waypoint(1.5, 0.5), SQUARE)


def test_polygon_with_two_vertices_never_matches():
    assert not geo.point_in_polygon(Waypoint(0, 0), SQUARE[:2])


def test_distance_to_segment_projects_onto_middle():
    d = geo.distance_to_line_segment_nm(Waypoint(1, 1), Waypoint(0, 0), Waypoint(0, 2))
    assert d == pytest.approx(ONE_DEGREE_NM, abs=0.01)


def test_distance_to_segment_clamps_to_endpoint():
    d = geo.distance_to_line_segment_nm(Waypoint(0, 3), Waypoint(0, 0), Waypoint(0, 2))
    assert d == pytest.approx(ONE_DEGREE_NM, abs=0.01)


def test_distance_to_zero_length_segment():
    start = Waypoint(10, 10)
    d = geo.distance_to_line_segment_nm(Waypoint(11, 10), start, start)
    assert d == pytest.approx(ONE_DEGREE_NM, abs=0.01)


def test_bearing_cardinal_directions():
    origin = Waypoint(0, 0)
    assert geo.bearing_deg(origin, Waypoint(1, 0)) == pytest.approx(0.0, abs=1e-9)
    assert geo.bearing_deg(origin, Waypoint(0, 1)) == pytest.approx(90.0)
    assert geo.bearing_deg(origin, Waypoint(-1, 0)) == pytest.approx(180.0)
    assert geo.bearing_deg(origin, Waypoint(0, -1)) == pytest.approx(270.0)


def test_bounds_of_points_and_empty():
    b = geo.bounds_of([Waypoint(1, 5), Waypoint(3, -2), Waypoint(2, 0)])
    assert (b.north, b.south, b.east, b.west) == (3, 1, 5, -2)

    empty = geo.bounds_of([])
    assert (empty.north, empty.south, empty.east, empty.west) == (0, 0, 0, 0)


def test_bounds_overlap():
    a = GeographicBounds(north=2, south=0, east=2, west=0)
    assert geo.bounds_overlap(a, GeographicBounds(north=3, south=1, east=3, west=1))
    assert geo.bounds_overlap(a, GeographicBounds(north=4, south=2, east=4, west=2))  # shared corner
    assert not geo.bounds_overlap(a, GeographicBounds(north=5, south=3, east=5, west=3))


def test_interpolate_midpoint():
    mid = geo.interpolate(Waypoint(41.5, -70.3), Waypoint(43.0, -70.3), 0.5)
    assert mid.latitude == pytest.approx(42.25)
    assert mid.longitude == pytest.approx(-70.3)
