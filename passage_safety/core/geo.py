"""Geospatial helpers for area and weather checks.

All functions are pure. Distances are nautical miles, angles degrees.
Polygon and segment math works in raw lat/lon space (a planar
approximation); only the point-to-point distance is great-circle.
"""

from __future__ import annotations

import math
from typing import Sequence

from passage_safety.core.models import GeographicBounds, Waypoint

# Earth radius in nautical miles (for Haversine).
EARTH_RADIUS_NM = 3440.1


def point_in_bounds(point: Waypoint, bounds: GeographicBounds) -> bool:
    """Inclusive on all four edges: a point on the boundary is inside."""
    return (
        bounds.south <= point.latitude <= bounds.north
        and bounds.west <= point.longitude <= bounds.east
    )


def point_in_polygon(point: Waypoint, polygon: Sequence[Waypoint]) -> bool:
    """Ray casting test. Fewer than 3 vertices never matches.

    Boundary points are not guaranteed to count as inside.
    """
    n = len(polygon)
    if n < 3:
        return False

    x = point.longitude
    y = point.latitude
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i].longitude, polygon[i].latitude
        xj, yj = polygon[j].longitude, polygon[j].latitude
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def haversine_distance_nm(p1: Waypoint, p2: Waypoint) -> float:
    """Great-circle distance in nautical miles between two points."""
    rlat1, rlat2 = math.radians(p1.latitude), math.radians(p2.latitude)
    dlat = math.radians(p2.latitude - p1.latitude)
    dlon = math.radians(p2.longitude - p1.longitude)
    a = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_NM * math.asin(min(1.0, math.sqrt(a)))


def distance_to_line_segment_nm(point: Waypoint, seg_start: Waypoint, seg_end: Waypoint) -> float:
    """Distance from point to the nearest point of a segment.

    The nearest point is found by projecting in degree space and clamping
    to the segment; the final distance is Haversine.
    """
    dx = seg_end.longitude - seg_start.longitude
    dy = seg_end.latitude - seg_start.latitude
    length_sq = dx * dx + dy * dy

    if length_sq == 0:
        return haversine_distance_nm(point, seg_start)

    t = ((point.longitude - seg_start.longitude) * dx
         + (point.latitude - seg_start.latitude) * dy) / length_sq
    t = max(0.0, min(1.0, t))

    nearest = Waypoint(
        latitude=seg_start.latitude + t * dy,
        longitude=seg_start.longitude + t * dx,
    )
    return haversine_distance_nm(point, nearest)


def bearing_deg(start: Waypoint, end: Waypoint) -> float:
    """Initial great-circle bearing from start to end, in [0, 360)."""
    lat1, lat2 = math.radians(start.latitude), math.radians(end.latitude)
    dlon = math.radians(end.longitude - start.longitude)

    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def bounds_overlap(a: GeographicBounds, b: GeographicBounds) -> bool:
    return not (
        a.east < b.west
        or a.west > b.east
        or a.north < b.south
        or a.south > b.north
    )


def bounds_of(points: Sequence[Waypoint]) -> GeographicBounds:
    """Smallest rectangle containing all points (all zeros when empty)."""
    if not points:
        return GeographicBounds(north=0.0, south=0.0, east=0.0, west=0.0)
    lats = [p.latitude for p in points]
    lons = [p.longitude for p in points]
    return GeographicBounds(north=max(lats), south=min(lats), east=max(lons), west=min(lons))


def interpolate(start: Waypoint, end: Waypoint, fraction: float) -> Waypoint:
    """Linear interpolation in lat/lon space."""
    return Waypoint(
        latitude=start.latitude + (end.latitude - start.latitude) * fraction,
        longitude=start.longitude + (end.longitude - start.longitude) * fraction,
    )
