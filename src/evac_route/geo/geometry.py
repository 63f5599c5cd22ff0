"""Planar geometry for hazard checks plus the haversine distance used by navigation.

Coordinates are treated as planar (lat, lon) pairs here, which is fine at the
scale of a single city.  Polygon rings are assumed simple, without holes.
"""
from __future__ import annotations

from math import atan2, cos, radians, sin, sqrt
from typing import Iterable, Sequence

from evac_route.core.models import Coordinate, HazardPolygon


# ---------------------------------------------------------------------------
# Distances
# ---------------------------------------------------------------------------

def haversine_m(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in metres between two WGS-84 points."""
    R = 6_371_000.0  # Earth radius in metres
    lat1r, lon1r, lat2r, lon2r = map(radians, [a.lat, a.lon, b.lat, b.lon])
    dlat = lat2r - lat1r
    dlon = lon2r - lon1r
    h = sin(dlat / 2) ** 2 + cos(lat1r) * cos(lat2r) * sin(dlon / 2) ** 2
    return R * 2 * atan2(sqrt(h), sqrt(1 - h))


def planar_sq_distance(a: Coordinate, b: Coordinate) -> float:
    """Squared difference in degrees. Only good for ranking nearby points."""
    dlat = b.lat - a.lat
    dlon = b.lon - a.lon
    return dlat * dlat + dlon * dlon


# ---------------------------------------------------------------------------
# Intersection tests
# ---------------------------------------------------------------------------

def _ccw(a: Coordinate, b: Coordinate, c: Coordinate) -> bool:
    return (c.lat - a.lat) * (b.lon - a.lon) > (b.lat - a.lat) * (c.lon - a.lon)


def segments_intersect(p1: Coordinate, p2: Coordinate, q1: Coordinate, q2: Coordinate) -> bool:
    """Crossing of segment p1-p2 with q1-q2 by the strict orientation test.

    Collinear overlaps come out as not crossing. Shared endpoints are not
    special-cased and follow whatever the strict comparison in `_ccw` gives.
    """
    return _ccw(p1, q1, q2) != _ccw(p2, q1, q2) and _ccw(p1, p2, q1) != _ccw(p1, p2, q2)


def point_in_polygon(point: Coordinate, ring: Sequence[Coordinate]) -> bool:
    """Ray-casting parity test against a single ring."""
    x = point.lon
    y = point.lat
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i].lon, ring[i].lat
        xj, yj = ring[j].lon, ring[j].lat
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def point_in_any_polygon(point: Coordinate, polygons: Iterable[HazardPolygon]) -> bool:
    return any(point_in_polygon(point, poly.ring) for poly in polygons)


def path_intersects_any(path: Sequence[Coordinate], polygons: Iterable[HazardPolygon]) -> bool:
    """True if any consecutive pair of ``path`` crosses an edge of any ring.

    Cost is O(len(path) * total ring vertices).
    """
    polygons = list(polygons)
    if len(path) < 2 or not polygons:
        return False

    for i in range(len(path) - 1):
        p1 = path[i]
        p2 = path[i + 1]
        for poly in polygons:
            ring = poly.ring
            for j in range(len(ring) - 1):
                if segments_intersect(p1, p2, ring[j], ring[j + 1]):
                    return True
    return False
