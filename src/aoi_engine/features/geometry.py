"""Geodesic area of rings of (lat, lng) points on a spherical Earth.

Each consecutive pair of points contributes the spherical excess of the
trapezoid bounded by the segment, the equator and the two meridians:

    E = 2 * atan2(tan(dlng/2) * (tan(lat1/2) + tan(lat2/2)),
                  1 + tan(lat1/2) * tan(lat2/2))

The signed double-area contribution is 2E; the area is the sum of
|2E| * R^2 / 2 over all pairs.  The wrap-around segment from the last point
back to the first is NOT added, and contributions are absolute-valued per
segment rather than signed-and-summed.  Both behaviours are kept for
compatibility with stored areas; a ring whose segments do not trace its
full boundary, or which crosses itself, yields a non-negative but
possibly meaningless figure.

Pure functions, no I/O.  NaN coordinates propagate as NaN; callers must
reject them first (FeatureStore does).
"""

from __future__ import annotations

import math
from typing import Sequence

EARTH_RADIUS_M = 6_371_000.0
SQ_M_PER_SQ_KM = 1_000_000.0

Point = tuple[float, float]  # (lat, lng) in degrees


def _segment_double_area(p1: Sequence[float], p2: Sequence[float]) -> float:
    """Signed double spherical excess (radians) for one segment."""
    lat1 = math.radians(p1[0])
    lat2 = math.radians(p2[0])
    dlng = math.radians(p2[1] - p1[1])

    t1 = math.tan(lat1 / 2)
    t2 = math.tan(lat2 / 2)
    excess = 2 * math.atan2(math.tan(dlng / 2) * (t1 + t2), 1 + t1 * t2)
    return 2 * excess


def area_sq_m(ring: Sequence[Sequence[float]]) -> float:
    """Area traced by *ring* in square meters."""
    if len(ring) < 2:
        return 0.0

    total = 0.0
    for i in range(len(ring) - 1):
        contribution = _segment_double_area(ring[i], ring[i + 1])
        total += abs(contribution) * EARTH_RADIUS_M * EARTH_RADIUS_M / 2
    return total


def area(ring: Sequence[Sequence[float]]) -> float:
    """Area traced by *ring* in square kilometers.

    Args:
        ring: Ordered (lat, lng) points.  Not closed automatically.

    Returns:
        Non-negative area in km^2; 0 for fewer than two points.
    """
    return area_sq_m(ring) / SQ_M_PER_SQ_KM


def polygon_area(rings: Sequence[Sequence[Sequence[float]]]) -> float:
    """Outer-ring area minus hole areas, in km^2, clamped at zero."""
    if not rings:
        return 0.0
    outer = area(rings[0])
    holes = sum(area(hole) for hole in rings[1:])
    return max(outer - holes, 0.0)


def format_area(area_km2: float) -> str:
    """Human-readable area for list display.

    Areas under 0.01 km^2 are shown in square meters.
    """
    if area_km2 < 0.01:
        return f"{area_km2 * SQ_M_PER_SQ_KM:.0f} m²"
    return f"{area_km2:.2f} km²"
