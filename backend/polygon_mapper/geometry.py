"""
Geodesic area calculations for traced polygons.

This module handles:
1. Spherical-excess area of an open lon/lat ring (the stored value)
2. Rounding into square meters and hectares
3. Comparing the spherical area against the WGS-84 ellipsoid
"""

import math
from typing import Dict, Sequence

from pyproj import Geod
from shapely.geometry import Polygon as ShapelyPolygon

from .models import MIN_VERTICES, AreaMeasurement, Coordinate

# Radius used by the reference area routine (WGS-84 semi-major axis)
EARTH_RADIUS_M = 6_378_137.0

# WGS84 ellipsoid - standard for GPS and GeoJSON
WGS84 = Geod(ellps="WGS84")

SQUARE_METERS_PER_HECTARE = 10_000


def ring_area_m2(ring: Sequence[Coordinate]) -> float:
    """
    Calculate unrounded area of an open ring on a sphere, in square meters.

    Why spherical instead of planar?
    - Planar shoelace treats degrees as flat (wrong once a field spans km)
    - The spherical excess sum accounts for Earth's curvature

    For every edge (lon1, lat1) -> (lon2, lat2), including the closing edge
    from the last vertex back to the first, accumulate

        radians(lon2 - lon1) * (2 + sin(lat1) + sin(lat2))

    then scale |sum| by R² / 2.

    Args:
        ring: Open ring of (lon, lat) pairs (first vertex not repeated)

    Returns:
        Area in square meters (always positive), 0.0 for fewer than 3 vertices
    """
    if len(ring) < MIN_VERTICES:
        return 0.0

    total = 0.0
    closed = list(ring) + [ring[0]]
    for (lon1, lat1), (lon2, lat2) in zip(closed, closed[1:]):
        total += math.radians(lon2 - lon1) * (
            2 + math.sin(math.radians(lat1)) + math.sin(math.radians(lat2))
        )

    return abs(total * EARTH_RADIUS_M * EARTH_RADIUS_M / 2)


def compute_area(ring: Sequence[Coordinate]) -> AreaMeasurement:
    """
    Area of a ring in square meters and hectares, each rounded to 2 decimals.

    Hectares are rounded from the unrounded square meters, not derived from
    the rounded value.
    """
    area_m2 = ring_area_m2(ring)
    return AreaMeasurement(
        square_meters=round(area_m2, 2),
        hectares=round(area_m2 / SQUARE_METERS_PER_HECTARE, 2),
    )


def ellipsoidal_area_m2(ring: Sequence[Coordinate]) -> float:
    """Area of a ring on the WGS-84 ellipsoid (pyproj), in square meters."""
    if len(ring) < MIN_VERTICES:
        return 0.0

    lons = [c[0] for c in ring]
    lats = [c[1] for c in ring]

    # Returns: (area, perimeter); sign follows winding
    area, _ = WGS84.polygon_area_perimeter(lons, lats)
    return abs(area)


def is_valid_ring(ring: Sequence[Coordinate]) -> bool:
    """
    Check the ring describes a simple polygon.

    Self-intersecting (bow-tie) and degenerate rings are reported, not repaired.
    """
    if len(ring) < MIN_VERTICES:
        return False
    geom = ShapelyPolygon(ring)
    return geom.is_valid and not geom.is_empty and geom.area > 0


def compare_area(ring: Sequence[Coordinate]) -> Dict[str, object]:
    """
    Compare the stored (spherical) area with the ellipsoidal one.

    Returns:
        {
            "area": AreaMeasurement(...),
            "area_spherical_m2": 84405213.37,
            "area_ellipsoidal_m2": 84447022.91,
            "difference_m2": 41809.54,
            "difference_percent": 0.05,
            "ring_valid": True
        }
    """
    spherical_m2 = ring_area_m2(ring)
    ellipsoidal_m2 = ellipsoidal_area_m2(ring)

    difference_m2 = ellipsoidal_m2 - spherical_m2
    difference_percent = (difference_m2 / ellipsoidal_m2 * 100) if ellipsoidal_m2 > 0 else 0.0

    return {
        "area": compute_area(ring),
        "area_spherical_m2": round(spherical_m2, 2),
        "area_ellipsoidal_m2": round(ellipsoidal_m2, 2),
        "difference_m2": round(difference_m2, 2),
        "difference_percent": round(difference_percent, 2),
        "ring_valid": is_valid_ring(ring),
    }
