"""
Geometry primitives for delivery zones.

Pure functions over lat/lng degrees, no state and no I/O:
- haversine great-circle distance on a sphere of radius 6371 km
- circle containment by distance
- polygon containment by even-odd ray casting

Boundary points (exactly on a polygon edge/vertex, or exactly at the circle
radius) have no canonical answer; whatever the arithmetic yields is the result.
"""
import math
from typing import Sequence, Tuple

from delivery_areas.app.core.constants import EARTH_RADIUS_M

LatLng = Tuple[float, float]


def haversine_distance_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points, in meters."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def is_point_in_circle(
    lat: float,
    lng: float,
    center_lat: float,
    center_lng: float,
    radius_m: float,
) -> bool:
    return haversine_distance_m(lat, lng, center_lat, center_lng) <= radius_m


def is_point_in_polygon(lat: float, lng: float, ring: Sequence[LatLng]) -> bool:
    """
    Even-odd ray casting test.

    Args:
        lat, lng: Point to test
        ring: (lat, lng) vertices of a simple polygon; the closing edge from the
              last vertex back to the first is implied

    Returns:
        True if the ray from the point crosses the ring an odd number of times
    """
    inside = False
    x, y = lng, lat
    j = len(ring) - 1
    for i in range(len(ring)):
        yi, xi = ring[i]
        yj, xj = ring[j]
        # i == 0 pairs with j == last: the wrap-around edge
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside
