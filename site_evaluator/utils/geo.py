"""Geographic helpers for proximity matching of property locations."""

import math
from typing import Optional, Sequence, Tuple

EARTH_RADIUS_METERS = 6371000.0
METERS_PER_DEGREE_LAT = 111320.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in meters."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def bounding_box(lat: float, lon: float, radius_m: float) -> Tuple[float, float, float, float]:
    """Return (min_lat, max_lat, min_lon, max_lon) enclosing a radius around a point.

    Used as a cheap SQL prefilter before the precise haversine check.
    """
    d_lat = radius_m / METERS_PER_DEGREE_LAT
    cos_lat = max(math.cos(math.radians(lat)), 1e-6)
    d_lon = radius_m / (METERS_PER_DEGREE_LAT * cos_lat)
    return lat - d_lat, lat + d_lat, lon - d_lon, lon + d_lon


def are_valid_coordinates(lat: Optional[float], lon: Optional[float]) -> bool:
    if lat is None or lon is None:
        return False
    if isinstance(lat, float) and math.isnan(lat) or isinstance(lon, float) and math.isnan(lon):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def centroid(points: Sequence[Tuple[float, float]]) -> Optional[Tuple[float, float]]:
    """Arithmetic centroid of a boundary polygon given as (lat, lon) pairs."""
    if not points:
        return None
    lat = sum(p[0] for p in points) / len(points)
    lon = sum(p[1] for p in points) / len(points)
    return lat, lon


def format_coordinates(lat: float, lon: float, decimals: int = 6) -> str:
    return f"{lat:.{decimals}f}, {lon:.{decimals}f}"
