"""
Great-circle helpers for proximity queries.
"""

import math
from typing import List, Optional, Tuple

EARTH_RADIUS_KM = 6371
KM_PER_DEGREE = 111

# Longitude degrees shrink to nothing at the poles
_MIN_COS_LAT = 0.01


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(dlon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bounding_box(lat: float, lon: float, radius_km: float) -> Tuple[float, float, float, float]:
    """(min_lat, max_lat, min_lon, max_lon) enclosing a circle of radius_km.

    The box over-approximates the circle; callers refine with haversine_km.
    """
    lat_range = radius_km / KM_PER_DEGREE
    cos_lat = max(abs(math.cos(math.radians(lat))), _MIN_COS_LAT)
    lon_range = min(radius_km / (KM_PER_DEGREE * cos_lat), 180)
    return lat - lat_range, lat + lat_range, lon - lon_range, lon + lon_range


def longitude_ranges(min_lon: float, max_lon: float) -> Optional[List[Tuple[float, float]]]:
    """Split a longitude span at the antimeridian.

    Returns None when the span covers every longitude.
    """
    if max_lon - min_lon >= 360:
        return None
    if min_lon < -180:
        return [(min_lon + 360, 180), (-180, max_lon)]
    if max_lon > 180:
        return [(min_lon, 180), (-180, max_lon - 360)]
    return [(min_lon, max_lon)]
