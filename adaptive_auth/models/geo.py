"""
Great-circle helpers used by the location scorer.
"""

import math
from typing import Tuple


EARTH_RADIUS_KM: float = 6371.0


def haversine_km(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """
    Calculate great-circle distance between two (lat, lon) points.

    Returns:
        Distance in kilometres
    """
    lat1_r = math.radians(a[0])
    lon1_r = math.radians(a[1])
    lat2_r = math.radians(b[0])
    lon2_r = math.radians(b[1])

    dlat = lat2_r - lat1_r
    dlon = lon2_r - lon1_r

    h = (
        math.sin(dlat / 2) ** 2 +
        math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_KM * c


def implied_speed_kmh(distance_km: float, elapsed_seconds: float) -> float:
    """
    Speed needed to cover distance_km in elapsed_seconds.

    Elapsed time is floored at one second so simultaneous sightings of
    distant points still read as (very) fast rather than dividing by zero.
    """
    hours = max(elapsed_seconds, 1.0) / 3600.0
    return distance_km / hours
