"""
Great-circle distance helpers used by the geofence evaluator.
"""

import math
from typing import Any, Mapping, Union

EARTH_RADIUS_M = 6_371_000.0

PointLike = Union[Mapping[str, float], Any]


def _lat_lng(point: PointLike) -> tuple:
    if isinstance(point, Mapping):
        return float(point["lat"]), float(point["lng"])
    return float(point.lat), float(point.lng)


def haversine_m(a: PointLike, b: PointLike) -> float:
    """
    Distance in meters between two ``{lat, lng}`` points.

    Accepts mappings or any object exposing ``lat``/``lng`` attributes.
    Spherical model only (no ellipsoidal correction).
    """
    lat1, lng1 = _lat_lng(a)
    lat2, lng2 = _lat_lng(b)

    lat1_rad, lat2_rad = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def is_within_radius(a: PointLike, b: PointLike, radius_m: float) -> bool:
    """True when ``a`` lies strictly inside the circle of ``radius_m`` around ``b``."""
    return haversine_m(a, b) < radius_m
