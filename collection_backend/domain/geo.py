"""
Geo helpers for collection events. Haversine, pure, no I/O.
NaN in -> NaN out; callers guard their inputs.
"""

import math
from typing import Sequence, Tuple

import numpy as np

from collection_backend.domain.models import Coordinates, ProximityCheck

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    lat1_r = math.radians(lat1)
    lat2_r = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in km, rounded to 2 decimals for display."""
    return round(haversine_km(lat1, lng1, lat2, lng2), 2)


def distances_km(
    lat: float, lng: float, points: Sequence[Tuple[float, float]]
) -> np.ndarray:
    """Distances (km, 2 decimals) from one position to many (lat, lng) points. Shape (N,)."""
    if len(points) == 0:
        return np.zeros(0)
    pts = np.radians(np.asarray(points, dtype=float))
    lat_r = math.radians(lat)
    dlat = pts[:, 0] - lat_r
    dlng = pts[:, 1] - math.radians(lng)
    a = np.sin(dlat / 2) ** 2 + math.cos(lat_r) * np.cos(pts[:, 0]) * np.sin(dlng / 2) ** 2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return np.round(EARTH_RADIUS_KM * c, 2)


def validate_proximity(
    user_location: Coordinates,
    bin_location: Coordinates,
    max_distance_km: float = 0.1,
) -> ProximityCheck:
    """Advisory check: is the worker within max_distance_km of the bin."""
    d = distance_km(
        user_location.lat, user_location.lng, bin_location.lat, bin_location.lng
    )
    return ProximityCheck(is_valid=d <= max_distance_km, distance=d)


def format_coordinates(lat: float, lng: float, precision: int = 6) -> str:
    return f"{lat:.{precision}f}, {lng:.{precision}f}"
