"""
Distance calculation using the Haversine formula.

Assumption
----------
Great-circle distance stands in for road distance.  Tricycle trips stay
inside a single barangay, so the difference to a routing engine is small
and the module stays free of external API keys.

Out-of-range coordinates are rejected, never clamped.

Complexity: O(1) per call.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from .errors import InvalidCoordinateError

if TYPE_CHECKING:
    from .entities import Coordinate

EARTH_RADIUS_KM = 6_371.0


def check_coordinate(lat: float, lng: float) -> None:
    """Raise ``InvalidCoordinateError`` unless *lat*/*lng* are valid degrees."""
    if math.isnan(lat) or not -90.0 <= lat <= 90.0:
        raise InvalidCoordinateError(f"Latitude out of range: {lat}")
    if math.isnan(lng) or not -180.0 <= lng <= 180.0:
        raise InvalidCoordinateError(f"Longitude out of range: {lng}")


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    check_coordinate(lat1, lng1)
    check_coordinate(lat2, lng2)

    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    h = min(
        1.0,
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2,
    )
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def distance_km(a: Coordinate, b: Coordinate) -> float:
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)
