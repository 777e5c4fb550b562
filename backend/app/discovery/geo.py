"""City resolution from a device coordinate and display distances.

`resolve_nearest` uses planar squared distance on raw degrees: good enough to pick a
city inside one country, not a geodesic ranking. `haversine_km` is the great-circle
distance used for "X km away" labels.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from numbers import Real

from .types import City

EARTH_RADIUS_KM = 6371.0


class InvalidCoordinateError(ValueError):
    """Latitude/longitude missing, non-numeric, non-finite or out of range."""


class EmptyCatalogError(LookupError):
    """No city to resolve against."""


def validate_coordinate(lat: object, lng: object) -> tuple[float, float]:
    for label, value, bound in (("latitude", lat, 90.0), ("longitude", lng, 180.0)):
        if isinstance(value, bool) or not isinstance(value, Real):
            raise InvalidCoordinateError(f"invalid coordinate: {label} must be a number, got {value!r}")
        if not math.isfinite(value):
            raise InvalidCoordinateError(f"invalid coordinate: {label} is not finite")
        if not -bound <= value <= bound:
            raise InvalidCoordinateError(
                f"invalid coordinate: {label} must be between {-bound:g} and {bound:g}, got {value}"
            )
    return float(lat), float(lng)  # type: ignore[arg-type]


def resolve_nearest(cities: Sequence[City], lat: float, lng: float) -> City:
    lat, lng = validate_coordinate(lat, lng)
    if not cities:
        raise EmptyCatalogError("cannot resolve a city from an empty catalog")

    nearest = cities[0]
    best = math.inf
    for city in cities:
        distance = (city.latitude - lat) ** 2 + (city.longitude - lng) ** 2
        # strict '<' keeps the first city on ties
        if distance < best:
            best = distance
            nearest = city
    return nearest


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def format_distance(km: float) -> str:
    if km < 1:
        return f"{km * 1000:.0f} m"
    return f"{km:.1f} km"
