"""Geospatial utilities (no external dependencies)."""

from __future__ import annotations

import math
from typing import Final, Iterable

from campus_explorer.models import CellKey, Coordinate

EARTH_RADIUS_M: Final[float] = 6_371_000.0  # mean Earth radius in meters
DEFAULT_GRID_SCALE: Final[int] = 10_000


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute Haversine distance in meters between two lat/lon points.

    Args:
        lat1: Latitude 1 in degrees.
        lon1: Longitude 1 in degrees.
        lat2: Latitude 2 in degrees.
        lon2: Longitude 2 in degrees.

    Returns:
        Distance in meters.
    """

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def distance_m(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance between two coordinates."""

    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


def is_inside_circle(
    lat: float,
    lon: float,
    center_lat: float,
    center_lon: float,
    radius_m: float,
) -> bool:
    """Check whether a point is inside or on the boundary of a circle geofence."""

    return haversine_m(lat, lon, center_lat, center_lon) <= radius_m


def is_valid_coordinate(coordinate: Coordinate) -> bool:
    """True if both components are finite and inside the WGS84 degree ranges."""

    lat = coordinate.latitude
    lon = coordinate.longitude
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def cell_key(coordinate: Coordinate, cell_size_m: float, scale: int = DEFAULT_GRID_SCALE) -> CellKey:
    """Bucket a coordinate into an axis-aligned lat/lon grid cell.

    The key is ``(floor(lat * scale / cell_size_m), floor(lon * scale / cell_size_m))``.
    With the default scale of 10_000 one unit is roughly 11 m of latitude, so
    ``cell_size_m`` is a meters-equivalent rather than an exact metric size.

    Note:
        Out-of-range coordinates are bucketed as-is. Non-finite components
        (NaN/inf) are bucketed as 0.0 so the result stays deterministic;
        callers should reject such fixes with :func:`is_valid_coordinate`.
    """

    lat = coordinate.latitude if math.isfinite(coordinate.latitude) else 0.0
    lon = coordinate.longitude if math.isfinite(coordinate.longitude) else 0.0
    return CellKey(
        lat_index=math.floor(lat * scale / cell_size_m),
        lon_index=math.floor(lon * scale / cell_size_m),
    )


def path_length_m(points: Iterable[Coordinate]) -> float:
    """Sum of Haversine distances between consecutive points."""

    total = 0.0
    prev: Coordinate | None = None
    for pt in points:
        if prev is not None:
            total += distance_m(prev, pt)
        prev = pt
    return total
