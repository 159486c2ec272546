"""Great-circle helpers and ride distance/ETA formatting.

Coordinates passed as pairs follow the GeoJSON order ``[lng, lat]``; the
scalar functions take latitude first.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from numbers import Real
from typing import Any, Optional, Sequence

EARTH_RADIUS_KM = 6371.0
DEFAULT_AVERAGE_SPEED_KMH = 30.0


def is_finite_number(value: Any) -> bool:
    """True for a finite real number; bools are not numbers here."""
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometres on a sphere of radius 6371 km."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def calculate_bearing(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Initial bearing from point 1 to point 2 in degrees, 0 = north, [0, 360)."""
    d_lng = math.radians(lng2 - lng1)
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)

    y = math.sin(d_lng) * math.cos(lat2_rad)
    x = math.cos(lat1_rad) * math.sin(lat2_rad) - math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(d_lng)

    bearing = math.degrees(math.atan2(y, x)) % 360.0
    return 0.0 if bearing >= 360.0 else bearing


def calculate_distance(coord1: Sequence[float], coord2: Sequence[float]) -> float:
    """Distance in metres between two ``[lng, lat]`` pairs."""
    lng1, lat1 = coord1
    lng2, lat2 = coord2
    return haversine_km(lat1, lng1, lat2, lng2) * 1000.0


def calculate_eta(distance_m: float, average_speed_kmh: float = DEFAULT_AVERAGE_SPEED_KMH) -> int:
    """Minutes needed to cover ``distance_m`` at ``average_speed_kmh``, rounded up."""
    if not is_finite_number(average_speed_kmh) or average_speed_kmh <= 0:
        average_speed_kmh = DEFAULT_AVERAGE_SPEED_KMH
    time_hours = (distance_m / 1000.0) / average_speed_kmh
    return int(math.ceil(time_hours * 60))


def calculate_eta_from_locations(
    current: Sequence[float],
    destination: Sequence[float],
    average_speed_kmh: float = DEFAULT_AVERAGE_SPEED_KMH,
) -> int:
    return calculate_eta(calculate_distance(current, destination), average_speed_kmh)


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{round(meters)} m"
    return f"{meters / 1000:.1f} km"


def format_duration(seconds: float) -> str:
    minutes = int(seconds // 60)
    if minutes < 60:
        return f"{minutes} min"
    hours, remaining = divmod(minutes, 60)
    return f"{hours}h {remaining}min"


def format_eta_time(minutes: float, now: Optional[datetime] = None) -> str:
    """Wall-clock arrival time ``HH:MM`` for an ETA given in minutes."""
    now = now or datetime.now()
    return (now + timedelta(minutes=minutes)).strftime("%H:%M")


def is_valid_location(location: Any) -> bool:
    """True for a ``[lng, lat]`` pair of real numbers within geographic range."""
    if not isinstance(location, (list, tuple)) or len(location) != 2:
        return False
    lng, lat = location
    if not all(is_finite_number(v) for v in (lng, lat)):
        return False
    return -180 <= lng <= 180 and -90 <= lat <= 90


__all__ = [
    "DEFAULT_AVERAGE_SPEED_KMH",
    "EARTH_RADIUS_KM",
    "calculate_bearing",
    "calculate_distance",
    "calculate_eta",
    "calculate_eta_from_locations",
    "format_distance",
    "format_duration",
    "format_eta_time",
    "haversine_km",
    "is_finite_number",
    "is_valid_location",
]
