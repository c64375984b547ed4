"""Geospatial helper functions."""

from __future__ import annotations

import math
import re
from typing import Optional

from ..models.domain import Coordinates

EARTH_RADIUS_KM = 6371.0

_GPS_PATTERNS = (
    re.compile(r"^(-?\d+\.?\d*),\s*(-?\d+\.?\d*)$"),
    re.compile(r"^(-?\d+\.?\d*)\s+(-?\d+\.?\d*)$"),
    re.compile(r"^lat:\s*(-?\d+\.?\d*)\s*lng:\s*(-?\d+\.?\d*)$", re.IGNORECASE),
    re.compile(r"^latitude:\s*(-?\d+\.?\d*)\s*longitude:\s*(-?\d+\.?\d*)$", re.IGNORECASE),
)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def great_circle_km(origin: Coordinates, destination: Coordinates) -> float:
    return haversine_km(origin.latitude, origin.longitude, destination.latitude, destination.longitude)


def coordinates_in_range(latitude: float, longitude: float) -> bool:
    return -90 <= latitude <= 90 and -180 <= longitude <= 180


def parse_gps_coordinates(text: str) -> Optional[Coordinates]:
    """Parse a literal GPS pair such as ``"48.85, 2.35"`` into coordinates.

    Returns None when the text is not one of the accepted formats or the
    values fall outside valid latitude/longitude ranges.
    """

    cleaned = (text or "").strip()
    for pattern in _GPS_PATTERNS:
        match = pattern.match(cleaned)
        if not match:
            continue
        latitude, longitude = float(match.group(1)), float(match.group(2))
        if coordinates_in_range(latitude, longitude):
            return Coordinates(latitude=latitude, longitude=longitude)
    return None


def format_distance(kilometers: float) -> str:
    if kilometers < 1:
        return f"{round(kilometers * 1000)} m"
    return f"{kilometers:.1f} km"


def format_duration(minutes: float) -> str:
    if minutes < 60:
        return f"{round(minutes)} min"
    hours = int(minutes // 60)
    remaining = round(minutes % 60)
    if remaining == 60:
        hours, remaining = hours + 1, 0
    if remaining == 0:
        return f"{hours}h"
    return f"{hours}h {remaining}min"
