"""Cost functions used to compare candidate visiting orders."""

from __future__ import annotations

from typing import Sequence

from ...models.domain import OptimizationMethod, Stop, VehicleType
from ..geospatial import great_circle_km
from .context import CalculationContext
from .oracle import TRUCK_DISTANCE_FACTOR, TRUCK_DURATION_FACTOR, require_coordinates

# Blend for OptimizationMethod.BALANCED (km and minutes, tuned empirically).
BALANCED_DISTANCE_WEIGHT = 0.4
BALANCED_DURATION_WEIGHT = 0.6

# Banded speed model (upper bound km, km/h) for the optimizer's quick
# estimates. Intentionally different from the oracle's fallback speeds.
SPEED_BANDS_KMH = (
    (10.0, 40.0),
    (50.0, 55.0),
)
OPEN_ROAD_SPEED_KMH = 65.0


def leg_cost(distance_km: float, duration_min: float, method: OptimizationMethod) -> float:
    if method == OptimizationMethod.SHORTEST_DISTANCE:
        return distance_km
    if method == OptimizationMethod.FASTEST_TIME:
        return duration_min
    return BALANCED_DISTANCE_WEIGHT * distance_km + BALANCED_DURATION_WEIGHT * duration_min


def tour_pairs(ordered_stops: Sequence[Stop], is_loop: bool) -> list[tuple[Stop, Stop]]:
    pairs = [(ordered_stops[i], ordered_stops[i + 1]) for i in range(len(ordered_stops) - 1)]
    if is_loop and len(ordered_stops) >= 2:
        pairs.append((ordered_stops[-1], ordered_stops[0]))
    return pairs


def score_order(
    ordered_stops: Sequence[Stop],
    method: OptimizationMethod,
    is_loop: bool,
    vehicle: VehicleType,
    context: CalculationContext,
) -> float:
    """Total cost of visiting ``ordered_stops`` in sequence.

    Legs come from the calculation's cache, falling back to the oracle; a
    closing leg back to the first stop is included for loops.
    """
    for stop in ordered_stops:
        require_coordinates(stop)
    if len(ordered_stops) < 2:
        return 0.0

    segments = context.resolve_legs(tour_pairs(ordered_stops, is_loop), vehicle)
    return sum(leg_cost(segment.distance_km, segment.duration_min, method) for segment in segments)


def banded_speed_kmh(distance_km: float) -> float:
    for upper_km, speed in SPEED_BANDS_KMH:
        if distance_km <= upper_km:
            return speed
    return OPEN_ROAD_SPEED_KMH


def estimate_leg(origin: Stop, destination: Stop, vehicle: VehicleType) -> tuple[float, float]:
    """Quick (km, min) estimate for a leg without contacting the provider."""
    require_coordinates(origin)
    require_coordinates(destination)
    distance_km = great_circle_km(origin.coordinates, destination.coordinates)
    duration_min = distance_km / banded_speed_kmh(distance_km) * 60.0
    if vehicle == VehicleType.TRUCK:
        distance_km *= TRUCK_DISTANCE_FACTOR
        duration_min *= TRUCK_DURATION_FACTOR
    return distance_km, duration_min


def estimated_leg_cost(origin: Stop, destination: Stop, method: OptimizationMethod, vehicle: VehicleType) -> float:
    return leg_cost(*estimate_leg(origin, destination, vehicle), method)
