"""Travel cost oracle: real leg metrics from OSRM with a great-circle fallback."""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

import httpx

from ...models.domain import Stop, VehicleType
from ..geospatial import format_distance, great_circle_km
from .errors import InvalidInputError, ProviderUnavailableError
from .models import Segment, SegmentSource

logger = logging.getLogger(__name__)

# Provider results are adjusted for heavy vehicles: longer detours for
# weight/height restrictions, much lower average speed.
TRUCK_DISTANCE_FACTOR = 1.10
TRUCK_DURATION_FACTOR = 1.40

# Average speeds (km/h) for the great-circle fallback.
FALLBACK_SPEED_KMH = {
    VehicleType.CAR: 70.0,
    VehicleType.TRUCK: 50.0,
}

# Malformed payloads surface as any of these while parsing.
_PROVIDER_ERRORS = (
    httpx.HTTPError,
    AttributeError,
    ConnectionError,
    OSError,
    ValueError,
    KeyError,
    IndexError,
    TypeError,
)


class RoutingProvider(Protocol):
    def route(self, coordinates: Sequence[tuple[float, float]], *, steps: bool = True) -> dict:
        ...


def require_coordinates(stop: Stop) -> None:
    if stop.coordinates is None:
        raise InvalidInputError(f"Stop '{stop.stop_id}' has no coordinates.")


def _step_instruction(step: dict) -> str:
    maneuver = step.get("maneuver") or {}
    kind = maneuver.get("type")
    modifier = maneuver.get("modifier")
    road = step.get("name")
    distance_km = float(step.get("distance") or 0.0) / 1000.0

    if kind == "depart":
        text = f"Head {modifier}" if modifier else "Depart"
    elif kind == "arrive":
        return "Arrive at destination"
    elif kind in ("turn", "end of road", "fork", "on ramp", "off ramp") and modifier:
        text = f"Turn {modifier}"
    elif kind in ("roundabout", "rotary"):
        exit_number = maneuver.get("exit")
        text = f"Take exit {exit_number} at the roundabout" if exit_number else "Enter the roundabout"
    elif kind in ("continue", "new name") and modifier:
        text = f"Continue {modifier}"
    elif kind == "merge":
        text = "Merge"
    else:
        return f"Continue for {format_distance(distance_km)}"

    if road:
        text = f"{text} onto {road}"
    return text


def _instructions_from_legs(legs: list) -> list[str]:
    instructions: list[str] = []
    for leg in legs or []:
        for step in leg.get("steps") or []:
            instructions.append(_step_instruction(step))
    return instructions


class TravelCostOracle:
    """Resolves the travel cost of a single directed leg.

    A provider of ``None`` means no routing service is configured and every
    leg is estimated.
    """

    def __init__(self, provider: RoutingProvider | None = None) -> None:
        self.provider = provider

    def resolve_segment(self, origin: Stop, destination: Stop, vehicle: VehicleType) -> Segment:
        require_coordinates(origin)
        require_coordinates(destination)

        if self.provider is None:
            return self.estimate_segment(origin, destination, vehicle)

        try:
            return self._query_provider(origin, destination, vehicle)
        except ProviderUnavailableError as exc:
            logger.warning(
                f"Routing provider failed for {origin.stop_id} -> {destination.stop_id}: {exc}. "
                f"Using great-circle estimate."
            )
            return self.estimate_segment(origin, destination, vehicle)

    def _query_provider(self, origin: Stop, destination: Stop, vehicle: VehicleType) -> Segment:
        try:
            data = self.provider.route([origin.coordinates.as_tuple(), destination.coordinates.as_tuple()], steps=True)
            routes = data.get("routes") or []
            if not routes:
                raise ValueError("no route found")
            best = routes[0]
            distance_km = float(best["distance"]) / 1000.0
            duration_min = float(best["duration"]) / 60.0
            instructions = _instructions_from_legs(best.get("legs"))
            geometry = best.get("geometry") or None
        except _PROVIDER_ERRORS as exc:
            raise ProviderUnavailableError(str(exc)) from exc

        if vehicle == VehicleType.TRUCK:
            distance_km *= TRUCK_DISTANCE_FACTOR
            duration_min *= TRUCK_DURATION_FACTOR

        return Segment(
            origin=origin,
            destination=destination,
            distance_km=distance_km,
            duration_min=duration_min,
            instructions=instructions,
            geometry=geometry if isinstance(geometry, str) else None,
            source=SegmentSource.RESOLVED,
        )

    @staticmethod
    def estimate_segment(origin: Stop, destination: Stop, vehicle: VehicleType) -> Segment:
        require_coordinates(origin)
        require_coordinates(destination)
        distance_km = great_circle_km(origin.coordinates, destination.coordinates)
        duration_min = distance_km / FALLBACK_SPEED_KMH[vehicle] * 60.0
        return Segment(
            origin=origin,
            destination=destination,
            distance_km=distance_km,
            duration_min=duration_min,
            instructions=[f"Travel {format_distance(distance_km)} to {destination.address}"],
            geometry=None,
            source=SegmentSource.ESTIMATED,
        )
