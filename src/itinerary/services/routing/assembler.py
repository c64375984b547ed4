"""Build the final itinerary from an ordered list of stops."""

from __future__ import annotations

import uuid
from typing import Sequence

from ...models.domain import OptimizationMethod, Stop, VehicleType
from .context import CalculationContext
from .models import Route


def new_route_id() -> str:
    return f"route_{uuid.uuid4().hex}"


def route_legs(ordered_stops: Sequence[Stop], is_loop: bool) -> list[tuple[Stop, Stop]]:
    legs = [(ordered_stops[i], ordered_stops[i + 1]) for i in range(len(ordered_stops) - 1)]
    if is_loop and len(ordered_stops) > 2:
        legs.append((ordered_stops[-1], ordered_stops[0]))
    return legs


def assemble_route(
    ordered_stops: Sequence[Stop],
    vehicle: VehicleType,
    is_loop: bool,
    method: OptimizationMethod,
    context: CalculationContext,
) -> Route:
    # Legs scored during optimization are already cached.
    segments = context.resolve_legs(route_legs(ordered_stops, is_loop), vehicle)
    return Route(
        route_id=new_route_id(),
        stops=list(ordered_stops),
        segments=segments,
        total_distance_km=sum(segment.distance_km for segment in segments),
        total_duration_min=sum(segment.duration_min for segment in segments),
        vehicle_type=VehicleType(vehicle),
        is_loop=is_loop,
        optimization_method=OptimizationMethod(method),
    )
