"""Routing orchestration service."""

from __future__ import annotations

import logging
import time

from ...models.domain import Coordinates, OptimizationMethod, Stop, VehicleType
from ...schemas.routing import (
    CoordinatesModel,
    RouteMetadataModel,
    RouteModel,
    RouteOptimizationRequest,
    RouteOptimizationResponse,
    SegmentModel,
    StopModel,
)
from ..geospatial import coordinates_in_range, format_distance, format_duration, parse_gps_coordinates
from .assembler import assemble_route
from .context import CalculationContext, CancellationToken
from .errors import InvalidInputError, RoutingError, UnknownCalculationError
from .merge import merge_locked_stops, partition_stops, validate_locked_stops
from .models import Route, RouteMetadata, RouteRequest, RouteResult, Segment
from .optimizer import SearchLimits, optimize_order
from .oracle import RoutingProvider, TravelCostOracle
from .osrm_client import OSRMClient, decode_polyline

logger = logging.getLogger(__name__)


def validate_request(request: RouteRequest) -> list[Stop]:
    stops = list(request.stops)
    if len(stops) < 2:
        raise InvalidInputError("At least 2 stops are required to calculate a route.")

    seen_ids: set[str] = set()
    for stop in stops:
        if stop.coordinates is None:
            raise InvalidInputError(f"Stop '{stop.stop_id}' ({stop.address}) has no coordinates.")
        if not coordinates_in_range(stop.coordinates.latitude, stop.coordinates.longitude):
            raise InvalidInputError(
                f"Stop '{stop.stop_id}' has invalid coordinates "
                f"({stop.coordinates.latitude}, {stop.coordinates.longitude})."
            )
        if stop.stop_id in seen_ids:
            raise InvalidInputError(f"Duplicate stop id '{stop.stop_id}'.")
        seen_ids.add(stop.stop_id)

    validate_locked_stops(stops)
    return stops


def build_provider() -> RoutingProvider | None:
    try:
        return OSRMClient()
    except ValueError as e:
        logger.warning(f"OSRM client unavailable: {e} Using great-circle estimates for every leg.")
        return None


def _api_provider_label(segments: list[Segment]) -> str:
    estimated = sum(1 for segment in segments if segment.is_estimated)
    if estimated == 0:
        return "osrm"
    if estimated == len(segments):
        return "great-circle"
    return "osrm+great-circle"


def calculate_route(
    request: RouteRequest,
    *,
    oracle: TravelCostOracle | None = None,
    cancellation: CancellationToken | None = None,
    limits: SearchLimits | None = None,
) -> RouteResult:
    """Order the request's stops and compute the legs of the resulting route.

    Raises:
        InvalidInputError: the request cannot be calculated as given.
        CalculationCancelledError: ``cancellation`` was triggered.
        UnknownCalculationError: anything else went wrong.
    """
    started = time.perf_counter()
    stops = validate_request(request)
    try:
        method = OptimizationMethod(request.optimization_method)
        vehicle = VehicleType(request.vehicle_type)
    except ValueError as exc:
        raise InvalidInputError(str(exc)) from exc
    oracle = oracle or TravelCostOracle(build_provider())

    logger.info(
        f"Calculating route: {len(stops)} stops, vehicle={vehicle.value}, "
        f"method={method.value}, loop={request.is_loop}"
    )

    try:
        with CalculationContext(oracle, cancellation=cancellation) as context:
            _, unlocked = partition_stops(stops)
            outcome = optimize_order(unlocked, method, request.is_loop, vehicle, context, limits)
            ordered = merge_locked_stops(stops, outcome.order)
            route = assemble_route(ordered, vehicle, request.is_loop, method, context)
            oracle_calls = context.oracle_calls
            logger.debug(
                f"Segment cache: {len(context.cache)} legs, {context.cache.hits} hits, {context.cache.misses} misses"
            )
            # A cancel that lands during assembly still wins over the result.
            context.cancellation.raise_if_cancelled()
    except RoutingError:
        raise
    except Exception as exc:
        logger.error(f"Route calculation failed unexpectedly: {exc}", exc_info=True)
        raise UnknownCalculationError(f"Route calculation failed: {exc}") from exc

    elapsed_ms = (time.perf_counter() - started) * 1000.0
    metadata = RouteMetadata(
        calculation_time_ms=elapsed_ms,
        algorithm=outcome.strategy,
        api_provider=_api_provider_label(route.segments),
        candidates_evaluated=outcome.candidates_evaluated,
        estimated_segments=sum(1 for segment in route.segments if segment.is_estimated),
    )
    logger.info(
        f"Route {route.route_id}: {format_distance(route.total_distance_km)}, "
        f"{format_duration(route.total_duration_min)} "
        f"in {elapsed_ms:.0f} ms ({oracle_calls} leg lookups, algorithm={outcome.strategy})"
    )
    return RouteResult(route=route, metadata=metadata)


def _stop_from_model(model: StopModel) -> Stop:
    if model.coordinates is not None:
        coordinates = Coordinates(latitude=model.coordinates.latitude, longitude=model.coordinates.longitude)
    else:
        # Not geocoding: only literal "lat, lng" style addresses are accepted.
        coordinates = parse_gps_coordinates(model.address)
    return Stop(
        stop_id=model.id,
        address=model.address,
        coordinates=coordinates,
        is_locked=model.is_locked,
        order=model.order,
        lock_position=model.lock_position,
    )


def _stop_to_model(stop: Stop) -> StopModel:
    return StopModel(
        id=stop.stop_id,
        address=stop.address,
        coordinates=CoordinatesModel(latitude=stop.coordinates.latitude, longitude=stop.coordinates.longitude)
        if stop.coordinates
        else None,
        is_locked=stop.is_locked,
        lock_position=stop.lock_position,
        order=stop.order,
    )


def _segment_to_model(segment: Segment) -> SegmentModel:
    path: list[list[float]] = []
    if segment.geometry:
        try:
            path = [[lat, lon] for lat, lon in decode_polyline(segment.geometry)]
        except IndexError:
            logger.warning(
                f"Could not decode geometry for {segment.origin.stop_id} -> {segment.destination.stop_id}"
            )
    return SegmentModel(
        from_stop_id=segment.origin.stop_id,
        to_stop_id=segment.destination.stop_id,
        distance_km=segment.distance_km,
        duration_min=segment.duration_min,
        instructions=list(segment.instructions),
        geometry=segment.geometry,
        path=path,
        source=segment.source.value,
    )


def _route_to_model(route: Route) -> RouteModel:
    return RouteModel(
        route_id=route.route_id,
        stops=[_stop_to_model(stop) for stop in route.stops],
        segments=[_segment_to_model(segment) for segment in route.segments],
        total_distance_km=route.total_distance_km,
        total_duration_min=route.total_duration_min,
        vehicle_type=route.vehicle_type,
        is_loop=route.is_loop,
        optimization_method=route.optimization_method,
    )


def optimize_route(
    payload: RouteOptimizationRequest,
    *,
    cancellation: CancellationToken | None = None,
) -> RouteOptimizationResponse:
    request = RouteRequest(
        stops=[_stop_from_model(stop) for stop in payload.stops],
        vehicle_type=payload.vehicle_type,
        is_loop=payload.is_loop,
        optimization_method=payload.optimization_method,
    )
    result = calculate_route(request, cancellation=cancellation)
    return RouteOptimizationResponse(
        route=_route_to_model(result.route),
        metadata=RouteMetadataModel(
            calculation_time_ms=result.metadata.calculation_time_ms,
            algorithm=result.metadata.algorithm,
            api_provider=result.metadata.api_provider,
            candidates_evaluated=result.metadata.candidates_evaluated,
            estimated_segments=result.metadata.estimated_segments,
        ),
    )
