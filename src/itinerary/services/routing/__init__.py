"""Route ordering and travel-cost services."""

from .context import CalculationContext, CancellationToken
from .errors import (
    CalculationCancelledError,
    InvalidInputError,
    ProviderUnavailableError,
    RoutingError,
    UnknownCalculationError,
)
from .models import Route, RouteMetadata, RouteRequest, RouteResult, Segment, SegmentSource
from .service import calculate_route, optimize_route

__all__ = [
    "calculate_route",
    "optimize_route",
    "CalculationContext",
    "CancellationToken",
    "RoutingError",
    "InvalidInputError",
    "ProviderUnavailableError",
    "CalculationCancelledError",
    "UnknownCalculationError",
    "Route",
    "RouteMetadata",
    "RouteRequest",
    "RouteResult",
    "Segment",
    "SegmentSource",
]
