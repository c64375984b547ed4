"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ...models.domain import OptimizationMethod, Stop, VehicleType


class SegmentSource(str, Enum):
    RESOLVED = "resolved"
    ESTIMATED = "estimated"


@dataclass(frozen=True, slots=True)
class Segment:
    origin: Stop
    destination: Stop
    distance_km: float
    duration_min: float
    instructions: List[str] = field(default_factory=list)
    geometry: Optional[str] = None
    source: SegmentSource = SegmentSource.RESOLVED

    @property
    def is_estimated(self) -> bool:
        return self.source is SegmentSource.ESTIMATED


@dataclass(frozen=True, slots=True)
class Route:
    route_id: str
    stops: List[Stop]
    segments: List[Segment]
    total_distance_km: float
    total_duration_min: float
    vehicle_type: VehicleType
    is_loop: bool
    optimization_method: OptimizationMethod


@dataclass(slots=True)
class RouteRequest:
    stops: List[Stop]
    vehicle_type: VehicleType = VehicleType.CAR
    is_loop: bool = False
    optimization_method: OptimizationMethod = OptimizationMethod.SHORTEST_DISTANCE


@dataclass(slots=True)
class OptimizationOutcome:
    order: List[Stop]
    strategy: str
    score: Optional[float] = None
    candidates_evaluated: int = 0


@dataclass(slots=True)
class RouteMetadata:
    calculation_time_ms: float
    algorithm: str
    api_provider: str
    candidates_evaluated: int = 0
    estimated_segments: int = 0


@dataclass(slots=True)
class RouteResult:
    route: Route
    metadata: RouteMetadata
