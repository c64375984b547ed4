"""Routing request/response schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import LockPosition, OptimizationMethod, VehicleType


class CoordinatesModel(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class StopModel(BaseModel):
    id: str = Field(..., min_length=1)
    address: str = ""
    coordinates: Optional[CoordinatesModel] = Field(
        default=None,
        description="Required unless the address itself is a GPS pair such as '48.8566, 2.3522'.",
    )
    is_locked: bool = False
    lock_position: Optional[LockPosition] = Field(
        default=None,
        description="'start' or 'end' pin the stop to the first/last position; 'fixed' uses `order`.",
    )
    order: Optional[int] = Field(default=None, ge=0, description="Absolute 0-indexed position for locked stops.")


class RouteOptimizationRequest(BaseModel):
    stops: List[StopModel] = Field(..., min_length=1)
    vehicle_type: VehicleType = VehicleType.CAR
    is_loop: bool = False
    optimization_method: OptimizationMethod = OptimizationMethod.SHORTEST_DISTANCE


class SegmentModel(BaseModel):
    from_stop_id: str
    to_stop_id: str
    distance_km: float
    duration_min: float
    instructions: List[str]
    geometry: Optional[str] = None
    path: List[List[float]] = Field(default_factory=list, description="Decoded geometry as [lat, lon] pairs.")
    source: str


class RouteModel(BaseModel):
    route_id: str
    stops: List[StopModel]
    segments: List[SegmentModel]
    total_distance_km: float
    total_duration_min: float
    vehicle_type: VehicleType
    is_loop: bool
    optimization_method: OptimizationMethod


class RouteMetadataModel(BaseModel):
    calculation_time_ms: float
    algorithm: str
    api_provider: str
    candidates_evaluated: int
    estimated_segments: int


class RouteOptimizationResponse(BaseModel):
    route: RouteModel
    metadata: RouteMetadataModel
