"""Domain models for stops and routing parameters."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class VehicleType(str, Enum):
    CAR = "car"
    TRUCK = "truck"


class OptimizationMethod(str, Enum):
    SHORTEST_DISTANCE = "shortest_distance"
    FASTEST_TIME = "fastest_time"
    BALANCED = "balanced"


class LockPosition(str, Enum):
    START = "start"
    END = "end"
    FIXED = "fixed"


@dataclass(frozen=True, slots=True)
class Coordinates:
    latitude: float
    longitude: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class Stop:
    """A waypoint supplied by the caller, optionally pinned to a position."""

    stop_id: str
    address: str
    coordinates: Optional[Coordinates] = None
    is_locked: bool = False
    order: Optional[int] = None
    lock_position: Optional[LockPosition] = None
