"""Per-calculation memo of resolved segments."""

from __future__ import annotations

from typing import Tuple

from ...models.domain import VehicleType
from .models import Segment

SegmentKey = Tuple[str, str, VehicleType]


def segment_key(from_id: str, to_id: str, vehicle: VehicleType) -> SegmentKey:
    # Directional: A->B and B->A are separate entries.
    return (from_id, to_id, VehicleType(vehicle))


class SegmentCache:
    """Memoizes oracle results for one route calculation.

    Bounded by the number of stop pairs in the request, so entries are never
    evicted; the owning calculation clears it when it ends.
    """

    def __init__(self) -> None:
        self._entries: dict[SegmentKey, Segment] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: SegmentKey) -> Segment | None:
        segment = self._entries.get(key)
        if segment is None:
            self.misses += 1
        else:
            self.hits += 1
        return segment

    def put(self, key: SegmentKey, segment: Segment) -> None:
        self._entries[key] = segment

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
