"""Re-insert locked stops into an optimized ordering."""

from __future__ import annotations

from typing import Sequence

from ...models.domain import LockPosition, Stop
from .errors import InvalidInputError


def partition_stops(stops: Sequence[Stop]) -> tuple[list[Stop], list[Stop]]:
    """Split stops into (locked, unlocked), preserving input order."""
    locked = [stop for stop in stops if stop.is_locked]
    unlocked = [stop for stop in stops if not stop.is_locked]
    return locked, unlocked


def resolve_locked_position(stop: Stop, total: int) -> int:
    if stop.lock_position == LockPosition.START:
        return 0
    if stop.lock_position == LockPosition.END:
        return total - 1
    if stop.order is None:
        raise InvalidInputError(f"Locked stop '{stop.stop_id}' does not declare an order.")
    return stop.order


def validate_locked_stops(stops: Sequence[Stop]) -> dict[int, Stop]:
    """Map each locked stop to its absolute position.

    Raises InvalidInputError when a position is outside the route or claimed
    by more than one locked stop.
    """
    total = len(stops)
    positions: dict[int, Stop] = {}
    for stop in stops:
        if not stop.is_locked:
            continue
        position = resolve_locked_position(stop, total)
        if not 0 <= position < total:
            raise InvalidInputError(
                f"Locked stop '{stop.stop_id}' declares position {position}, "
                f"outside the route of {total} stops."
            )
        if position in positions:
            raise InvalidInputError(
                f"Locked stops '{positions[position].stop_id}' and '{stop.stop_id}' "
                f"both claim position {position}."
            )
        positions[position] = stop
    return positions


def merge_locked_stops(all_stops: Sequence[Stop], optimized_unlocked: Sequence[Stop]) -> list[Stop]:
    """Place locked stops at their declared positions and fill the gaps in optimized order."""
    positions = validate_locked_stops(all_stops)
    _, unlocked = partition_stops(all_stops)
    if len(positions) + len(optimized_unlocked) != len(all_stops):
        raise InvalidInputError(
            f"Expected {len(all_stops) - len(positions)} unlocked stops, got {len(optimized_unlocked)}."
        )
    if {stop.stop_id for stop in optimized_unlocked} != {stop.stop_id for stop in unlocked}:
        raise InvalidInputError("Optimized ordering does not contain exactly the unlocked stops.")

    remaining = iter(optimized_unlocked)
    return [positions[index] if index in positions else next(remaining) for index in range(len(all_stops))]
