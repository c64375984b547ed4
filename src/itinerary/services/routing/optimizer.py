"""Visiting-order heuristics for the unlocked stops of a route.

Small inputs get a scored candidate search (nearest-neighbour baseline plus a
capped set of permutations); loops get several tour construction strategies
that account for the closing leg; large open routes use nearest-neighbour
alone. Candidates are compared with the full provider-backed score, while
the greedy construction steps use the quick banded-speed estimate so that
building a candidate costs no provider calls.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterator, Sequence

from ...config import settings
from ...models.domain import OptimizationMethod, Stop, VehicleType
from ..geospatial import great_circle_km
from .context import CalculationContext, CancellationToken
from .models import OptimizationOutcome
from .scoring import estimated_leg_cost, score_order

logger = logging.getLogger(__name__)

STRATEGY_INPUT_ORDER = "input_order"
STRATEGY_NEAREST_NEIGHBOR = "nearest_neighbor"
STRATEGY_RETURN_AWARE = "return_aware_nearest_neighbor"
STRATEGY_FARTHEST_FIRST = "farthest_first"
STRATEGY_FORCED_SECOND = "forced_second"
STRATEGY_PERMUTATION = "permutation"


@dataclass(slots=True)
class SearchLimits:
    advanced_max_stops: int = settings.advanced_search_max_stops
    exhaustive_max_stops: int = settings.exhaustive_search_max_stops
    max_permutations: int = settings.max_permutations
    loop_second_stop_candidates: int = settings.loop_second_stop_candidates


class BoundedPermutations:
    """Orderings of ``items`` in first-index expansion order, capped at ``limit``.

    The first ``fixed_head`` items stay in place. Generation uses an explicit
    stack and is lazy; every ``iter()`` restarts from the first ordering,
    which is always the input order itself.
    """

    def __init__(self, items: Sequence, limit: int, *, fixed_head: int = 0) -> None:
        self.items = tuple(items)
        self.limit = limit
        self.fixed_head = min(max(fixed_head, 0), len(self.items))

    def __iter__(self) -> Iterator[list]:
        stack = [(self.items[: self.fixed_head], self.items[self.fixed_head :])]
        produced = 0
        while stack and produced < self.limit:
            prefix, remaining = stack.pop()
            if not remaining:
                produced += 1
                yield list(prefix)
                continue
            # Pushed in reverse so the lowest index is expanded first.
            for index in range(len(remaining) - 1, -1, -1):
                stack.append((prefix + (remaining[index],), remaining[:index] + remaining[index + 1 :]))


def _greedy_extend(
    tour: list[Stop],
    remaining: list[Stop],
    method: OptimizationMethod,
    vehicle: VehicleType,
    home: Stop | None = None,
    cancellation: CancellationToken | None = None,
) -> list[Stop]:
    """Append ``remaining`` to ``tour`` nearest-first.

    With ``home`` set, the last two stops are ordered by comparing both
    completions including the leg back to ``home``. ``cancellation`` is
    checked before each stop is placed.
    """
    tour = list(tour)
    remaining = list(remaining)

    def cost(origin: Stop, destination: Stop) -> float:
        return estimated_leg_cost(origin, destination, method, vehicle)

    while remaining:
        if cancellation is not None:
            cancellation.raise_if_cancelled()
        current = tour[-1]
        if home is not None and len(remaining) == 2:
            first, second = remaining
            via_first = cost(current, first) + cost(first, second) + cost(second, home)
            via_second = cost(current, second) + cost(second, first) + cost(first, home)
            tour.extend([first, second] if via_first <= via_second else [second, first])
            break
        nearest_index = min(range(len(remaining)), key=lambda i: cost(current, remaining[i]))
        tour.append(remaining.pop(nearest_index))
    return tour


def nearest_neighbor(
    stops: Sequence[Stop],
    method: OptimizationMethod,
    vehicle: VehicleType,
    cancellation: CancellationToken | None = None,
) -> list[Stop]:
    """Greedy tour starting from the first stop."""
    if len(stops) <= 1:
        return list(stops)
    return _greedy_extend([stops[0]], list(stops[1:]), method, vehicle, cancellation=cancellation)


def return_aware_nearest_neighbor(
    stops: Sequence[Stop],
    method: OptimizationMethod,
    vehicle: VehicleType,
    cancellation: CancellationToken | None = None,
) -> list[Stop]:
    if len(stops) <= 1:
        return list(stops)
    return _greedy_extend([stops[0]], list(stops[1:]), method, vehicle, home=stops[0], cancellation=cancellation)


def farthest_first(
    stops: Sequence[Stop],
    method: OptimizationMethod,
    vehicle: VehicleType,
    cancellation: CancellationToken | None = None,
) -> list[Stop]:
    """Visit the stop farthest from the start first, then return-aware nearest-neighbour."""
    if len(stops) <= 2:
        return list(stops)
    start, rest = stops[0], list(stops[1:])
    farthest_index = max(range(len(rest)), key=lambda i: great_circle_km(start.coordinates, rest[i].coordinates))
    farthest = rest.pop(farthest_index)
    return _greedy_extend([start, farthest], rest, method, vehicle, home=start, cancellation=cancellation)


def forced_second(
    stops: Sequence[Stop],
    second_index: int,
    method: OptimizationMethod,
    vehicle: VehicleType,
    cancellation: CancellationToken | None = None,
) -> list[Stop]:
    start, rest = stops[0], list(stops[1:])
    second = rest.pop(second_index)
    return _greedy_extend([start, second], rest, method, vehicle, home=start, cancellation=cancellation)


class _CandidateSearch:
    """Scores candidate orderings and remembers the first lowest-scoring one."""

    def __init__(
        self,
        method: OptimizationMethod,
        is_loop: bool,
        vehicle: VehicleType,
        context: CalculationContext,
    ) -> None:
        self.method = method
        self.is_loop = is_loop
        self.vehicle = vehicle
        self.context = context
        self.best_order: list[Stop] | None = None
        self.best_strategy: str | None = None
        self.best_score = math.inf
        self.evaluated = 0
        self._seen: set[tuple[str, ...]] = set()

    def consider(self, strategy: str, order: Sequence[Stop]) -> None:
        self.context.cancellation.raise_if_cancelled()
        signature = tuple(stop.stop_id for stop in order)
        if signature in self._seen:
            return
        self._seen.add(signature)

        score = score_order(order, self.method, self.is_loop, self.vehicle, self.context)
        self.evaluated += 1
        logger.debug(f"Candidate {strategy}: score={score:.3f} order={list(signature)}")
        if score < self.best_score:
            self.best_score = score
            self.best_order = list(order)
            self.best_strategy = strategy

    def outcome(self) -> OptimizationOutcome:
        return OptimizationOutcome(
            order=list(self.best_order or []),
            strategy=self.best_strategy or STRATEGY_INPUT_ORDER,
            score=self.best_score if self.best_order is not None else None,
            candidates_evaluated=self.evaluated,
        )


def _loop_aware_search(
    stops: list[Stop],
    method: OptimizationMethod,
    vehicle: VehicleType,
    context: CalculationContext,
    limits: SearchLimits,
) -> OptimizationOutcome:
    search = _CandidateSearch(method, True, vehicle, context)
    search.consider(STRATEGY_RETURN_AWARE, return_aware_nearest_neighbor(stops, method, vehicle, context.cancellation))
    search.consider(STRATEGY_FARTHEST_FIRST, farthest_first(stops, method, vehicle, context.cancellation))
    for index in range(min(limits.loop_second_stop_candidates, len(stops) - 1)):
        strategy = f"{STRATEGY_FORCED_SECOND}:{stops[index + 1].stop_id}"
        search.consider(strategy, forced_second(stops, index, method, vehicle, context.cancellation))
    search.consider(STRATEGY_NEAREST_NEIGHBOR, nearest_neighbor(stops, method, vehicle, context.cancellation))

    if len(stops) <= limits.exhaustive_max_stops:
        for order in BoundedPermutations(stops, limits.max_permutations, fixed_head=1):
            search.consider(STRATEGY_PERMUTATION, order)
    return search.outcome()


def _advanced_search(
    stops: list[Stop],
    method: OptimizationMethod,
    vehicle: VehicleType,
    context: CalculationContext,
    limits: SearchLimits,
) -> OptimizationOutcome:
    search = _CandidateSearch(method, False, vehicle, context)
    search.consider(STRATEGY_NEAREST_NEIGHBOR, nearest_neighbor(stops, method, vehicle, context.cancellation))
    if len(stops) <= limits.exhaustive_max_stops:
        for order in BoundedPermutations(stops, limits.max_permutations):
            search.consider(STRATEGY_PERMUTATION, order)
    return search.outcome()


def optimize_order(
    stops: Sequence[Stop],
    method: OptimizationMethod,
    is_loop: bool,
    vehicle: VehicleType,
    context: CalculationContext,
    limits: SearchLimits | None = None,
) -> OptimizationOutcome:
    """Choose a visiting order for ``stops`` (the unlocked subset of a route).

    For loops the first stop is the depot and keeps its place.
    """
    stops = list(stops)
    limits = limits or SearchLimits()

    if len(stops) <= 2:
        return OptimizationOutcome(order=stops, strategy=STRATEGY_INPUT_ORDER)

    if is_loop:
        outcome = _loop_aware_search(stops, method, vehicle, context, limits)
    elif len(stops) <= limits.advanced_max_stops:
        outcome = _advanced_search(stops, method, vehicle, context, limits)
    else:
        context.cancellation.raise_if_cancelled()
        outcome = OptimizationOutcome(
            order=nearest_neighbor(stops, method, vehicle, context.cancellation),
            strategy=STRATEGY_NEAREST_NEIGHBOR,
        )

    score_text = f"{outcome.score:.3f}" if outcome.score is not None else "n/a"
    logger.info(
        f"Selected {outcome.strategy} ordering for {len(stops)} stops "
        f"(score={score_text}, candidates={outcome.candidates_evaluated}, loop={is_loop})"
    )
    return outcome
