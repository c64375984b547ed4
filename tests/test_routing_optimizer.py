import pytest

from itinerary.models.domain import Coordinates, OptimizationMethod, Stop, VehicleType
from itinerary.services.routing import optimizer
from itinerary.services.routing.context import CalculationContext, CancellationToken
from itinerary.services.routing.errors import CalculationCancelledError
from itinerary.services.routing.optimizer import (
    STRATEGY_INPUT_ORDER,
    STRATEGY_NEAREST_NEIGHBOR,
    BoundedPermutations,
    SearchLimits,
    farthest_first,
    nearest_neighbor,
    optimize_order,
    return_aware_nearest_neighbor,
)
from itinerary.services.routing.oracle import TravelCostOracle
from itinerary.services.routing.scoring import banded_speed_kmh, estimate_leg, leg_cost, score_order

SHORTEST = OptimizationMethod.SHORTEST_DISTANCE
CAR = VehicleType.CAR


def _stop(stop_id: str, lat: float, lon: float) -> Stop:
    return Stop(stop_id=stop_id, address=stop_id, coordinates=Coordinates(lat, lon))


def _ids(stops):
    return [stop.stop_id for stop in stops]


def _score(osrm, stops, method=SHORTEST, is_loop=False, vehicle=CAR) -> float:
    with CalculationContext(TravelCostOracle(osrm)) as context:
        return score_order(stops, method, is_loop, vehicle, context)


# Depot S with A closest; X is slightly nearer to A than Y but Y lies far from S,
# so plain nearest-neighbour strands the tour at Y before the long leg home.
def _return_trap():
    return [
        _stop("S", 0.0, 0.0),
        _stop("A", 0.0, 0.3),
        _stop("X", 0.0, -0.4),
        _stop("Y", 0.0, 1.05),
    ]


SCATTERED = [
    _stop("P0", 48.85, 2.35),
    _stop("P1", 48.90, 2.20),
    _stop("P2", 48.80, 2.45),
    _stop("P3", 48.95, 2.40),
    _stop("P4", 48.78, 2.25),
    _stop("P5", 48.88, 2.50),
]


def test_permutations_follow_first_index_expansion():
    assert list(BoundedPermutations([1, 2, 3], 20)) == [
        [1, 2, 3],
        [1, 3, 2],
        [2, 1, 3],
        [2, 3, 1],
        [3, 1, 2],
        [3, 2, 1],
    ]


def test_permutations_are_capped_and_restartable():
    permutations = BoundedPermutations(range(6), 20)

    first_pass = list(permutations)
    assert len(first_pass) == 20
    assert first_pass[0] == [0, 1, 2, 3, 4, 5]
    assert len({tuple(order) for order in first_pass}) == 20
    assert list(permutations) == first_pass


def test_permutations_with_fixed_head():
    orders = list(BoundedPermutations(["S", "a", "b"], 20, fixed_head=1))
    assert orders == [["S", "a", "b"], ["S", "b", "a"]]


def test_leg_cost_per_method():
    assert leg_cost(10.0, 20.0, OptimizationMethod.SHORTEST_DISTANCE) == 10.0
    assert leg_cost(10.0, 20.0, OptimizationMethod.FASTEST_TIME) == 20.0
    assert leg_cost(10.0, 20.0, OptimizationMethod.BALANCED) == pytest.approx(0.4 * 10.0 + 0.6 * 20.0)


def test_banded_speed_estimate():
    assert banded_speed_kmh(5.0) == 40.0
    assert banded_speed_kmh(30.0) == 55.0
    assert banded_speed_kmh(200.0) == 65.0

    car_km, car_min = estimate_leg(_stop("A", 0.0, 0.0), _stop("B", 0.0, 0.05), CAR)
    truck_km, truck_min = estimate_leg(_stop("A", 0.0, 0.0), _stop("B", 0.0, 0.05), VehicleType.TRUCK)
    assert car_min == pytest.approx(car_km / 40.0 * 60.0)
    assert truck_km == pytest.approx(car_km * 1.10)
    assert truck_min == pytest.approx(car_min * 1.40)


def test_score_includes_closing_leg_for_loops(osrm):
    a, b, c = _stop("A", 0.0, 0.0), _stop("B", 0.0, 1.0), _stop("C", 1.0, 1.0)
    open_score = _score(osrm, [a, b, c])
    loop_score = _score(osrm, [a, b, c], is_loop=True)

    assert open_score == pytest.approx(222.39, abs=0.05)
    assert loop_score - open_score == pytest.approx(157.2, abs=0.1)
    assert _score(osrm, [a]) == 0.0


def test_nearest_neighbor_starts_at_first_stop():
    stops = [_stop("A", 0.0, 0.0), _stop("C", 0.0, 3.0), _stop("B", 0.0, 1.0), _stop("D", 0.0, 2.0)]
    assert _ids(nearest_neighbor(stops, SHORTEST, CAR)) == ["A", "B", "D", "C"]


def test_return_aware_nearest_neighbor_accounts_for_leg_home():
    stops = _return_trap()

    assert _ids(nearest_neighbor(stops, SHORTEST, CAR)) == ["S", "A", "X", "Y"]
    assert _ids(return_aware_nearest_neighbor(stops, SHORTEST, CAR)) == ["S", "A", "Y", "X"]


def test_farthest_first_visits_most_distant_stop_second():
    assert _ids(farthest_first(_return_trap(), SHORTEST, CAR))[:2] == ["S", "Y"]


def test_two_stops_keep_input_order(osrm):
    stops = [_stop("B", 0.0, 1.0), _stop("A", 0.0, 0.0)]
    with CalculationContext(TravelCostOracle(osrm)) as context:
        outcome = optimize_order(stops, SHORTEST, False, CAR, context)

    assert _ids(outcome.order) == ["B", "A"]
    assert outcome.strategy == STRATEGY_INPUT_ORDER
    assert osrm.calls == []


def test_three_point_example_picks_shortest_open_path(osrm):
    stops = [_stop("A", 0.0, 0.0), _stop("B", 0.0, 1.0), _stop("C", 1.0, 1.0)]
    with CalculationContext(TravelCostOracle(osrm)) as context:
        outcome = optimize_order(stops, SHORTEST, False, CAR, context)

    assert _ids(outcome.order) == ["A", "B", "C"]
    assert outcome.score == pytest.approx(222.39, abs=0.05)


@pytest.mark.parametrize("method", list(OptimizationMethod))
def test_open_route_never_worse_than_input_order(osrm, method):
    with CalculationContext(TravelCostOracle(osrm)) as context:
        outcome = optimize_order(SCATTERED, method, False, CAR, context)

    assert sorted(_ids(outcome.order)) == sorted(_ids(SCATTERED))
    assert outcome.score <= _score(osrm, SCATTERED, method) + 1e-9
    assert outcome.candidates_evaluated >= 20


def test_loop_keeps_depot_first_and_beats_nearest_neighbor(osrm):
    stops = _return_trap()
    with CalculationContext(TravelCostOracle(osrm)) as context:
        outcome = optimize_order(stops, SHORTEST, True, CAR, context)

    nn_score = _score(osrm, nearest_neighbor(stops, SHORTEST, CAR), is_loop=True)
    assert outcome.order[0].stop_id == "S"
    assert outcome.score < nn_score
    assert sorted(_ids(outcome.order)) == ["A", "S", "X", "Y"]


def test_loop_beyond_exhaustive_limit_still_uses_loop_strategies(osrm):
    stops = [_stop(f"L{i}", 48.8 + (i % 4) * 0.03, 2.2 + (i // 4) * 0.05) for i in range(10)]
    with CalculationContext(TravelCostOracle(osrm)) as context:
        outcome = optimize_order(stops, SHORTEST, True, CAR, context)

    nn_score = _score(osrm, nearest_neighbor(stops, SHORTEST, CAR), is_loop=True)
    assert outcome.order[0].stop_id == "L0"
    assert outcome.score <= nn_score + 1e-9
    assert 1 <= outcome.candidates_evaluated <= 6


def test_large_open_route_uses_nearest_neighbor_without_scoring(osrm):
    stops = [_stop(f"N{i}", 0.0, float(i) * 0.01) for i in range(9)]
    with CalculationContext(TravelCostOracle(osrm)) as context:
        outcome = optimize_order(stops, SHORTEST, False, CAR, context)

    assert outcome.strategy == STRATEGY_NEAREST_NEIGHBOR
    assert outcome.candidates_evaluated == 0
    assert _ids(outcome.order) == [f"N{i}" for i in range(9)]
    assert osrm.calls == []


def test_seven_stops_skip_permutations(osrm):
    stops = [_stop(f"M{i}", 0.0, float(i) * 0.01) for i in range(7)]
    with CalculationContext(TravelCostOracle(osrm)) as context:
        outcome = optimize_order(stops, SHORTEST, False, CAR, context)

    assert outcome.candidates_evaluated == 1
    assert outcome.strategy == STRATEGY_NEAREST_NEIGHBOR


def test_search_limits_can_be_tightened(osrm):
    limits = SearchLimits(advanced_max_stops=8, exhaustive_max_stops=6, max_permutations=3)
    with CalculationContext(TravelCostOracle(osrm)) as context:
        outcome = optimize_order(SCATTERED, SHORTEST, False, CAR, context, limits)

    assert outcome.candidates_evaluated <= 4


def test_optimization_is_deterministic(osrm):
    results = []
    for _ in range(3):
        with CalculationContext(TravelCostOracle(osrm)) as context:
            outcome = optimize_order(SCATTERED, OptimizationMethod.BALANCED, True, CAR, context)
        results.append((_ids(outcome.order), outcome.strategy))

    assert results[0] == results[1] == results[2]


def test_greedy_construction_stops_when_cancelled():
    token = CancellationToken()
    token.cancel()
    with pytest.raises(CalculationCancelledError):
        nearest_neighbor(_return_trap(), SHORTEST, CAR, token)


def test_cancel_during_loop_construction_issues_no_lookups(osrm, monkeypatch):
    stops = [_stop(f"L{i}", 48.8 + (i % 5) * 0.02, 2.2 + (i // 5) * 0.04) for i in range(15)]
    token = CancellationToken()
    real_cost = optimizer.estimated_leg_cost

    def cancelling_cost(origin, destination, method, vehicle):
        token.cancel()
        return real_cost(origin, destination, method, vehicle)

    monkeypatch.setattr(optimizer, "estimated_leg_cost", cancelling_cost)
    with CalculationContext(TravelCostOracle(osrm), cancellation=token) as context:
        with pytest.raises(CalculationCancelledError):
            optimize_order(stops, SHORTEST, True, CAR, context)
    assert osrm.calls == []
