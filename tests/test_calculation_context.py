import threading
import time

import pytest

from itinerary.models.domain import Coordinates, Stop, VehicleType
from itinerary.services.routing.cache import SegmentCache, segment_key
from itinerary.services.routing.context import CalculationContext, CancellationToken
from itinerary.services.routing.errors import CalculationCancelledError, UnknownCalculationError
from itinerary.services.routing.models import Segment
from itinerary.services.routing.oracle import TravelCostOracle


def _stop(stop_id: str, lat: float, lon: float) -> Stop:
    return Stop(stop_id=stop_id, address=stop_id, coordinates=Coordinates(lat, lon))


class SlowFirstOSRM:
    """Answers the first request last so completion order differs from submission order."""

    def __init__(self):
        self._lock = threading.Lock()
        self.count = 0

    def route(self, coordinates, *, steps=True):
        with self._lock:
            self.count += 1
            is_first = self.count == 1
        if is_first:
            time.sleep(0.2)
        (lat1, lon1), (lat2, lon2) = coordinates
        meters = abs(lon2 - lon1) * 100000.0
        return {"code": "Ok", "routes": [{"distance": meters, "duration": meters / 10.0, "legs": []}]}


def test_segment_keys_are_directional():
    assert segment_key("A", "B", VehicleType.CAR) != segment_key("B", "A", VehicleType.CAR)
    assert segment_key("A", "B", VehicleType.CAR) != segment_key("A", "B", VehicleType.TRUCK)
    assert segment_key("A", "B", "car") == segment_key("A", "B", VehicleType.CAR)


def test_segment_cache_counts_hits_and_misses():
    cache = SegmentCache()
    a, b = _stop("A", 0.0, 0.0), _stop("B", 0.0, 1.0)
    key = segment_key("A", "B", VehicleType.CAR)
    segment = Segment(origin=a, destination=b, distance_km=1.0, duration_min=2.0)

    assert cache.get(key) is None
    cache.put(key, segment)
    assert cache.get(key) is segment
    assert key in cache
    assert len(cache) == 1
    assert (cache.hits, cache.misses) == (1, 1)

    cache.clear()
    assert len(cache) == 0


def test_resolve_legs_queries_each_directed_pair_once(osrm):
    a, b, c = _stop("A", 0.0, 0.0), _stop("B", 0.0, 1.0), _stop("C", 1.0, 1.0)
    with CalculationContext(TravelCostOracle(osrm)) as context:
        first = context.resolve_legs([(a, b), (b, c), (a, b)], VehicleType.CAR)
        second = context.resolve_legs([(b, c), (c, a), (b, a)], VehicleType.CAR)

    assert [(s.origin.stop_id, s.destination.stop_id) for s in first] == [("A", "B"), ("B", "C"), ("A", "B")]
    assert [(s.origin.stop_id, s.destination.stop_id) for s in second] == [("B", "C"), ("C", "A"), ("B", "A")]
    assert len(osrm.calls) == 4
    assert context.oracle_calls == 4


def test_resolve_legs_keeps_pair_order_when_lookups_finish_out_of_order():
    provider = SlowFirstOSRM()
    stops = [_stop(f"S{i}", 0.0, float(i)) for i in range(5)]
    pairs = [(stops[i], stops[i + 1]) for i in range(4)]

    with CalculationContext(TravelCostOracle(provider), max_workers=4) as context:
        segments = context.resolve_legs(pairs, VehicleType.CAR)

    assert [s.origin.stop_id for s in segments] == ["S0", "S1", "S2", "S3"]
    assert all(s.distance_km == pytest.approx(100.0) for s in segments)


def test_cache_does_not_outlive_the_calculation(osrm):
    a, b = _stop("A", 0.0, 0.0), _stop("B", 0.0, 1.0)
    oracle = TravelCostOracle(osrm)

    with CalculationContext(oracle) as context:
        context.resolve_leg(a, b, VehicleType.CAR)
    assert len(context.cache) == 0

    with CalculationContext(oracle) as context:
        context.resolve_leg(a, b, VehicleType.CAR)
    assert len(osrm.calls) == 2


def test_cancelled_token_stops_resolution_before_any_lookup(osrm):
    token = CancellationToken()
    token.cancel()
    a, b = _stop("A", 0.0, 0.0), _stop("B", 0.0, 1.0)

    with CalculationContext(TravelCostOracle(osrm), cancellation=token) as context:
        with pytest.raises(CalculationCancelledError):
            context.resolve_leg(a, b, VehicleType.CAR)
    assert osrm.calls == []


def test_unexpected_oracle_error_carries_leg_context():
    class BrokenOracle(TravelCostOracle):
        def resolve_segment(self, origin, destination, vehicle):
            raise RuntimeError("boom")

    b, c = _stop("B", 0.0, 1.0), _stop("C", 1.0, 1.0)
    with CalculationContext(BrokenOracle()) as context:
        with pytest.raises(UnknownCalculationError) as excinfo:
            context.resolve_legs([(b, c)], VehicleType.CAR)

    assert excinfo.value.context() == {"leg_index": 0, "from_stop_id": "B", "to_stop_id": "C"}
