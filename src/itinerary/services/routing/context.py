"""Per-request calculation state: segment cache, worker pool and cancellation."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Sequence

from ...config import settings
from ...models.domain import Stop, VehicleType
from .cache import SegmentCache, SegmentKey, segment_key
from .errors import CalculationCancelledError, RoutingError, UnknownCalculationError
from .models import Segment
from .oracle import TravelCostOracle, require_coordinates

logger = logging.getLogger(__name__)

# How often a waiting calculation re-checks its cancellation token.
DEFAULT_POLL_INTERVAL_SECONDS = 0.05


class CancellationToken:
    """Thread-safe flag a caller sets to abort a running calculation."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CalculationCancelledError("Route calculation was cancelled.")


class CalculationContext:
    """Everything one route calculation shares between its components.

    Use as a context manager: the cache starts empty, and on exit the worker
    pool is shut down and the cache discarded. A cancelled calculation does
    not wait for in-flight lookups.
    """

    def __init__(
        self,
        oracle: TravelCostOracle,
        *,
        cancellation: CancellationToken | None = None,
        max_workers: int | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        self.oracle = oracle
        self.cancellation = cancellation or CancellationToken()
        self.cache = SegmentCache()
        self.max_workers = max_workers or settings.osrm_max_parallel_requests
        self.poll_interval = poll_interval
        self.oracle_calls = 0
        self._executor: ThreadPoolExecutor | None = None

    def __enter__(self) -> "CalculationContext":
        self.cache.clear()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=not self.cancellation.cancelled, cancel_futures=True)
            self._executor = None
        self.cache.clear()

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="route-leg")
        return self._executor

    def resolve_leg(self, origin: Stop, destination: Stop, vehicle: VehicleType) -> Segment:
        return self.resolve_legs([(origin, destination)], vehicle)[0]

    def resolve_legs(self, pairs: Sequence[tuple[Stop, Stop]], vehicle: VehicleType) -> list[Segment]:
        """Resolve every (origin, destination) pair, returning segments in pair order.

        Cached pairs are served from the cache; the rest are looked up in
        parallel, each distinct pair at most once.
        """
        self.cancellation.raise_if_cancelled()
        for origin, destination in pairs:
            require_coordinates(origin)
            require_coordinates(destination)

        keys = [segment_key(origin.stop_id, destination.stop_id, vehicle) for origin, destination in pairs]
        resolved: dict[SegmentKey, Segment] = {}
        missing: dict[SegmentKey, tuple[int, Stop, Stop]] = {}
        for index, (key, (origin, destination)) in enumerate(zip(keys, pairs)):
            if key in resolved or key in missing:
                continue
            cached = self.cache.get(key)
            if cached is not None:
                resolved[key] = cached
            else:
                missing[key] = (index, origin, destination)

        if missing:
            logger.debug(f"Resolving {len(missing)} legs ({len(resolved)} served from cache)")
            resolved.update(self._fetch(missing, vehicle))

        return [resolved[key] for key in keys]

    def _fetch(
        self, missing: dict[SegmentKey, tuple[int, Stop, Stop]], vehicle: VehicleType
    ) -> dict[SegmentKey, Segment]:
        executor = self._get_executor()
        futures: dict[Future, tuple[SegmentKey, int, Stop, Stop]] = {}
        fetched: dict[SegmentKey, Segment] = {}
        pending: set[Future] = set()
        try:
            for key, (index, origin, destination) in missing.items():
                self.cancellation.raise_if_cancelled()
                future = executor.submit(self.oracle.resolve_segment, origin, destination, vehicle)
                futures[future] = (key, index, origin, destination)
                pending.add(future)
                self.oracle_calls += 1

            while pending:
                self.cancellation.raise_if_cancelled()
                done, pending = wait(pending, timeout=self.poll_interval, return_when=FIRST_COMPLETED)
                for future in done:
                    key, index, origin, destination = futures[future]
                    try:
                        segment = future.result()
                    except RoutingError:
                        raise
                    except Exception as exc:
                        raise UnknownCalculationError(
                            f"Failed to resolve leg {origin.stop_id} -> {destination.stop_id}: {exc}",
                            leg_index=index,
                            from_stop_id=origin.stop_id,
                            to_stop_id=destination.stop_id,
                        ) from exc
                    fetched[key] = segment
                    self.cache.put(key, segment)
        except BaseException:
            for future in pending:
                future.cancel()
            raise
        return fetched
