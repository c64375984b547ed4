"""Error taxonomy for route calculations."""

from __future__ import annotations


class RoutingError(Exception):
    """Base class for failures raised by the routing core."""


class InvalidInputError(RoutingError, ValueError):
    """The request cannot be calculated as given (stops, coordinates, locks)."""


class ProviderUnavailableError(RoutingError):
    """A single leg lookup against the routing provider failed.

    Raised inside the oracle only; the oracle converts it into a great-circle
    estimate so callers never see it.
    """


class CalculationCancelledError(RoutingError):
    """The caller aborted the calculation before it finished."""


class UnknownCalculationError(RoutingError):
    """Unexpected failure while calculating a route."""

    def __init__(
        self,
        message: str,
        *,
        leg_index: int | None = None,
        from_stop_id: str | None = None,
        to_stop_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.leg_index = leg_index
        self.from_stop_id = from_stop_id
        self.to_stop_id = to_stop_id

    def context(self) -> dict:
        return {
            "leg_index": self.leg_index,
            "from_stop_id": self.from_stop_id,
            "to_stop_id": self.to_stop_id,
        }
