"""Routing endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ...schemas.routing import RouteOptimizationRequest, RouteOptimizationResponse
from ...services.routing.errors import CalculationCancelledError, UnknownCalculationError
from ...services.routing.service import optimize_route

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/routes", tags=["routes"])

# Non-standard "client closed request" status, distinct from failures.
HTTP_499_CLIENT_CLOSED_REQUEST = 499


@router.post("/optimize", response_model=RouteOptimizationResponse, status_code=status.HTTP_200_OK)
def optimize(payload: RouteOptimizationRequest) -> RouteOptimizationResponse:
    """Order the payload's stops and return the route with per-leg metrics.

    The HTTP request is not tied to a cancellation token; 499 is only
    returned when ``optimize_route`` is given one by a library caller that
    wraps this handler.
    """
    try:
        return optimize_route(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except CalculationCancelledError as exc:
        raise HTTPException(status_code=HTTP_499_CLIENT_CLOSED_REQUEST, detail=str(exc)) from exc
    except UnknownCalculationError as exc:
        logger.exception(f"Error calculating route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": f"Failed to calculate route: {exc}", **exc.context()},
        ) from exc
    except Exception as exc:
        logger.exception(f"Error calculating route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to calculate route: {str(exc)}",
        ) from exc
