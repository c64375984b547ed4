#!/usr/bin/env python3
"""Manual check that the configured OSRM service answers leg lookups."""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / "src"))

from itinerary.config import settings
from itinerary.models.domain import Coordinates, Stop, VehicleType
from itinerary.services.routing.oracle import TravelCostOracle
from itinerary.services.routing.osrm_client import OSRMClient, check_health


def main() -> int:
    print("=" * 60)
    print("OSRM Connection Check")
    print("=" * 60)

    if not settings.osrm_base_url:
        print("[ERROR] ITINERARY_OSRM_BASE_URL is not configured; every leg will be estimated.")
        return 1
    print(f"[OK] OSRM base URL: {settings.osrm_base_url} (profile: {settings.osrm_profile})")

    if not check_health():
        print("[ERROR] OSRM service is not responding")
        return 1
    print("[OK] OSRM service is healthy")

    origin = Stop("louvre", "Louvre, Paris", Coordinates(48.8606, 2.3376))
    destination = Stop("eiffel", "Eiffel Tower, Paris", Coordinates(48.8584, 2.2945))
    oracle = TravelCostOracle(OSRMClient())
    for vehicle in VehicleType:
        segment = oracle.resolve_segment(origin, destination, vehicle)
        print(
            f"[{'OK' if not segment.is_estimated else 'WARN'}] {vehicle.value}: "
            f"{segment.distance_km:.2f} km, {segment.duration_min:.1f} min "
            f"({segment.source.value}, {len(segment.instructions)} instructions)"
        )

    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
