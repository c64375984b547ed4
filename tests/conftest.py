import threading

import pytest

from itinerary.services.geospatial import haversine_km


class HaversineOSRM:
    """In-process stand-in for OSRM: straight-line metres driven at 60 km/h."""

    def __init__(self):
        self.calls = []
        self._lock = threading.Lock()

    def route(self, coordinates, *, steps=True):
        (lat1, lon1), (lat2, lon2) = coordinates
        with self._lock:
            self.calls.append(((lat1, lon1), (lat2, lon2)))
        meters = haversine_km(lat1, lon1, lat2, lon2) * 1000.0
        return {
            "code": "Ok",
            "routes": [
                {
                    "distance": meters,
                    "duration": meters * 0.06,
                    "geometry": "",
                    "legs": [{"steps": []}],
                }
            ],
        }


@pytest.fixture
def osrm() -> HaversineOSRM:
    return HaversineOSRM()
