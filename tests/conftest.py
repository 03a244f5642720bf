from datetime import datetime, timezone
from typing import Optional

import pytest

from src.route_optimizer.config import Settings
from src.route_optimizer.models.domain import Address, Coordinates, LocationGroup, TimeWindow
from src.route_optimizer.services.geospatial import haversine_km
from src.route_optimizer.services.routing.errors import ProviderError
from src.route_optimizer.services.routing.models import TravelInfo

NOW = datetime(2026, 1, 5, 1, 0, tzinfo=timezone.utc)
DEPOT = "Depot, Jalan Tun Razak, Kuala Lumpur"

PLACES = {
    DEPOT: Coordinates(3.1590, 101.7130),
    "12 Jalan Cheras, Kuala Lumpur": Coordinates(3.1000, 101.7300),
    "Unit 5, 12 Jalan Cheras, Kuala Lumpur": Coordinates(3.1003, 101.7302),
    "8 Jalan Ampang, Kuala Lumpur": Coordinates(3.1600, 101.7500),
    "3 Jalan Klang Lama, Kuala Lumpur": Coordinates(3.0800, 101.6700),
    "20 Jalan Kepong, Kuala Lumpur": Coordinates(3.2100, 101.6400),
}


class FakeGeocoder:
    def __init__(self, places=None, failing=()):
        self.places = dict(PLACES if places is None else places)
        self.failing = set(failing)
        self.calls: list[str] = []

    def resolve(self, address: str) -> Optional[Coordinates]:
        self.calls.append(address)
        if address in self.failing:
            raise ProviderError("geocoder down", code="PROVIDER_UNAVAILABLE", retryable=True)
        return self.places.get(address)


class FakeRouter:
    """Travel time of two minutes per straight-line kilometre plus one minute."""

    def __init__(self, places=None, *, fail=False, available=True):
        self.places = dict(PLACES if places is None else places)
        self.fail = fail
        self.available = available
        self.calls: list[tuple] = []
        self.probes = 0

    def _point(self, waypoint):
        if isinstance(waypoint, Coordinates):
            return waypoint
        return self.places.get(waypoint)

    def travel_info(self, origin, destination, departure_time, vehicle_type, consider_traffic):
        self.calls.append((origin, destination, departure_time, vehicle_type, consider_traffic))
        if self.fail:
            raise ProviderError("routing down", code="PROVIDER_UNAVAILABLE", retryable=True)
        start, end = self._point(origin), self._point(destination)
        if start is None or end is None:
            km = 5.0
        else:
            km = haversine_km(start.lat, start.lng, end.lat, end.lng)
        return TravelInfo(duration_minutes=round(km * 2 + 1, 2), distance_km=round(km, 3))

    def is_available(self) -> bool:
        self.probes += 1
        return self.available


def make_address(index: int, address: str, **kwargs) -> Address:
    return Address(
        id=f"A{index}",
        address=address,
        order_id=f"O{index}",
        customer_name=kwargs.pop("customer_name", f"Customer {index}"),
        order_number=f"ORD-{index:03d}",
        **kwargs,
    )


def make_group(index: int, *, priority=None, window=None, orders: int = 1, coordinates=None) -> LocationGroup:
    time_window = TimeWindow(*window) if window else None
    return LocationGroup(
        id=f"location-{index + 1}",
        address=f"Stop {index}",
        coordinates=coordinates,
        orders=[
            make_address(index * 10 + n, f"Stop {index}", priority=priority, time_window=time_window)
            for n in range(orders)
        ],
    )


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def config() -> Settings:
    return Settings(
        _env_file=None,
        google_maps_api_key=None,
        openai_api_key=None,
        max_parallel_requests=1,
        backoff_seconds=0.0,
    )


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest.fixture
def router() -> FakeRouter:
    return FakeRouter()
