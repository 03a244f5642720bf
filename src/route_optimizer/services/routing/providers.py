"""Contracts for the external capabilities used by the optimizer."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol

from ...models.domain import Coordinates
from .models import TravelInfo, Waypoint


class GeocodingProvider(Protocol):
    def resolve(self, address: str) -> Optional[Coordinates]:
        """Return coordinates for the address, or None when it cannot be found."""


class RoutingProvider(Protocol):
    def travel_info(
        self,
        origin: Waypoint,
        destination: Waypoint,
        departure_time: datetime,
        vehicle_type: str,
        consider_traffic: bool,
    ) -> TravelInfo:
        """Return travel time and distance for one leg; raise ProviderError on failure."""

    def is_available(self) -> bool:
        ...


class OptimizationAdvisor(Protocol):
    def propose_sequence(self, scenario: dict[str, Any]) -> str:
        """Return the raw JSON answer describing a visiting order."""
