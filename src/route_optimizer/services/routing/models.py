"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

from ...models.domain import Coordinates, LocationGroup

Waypoint = Union[str, Coordinates]


@dataclass(slots=True)
class TravelInfo:
    duration_minutes: float
    distance_km: float


@dataclass(slots=True)
class RouteOptions:
    """Per-request options; unset values are filled from settings by the optimizer."""

    vehicle_type: Optional[str] = None
    consider_traffic: Optional[bool] = None
    departure_time: Optional[datetime] = None
    max_stops_per_route: Optional[int] = None
    service_time_per_stop: Optional[float] = None


@dataclass(slots=True)
class DistanceMatrix:
    """Travel minutes (and km) over the depot at index 0 followed by each stop."""

    durations: List[List[float]]
    distances: List[List[Optional[float]]]
    failed_pairs: int = 0

    @property
    def size(self) -> int:
        return len(self.durations)

    def duration(self, origin: int, destination: int) -> float:
        return self.durations[origin][destination]


@dataclass(slots=True)
class SequencePlan:
    locations: List[LocationGroup]
    source: str
    reasoning: Optional[str] = None
    insights: List[str] = field(default_factory=list)


@dataclass(slots=True)
class OptimizedStop:
    order: int
    location: LocationGroup
    estimated_arrival: datetime
    travel_time: float
    distance: float
    service_time: float
    cumulative_time: float
    cumulative_distance: float
    estimated: bool = False

    @property
    def estimated_arrival_label(self) -> str:
        return self.estimated_arrival.strftime("%I:%M %p")


@dataclass(slots=True)
class RouteDetails:
    stops: List[OptimizedStop]
    total_distance: float
    total_duration: float
    total_driving_time: float
    departure_time: datetime
    estimated_legs: int = 0
    total_legs: int = 0


@dataclass(slots=True)
class RouteOptimizationResult:
    optimized_stops: List[OptimizedStop]
    total_distance: float
    total_duration: float
    total_driving_time: float
    estimated_fuel_cost: float
    route_efficiency: int
    warnings: List[str]
    metadata: dict = field(default_factory=dict)
