"""Local route estimation that needs no network access."""

from __future__ import annotations

import logging
import random
import re
from datetime import datetime, timedelta
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from ...models.domain import Address, LocationGroup
from .metrics import MetricsEstimator
from .models import OptimizedStop, RouteDetails, RouteOptimizationResult
from .timing import Clock, ensure_future_departure, utc_now

# Known localities mapped to ordering buckets; neighbouring areas share a bucket range
AREA_SCORES: dict[str, int] = {
    "cheras": 100,
    "kajang": 110,
    "bangi": 120,
    "serdang": 130,
    "puchong": 200,
    "subang": 210,
    "petaling": 220,
    "shah alam": 300,
    "klang": 310,
    "ampang": 400,
    "setapak": 410,
    "kepong": 420,
    "mont kiara": 500,
    "bukit jalil": 600,
    "sri petaling": 610,
}
UNKNOWN_AREA_SCORE = 9999
PRIORITY_BONUS = {"high": 100, "medium": 50, "low": 0}
SCORE_JITTER = 10.0
TIME_JITTER_MINUTES = 5.0
DISTANCE_JITTER_KM = 2.0
# Average urban speeds in km/h
VEHICLE_SPEED_KMH = {"motorcycle": 25.0, "car": 20.0, "truck": 15.0}

_POSTAL_CODE = re.compile(r"\d{5}")
_SEPARATORS = re.compile(r"[,\s]+")
_NOISE_WORDS = re.compile(r"\b(sdn\s*bhd|bhd|mall|shopping\s*centre|plaza|tower|building)\b")

logger = logging.getLogger(__name__)


def normalize_address(address: str) -> str:
    text = _SEPARATORS.sub(" ", address.lower())
    text = _NOISE_WORDS.sub("", text)
    return " ".join(text.split())


def area_score(address: str) -> int:
    text = address.lower()
    for area, score in AREA_SCORES.items():
        if area in text:
            return score
    postal = _POSTAL_CODE.search(text)
    if postal:
        return int(postal.group(0))
    return UNKNOWN_AREA_SCORE


def average_leg_distance_km(number_of_stops: int) -> float:
    if number_of_stops <= 3:
        return 8.0
    if number_of_stops <= 5:
        return 12.0
    if number_of_stops <= 10:
        return 15.0
    return 18.0


def average_leg_minutes(distance_km: float, vehicle_type: str) -> float:
    speed = VEHICLE_SPEED_KMH.get(vehicle_type, VEHICLE_SPEED_KMH["car"])
    return (distance_km / speed) * 60.0


def group_by_address_text(addresses: Sequence[Address]) -> list[LocationGroup]:
    groups: dict[str, LocationGroup] = {}
    for address in addresses:
        key = normalize_address(address.address)
        group = groups.get(key)
        if group is None:
            groups[key] = LocationGroup(
                id=f"location-{len(groups) + 1}",
                address=address.address,
                coordinates=None,
                orders=[address],
            )
        else:
            group.orders.append(address)
    return list(groups.values())


class SmartFallbackOptimizer:
    """Orders stops by locality and postal code and estimates every leg."""

    def __init__(
        self,
        metrics: MetricsEstimator,
        *,
        margin_minutes: float = 5.0,
        timezone_name: str = "UTC",
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.metrics = metrics
        self.margin_minutes = margin_minutes
        self.timezone = ZoneInfo(timezone_name)
        self.clock = clock or utc_now
        self.rng = rng or random.Random()

    def _score(self, location: LocationGroup) -> float:
        bonus = max(PRIORITY_BONUS.get(order.priority or "", 0) for order in location.orders)
        return area_score(location.address) + bonus + self.rng.random() * SCORE_JITTER

    def order_locations(self, locations: Sequence[LocationGroup]) -> list[LocationGroup]:
        scored = [(self._score(location), position, location) for position, location in enumerate(locations)]
        scored.sort(key=lambda item: (item[0], item[1]))
        return [location for _, _, location in scored]

    def _jittered(self, minutes: float, distance_km: float) -> tuple[float, float]:
        travel = max(1.0, minutes + self.rng.uniform(-TIME_JITTER_MINUTES, TIME_JITTER_MINUTES))
        distance = max(0.5, distance_km + self.rng.uniform(-DISTANCE_JITTER_KM, DISTANCE_JITTER_KM))
        return float(round(travel)), round(distance, 1)

    def optimize(
        self,
        addresses: Sequence[Address],
        *,
        vehicle_type: str,
        service_time_per_stop: float,
        departure_time: Optional[datetime] = None,
        reason: Optional[str] = None,
    ) -> RouteOptimizationResult:
        locations = self.order_locations(group_by_address_text(addresses))
        average_distance = average_leg_distance_km(len(locations))
        average_minutes = average_leg_minutes(average_distance, vehicle_type)

        now = self.clock()
        base = ensure_future_departure(departure_time or now, now=now, margin_minutes=self.margin_minutes)
        base = base.astimezone(self.timezone)

        stops: list[OptimizedStop] = []
        cumulative_time = 0.0
        cumulative_distance = 0.0
        driving_time = 0.0
        for index, location in enumerate(locations):
            travel, distance = self._jittered(average_minutes, average_distance)
            service_time = location.service_time(service_time_per_stop)
            arrival = base + timedelta(minutes=cumulative_time + travel)
            cumulative_time += travel + service_time
            cumulative_distance += distance
            driving_time += travel
            stops.append(
                OptimizedStop(
                    order=index + 1,
                    location=location,
                    estimated_arrival=arrival,
                    travel_time=travel,
                    distance=distance,
                    service_time=service_time,
                    cumulative_time=cumulative_time,
                    cumulative_distance=cumulative_distance,
                    estimated=True,
                )
            )

        return_travel, return_distance = self._jittered(average_minutes, average_distance)
        cumulative_time += return_travel
        cumulative_distance += return_distance
        driving_time += return_travel

        details = RouteDetails(
            stops=stops,
            total_distance=cumulative_distance,
            total_duration=cumulative_time,
            total_driving_time=driving_time,
            departure_time=base,
            estimated_legs=len(stops) + 1,
            total_legs=len(stops) + 1,
        )
        efficiency = min(85, max(60, 75 + (10 - len(addresses)) * 2))

        warnings: list[str] = []
        if reason:
            warnings.append(f"Route optimization failed ({reason}). Local heuristic estimation was used.")
        else:
            warnings.append("Using smart local optimization (routing provider not available).")
            warnings.append("For more accurate routing, configure a routing provider API key.")
        warnings.extend(self.metrics.warnings(details, locations, include_estimation_notice=False))

        logger.info(
            f"Smart fallback route: {len(stops)} stops, {cumulative_distance:.1f} km, "
            f"{cumulative_time:.0f} min (estimated)"
        )
        return RouteOptimizationResult(
            optimized_stops=stops,
            total_distance=cumulative_distance,
            total_duration=cumulative_time,
            total_driving_time=driving_time,
            estimated_fuel_cost=self.metrics.fuel_cost(cumulative_distance, vehicle_type),
            route_efficiency=efficiency,
            warnings=warnings,
            metadata={
                "strategy": "smart_fallback",
                "sequence_source": "area_score",
                "departure_time": base.isoformat(),
                "estimated_legs": details.estimated_legs,
                "total_legs": details.total_legs,
            },
        )
