"""Fuel, efficiency and warning estimates for a computed route."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from ...models.domain import LocationGroup
from .models import RouteDetails

# Reference spacing of an unoptimized route, used as the efficiency baseline
WORST_CASE_KM_PER_STOP = 10.0
MAX_DURATION_MINUTES = 480.0
MAX_DISTANCE_KM = 300.0
MAX_ORDERS_PER_LOCATION = 3
MAX_TOTAL_ORDERS = 20
TIME_WINDOW_SHARE_LIMIT = 0.5


@dataclass(slots=True)
class RouteMetrics:
    estimated_fuel_cost: float
    route_efficiency: int
    warnings: list[str]


class MetricsEstimator:
    def __init__(self, *, fuel_price_per_liter: float, consumption_l_per_100km: Mapping[str, float]) -> None:
        self.fuel_price_per_liter = fuel_price_per_liter
        self.consumption = dict(consumption_l_per_100km)

    def fuel_cost(self, distance_km: float, vehicle_type: str) -> float:
        consumption = self.consumption.get(vehicle_type, self.consumption.get("car", 8.0))
        return (distance_km / 100.0) * consumption * self.fuel_price_per_liter

    @staticmethod
    def efficiency(number_of_stops: int, distance_km: float) -> int:
        worst_case = number_of_stops * WORST_CASE_KM_PER_STOP
        if worst_case <= 0:
            return 0
        score = ((worst_case - distance_km) / worst_case) * 100.0
        return round(max(0.0, min(100.0, score)))

    @staticmethod
    def warnings(
        details: RouteDetails,
        locations: Sequence[LocationGroup],
        *,
        include_estimation_notice: bool = True,
    ) -> list[str]:
        warnings: list[str] = []
        if details.total_duration > MAX_DURATION_MINUTES:
            warnings.append("Route duration exceeds 8 hours. Consider splitting into multiple routes.")
        if details.total_distance > MAX_DISTANCE_KM:
            warnings.append("Route distance is very long. Driver may need breaks.")

        busy = [location for location in locations if location.total_orders > MAX_ORDERS_PER_LOCATION]
        if busy:
            warnings.append(f"{len(busy)} locations have 4+ orders. Allow extra service time.")

        orders = [order for location in locations for order in location.orders]
        if len(orders) > MAX_TOTAL_ORDERS:
            warnings.append("High order volume. Consider driver assistance or splitting route.")
        windowed = sum(1 for order in orders if order.time_window)
        if windowed > len(orders) * TIME_WINDOW_SHARE_LIMIT:
            warnings.append("Many orders have time window constraints. Route may need adjustment.")

        if include_estimation_notice and details.estimated_legs:
            warnings.append(
                f"{details.estimated_legs} of {details.total_legs} legs used local heuristic estimation "
                "because the routing provider did not answer."
            )
        return warnings

    def estimate(self, details: RouteDetails, locations: Sequence[LocationGroup], vehicle_type: str) -> RouteMetrics:
        return RouteMetrics(
            estimated_fuel_cost=self.fuel_cost(details.total_distance, vehicle_type),
            route_efficiency=self.efficiency(len(locations), details.total_distance),
            warnings=self.warnings(details, locations),
        )
