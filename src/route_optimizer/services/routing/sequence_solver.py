"""Visit-sequence planning for consolidated stops.

The advisor, when configured, proposes an order first. Any advisor failure or
unusable answer falls back to a nearest-neighbour tour improved with 2-opt on
the travel-time matrix.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from ...models.domain import LocationGroup, window_start_minutes
from .advisor import parse_sequence_proposal
from .errors import ProviderError
from .models import DistanceMatrix, SequencePlan
from .providers import OptimizationAdvisor

IMPROVEMENT_EPSILON = 1e-9

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PlanningConstraints:
    vehicle_type: str = "car"
    consider_traffic: bool = True
    service_time_per_stop: float = 10.0
    working_hours: tuple[str, str] = ("09:00", "18:00")
    max_driving_hours: float = 8.0
    optimization_goals: tuple[str, ...] = field(default_factory=tuple)


def route_cost(matrix: DistanceMatrix, route: Sequence[int]) -> float:
    """Travel minutes from the depot through ``route`` (stop indices, depot excluded)."""
    if not route:
        return 0.0
    total = matrix.duration(0, route[0] + 1)
    for current, following in zip(route, route[1:]):
        total += matrix.duration(current + 1, following + 1)
    return total


def nearest_neighbor(matrix: DistanceMatrix) -> list[int]:
    unvisited = list(range(1, matrix.size))
    route: list[int] = []
    current = 0
    while unvisited:
        nearest = min(unvisited, key=lambda node: matrix.duration(current, node))
        route.append(nearest - 1)
        unvisited.remove(nearest)
        current = nearest
    return route


def two_opt_swap(route: Sequence[int], i: int, j: int) -> list[int]:
    return [*route[:i], *reversed(route[i : j + 1]), *route[j + 1 :]]


def two_opt(matrix: DistanceMatrix, route: Sequence[int]) -> list[int]:
    """Apply improving segment reversals until a full scan finds none."""
    best = list(route)
    best_cost = route_cost(matrix, best)
    improved = True
    while improved:
        improved = False
        for i in range(len(best) - 1):
            for j in range(i + 1, len(best)):
                candidate = two_opt_swap(best, i, j)
                candidate_cost = route_cost(matrix, candidate)
                if candidate_cost < best_cost - IMPROVEMENT_EPSILON:
                    best, best_cost = candidate, candidate_cost
                    improved = True
    return best


def apply_constraint_reordering(locations: Sequence[LocationGroup]) -> list[LocationGroup]:
    """Move time-window stops to the front, then order by priority.

    Both sorts are stable, so the tour order survives among equal keys. The
    result can be longer than the 2-opt tour it started from.
    """
    with_windows = [location for location in locations if location.earliest_window_start]
    without_windows = [location for location in locations if not location.earliest_window_start]
    with_windows.sort(key=lambda location: window_start_minutes(location.earliest_window_start))
    return sorted([*with_windows, *without_windows], key=lambda location: location.priority_weight)


def build_scenario(
    depot: str,
    locations: Sequence[LocationGroup],
    constraints: PlanningConstraints,
) -> dict[str, Any]:
    return {
        "startLocation": depot,
        "deliveryLocations": [
            {
                "id": index,
                "locationId": location.id,
                "address": location.address,
                "coordinates": (
                    {"lat": location.coordinates.lat, "lng": location.coordinates.lng}
                    if location.coordinates
                    else None
                ),
                "totalOrders": location.total_orders,
                "customers": location.customer_names,
                "orderDetails": [
                    {
                        "orderNumber": order.order_number,
                        "customerName": order.customer_name,
                        "priority": order.priority,
                        "timeWindow": (
                            {"start": order.time_window.start, "end": order.time_window.end}
                            if order.time_window
                            else None
                        ),
                    }
                    for order in location.orders
                ],
                "estimatedServiceTime": location.service_time(constraints.service_time_per_stop),
            }
            for index, location in enumerate(locations)
        ],
        "constraints": {
            "vehicleType": constraints.vehicle_type,
            "considerTraffic": constraints.consider_traffic,
            "workingHours": f"{constraints.working_hours[0]} - {constraints.working_hours[1]}",
            "maxDrivingTime": f"{constraints.max_driving_hours:g} hours",
            "serviceTimePerLocation": constraints.service_time_per_stop,
        },
        "optimizationGoals": list(constraints.optimization_goals),
    }


class SequencePlanner:
    def __init__(
        self,
        advisor: OptimizationAdvisor | None = None,
        *,
        reorder_by_constraints: bool = True,
    ) -> None:
        self.advisor = advisor
        self.reorder_by_constraints = reorder_by_constraints

    def _advise(
        self,
        depot: str,
        locations: Sequence[LocationGroup],
        constraints: PlanningConstraints,
    ) -> SequencePlan:
        scenario = build_scenario(depot, locations, constraints)
        raw = self.advisor.propose_sequence(scenario)
        proposal = parse_sequence_proposal(raw, len(locations))
        return SequencePlan(
            locations=[locations[index] for index in proposal.indices],
            source="advisor",
            reasoning=proposal.reasoning,
            insights=proposal.insights,
        )

    def solve_deterministic(self, locations: Sequence[LocationGroup], matrix: DistanceMatrix) -> SequencePlan:
        if matrix.size != len(locations) + 1:
            raise ValueError(f"Matrix size mismatch: {matrix.size} entries for {len(locations)} locations plus depot")
        initial = nearest_neighbor(matrix)
        improved = two_opt(matrix, initial)
        logger.info(
            f"Nearest neighbour tour {route_cost(matrix, initial):.0f} min, "
            f"after 2-opt {route_cost(matrix, improved):.0f} min"
        )
        ordered = [locations[index] for index in improved]
        if self.reorder_by_constraints:
            ordered = apply_constraint_reordering(ordered)
        return SequencePlan(locations=ordered, source="nearest_neighbor_2opt")

    def plan(
        self,
        depot: str,
        locations: Sequence[LocationGroup],
        matrix: DistanceMatrix,
        constraints: PlanningConstraints,
    ) -> SequencePlan:
        if self.advisor is not None:
            try:
                plan = self._advise(depot, locations, constraints)
                logger.info(f"Advisor sequence accepted for {len(locations)} locations")
                return plan
            except ProviderError as exc:
                logger.warning(f"Advisor sequence unusable, using deterministic planner: {exc}")
        return self.solve_deterministic(locations, matrix)
