"""Pairwise travel-time matrix construction."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Optional, Sequence

from ...models.domain import LocationGroup
from .errors import ProviderError
from .models import DistanceMatrix, TravelInfo, Waypoint
from .providers import RoutingProvider
from .timing import Clock, ensure_future_departure, utc_now

logger = logging.getLogger(__name__)


def waypoint_for(location: LocationGroup) -> Waypoint:
    return location.coordinates if location.coordinates is not None else location.address


class DistanceMatrixBuilder:
    def __init__(
        self,
        router: RoutingProvider,
        *,
        penalty_minutes: float = 9999.0,
        margin_minutes: float = 5.0,
        max_parallel_requests: int = 1,
        clock: Clock | None = None,
    ) -> None:
        self.router = router
        self.penalty_minutes = penalty_minutes
        self.margin_minutes = margin_minutes
        self.max_parallel_requests = max(1, max_parallel_requests)
        self.clock = clock or utc_now

    def _request_pair(
        self,
        origin: Waypoint,
        destination: Waypoint,
        departure: datetime,
        vehicle_type: str,
        consider_traffic: bool,
    ) -> Optional[TravelInfo]:
        # Re-check against the clock at call time; long matrices can drift past the margin
        leg_departure = ensure_future_departure(departure, now=self.clock(), margin_minutes=self.margin_minutes)
        try:
            return self.router.travel_info(origin, destination, leg_departure, vehicle_type, consider_traffic)
        except ProviderError as exc:
            logger.warning(f"Failed to get travel time for leg, using penalty: {exc}")
            return None

    def build(
        self,
        depot: str,
        locations: Sequence[LocationGroup],
        *,
        departure_time: datetime,
        vehicle_type: str,
        consider_traffic: bool,
    ) -> DistanceMatrix:
        departure = ensure_future_departure(departure_time, now=self.clock(), margin_minutes=self.margin_minutes)
        waypoints: list[Waypoint] = [depot, *(waypoint_for(location) for location in locations)]
        n = len(waypoints)
        durations: list[list[float]] = [[0.0] * n for _ in range(n)]
        distances: list[list[Optional[float]]] = [[0.0] * n for _ in range(n)]
        pairs = [(i, j) for i in range(n) for j in range(n) if i != j]

        start_time = time.time()
        failed = 0

        def _store(i: int, j: int, info: Optional[TravelInfo]) -> None:
            nonlocal failed
            if info is None:
                failed += 1
                durations[i][j] = self.penalty_minutes
                distances[i][j] = None
            else:
                durations[i][j] = float(info.duration_minutes)
                distances[i][j] = float(info.distance_km)

        if self.max_parallel_requests == 1:
            for i, j in pairs:
                _store(i, j, self._request_pair(waypoints[i], waypoints[j], departure, vehicle_type, consider_traffic))
        else:
            with ThreadPoolExecutor(max_workers=self.max_parallel_requests) as executor:
                future_to_pair = {
                    executor.submit(
                        self._request_pair, waypoints[i], waypoints[j], departure, vehicle_type, consider_traffic
                    ): (i, j)
                    for i, j in pairs
                }
                for future in as_completed(future_to_pair):
                    i, j = future_to_pair[future]
                    _store(i, j, future.result())

        elapsed = time.time() - start_time
        if failed:
            logger.warning(f"Distance matrix: {failed}/{len(pairs)} legs failed and were marked unreachable ({elapsed:.2f}s)")
        else:
            logger.info(f"Distance matrix built with {len(pairs)} legs in {elapsed:.2f}s")
        return DistanceMatrix(durations=durations, distances=distances, failed_pairs=failed)
