"""Leg-by-leg travel, arrival and cumulative totals for a planned sequence."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from ...models.domain import LocationGroup
from .errors import OptimizationCancelled, ProviderError
from .matrix import waypoint_for
from .models import OptimizedStop, RouteDetails, TravelInfo, Waypoint
from .providers import RoutingProvider
from .timing import Clock, ensure_future_departure, utc_now

# Urban average of 30 km/h used when a leg cannot be priced
URBAN_KM_PER_MINUTE = 0.5
FIRST_LEG_ESTIMATE_MINUTES = 20.0
LEG_ESTIMATE_MINUTES = 15.0
RETURN_LEG_ESTIMATE_MINUTES = 20.0

logger = logging.getLogger(__name__)


class RouteDetailCalculator:
    def __init__(
        self,
        router: RoutingProvider,
        *,
        margin_minutes: float = 5.0,
        timezone_name: str = "UTC",
        clock: Clock | None = None,
    ) -> None:
        self.router = router
        self.margin_minutes = margin_minutes
        self.timezone = ZoneInfo(timezone_name)
        self.clock = clock or utc_now

    def _leg(
        self,
        origin: Waypoint,
        destination: Waypoint,
        departure: datetime,
        vehicle_type: str,
        consider_traffic: bool,
        fallback_minutes: float,
    ) -> tuple[TravelInfo, bool]:
        try:
            info = self.router.travel_info(origin, destination, departure, vehicle_type, consider_traffic)
            return TravelInfo(max(0.0, float(info.duration_minutes)), max(0.0, float(info.distance_km))), False
        except ProviderError as exc:
            logger.warning(f"Failed to get route info for leg, using estimate: {exc}")
            return TravelInfo(fallback_minutes, fallback_minutes * URBAN_KM_PER_MINUTE), True

    def calculate(
        self,
        depot: str,
        locations: Sequence[LocationGroup],
        *,
        service_time_per_stop: float,
        vehicle_type: str,
        consider_traffic: bool,
        departure_time: Optional[datetime] = None,
        cancel_event: threading.Event | None = None,
    ) -> RouteDetails:
        now = self.clock()
        base = ensure_future_departure(departure_time or now, now=now, margin_minutes=self.margin_minutes)
        base = base.astimezone(self.timezone)

        stops: list[OptimizedStop] = []
        cumulative_time = 0.0
        cumulative_distance = 0.0
        driving_time = 0.0
        estimated_legs = 0
        previous: Waypoint = depot

        for index, location in enumerate(locations):
            if cancel_event is not None and cancel_event.is_set():
                raise OptimizationCancelled("Route detail calculation cancelled")
            leg_departure = ensure_future_departure(
                base, now=self.clock(), margin_minutes=self.margin_minutes, offset_minutes=cumulative_time
            )
            destination = waypoint_for(location)
            info, estimated = self._leg(
                previous,
                destination,
                leg_departure,
                vehicle_type,
                consider_traffic,
                FIRST_LEG_ESTIMATE_MINUTES if index == 0 else LEG_ESTIMATE_MINUTES,
            )
            estimated_legs += int(estimated)
            service_time = location.service_time(service_time_per_stop)
            arrival = base + timedelta(minutes=cumulative_time + info.duration_minutes)

            cumulative_time += info.duration_minutes + service_time
            cumulative_distance += info.distance_km
            driving_time += info.duration_minutes
            stops.append(
                OptimizedStop(
                    order=index + 1,
                    location=location,
                    estimated_arrival=arrival,
                    travel_time=info.duration_minutes,
                    distance=info.distance_km,
                    service_time=service_time,
                    cumulative_time=cumulative_time,
                    cumulative_distance=cumulative_distance,
                    estimated=estimated,
                )
            )
            previous = destination

        if stops:
            if cancel_event is not None and cancel_event.is_set():
                raise OptimizationCancelled("Route detail calculation cancelled")
            return_departure = ensure_future_departure(
                base, now=self.clock(), margin_minutes=self.margin_minutes, offset_minutes=cumulative_time
            )
            info, estimated = self._leg(
                previous, depot, return_departure, vehicle_type, consider_traffic, RETURN_LEG_ESTIMATE_MINUTES
            )
            estimated_legs += int(estimated)
            cumulative_time += info.duration_minutes
            cumulative_distance += info.distance_km
            driving_time += info.duration_minutes

        total_legs = len(stops) + 1 if stops else 0
        logger.info(
            f"Route details: {len(stops)} stops, {cumulative_distance:.1f} km, {cumulative_time:.0f} min "
            f"({estimated_legs}/{total_legs} legs estimated)"
        )
        return RouteDetails(
            stops=stops,
            total_distance=cumulative_distance,
            total_duration=cumulative_time,
            total_driving_time=driving_time,
            departure_time=base,
            estimated_legs=estimated_legs,
            total_legs=total_legs,
        )
