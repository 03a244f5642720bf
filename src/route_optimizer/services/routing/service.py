"""Routing orchestration service."""

from __future__ import annotations

import logging
import random
import threading
from typing import Optional, Sequence

from ...config import Settings, settings as default_settings
from ...models.domain import Address, Coordinates, TimeWindow
from ...schemas.routing import RoutingOptionsModel, RoutingRequest, RoutingResponse
from ..outputs.routing_formatter import routing_result_to_json
from .advisor import OpenAIAdvisor
from .consolidation import GeoConsolidator
from .errors import OptimizationCancelled, RouteValidationError
from .fallback import SmartFallbackOptimizer
from .google_client import GoogleMapsClient
from .matrix import DistanceMatrixBuilder
from .metrics import MetricsEstimator
from .models import RouteOptimizationResult, RouteOptions
from .providers import GeocodingProvider, OptimizationAdvisor, RoutingProvider
from .route_details import RouteDetailCalculator
from .sequence_solver import PlanningConstraints, SequencePlanner
from .timing import Clock, localize, utc_now

logger = logging.getLogger(__name__)


class _UnresolvedGeocoder:
    """Used when routing is available without a geocoder; stops keep their address text."""

    def resolve(self, address: str) -> Optional[Coordinates]:
        return None


def _check_cancelled(cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OptimizationCancelled("Route optimization cancelled by caller")


class RouteOptimizer:
    """Public entry point of the route optimization engine.

    Providers default to the Google Maps and OpenAI clients when their keys
    are present in ``config``. Without a routing provider every request is
    answered by the local SmartFallbackOptimizer.
    """

    def __init__(
        self,
        config: Settings | None = None,
        *,
        geocoder: GeocodingProvider | None = None,
        router: RoutingProvider | None = None,
        advisor: OptimizationAdvisor | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or default_settings
        self.clock = clock or utc_now

        if router is None and self.config.routing_configured:
            client = GoogleMapsClient(config=self.config, clock=self.clock)
            router = client
            geocoder = geocoder or client
        if advisor is None and self.config.advisor_configured:
            advisor = OpenAIAdvisor(config=self.config)

        self.router = router
        self.geocoder = geocoder or _UnresolvedGeocoder()
        self.advisor = advisor
        self.metrics = MetricsEstimator(
            fuel_price_per_liter=self.config.fuel_price_per_liter,
            consumption_l_per_100km=self.config.fuel_consumption_l_per_100km,
        )
        self.fallback = SmartFallbackOptimizer(
            self.metrics,
            margin_minutes=self.config.departure_margin_minutes,
            timezone_name=self.config.timezone,
            clock=self.clock,
            rng=rng,
        )

    def _build_options(self, options: RouteOptions | None) -> RouteOptions:
        options = options or RouteOptions()
        departure = options.departure_time
        return RouteOptions(
            vehicle_type=options.vehicle_type or self.config.default_vehicle_type,
            consider_traffic=options.consider_traffic if options.consider_traffic is not None else True,
            departure_time=localize(departure, self.config.timezone) if departure is not None else None,
            max_stops_per_route=options.max_stops_per_route
            if options.max_stops_per_route is not None
            else self.config.max_stops_per_route,
            service_time_per_stop=options.service_time_per_stop
            if options.service_time_per_stop is not None
            else self.config.service_time_per_stop,
        )

    @staticmethod
    def _validate(stops: Sequence[Address], max_stops: int) -> None:
        if not stops:
            raise RouteValidationError("At least one delivery address is required")
        if len(stops) > max_stops:
            raise RouteValidationError(f"Too many stops. Maximum {max_stops} stops per route.")

    def _router_available(self) -> bool:
        if self.router is None:
            return False
        if not self.config.check_provider_health:
            return True
        try:
            return bool(self.router.is_available())
        except Exception as exc:
            logger.warning(f"Routing provider health check raised: {exc}")
            return False

    def optimize_route(
        self,
        depot_address: str,
        stops: Sequence[Address],
        options: RouteOptions | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> RouteOptimizationResult:
        resolved = self._build_options(options)
        self._validate(stops, resolved.max_stops_per_route)
        logger.info(f"Starting route optimization for {len(stops)} stops from '{depot_address}'")

        if not self._router_available():
            logger.info("Routing provider not configured or unreachable, using smart fallback optimization")
            return self.fallback.optimize(
                stops,
                vehicle_type=resolved.vehicle_type,
                service_time_per_stop=resolved.service_time_per_stop,
                departure_time=resolved.departure_time,
            )

        try:
            return self._run_pipeline(depot_address, stops, resolved, cancel_event)
        except (RouteValidationError, OptimizationCancelled):
            raise
        except Exception as exc:
            logger.exception(f"Route optimization failed, falling back to local estimation: {exc}")
            return self.fallback.optimize(
                stops,
                vehicle_type=resolved.vehicle_type,
                service_time_per_stop=resolved.service_time_per_stop,
                departure_time=resolved.departure_time,
                reason=str(exc) or exc.__class__.__name__,
            )

    def _run_pipeline(
        self,
        depot_address: str,
        stops: Sequence[Address],
        options: RouteOptions,
        cancel_event: threading.Event | None,
    ) -> RouteOptimizationResult:
        config = self.config
        consolidator = GeoConsolidator(
            self.geocoder,
            radius_m=config.consolidation_radius_m,
            max_parallel_requests=config.max_parallel_requests,
        )
        locations = consolidator.consolidate(stops)
        _check_cancelled(cancel_event)

        matrix = DistanceMatrixBuilder(
            self.router,
            penalty_minutes=config.unreachable_penalty_minutes,
            margin_minutes=config.departure_margin_minutes,
            max_parallel_requests=config.max_parallel_requests,
            clock=self.clock,
        ).build(
            depot_address,
            locations,
            departure_time=options.departure_time or self.clock(),
            vehicle_type=options.vehicle_type,
            consider_traffic=options.consider_traffic,
        )
        _check_cancelled(cancel_event)

        constraints = PlanningConstraints(
            vehicle_type=options.vehicle_type,
            consider_traffic=options.consider_traffic,
            service_time_per_stop=options.service_time_per_stop,
            working_hours=(config.working_hours[0], config.working_hours[1]),
            max_driving_hours=config.max_driving_hours,
            optimization_goals=config.optimization_goals,
        )
        plan = SequencePlanner(
            self.advisor,
            reorder_by_constraints=config.apply_constraint_reordering,
        ).plan(depot_address, locations, matrix, constraints)
        _check_cancelled(cancel_event)

        details = RouteDetailCalculator(
            self.router,
            margin_minutes=config.departure_margin_minutes,
            timezone_name=config.timezone,
            clock=self.clock,
        ).calculate(
            depot_address,
            plan.locations,
            service_time_per_stop=options.service_time_per_stop,
            vehicle_type=options.vehicle_type,
            consider_traffic=options.consider_traffic,
            departure_time=options.departure_time,
            cancel_event=cancel_event,
        )
        metrics = self.metrics.estimate(details, plan.locations, options.vehicle_type)

        metadata: dict = {
            "strategy": "provider",
            "sequence_source": plan.source,
            "departure_time": details.departure_time.isoformat(),
            "locations": len(plan.locations),
            "orders": len(stops),
            "failed_matrix_pairs": matrix.failed_pairs,
            "estimated_legs": details.estimated_legs,
            "total_legs": details.total_legs,
        }
        if plan.reasoning:
            metadata["advisor_reasoning"] = plan.reasoning
        if plan.insights:
            metadata["advisor_insights"] = plan.insights

        result = RouteOptimizationResult(
            optimized_stops=details.stops,
            total_distance=details.total_distance,
            total_duration=details.total_duration,
            total_driving_time=details.total_driving_time,
            estimated_fuel_cost=metrics.estimated_fuel_cost,
            route_efficiency=metrics.route_efficiency,
            warnings=metrics.warnings,
            metadata=metadata,
        )
        hours, minutes = divmod(int(round(result.total_duration)), 60)
        logger.info(
            f"Route optimization completed: {len(result.optimized_stops)} stops, "
            f"{result.total_distance:.1f} km, {hours}h {minutes}m, efficiency {result.route_efficiency}%"
        )
        return result


def _address_from_model(model) -> Address:
    window = model.time_window
    return Address(
        id=model.id,
        address=model.address,
        order_id=model.order_id,
        customer_name=model.customer_name,
        order_number=model.order_number,
        priority=model.priority,
        time_window=TimeWindow(start=window.start, end=window.end) if window else None,
    )


def _options_from_model(model: RoutingOptionsModel | None) -> RouteOptions:
    if model is None:
        return RouteOptions()
    return RouteOptions(
        vehicle_type=model.vehicle_type,
        consider_traffic=model.consider_traffic,
        departure_time=model.departure_time,
        max_stops_per_route=model.max_stops_per_route,
        service_time_per_stop=model.service_time_per_stop,
    )


def optimize_route(
    depot_address: str,
    stops: Sequence[Address],
    options: RouteOptions | None = None,
    *,
    config: Settings | None = None,
) -> RouteOptimizationResult:
    return RouteOptimizer(config).optimize_route(depot_address, stops, options)


def optimize_routes(payload: RoutingRequest, optimizer: RouteOptimizer | None = None) -> RouteOptimizationResult:
    optimizer = optimizer or RouteOptimizer()
    stops = [_address_from_model(stop) for stop in payload.stops]
    return optimizer.optimize_route(payload.depot_address, stops, _options_from_model(payload.options))


def to_response(result: RouteOptimizationResult) -> RoutingResponse:
    return RoutingResponse.model_validate(routing_result_to_json(result))
