"""Serializers for route optimization results."""

from __future__ import annotations

import csv
import io
from dataclasses import asdict

from ...models.domain import LocationGroup
from ..routing.models import RouteOptimizationResult


def _location_to_json(location: LocationGroup) -> dict:
    return {
        "id": location.id,
        "address": location.address,
        "coordinates": asdict(location.coordinates) if location.coordinates else None,
        "total_orders": location.total_orders,
        "customer_names": location.customer_names,
        "orders": [asdict(order) for order in location.orders],
    }


def routing_result_to_json(result: RouteOptimizationResult) -> dict:
    return {
        "optimized_stops": [
            {
                "order": stop.order,
                "location": _location_to_json(stop.location),
                "estimated_arrival": stop.estimated_arrival.isoformat(),
                "estimated_arrival_label": stop.estimated_arrival_label,
                "travel_time": stop.travel_time,
                "distance": stop.distance,
                "service_time": stop.service_time,
                "cumulative_time": stop.cumulative_time,
                "cumulative_distance": stop.cumulative_distance,
                "estimated": stop.estimated,
            }
            for stop in result.optimized_stops
        ],
        "total_distance": result.total_distance,
        "total_duration": result.total_duration,
        "total_driving_time": result.total_driving_time,
        "estimated_fuel_cost": result.estimated_fuel_cost,
        "route_efficiency": result.route_efficiency,
        "warnings": list(result.warnings),
        "metadata": dict(result.metadata),
    }


def routing_result_to_csv(result: RouteOptimizationResult) -> str:
    """Driver manifest with one row per order, in visit order."""
    buffer = io.StringIO()
    fieldnames = [
        "stop",
        "location_id",
        "address",
        "estimated_arrival",
        "order_number",
        "customer_name",
        "priority",
        "time_window",
        "travel_time_min",
        "distance_km",
        "service_time_min",
        "cumulative_time_min",
        "cumulative_distance_km",
        "estimated",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for stop in result.optimized_stops:
        for order in stop.location.orders:
            window = order.time_window
            writer.writerow(
                {
                    "stop": stop.order,
                    "location_id": stop.location.id,
                    "address": stop.location.address,
                    "estimated_arrival": stop.estimated_arrival_label,
                    "order_number": order.reference,
                    "customer_name": order.customer_name,
                    "priority": order.priority or "",
                    "time_window": f"{window.start}-{window.end}" if window else "",
                    "travel_time_min": round(stop.travel_time, 1),
                    "distance_km": round(stop.distance, 2),
                    "service_time_min": round(stop.service_time, 1),
                    "cumulative_time_min": round(stop.cumulative_time, 1),
                    "cumulative_distance_km": round(stop.cumulative_distance, 2),
                    "estimated": stop.estimated,
                }
            )
    return buffer.getvalue()
