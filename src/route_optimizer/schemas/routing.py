"""Routing request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

_CLOCK_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class TimeWindowModel(BaseModel):
    start: str = Field(..., pattern=_CLOCK_PATTERN, description="Local time in HH:MM")
    end: str = Field(..., pattern=_CLOCK_PATTERN, description="Local time in HH:MM")


class AddressModel(BaseModel):
    id: str
    address: str = Field(..., min_length=1)
    order_id: str
    customer_name: str
    order_number: Optional[str] = None
    priority: Optional[Literal["high", "medium", "low"]] = None
    time_window: Optional[TimeWindowModel] = None


class RoutingOptionsModel(BaseModel):
    vehicle_type: Optional[Literal["car", "motorcycle", "truck"]] = None
    consider_traffic: Optional[bool] = None
    departure_time: Optional[datetime] = Field(
        default=None,
        description="Requested departure. Naive values are read in the configured timezone.",
    )
    max_stops_per_route: Optional[int] = Field(None, ge=1)
    service_time_per_stop: Optional[float] = Field(None, ge=0)


class RoutingRequest(BaseModel):
    depot_address: str = Field(..., min_length=1, description="Start and end point of the route.")
    stops: List[AddressModel]
    options: Optional[RoutingOptionsModel] = None


class CoordinatesModel(BaseModel):
    lat: float
    lng: float


class LocationGroupModel(BaseModel):
    id: str
    address: str
    coordinates: Optional[CoordinatesModel] = None
    total_orders: int
    customer_names: List[str]
    orders: List[AddressModel]


class OptimizedStopModel(BaseModel):
    order: int
    location: LocationGroupModel
    estimated_arrival: datetime
    estimated_arrival_label: str
    travel_time: float
    distance: float
    service_time: float
    cumulative_time: float
    cumulative_distance: float
    estimated: bool


class RoutingResponse(BaseModel):
    optimized_stops: List[OptimizedStopModel]
    total_distance: float
    total_duration: float
    total_driving_time: float
    estimated_fuel_cost: float
    route_efficiency: int
    warnings: List[str]
    metadata: dict
