"""Domain models for delivery addresses and consolidated stops."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional

from ..services.routing.errors import RouteValidationError

Priority = Literal["high", "medium", "low"]

PRIORITY_WEIGHTS: dict[str, int] = {"high": 1, "medium": 2, "low": 3}
DEFAULT_PRIORITY = "medium"
# Window starts that cannot be parsed sort as a regular morning start
DEFAULT_WINDOW_START_MINUTES = 9 * 60


def window_start_minutes(value: str) -> int:
    try:
        parsed = datetime.strptime(value.strip(), "%H:%M")
    except ValueError:
        return DEFAULT_WINDOW_START_MINUTES
    return parsed.hour * 60 + parsed.minute


@dataclass(slots=True, frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(slots=True, frozen=True)
class TimeWindow:
    """Local time-of-day window in HH:MM format."""

    start: str
    end: str


@dataclass(slots=True, frozen=True)
class Address:
    """A single delivery requirement submitted for a dispatch run."""

    id: str
    address: str
    order_id: str
    customer_name: str
    order_number: Optional[str] = None
    priority: Optional[Priority] = None
    time_window: Optional[TimeWindow] = None

    def __post_init__(self) -> None:
        if self.priority is not None and self.priority not in PRIORITY_WEIGHTS:
            raise RouteValidationError(
                f"Unknown priority '{self.priority}' for order {self.order_id}. Use high, medium or low."
            )

    @property
    def reference(self) -> str:
        return self.order_number or self.order_id or self.id


@dataclass(slots=True)
class LocationGroup:
    """A physical stop satisfying one or more delivery orders."""

    id: str
    address: str
    coordinates: Optional[Coordinates]
    orders: list[Address] = field(default_factory=list)

    @property
    def total_orders(self) -> int:
        return len(self.orders)

    @property
    def customer_names(self) -> list[str]:
        names: list[str] = []
        for order in self.orders:
            if order.customer_name not in names:
                names.append(order.customer_name)
        return names

    @property
    def earliest_window_start(self) -> Optional[str]:
        starts = [order.time_window.start for order in self.orders if order.time_window]
        return min(starts, key=window_start_minutes) if starts else None

    @property
    def priority_weight(self) -> int:
        """Weight of the most urgent order at this stop (high=1, low=3)."""
        return min(PRIORITY_WEIGHTS[order.priority or DEFAULT_PRIORITY] for order in self.orders)

    def service_time(self, minutes_per_order: float) -> float:
        return self.total_orders * minutes_per_order
