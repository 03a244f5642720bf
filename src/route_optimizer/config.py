"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="ROUTEOPT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Delivery Route Optimizer API"
    api_prefix: str = "/api"

    google_maps_api_key: Optional[str] = Field(
        default=None,
        description="API key for the Google Geocoding and Routes APIs. Without it only local estimation is used.",
    )
    google_routes_url: str = Field(default="https://routes.googleapis.com/directions/v2:computeRoutes")
    google_geocode_url: str = Field(default="https://maps.googleapis.com/maps/api/geocode/json")
    openai_api_key: Optional[str] = Field(
        default=None,
        description="API key for the optimization advisor. Without it the deterministic planner is used.",
    )
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    openai_model: str = Field(default="gpt-4")
    advisor_enabled: bool = Field(default=True)

    request_timeout_seconds: float = Field(default=15.0, gt=0.0)
    max_retries: int = Field(default=2, ge=0)
    backoff_seconds: float = Field(default=0.5, ge=0.0)
    max_parallel_requests: int = Field(
        default=4,
        ge=1,
        description="Concurrent geocoding/matrix lookups per request (1 keeps them sequential).",
    )
    check_provider_health: bool = Field(
        default=True,
        description="Probe the routing provider before running the networked pipeline.",
    )

    default_vehicle_type: Literal["car", "motorcycle", "truck"] = "car"
    max_stops_per_route: int = Field(default=20, ge=1)
    service_time_per_stop: float = Field(default=10.0, ge=0.0, description="Minutes spent per order at a stop.")
    consolidation_radius_m: float = Field(default=100.0, gt=0.0)
    departure_margin_minutes: int = Field(default=5, ge=1)
    unreachable_penalty_minutes: float = Field(default=9999.0, gt=0.0)
    apply_constraint_reordering: bool = Field(
        default=True,
        description="Move time-window and high-priority stops forward after the 2-opt pass.",
    )

    fuel_price_per_liter: float = Field(default=2.10, ge=0.0)
    fuel_consumption_l_per_100km: dict[str, float] = Field(
        default={"car": 8.0, "motorcycle": 4.0, "truck": 25.0},
    )
    working_hours: tuple[str, ...] = Field(default=("09:00", "18:00"))
    max_driving_hours: float = Field(default=8.0, gt=0.0)
    timezone: str = Field(default="Asia/Kuala_Lumpur")
    optimization_goals: tuple[str, ...] = Field(
        default=(
            "Minimize total travel time",
            "Minimize total distance",
            "Group nearby locations together",
            "Consider traffic patterns",
            "Optimize fuel efficiency",
        ),
    )

    @field_validator("working_hours", "optimization_goals", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("working_hours")
    @classmethod
    def _check_working_hours(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if len(value) != 2:
            raise ValueError("working_hours must contain a start and an end time (HH:MM).")
        return value

    @property
    def routing_configured(self) -> bool:
        return bool(self.google_maps_api_key)

    @property
    def advisor_configured(self) -> bool:
        return bool(self.advisor_enabled and self.openai_api_key)


settings = Settings()
