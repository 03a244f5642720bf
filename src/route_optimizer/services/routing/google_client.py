"""HTTP client for the Google Geocoding and Routes APIs."""

from __future__ import annotations

import logging
import math
import time
from datetime import datetime, timedelta
from typing import Any

import httpx

from ...config import Settings, settings as default_settings
from ...models.domain import Coordinates
from .errors import ProviderError
from .models import TravelInfo, Waypoint
from .timing import Clock, ensure_future_departure, utc_now

ROUTES_FIELD_MASK = "routes.duration,routes.distanceMeters"
PAST_TIMESTAMP_MESSAGE = "Timestamp must be set to a future time"
# Retry offset used when the API still rejects a departure as being in the past
PAST_TIMESTAMP_RETRY_MINUTES = 60
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
HEALTH_CHECK_ORIGIN = "Kuala Lumpur, Malaysia"
HEALTH_CHECK_DESTINATION = "Petaling Jaya, Malaysia"

logger = logging.getLogger(__name__)


def parse_duration_minutes(value: str | int | float | None) -> int:
    """Convert a Routes API duration such as ``"754s"`` into whole minutes, rounded up."""
    if value is None:
        raise ValueError("Duration value is missing")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        if text.endswith("s"):
            text = text[:-1]
        seconds = float(text)
    return max(0, math.ceil(seconds / 60))


def travel_mode_for(vehicle_type: str) -> str:
    if vehicle_type == "motorcycle":
        return "TWO_WHEELER"
    return "DRIVE"


def _waypoint(value: Waypoint) -> dict[str, Any]:
    if isinstance(value, Coordinates):
        return {"location": {"latLng": {"latitude": value.lat, "longitude": value.lng}}}
    return {"address": value}


class GoogleMapsClient:
    """Geocoding and routing capability backed by Google Maps Platform."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        config: Settings | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        clock: Clock | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config or default_settings
        self.api_key = api_key or self.config.google_maps_api_key
        if not self.api_key:
            raise ValueError("Google Maps API key is not configured.")
        self.routes_url = self.config.google_routes_url
        self.geocode_url = self.config.google_geocode_url
        self.timeout = timeout if timeout is not None else self.config.request_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else self.config.max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else self.config.backoff_seconds
        self.margin_minutes = self.config.departure_margin_minutes
        self.clock = clock or utc_now
        self.transport = transport

    def _get_client(self) -> httpx.Client:
        # A client per call keeps the instance safe to share between worker threads
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 10.0)),
            transport=self.transport,
        )

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.request(method, url, params=params, json=payload, headers=headers)
                except httpx.TimeoutException as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"Google Maps request timed out after {attempt} attempts: {exc}")
                        raise ProviderError(
                            "Google Maps request timed out",
                            code="PROVIDER_TIMEOUT",
                            retryable=True,
                            details={"url": url, "attempts": attempt},
                        ) from exc
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"Google Maps timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
                    continue
                except httpx.HTTPError as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ProviderError(
                            f"Failed to reach Google Maps at {url}: {exc}",
                            code="PROVIDER_UNREACHABLE",
                            retryable=True,
                            details={"url": url, "attempts": attempt, "error_type": exc.__class__.__name__},
                        ) from exc
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"Google Maps network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {exc}")
                    time.sleep(wait_time)
                    continue

                if response.status_code in RETRYABLE_STATUS_CODES:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ProviderError(
                            f"Google Maps unavailable (HTTP {response.status_code})",
                            code="PROVIDER_UNAVAILABLE",
                            status_code=response.status_code,
                            retryable=True,
                            details={"body": response.text[:300]},
                        )
                    time.sleep(self.backoff_seconds * attempt)
                    continue

                if response.status_code >= 400:
                    body = response.text
                    if PAST_TIMESTAMP_MESSAGE in body:
                        raise ProviderError(
                            "Departure time rejected as not in the future",
                            code="DEPARTURE_IN_PAST",
                            status_code=response.status_code,
                            details={"body": body[:300]},
                        )
                    if response.status_code == 403:
                        message = "API key invalid or Routes API not enabled"
                    elif response.status_code == 400:
                        message = "Invalid request format or missing API permissions"
                    else:
                        message = f"Google Maps API error: {response.status_code}"
                    raise ProviderError(
                        message,
                        code="PROVIDER_REJECTED",
                        status_code=response.status_code,
                        details={"body": body[:300]},
                    )
                return response
        finally:
            client.close()

    def resolve(self, address: str) -> Coordinates | None:
        """Geocode an address; returns None when Google has no match."""
        response = self._request("GET", self.geocode_url, params={"address": address, "key": self.api_key})
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError("Geocoding response is not valid JSON", code="PROVIDER_BAD_PAYLOAD") from exc

        status = data.get("status")
        results = data.get("results") or []
        if status == "ZERO_RESULTS" or (status == "OK" and not results):
            logger.warning(f"No geocoding results for address: {address[:60]}")
            return None
        if status != "OK":
            raise ProviderError(
                f"Geocoding failed with status {status}",
                code="PROVIDER_REJECTED",
                details={"status": status, "error_message": data.get("error_message")},
            )
        try:
            location = results[0]["geometry"]["location"]
            return Coordinates(lat=float(location["lat"]), lng=float(location["lng"]))
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise ProviderError("Geocoding result has no location", code="PROVIDER_BAD_PAYLOAD") from exc

    def _compute_route(self, body: dict[str, Any]) -> TravelInfo:
        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": ROUTES_FIELD_MASK,
        }
        response = self._request("POST", self.routes_url, payload=body, headers=headers)
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError("Routes response is not valid JSON", code="PROVIDER_BAD_PAYLOAD") from exc

        routes = data.get("routes") or []
        if not routes:
            raise ProviderError("No route found", code="NO_ROUTE")
        route = routes[0]
        try:
            return TravelInfo(
                duration_minutes=parse_duration_minutes(route.get("duration")),
                distance_km=float(route.get("distanceMeters", 0)) / 1000.0,
            )
        except (TypeError, ValueError) as exc:
            raise ProviderError("Route is missing duration or distance", code="PROVIDER_BAD_PAYLOAD") from exc

    def travel_info(
        self,
        origin: Waypoint,
        destination: Waypoint,
        departure_time: datetime,
        vehicle_type: str,
        consider_traffic: bool,
    ) -> TravelInfo:
        departure = ensure_future_departure(departure_time, now=self.clock(), margin_minutes=self.margin_minutes)
        body: dict[str, Any] = {
            "origin": _waypoint(origin),
            "destination": _waypoint(destination),
            "travelMode": travel_mode_for(vehicle_type),
            "routingPreference": "TRAFFIC_AWARE" if consider_traffic else "TRAFFIC_UNAWARE",
            "departureTime": departure.isoformat(),
            "computeAlternativeRoutes": False,
            "routeModifiers": {
                "avoidTolls": False,
                "avoidHighways": False,
                "avoidFerries": True,
            },
        }
        try:
            return self._compute_route(body)
        except ProviderError as exc:
            if exc.code != "DEPARTURE_IN_PAST":
                raise
            retry_departure = self.clock() + timedelta(minutes=PAST_TIMESTAMP_RETRY_MINUTES)
            logger.warning(f"Departure {departure.isoformat()} rejected as past, retrying at {retry_departure.isoformat()}")
            return self._compute_route({**body, "departureTime": retry_departure.isoformat()})

    def is_available(self) -> bool:
        """Probe the Routes API with a short fixed route."""
        try:
            self.travel_info(
                HEALTH_CHECK_ORIGIN,
                HEALTH_CHECK_DESTINATION,
                self.clock(),
                "car",
                True,
            )
            return True
        except ProviderError as exc:
            logger.warning(f"Google Maps health check failed: {exc}")
            return False


def check_health(config: Settings | None = None) -> bool:
    """Return True when a routing key is configured and the Routes API answers."""
    config = config or default_settings
    if not config.routing_configured:
        return False
    return GoogleMapsClient(config=config).is_available()
