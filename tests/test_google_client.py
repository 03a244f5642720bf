import json
from datetime import datetime, timedelta

import httpx
import pytest
from conftest import NOW

from src.route_optimizer.config import Settings
from src.route_optimizer.models.domain import Coordinates
from src.route_optimizer.services.routing.errors import ProviderError
from src.route_optimizer.services.routing.google_client import (
    ROUTES_FIELD_MASK,
    GoogleMapsClient,
    parse_duration_minutes,
    travel_mode_for,
)

ROUTE_OK = {"routes": [{"duration": "754s", "distanceMeters": 5230}]}


def _client(handler, clock, **kwargs) -> GoogleMapsClient:
    config = Settings(_env_file=None, google_maps_api_key="test-key", backoff_seconds=0.0, max_retries=2)
    return GoogleMapsClient(config=config, clock=clock, transport=httpx.MockTransport(handler), **kwargs)


def test_parse_duration_rounds_up_to_minutes():
    assert parse_duration_minutes("754s") == 13
    assert parse_duration_minutes("60s") == 1
    assert parse_duration_minutes("0s") == 0
    assert parse_duration_minutes(61) == 2
    with pytest.raises(ValueError):
        parse_duration_minutes(None)


def test_travel_mode_for_vehicle():
    assert travel_mode_for("motorcycle") == "TWO_WHEELER"
    assert travel_mode_for("car") == "DRIVE"
    assert travel_mode_for("truck") == "DRIVE"


def test_missing_api_key_is_rejected():
    with pytest.raises(ValueError):
        GoogleMapsClient(config=Settings(_env_file=None, google_maps_api_key=None))


def test_travel_info_builds_routes_request(clock):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=ROUTE_OK)

    client = _client(handler, clock)
    info = client.travel_info(
        Coordinates(3.1, 101.7),
        "8 Jalan Ampang, Kuala Lumpur",
        NOW - timedelta(minutes=30),
        "motorcycle",
        False,
    )

    assert info.duration_minutes == 13
    assert info.distance_km == pytest.approx(5.23)
    request = requests[0]
    assert request.headers["X-Goog-FieldMask"] == ROUTES_FIELD_MASK
    assert request.headers["X-Goog-Api-Key"] == "test-key"
    body = json.loads(request.content)
    assert body["travelMode"] == "TWO_WHEELER"
    assert body["routingPreference"] == "TRAFFIC_UNAWARE"
    assert body["routeModifiers"]["avoidFerries"] is True
    assert body["origin"] == {"location": {"latLng": {"latitude": 3.1, "longitude": 101.7}}}
    assert body["destination"] == {"address": "8 Jalan Ampang, Kuala Lumpur"}
    assert datetime.fromisoformat(body["departureTime"]) >= NOW + timedelta(minutes=5)


def test_past_timestamp_rejection_retries_one_hour_ahead(clock):
    departures = []

    def handler(request: httpx.Request) -> httpx.Response:
        departures.append(json.loads(request.content)["departureTime"])
        if len(departures) == 1:
            return httpx.Response(
                400,
                json={"error": {"code": 400, "message": "Timestamp must be set to a future time."}},
            )
        return httpx.Response(200, json=ROUTE_OK)

    info = _client(handler, clock).travel_info("A", "B", NOW + timedelta(minutes=10), "car", True)

    assert info.duration_minutes == 13
    assert len(departures) == 2
    assert datetime.fromisoformat(departures[1]) == NOW + timedelta(hours=1)


def test_server_errors_are_retried(clock):
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) < 3:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, json=ROUTE_OK)

    info = _client(handler, clock).travel_info("A", "B", NOW, "car", True)
    assert info.duration_minutes == 13
    assert len(attempts) == 3


def test_persistent_server_error_raises_provider_error(clock):
    client = _client(lambda request: httpx.Response(503, text="busy"), clock)
    with pytest.raises(ProviderError) as excinfo:
        client.travel_info("A", "B", NOW, "car", True)

    assert excinfo.value.code == "PROVIDER_UNAVAILABLE"
    assert excinfo.value.status_code == 503
    assert excinfo.value.retryable


def test_forbidden_is_not_retried(clock):
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(403, json={"error": {"message": "API key not valid"}})

    with pytest.raises(ProviderError) as excinfo:
        _client(handler, clock).travel_info("A", "B", NOW, "car", True)
    assert excinfo.value.code == "PROVIDER_REJECTED"
    assert len(attempts) == 1


def test_timeouts_become_provider_errors(clock):
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(ProviderError) as excinfo:
        _client(handler, clock).travel_info("A", "B", NOW, "car", True)
    assert excinfo.value.code == "PROVIDER_TIMEOUT"
    assert len(attempts) == 3


def test_empty_routes_raise(clock):
    client = _client(lambda request: httpx.Response(200, json={}), clock)
    with pytest.raises(ProviderError) as excinfo:
        client.travel_info("A", "B", NOW, "car", True)
    assert excinfo.value.code == "NO_ROUTE"


def test_resolve_reads_first_geocoding_result(clock):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["address"] == "8 Jalan Ampang"
        assert request.url.params["key"] == "test-key"
        return httpx.Response(
            200,
            json={"status": "OK", "results": [{"geometry": {"location": {"lat": 3.16, "lng": 101.75}}}]},
        )

    assert _client(handler, clock).resolve("8 Jalan Ampang") == Coordinates(3.16, 101.75)


def test_resolve_handles_missing_and_denied(clock):
    missing = _client(lambda request: httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []}), clock)
    assert missing.resolve("Nowhere") is None

    denied = _client(
        lambda request: httpx.Response(200, json={"status": "REQUEST_DENIED", "error_message": "bad key"}),
        clock,
    )
    with pytest.raises(ProviderError):
        denied.resolve("Anywhere")


def test_is_available_reflects_probe(clock):
    assert _client(lambda request: httpx.Response(200, json=ROUTE_OK), clock).is_available() is True
    assert _client(lambda request: httpx.Response(500, text="down"), clock).is_available() is False
