import random
from datetime import timedelta

import pytest
from conftest import NOW, make_address

from src.route_optimizer.services.routing.fallback import (
    SmartFallbackOptimizer,
    area_score,
    average_leg_distance_km,
    average_leg_minutes,
    group_by_address_text,
    normalize_address,
)
from src.route_optimizer.services.routing.metrics import MetricsEstimator


@pytest.fixture
def optimizer(clock) -> SmartFallbackOptimizer:
    metrics = MetricsEstimator(fuel_price_per_liter=2.10, consumption_l_per_100km={"car": 8.0, "motorcycle": 4.0})
    return SmartFallbackOptimizer(
        metrics,
        margin_minutes=5,
        timezone_name="Asia/Kuala_Lumpur",
        clock=clock,
        rng=random.Random(7),
    )


def test_normalize_address_drops_noise_and_separators():
    assert normalize_address("Level 2, Sunway Pyramid Mall,  Subang") == "level 2 sunway pyramid subang"
    assert normalize_address("12 Jalan Cheras, KL") == normalize_address("12  jalan cheras kl")


def test_area_score_prefers_known_localities_then_postcode():
    assert area_score("88 Jalan Cheras, Kuala Lumpur") == 100
    assert area_score("Lot 5, Persiaran Kewajipan, Shah Alam") == 300
    assert area_score("No 3, Jalan 1/2, 43000 Somewhere") == 43000
    assert area_score("Somewhere without clues") == 9999


def test_leg_estimate_tables():
    assert average_leg_distance_km(3) == 8.0
    assert average_leg_distance_km(5) == 12.0
    assert average_leg_distance_km(10) == 15.0
    assert average_leg_distance_km(11) == 18.0
    assert average_leg_minutes(10.0, "motorcycle") == pytest.approx(24.0)
    assert average_leg_minutes(10.0, "truck") == pytest.approx(40.0)


def test_identical_addresses_share_a_stop():
    groups = group_by_address_text(
        [
            make_address(1, "12 Jalan Cheras, KL"),
            make_address(2, "8 Jalan Ampang, KL"),
            make_address(3, "12  jalan cheras kl"),
        ]
    )
    assert [group.total_orders for group in groups] == [2, 1]
    assert groups[0].coordinates is None


def test_fallback_orders_by_area_and_priority(optimizer):
    addresses = [
        make_address(1, "Unknown Road 1"),
        make_address(2, "5 Jalan Klang Lama, Klang"),
        make_address(3, "10 Jalan Cheras", priority="low"),
        make_address(4, "7 Jalan Kajang", priority="high"),
    ]
    result = optimizer.optimize(addresses, vehicle_type="car", service_time_per_stop=10.0)

    ordered = [stop.location.address for stop in result.optimized_stops]
    assert ordered == ["10 Jalan Cheras", "7 Jalan Kajang", "5 Jalan Klang Lama, Klang", "Unknown Road 1"]


def test_priority_bonus_is_added_to_area_score(optimizer):
    groups = group_by_address_text(
        [
            make_address(1, "1 Jalan Cheras", priority="high"),
            make_address(2, "2 Jalan Kajang"),
        ]
    )
    ordered = [location.address for location in optimizer.order_locations(groups)]
    assert ordered == ["2 Jalan Kajang", "1 Jalan Cheras"]


def test_fallback_result_is_consistent(optimizer):
    addresses = [make_address(index, f"{index} Jalan Ampang") for index in range(1, 4)]
    result = optimizer.optimize(addresses, vehicle_type="car", service_time_per_stop=10.0)

    assert len(result.optimized_stops) == 3
    assert result.route_efficiency == 85
    assert result.metadata["strategy"] == "smart_fallback"
    assert result.metadata["estimated_legs"] == result.metadata["total_legs"] == 4
    assert "Using smart local optimization (routing provider not available)." in result.warnings
    previous_time = previous_distance = 0.0
    for stop in result.optimized_stops:
        assert stop.estimated
        assert stop.travel_time >= 1
        assert stop.distance >= 0.5
        assert stop.cumulative_time >= previous_time
        assert stop.cumulative_distance >= previous_distance
        assert stop.estimated_arrival >= NOW + timedelta(minutes=5)
        previous_time, previous_distance = stop.cumulative_time, stop.cumulative_distance
    assert result.total_duration > previous_time
    assert result.estimated_fuel_cost == pytest.approx(result.total_distance / 100 * 8.0 * 2.10)


def test_fallback_reports_failure_reason(optimizer):
    addresses = [make_address(index, f"{index} Jalan Setapak") for index in range(1, 16)]
    result = optimizer.optimize(
        addresses, vehicle_type="motorcycle", service_time_per_stop=5.0, reason="geocoder exploded"
    )

    assert result.warnings[0] == "Route optimization failed (geocoder exploded). Local heuristic estimation was used."
    assert result.route_efficiency == 65
    assert len(result.optimized_stops) == 15


def test_fallback_is_reproducible_with_seeded_rng(clock):
    metrics = MetricsEstimator(fuel_price_per_liter=2.10, consumption_l_per_100km={"car": 8.0})
    addresses = [make_address(index, f"{index} Jalan Kepong") for index in range(1, 6)]

    def _run():
        optimizer = SmartFallbackOptimizer(metrics, clock=clock, rng=random.Random(42))
        result = optimizer.optimize(addresses, vehicle_type="car", service_time_per_stop=10.0)
        return [(stop.location.id, stop.travel_time, stop.distance) for stop in result.optimized_stops]

    assert _run() == _run()
