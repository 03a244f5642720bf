import pytest
from conftest import make_address, make_group

from src.route_optimizer.models.domain import LocationGroup, TimeWindow, window_start_minutes
from src.route_optimizer.services.routing.errors import RouteValidationError
from src.route_optimizer.services.routing.sequence_solver import apply_constraint_reordering


def test_window_start_minutes_parses_clock_times():
    assert window_start_minutes("09:30") == 570
    assert window_start_minutes("9:30") == 570
    assert window_start_minutes("14:05") == 845
    assert window_start_minutes("soon") == 540


def test_earliest_window_start_compares_clock_times():
    group = LocationGroup(
        id="location-1",
        address="Stop",
        coordinates=None,
        orders=[
            make_address(1, "Stop", time_window=TimeWindow("10:00", "11:00")),
            make_address(2, "Stop", time_window=TimeWindow("9:30", "10:30")),
        ],
    )
    assert group.earliest_window_start == "9:30"


def test_single_digit_hour_window_sorts_before_later_windows():
    later = make_group(0, window=("10:00", "12:00"))
    earlier = make_group(1, window=("9:30", "11:00"))

    ordered = apply_constraint_reordering([later, earlier])

    assert [group.id for group in ordered] == [earlier.id, later.id]


def test_unknown_priority_is_rejected():
    with pytest.raises(RouteValidationError, match="Unknown priority 'HIGH'"):
        make_address(1, "12 Jalan Cheras", priority="HIGH")


def test_missing_priority_counts_as_medium():
    assert make_group(0).priority_weight == 2
    assert make_group(1, priority="high").priority_weight == 1
