from datetime import timedelta

from conftest import DEPOT, NOW, FakeRouter, make_address

from src.route_optimizer.models.domain import LocationGroup
from src.route_optimizer.services.routing.matrix import DistanceMatrixBuilder, waypoint_for


def _locations(router):
    names = ["12 Jalan Cheras, Kuala Lumpur", "8 Jalan Ampang, Kuala Lumpur", "Unknown Street 99"]
    return [
        LocationGroup(
            id=f"location-{index + 1}",
            address=name,
            coordinates=router.places.get(name),
            orders=[make_address(index, name)],
        )
        for index, name in enumerate(names)
    ]


def _build(router, clock, **kwargs):
    builder = DistanceMatrixBuilder(router, clock=clock, **kwargs)
    return builder.build(
        DEPOT,
        _locations(router),
        departure_time=NOW - timedelta(hours=2),
        vehicle_type="car",
        consider_traffic=True,
    )


def test_matrix_covers_depot_and_every_location(router, clock):
    matrix = _build(router, clock)

    assert matrix.size == 4
    assert all(matrix.duration(i, i) == 0 for i in range(4))
    assert all(matrix.duration(i, j) > 0 for i in range(4) for j in range(4) if i != j)
    assert matrix.failed_pairs == 0
    assert len(router.calls) == 12


def test_unresolved_location_is_routed_by_address_text(router):
    location = LocationGroup(id="location-1", address="Unknown Street 99", coordinates=None)
    assert waypoint_for(location) == "Unknown Street 99"


def test_failed_pairs_receive_penalty(clock):
    router = FakeRouter(fail=True)
    matrix = _build(router, clock, penalty_minutes=9999.0)

    assert matrix.failed_pairs == 12
    assert matrix.duration(0, 1) == 9999.0
    assert matrix.distances[0][1] is None
    assert matrix.duration(2, 2) == 0


def test_departures_are_moved_into_the_future(router, clock):
    _build(router, clock, margin_minutes=5)

    earliest = NOW + timedelta(minutes=5)
    assert all(call[2] >= earliest for call in router.calls)


def test_parallel_build_matches_sequential(clock):
    sequential = _build(FakeRouter(), clock, max_parallel_requests=1)
    parallel = _build(FakeRouter(), clock, max_parallel_requests=4)

    assert parallel.durations == sequential.durations
    assert parallel.distances == sequential.distances
