import random
from collections import Counter

import pytest

from beatplan.models.constraints import ConstraintSet
from beatplan.models.domain import Customer, Depot, Territory
from beatplan.services.geospatial import haversine_matrix
from beatplan.services.routing.enhanced import (
    EnhancedNearestNeighborBuilder,
    hull_area_cap_km2,
    mode_distance_km,
    optimal_seed,
    reduce_hull_area,
)

KM_PER_DEGREE = 111.19


def _customer(cid: str, lat: float, lon: float) -> Customer:
    return Customer(customer_id=cid, latitude=lat, longitude=lon)


def test_mode_distance_defaults_for_tiny_inputs():
    assert mode_distance_km([]) == pytest.approx(2.0)
    assert mode_distance_km([_customer("a", 24.7, 46.7)]) == pytest.approx(2.0)


def test_mode_distance_floor_applies():
    customers = [_customer(f"c{i}", 24.70 + 0.001 * i, 46.70) for i in range(5)]
    assert mode_distance_km(customers) == pytest.approx(1.0)


def test_mode_distance_reads_most_common_bin():
    step = 3.0 / KM_PER_DEGREE
    customers = [_customer("a", 24.70, 46.70), _customer("b", 24.70 + step, 46.70)]
    assert mode_distance_km(customers) == pytest.approx(3.0)


def test_hull_area_cap_depends_on_stop_count():
    assert hull_area_cap_km2(10) == pytest.approx(2.5)
    assert hull_area_cap_km2(40) == pytest.approx(3.0)


def test_reduce_hull_area_drops_the_outlier():
    side = 0.5 / KM_PER_DEGREE
    points = [
        (24.70, 46.70),
        (24.70 + side, 46.70),
        (24.70, 46.70 + side),
        (24.70 + side, 46.70 + side),
        (24.70 + 20 / KM_PER_DEGREE, 46.70 + 20 / KM_PER_DEGREE),
    ]
    beat = [0, 1, 2, 3, 4]

    removed = reduce_hull_area(beat, points)

    assert removed == [4]
    assert beat == [0, 1, 2, 3]


def test_reduce_hull_area_keeps_three_stops():
    far = 30 / KM_PER_DEGREE
    points = [(24.70, 46.70), (24.70 + far, 46.70), (24.70, 46.70 + far)]
    beat = [0, 1, 2]

    assert reduce_hull_area(beat, points) == []
    assert beat == [0, 1, 2]


def test_optimal_seed_prefers_dense_neighbourhood():
    lats = [24.700, 24.701, 24.7005, 24.7002, 24.80]
    lons = [46.700, 46.700, 46.701, 46.7004, 46.80]
    distances = haversine_matrix(lats, lons)

    seed = optimal_seed([0, 1, 2, 3, 4], distances, mode_km=1.0)

    assert seed in {0, 1, 2, 3}


def test_build_covers_every_customer():
    rng = random.Random(5)
    customers = [
        _customer(f"c{i}", 24.70 + rng.uniform(0, 0.03), 46.70 + rng.uniform(0, 0.03)) for i in range(60)
    ]
    constraints = ConstraintSet(min_outlets_per_beat=10, max_outlets_per_beat=25)

    result = EnhancedNearestNeighborBuilder().build(
        territory=Territory(territory_id="T01", customers=customers),
        depot=Depot(24.69, 46.69),
        constraints=constraints,
    )

    counts = Counter(cid for beat in result.beats for cid in beat.customer_ids)
    assert len(counts) == 60
    assert set(counts.values()) == {1}
    assert all(beat.size <= constraints.max_outlets_per_beat for beat in result.beats)
    assert result.metadata["mode_distance_km"] >= 1.0
    assert result.strategy == "enhanced-nearest-neighbor"


def test_explicit_mode_distance_is_used():
    customers = [_customer(f"c{i}", 24.70 + 0.0005 * i, 46.70) for i in range(12)]

    result = EnhancedNearestNeighborBuilder(mode_distance_km=1.5).build(
        territory=Territory(territory_id="T01", customers=customers),
        depot=Depot(24.70, 46.70),
        constraints=ConstraintSet(min_outlets_per_beat=3, max_outlets_per_beat=6),
    )

    assert result.metadata["mode_distance_km"] == 1.5
    assert sorted(cid for beat in result.beats for cid in beat.customer_ids) == sorted(c.customer_id for c in customers)
    assert all(stop.sub_cluster is not None for beat in result.beats for stop in beat.stops)
