import random
from collections import Counter

import pytest

from beatplan.exceptions import PartitionError
from beatplan.models.constraints import ConstraintSet
from beatplan.models.domain import Customer, Depot
from beatplan.services.planning.service import estimate_plan_feasibility, plan_beats

DEPOT = Depot(latitude=24.70, longitude=46.70)


def _customers(count: int, seed: int = 9) -> list[Customer]:
    rng = random.Random(seed)
    return [
        Customer(
            customer_id=f"c{i}",
            latitude=24.70 + rng.uniform(-0.01, 0.01),
            longitude=46.70 + rng.uniform(-0.01, 0.01),
            rev1=1000.0,
            rev2=400.0,
        )
        for i in range(count)
    ]


def _constraints() -> ConstraintSet:
    return ConstraintSet(
        min_outlets_per_territory=20,
        max_outlets_per_territory=30,
        min_rev1_per_territory=0.0,
        min_rev2_per_territory=0.0,
        min_outlets_per_beat=3,
        max_outlets_per_beat=8,
    )


def test_plan_routes_every_customer_once():
    customers = _customers(50)

    result = plan_beats(customers, DEPOT, _constraints())

    assert len(result.partition.territories) == 2
    counts = Counter(cid for beat in result.beats for cid in beat.customer_ids)
    assert set(counts) == {customer.customer_id for customer in customers}
    assert set(counts.values()) == {1}
    assert [beat.beat_id for beat in result.beats] == list(range(1, len(result.beats) + 1))
    assert result.report.summary.total_beats == len(result.beats)
    assert result.territory_violations == []


def test_beats_stay_inside_their_territory():
    result = plan_beats(_customers(50), DEPOT, _constraints())

    owner = result.partition.assignments()
    for build in result.builds:
        for beat in build.beats:
            assert beat.territory_ids == [build.territory_id]
            assert {owner[cid] for cid in beat.customer_ids} == {build.territory_id}


def test_enhanced_plan_shares_dataset_mode_distance():
    result = plan_beats(_customers(50), DEPOT, _constraints(), "enhanced-nearest-neighbor")

    modes = {build.metadata["mode_distance_km"] for build in result.builds}
    assert len(modes) == 1


def test_plan_with_too_few_customers_fails():
    with pytest.raises(PartitionError) as excinfo:
        plan_beats(_customers(5), DEPOT, _constraints())
    assert excinfo.value.code == "insufficient_customers"


def test_plan_unknown_strategy():
    with pytest.raises(ValueError):
        plan_beats(_customers(50), DEPOT, _constraints(), "zigzag")


def test_feasibility_default_settings_are_tight():
    estimate = estimate_plan_feasibility(1200)

    assert estimate.total_beats == 30
    assert estimate.avg_outlets_per_beat == 40
    assert estimate.avg_outlets_per_territory == 240
    assert estimate.estimated_working_time_min == pytest.approx(640.0)
    assert not estimate.feasible


def test_feasibility_with_more_beats():
    constraints = ConstraintSet(min_outlets_per_beat=10, beats_per_territory=10)

    estimate = estimate_plan_feasibility(200, constraints, territories=1)

    assert estimate.total_beats == 10
    assert estimate.avg_outlets_per_beat == 20
    assert estimate.estimated_working_time_min == pytest.approx(320.0)
    assert estimate.feasible


def test_feasibility_rejects_negative_totals():
    with pytest.raises(ValueError):
        estimate_plan_feasibility(-1)
