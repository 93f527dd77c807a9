from collections import Counter

from beatplan.models.constraints import ConstraintSet
from beatplan.models.domain import Customer, Depot, Territory
from beatplan.services.routing.isolation import IsolationBuilder


def _grid(prefix: str, lat: float, lon: float, rows: int, cols: int, step: float) -> list[Customer]:
    return [
        Customer(customer_id=f"{prefix}{r}-{c}", latitude=lat + r * step, longitude=lon + c * step)
        for r in range(rows)
        for c in range(cols)
    ]


def test_beat_count():
    constraints = ConstraintSet(beats_per_territory=6, max_outlets_per_beat=45)
    assert IsolationBuilder.beat_count(200, constraints) == 6
    assert IsolationBuilder.beat_count(400, constraints) == 9
    assert IsolationBuilder.beat_count(3, constraints) == 3


def test_separated_groups_have_no_violations():
    customers = (
        _grid("a", 24.70, 46.70, 2, 4, 0.0002)
        + _grid("b", 24.75, 46.70, 2, 4, 0.0002)
        + _grid("c", 24.70, 46.75, 2, 4, 0.0002)
    )
    constraints = ConstraintSet(
        min_outlets_per_beat=1, max_outlets_per_beat=10, beats_per_territory=3, min_isolation_distance_km=0.05
    )

    result = IsolationBuilder().build(
        territory=Territory(territory_id="T01", customers=customers),
        depot=Depot(24.72, 46.72),
        constraints=constraints,
    )

    assert len(result.beats) == 3
    assert result.metadata["violation_history"][-1] == 0
    for beat in result.beats:
        assert len({cid[0] for cid in beat.customer_ids}) == 1
    assert not any(repair.kind == "isolation_unresolved" for repair in result.repairs)


def test_violation_history_never_increases():
    customers = _grid("g", 24.70, 46.70, 6, 5, 0.0003)
    constraints = ConstraintSet(
        min_outlets_per_beat=1, max_outlets_per_beat=12, beats_per_territory=3, min_isolation_distance_km=0.05
    )

    result = IsolationBuilder(max_rounds=10).build(
        territory=Territory(territory_id="T01", customers=customers),
        depot=Depot(24.69, 46.69),
        constraints=constraints,
    )

    history = result.metadata["violation_history"]
    assert all(later <= earlier for earlier, later in zip(history, history[1:]))
    counts = Counter(cid for beat in result.beats for cid in beat.customer_ids)
    assert len(counts) == 30
    assert set(counts.values()) == {1}


def test_count_violations():
    import numpy as np

    distances = np.array([[0.0, 0.01, 1.0], [0.01, 0.0, 1.0], [1.0, 1.0, 0.0]])
    assert IsolationBuilder.count_violations(np.array([0, 1, 1]), distances, 0.05) == 1
    assert IsolationBuilder.count_violations(np.array([0, 0, 1]), distances, 0.05) == 0
