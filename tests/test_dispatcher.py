import pytest

from beatplan.exceptions import BuildTimeoutError, InfrastructureError
from beatplan.models.constraints import ConstraintSet
from beatplan.models.domain import Customer, Depot, Territory
from beatplan.services.routing.annealing import SimulatedAnnealingBuilder
from beatplan.services.routing.checkpoint import Checkpoint
from beatplan.services.routing.dispatcher import STRATEGIES, build_beats, get_builder
from beatplan.services.routing.enhanced import EnhancedNearestNeighborBuilder
from beatplan.services.routing.isolation import IsolationBuilder
from beatplan.services.routing.nearest_neighbor import NearestNeighborBuilder


def _territory(count: int = 8) -> Territory:
    customers = [
        Customer(customer_id=f"c{i}", latitude=24.70 + 0.0004 * (i % 4), longitude=46.70 + 0.0004 * (i // 4))
        for i in range(count)
    ]
    return Territory(territory_id="T01", customers=customers)


def _constraints() -> ConstraintSet:
    return ConstraintSet(min_outlets_per_beat=2, max_outlets_per_beat=4)


@pytest.mark.parametrize(
    ("strategy", "expected"),
    [
        ("nearest-neighbor", NearestNeighborBuilder),
        ("simulated-annealing", SimulatedAnnealingBuilder),
        ("isolation", IsolationBuilder),
        ("enhanced-nearest-neighbor", EnhancedNearestNeighborBuilder),
    ],
)
def test_get_builder_returns_strategy(strategy, expected):
    builder = get_builder(strategy)
    assert type(builder) is expected
    assert builder.name == strategy
    assert strategy in STRATEGIES


def test_get_builder_ignores_options_for_other_strategies():
    builder = get_builder("nearest-neighbor", seed=3, two_opt_iterations=2)
    assert builder.two_opt_iterations == 2


def test_unknown_strategy():
    with pytest.raises(ValueError, match="Unknown beat strategy 'zigzag'"):
        get_builder("zigzag")


@pytest.mark.parametrize("strategy", STRATEGIES)
def test_every_strategy_covers_the_territory(strategy):
    territory = _territory()

    result = build_beats(territory, Depot(24.70, 46.70), _constraints(), strategy, seed=1)

    assert sorted(cid for beat in result.beats for cid in beat.customer_ids) == sorted(territory.customer_ids)
    assert result.strategy == strategy


def test_infrastructure_failure_falls_back_to_nearest_neighbor(monkeypatch):
    def exhausted(self, **kwargs):
        raise BuildTimeoutError("budget gone")

    monkeypatch.setattr(SimulatedAnnealingBuilder, "construct", exhausted)

    result = build_beats(_territory(), Depot(24.70, 46.70), _constraints(), "simulated-annealing")

    assert result.strategy == "nearest-neighbor"
    assert result.metadata["fallback_from"] == "simulated-annealing"
    assert result.metadata["fallback_reason"] == "budget gone"
    assert result.customer_count == 8


def test_constraint_errors_do_not_fall_back(monkeypatch):
    def broken(self, **kwargs):
        raise ValueError("bad input")

    monkeypatch.setattr(IsolationBuilder, "construct", broken)

    with pytest.raises(ValueError, match="bad input"):
        build_beats(_territory(), Depot(24.70, 46.70), _constraints(), "isolation")


def test_default_strategy_failure_propagates(monkeypatch):
    def exhausted(self, **kwargs):
        raise InfrastructureError("no memory left")

    monkeypatch.setattr(NearestNeighborBuilder, "construct", exhausted)

    with pytest.raises(InfrastructureError):
        build_beats(_territory(), Depot(24.70, 46.70), _constraints())


def test_checkpoint_enforces_time_budget():
    now = [0.0]
    checkpoint = Checkpoint(yield_every=2, time_budget_seconds=5.0, clock=lambda: now[0])
    checkpoint.start()

    checkpoint.tick()
    checkpoint.tick()
    now[0] = 10.0
    checkpoint.tick()
    with pytest.raises(BuildTimeoutError):
        checkpoint.tick()


def test_checkpoint_without_budget_never_expires():
    now = [0.0]
    checkpoint = Checkpoint(yield_every=1, clock=lambda: now[0])
    checkpoint.start()
    now[0] = 1e9
    for _ in range(5):
        checkpoint.tick()
    assert checkpoint.steps == 5


def test_builder_timeout_through_checkpoint_falls_back():
    now = [0.0]

    def clock() -> float:
        now[0] += 1.0
        return now[0]

    checkpoint = Checkpoint(yield_every=1, time_budget_seconds=3.0, clock=clock)

    result = build_beats(
        _territory(),
        Depot(24.70, 46.70),
        _constraints(),
        "simulated-annealing",
        checkpoint=checkpoint,
        seed=1,
    )

    assert result.metadata["fallback_from"] == "simulated-annealing"
    assert result.customer_count == 8
