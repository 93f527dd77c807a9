import pytest

from beatplan.models.constraints import ConstraintSet
from beatplan.models.domain import Beat, Customer, Depot, Stop, Territory
from beatplan.services.routing.ledger import AssignmentLedger
from beatplan.services.routing.repair import (
    ensure_coverage,
    merge_undersized,
    renumber_beats,
    split_oversized,
    within_distance,
)

DEPOT = Depot(latitude=24.70, longitude=46.70)


def _customer(cid: str, lat: float, lon: float) -> Customer:
    return Customer(customer_id=cid, latitude=lat, longitude=lon)


def _stop(cid: str, lat: float = 24.70, lon: float = 46.70, territory_id: str = "T01") -> Stop:
    return Stop(customer_id=cid, latitude=lat, longitude=lon, territory_id=territory_id)


def _beat(beat_id: int, stops: list[Stop], territory_id: str = "T01") -> Beat:
    return Beat(
        beat_id=beat_id,
        stops=stops,
        territory_ids=[territory_id],
        depot_latitude=DEPOT.latitude,
        depot_longitude=DEPOT.longitude,
    )


def test_merge_folds_small_beat_into_nearest_sibling():
    near = _beat(1, [_stop(f"n{i}", 24.70, 46.70 + 0.001 * i) for i in range(3)])
    far = _beat(2, [_stop(f"f{i}", 24.80, 46.80 + 0.001 * i) for i in range(3)])
    small = _beat(3, [_stop("s0", 24.701, 46.701)])
    beats = [near, far, small]

    repairs = merge_undersized(beats, ConstraintSet(min_outlets_per_beat=2, max_outlets_per_beat=5))

    assert beats == [near, far]
    assert near.customer_ids[-1] == "s0"
    assert [repair.kind for repair in repairs] == ["merge"]


def test_merge_respects_territory_and_capacity():
    full = _beat(1, [_stop(f"a{i}") for i in range(5)])
    foreign = _beat(2, [_stop(f"b{i}", territory_id="T02") for i in range(2)], territory_id="T02")
    small = _beat(3, [_stop("s0")])
    beats = [full, foreign, small]

    repairs = merge_undersized(beats, ConstraintSet(min_outlets_per_beat=2, max_outlets_per_beat=5))

    assert len(beats) == 3
    assert repairs == []


def test_merge_honours_compatibility_predicate():
    first = _beat(1, [_stop("a", 24.70, 46.70), _stop("b", 24.70, 46.701)])
    distant = _beat(2, [_stop("c", 24.75, 46.70)])
    beats = [first, distant]

    merge_undersized(
        beats,
        ConstraintSet(min_outlets_per_beat=2, max_outlets_per_beat=5),
        compatible=within_distance(1.0),
    )

    assert len(beats) == 2


def test_split_oversized_until_every_beat_fits():
    beats = [_beat(1, [_stop(f"c{i}") for i in range(13)])]

    repairs = split_oversized(beats, ConstraintSet(min_outlets_per_beat=1, max_outlets_per_beat=4))

    assert [beat.size for beat in beats] == [4, 3, 3, 3]
    assert [cid for beat in beats for cid in beat.customer_ids] == [f"c{i}" for i in range(13)]
    assert len({beat.beat_id for beat in beats}) == 4
    assert all(repair.kind == "split" for repair in repairs)


def test_ensure_coverage_drops_duplicates_and_places_missing():
    customers = [_customer(f"c{i}", 24.70 + 0.001 * i, 46.70) for i in range(4)]
    territory = Territory(territory_id="T01", customers=customers)
    beats = [
        _beat(1, [_stop("c0"), _stop("c1")]),
        _beat(2, [_stop("c1"), _stop("x9")]),
    ]
    ledger = AssignmentLedger(territory.customer_ids)

    repairs = ensure_coverage(beats, territory, DEPOT, ConstraintSet(min_outlets_per_beat=1, max_outlets_per_beat=3), ledger)

    routed = sorted(cid for beat in beats for cid in beat.customer_ids)
    assert routed == ["c0", "c1", "c2", "c3"]
    kinds = [repair.kind for repair in repairs]
    assert kinds.count("duplicate_removed") == 2
    assert kinds.count("force_assign") == 2
    assert ledger.unassigned() == []


def test_ensure_coverage_opens_new_beat_when_full():
    customers = [_customer(f"c{i}", 24.70, 46.70 + 0.001 * i) for i in range(3)]
    territory = Territory(territory_id="T01", customers=customers)
    beats = [_beat(1, [_stop("c0"), _stop("c1")])]

    ensure_coverage(
        beats,
        territory,
        DEPOT,
        ConstraintSet(min_outlets_per_beat=1, max_outlets_per_beat=2),
        AssignmentLedger(territory.customer_ids),
    )

    assert [beat.customer_ids for beat in beats] == [["c0", "c1"], ["c2"]]
    assert beats[1].beat_id == 2


def test_renumber_beats():
    beats = [_beat(7, []), _beat(3, [])]
    renumber_beats(beats, start=5)
    assert [beat.beat_id for beat in beats] == [5, 6]


def test_ledger_rejects_foreign_and_duplicate_assignments():
    ledger = AssignmentLedger(["a", "b"])
    ledger.assign("a", 1)

    with pytest.raises(ValueError):
        ledger.assign("a", 2)
    with pytest.raises(ValueError):
        ledger.assign("z", 1)

    assert "a" in ledger
    assert "b" not in ledger
    assert ledger.unassigned() == ["b"]
    assert len(ledger) == 1
