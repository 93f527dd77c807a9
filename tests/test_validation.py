import pytest

from beatplan.models.constraints import ConstraintSet
from beatplan.models.domain import Beat, Customer, Stop, Territory
from beatplan.services.routing.metrics import recompute_metrics
from beatplan.services.validation.validator import (
    validate_beats,
    validate_single_beat,
    validate_territories,
    violations_by_kind,
    violations_by_severity,
)

DEPOT = (24.70, 46.70)


def _stop(cid: str, lat: float, lon: float, territory_id: str = "T01") -> Stop:
    return Stop(customer_id=cid, latitude=lat, longitude=lon, territory_id=territory_id)


def _beat(beat_id: int, stops: list[Stop], territory_id: str = "T01") -> Beat:
    return Beat(
        beat_id=beat_id,
        stops=stops,
        territory_ids=[territory_id],
        depot_latitude=DEPOT[0],
        depot_longitude=DEPOT[1],
    )


def _constraints(**overrides) -> ConstraintSet:
    values = {
        "min_outlets_per_beat": 2,
        "max_outlets_per_beat": 4,
        "max_intra_beat_distance_km": 0.2,
        "min_isolation_distance_km": 0.05,
    }
    values.update(overrides)
    return ConstraintSet(**values)


def test_compliant_beats_report_full_compliance():
    constraints = _constraints()
    beats = [
        _beat(1, [_stop("a", 24.7000, 46.7000), _stop("b", 24.7005, 46.7000)]),
        _beat(2, [_stop("c", 24.7100, 46.7000), _stop("d", 24.7105, 46.7000)]),
    ]
    for beat in beats:
        recompute_metrics(beat, constraints)

    report = validate_beats(beats, constraints)

    assert report.violations == []
    assert report.is_valid
    # two per beat, one intra pair per beat, four isolation pairs
    assert report.summary.total_checks == 2 * 2 + 2 + 4
    assert report.summary.compliance_percentage == pytest.approx(100.0)
    assert report.summary.max_intra_beat_distance_m == pytest.approx(55.6, abs=0.5)


def test_each_violation_kind_is_reported():
    constraints = _constraints(max_working_time_minutes=10.0)
    spread = _beat(1, [_stop("a", 24.7000, 46.7000), _stop("b", 24.7050, 46.7000)])
    tiny = _beat(2, [_stop("c", 24.7052, 46.7000)])
    for beat in (spread, tiny):
        recompute_metrics(beat, constraints)

    report = validate_beats([spread, tiny], constraints)
    grouped = violations_by_kind(report.violations)

    assert len(grouped["intra_beat_distance"]) == 1
    assert len(grouped["isolation"]) == 1
    assert grouped["isolation"][0].customer_ids == ["b", "c"]
    assert len(grouped["working_time"]) == 1
    assert grouped["outlet_count"][0].severity == "warning"
    assert not report.is_valid
    assert report.summary.isolation_violations == 1
    assert 0.0 <= report.summary.compliance_percentage < 100.0


def test_isolation_ignored_across_territories():
    constraints = _constraints()
    first = _beat(1, [_stop("a", 24.7000, 46.7000), _stop("b", 24.7001, 46.7000)], "T01")
    second = _beat(2, [_stop("c", 24.7002, 46.7000, "T02"), _stop("d", 24.7003, 46.7000, "T02")], "T02")

    report = validate_beats([first, second], constraints)

    assert "isolation" not in violations_by_kind(report.violations)


def test_oversized_beat_is_an_error():
    constraints = _constraints()
    beat = _beat(1, [_stop(f"s{i}", 24.7000 + 0.0001 * i, 46.7000) for i in range(5)])

    violations = validate_single_beat(beat, [beat], constraints)

    assert [violation.kind for violation in violations] == ["outlet_count"]
    assert violations[0].severity == "error"
    assert violations_by_severity(violations) == {"error": violations}


def test_validate_single_beat_checks_siblings():
    constraints = _constraints()
    beat = _beat(1, [_stop("a", 24.7000, 46.7000), _stop("b", 24.7001, 46.7000)])
    sibling = _beat(2, [_stop("c", 24.7002, 46.7000), _stop("d", 24.7010, 46.7000)])

    violations = validate_single_beat(beat, [beat, sibling], constraints)

    assert {violation.kind for violation in violations} == {"isolation"}
    assert all(violation.related_beat_id == 2 for violation in violations)


def test_empty_beat_list():
    report = validate_beats([], _constraints())
    assert report.summary.total_beats == 0
    assert report.summary.compliance_percentage == 100.0


def test_validate_territories():
    constraints = ConstraintSet(
        min_outlets_per_territory=2,
        max_outlets_per_territory=3,
        min_rev1_per_territory=100.0,
        min_rev2_per_territory=0.0,
    )
    customers = [Customer(customer_id=f"c{i}", latitude=24.7, longitude=46.7) for i in range(4)]
    territories = [
        Territory(territory_id="T01", customers=customers[:2], rev1_total=500.0),
        Territory(territory_id="T02", customers=customers, rev1_total=10.0),
    ]

    violations = validate_territories(territories, constraints)

    assert [(v.kind, v.territory_id, v.severity) for v in violations] == [
        ("territory_size", "T02", "error"),
        ("territory_revenue", "T02", "warning"),
    ]
