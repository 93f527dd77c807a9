"""Check beats and territories against a constraint set."""

from __future__ import annotations

import itertools
import logging
from typing import Iterable, List, Sequence

import numpy as np

from ...models.constraints import ConstraintSet
from ...models.domain import Beat, Territory
from ..geospatial import haversine_matrix
from .models import Severity, ValidationSummary, Violation, ViolationKind, ViolationReport

logger = logging.getLogger(__name__)


def _coordinates(beat: Beat) -> tuple[list[float], list[float]]:
    return [stop.latitude for stop in beat.stops], [stop.longitude for stop in beat.stops]


def _share_territory(first: Beat, second: Beat) -> bool:
    return bool(set(first.territory_ids) & set(second.territory_ids))


def _count_violations(beat: Beat, constraints: ConstraintSet) -> List[Violation]:
    violations: list[Violation] = []
    if beat.size < constraints.min_outlets_per_beat:
        violations.append(
            Violation(
                kind="outlet_count",
                severity="warning",
                message=f"Beat {beat.beat_id} has {beat.size} outlets; minimum is {constraints.min_outlets_per_beat}.",
                beat_id=beat.beat_id,
                actual=beat.size,
                limit=constraints.min_outlets_per_beat,
            )
        )
    elif beat.size > constraints.max_outlets_per_beat:
        violations.append(
            Violation(
                kind="outlet_count",
                severity="error",
                message=f"Beat {beat.beat_id} has {beat.size} outlets; maximum is {constraints.max_outlets_per_beat}.",
                beat_id=beat.beat_id,
                actual=beat.size,
                limit=constraints.max_outlets_per_beat,
            )
        )
    return violations


def _time_violations(beat: Beat, constraints: ConstraintSet) -> List[Violation]:
    if beat.total_time_min <= constraints.max_working_time_minutes:
        return []
    return [
        Violation(
            kind="working_time",
            severity="error",
            message=(
                f"Beat {beat.beat_id} needs {beat.total_time_min:.0f} minutes; "
                f"limit is {constraints.max_working_time_minutes:.0f}."
            ),
            beat_id=beat.beat_id,
            actual=beat.total_time_min,
            limit=constraints.max_working_time_minutes,
        )
    ]


def _intra_beat_pairs(beat: Beat) -> np.ndarray:
    if beat.size < 2:
        return np.empty(0)
    lats, lons = _coordinates(beat)
    matrix = haversine_matrix(lats, lons)
    return matrix[np.triu_indices(beat.size, k=1)]


def _spread_violations(beat: Beat, constraints: ConstraintSet) -> List[Violation]:
    violations: list[Violation] = []
    if beat.size < 2:
        return violations
    lats, lons = _coordinates(beat)
    matrix = haversine_matrix(lats, lons)
    rows, cols = np.nonzero(np.triu(matrix > constraints.max_intra_beat_distance_km, k=1))
    for i, j in zip(rows.tolist(), cols.tolist()):
        first, second = beat.stops[i], beat.stops[j]
        violations.append(
            Violation(
                kind="intra_beat_distance",
                severity="error",
                message=(
                    f"Beat {beat.beat_id}: outlets {first.customer_id} and {second.customer_id} are "
                    f"{matrix[i, j] * 1000:.0f} m apart; limit is "
                    f"{constraints.max_intra_beat_distance_km * 1000:.0f} m."
                ),
                beat_id=beat.beat_id,
                territory_id=first.territory_id,
                actual=float(matrix[i, j]),
                limit=constraints.max_intra_beat_distance_km,
                customer_ids=[first.customer_id, second.customer_id],
            )
        )
    return violations


def _isolation_violations(first: Beat, second: Beat, constraints: ConstraintSet) -> tuple[List[Violation], int]:
    if not first.stops or not second.stops:
        return [], 0
    matrix = haversine_matrix(*_coordinates(first), *_coordinates(second))
    violations: list[Violation] = []
    rows, cols = np.nonzero(matrix < constraints.min_isolation_distance_km)
    for i, j in zip(rows.tolist(), cols.tolist()):
        a, b = first.stops[i], second.stops[j]
        violations.append(
            Violation(
                kind="isolation",
                severity="error",
                message=(
                    f"Outlet {a.customer_id} (beat {first.beat_id}) is {matrix[i, j] * 1000:.0f} m from "
                    f"outlet {b.customer_id} (beat {second.beat_id}); minimum is "
                    f"{constraints.min_isolation_distance_km * 1000:.0f} m."
                ),
                beat_id=first.beat_id,
                related_beat_id=second.beat_id,
                territory_id=a.territory_id,
                actual=float(matrix[i, j]),
                limit=constraints.min_isolation_distance_km,
                customer_ids=[a.customer_id, b.customer_id],
            )
        )
    return violations, int(matrix.size)


def validate_beats(beats: Sequence[Beat], constraints: ConstraintSet | None = None) -> ViolationReport:
    """Evaluate outlet counts, working time, isolation and intra-beat spread.

    Isolation is only checked between beats that share a territory.
    Compliance is the share of passed checks: two per beat plus one per
    evaluated stop pair.
    """

    constraints = constraints or ConstraintSet()
    violations: list[Violation] = []
    total_checks = 2 * len(beats)
    intra_distances: list[np.ndarray] = []

    for beat in beats:
        violations.extend(_count_violations(beat, constraints))
        violations.extend(_time_violations(beat, constraints))
        pairs = _intra_beat_pairs(beat)
        intra_distances.append(pairs)
        total_checks += int(pairs.size)
        violations.extend(_spread_violations(beat, constraints))

    for first, second in itertools.combinations(beats, 2):
        if not _share_territory(first, second):
            continue
        found, checked = _isolation_violations(first, second, constraints)
        violations.extend(found)
        total_checks += checked

    summary = _summarize(beats, violations, total_checks, intra_distances)
    logger.info(
        "Validated %d beats: %d violations, %.1f%% compliant",
        summary.total_beats,
        len(violations),
        summary.compliance_percentage,
    )
    return ViolationReport(violations=violations, summary=summary)


def _summarize(
    beats: Sequence[Beat],
    violations: Sequence[Violation],
    total_checks: int,
    intra_distances: Sequence[np.ndarray],
) -> ValidationSummary:
    total_outlets = sum(beat.size for beat in beats)
    times = [beat.total_time_min for beat in beats]
    by_kind = violations_by_kind(violations)
    all_pairs = np.concatenate(intra_distances) if intra_distances else np.empty(0)
    compliance = 100.0
    if total_checks:
        compliance = max(0.0, (1 - len(violations) / total_checks) * 100)
    return ValidationSummary(
        total_beats=len(beats),
        total_outlets=total_outlets,
        avg_outlets_per_beat=total_outlets / len(beats) if beats else 0.0,
        avg_working_time_min=sum(times) / len(times) if times else 0.0,
        max_working_time_min=max(times, default=0.0),
        outlet_count_violations=len(by_kind.get("outlet_count", [])),
        working_time_violations=len(by_kind.get("working_time", [])),
        isolation_violations=len(by_kind.get("isolation", [])),
        intra_beat_distance_violations=len(by_kind.get("intra_beat_distance", [])),
        total_checks=total_checks,
        compliance_percentage=compliance,
        max_intra_beat_distance_m=float(all_pairs.max()) * 1000 if all_pairs.size else 0.0,
        avg_intra_beat_distance_m=float(all_pairs.mean()) * 1000 if all_pairs.size else 0.0,
    )


def validate_single_beat(
    beat: Beat, all_beats: Sequence[Beat], constraints: ConstraintSet | None = None
) -> List[Violation]:
    """Violations involving ``beat``, including isolation against its siblings."""

    constraints = constraints or ConstraintSet()
    violations = _count_violations(beat, constraints)
    violations.extend(_time_violations(beat, constraints))
    violations.extend(_spread_violations(beat, constraints))
    for other in all_beats:
        if other is beat or other.beat_id == beat.beat_id or not _share_territory(beat, other):
            continue
        found, _ = _isolation_violations(beat, other, constraints)
        violations.extend(found)
    return violations


def validate_territories(
    territories: Sequence[Territory], constraints: ConstraintSet | None = None
) -> List[Violation]:
    """Audit territory sizes (errors) and revenue floors (warnings)."""

    constraints = constraints or ConstraintSet()
    violations: list[Violation] = []
    for territory in territories:
        if not constraints.min_outlets_per_territory <= territory.size <= constraints.max_outlets_per_territory:
            violations.append(
                Violation(
                    kind="territory_size",
                    severity="error",
                    message=(
                        f"Territory {territory.territory_id} has {territory.size} outlets; expected "
                        f"{constraints.min_outlets_per_territory}-{constraints.max_outlets_per_territory}."
                    ),
                    territory_id=territory.territory_id,
                    actual=territory.size,
                )
            )
        for label, total, floor in (
            ("rev1", territory.rev1_total, constraints.effective_min_rev1),
            ("rev2", territory.rev2_total, constraints.effective_min_rev2),
        ):
            if total < floor:
                violations.append(
                    Violation(
                        kind="territory_revenue",
                        severity="warning",
                        message=f"Territory {territory.territory_id} {label} {total:,.0f} is below {floor:,.0f}.",
                        territory_id=territory.territory_id,
                        actual=total,
                        limit=floor,
                    )
                )
    return violations


def violations_by_kind(violations: Iterable[Violation]) -> dict[ViolationKind, List[Violation]]:
    grouped: dict[ViolationKind, List[Violation]] = {}
    for violation in violations:
        grouped.setdefault(violation.kind, []).append(violation)
    return grouped


def violations_by_severity(violations: Iterable[Violation]) -> dict[Severity, List[Violation]]:
    grouped: dict[Severity, List[Violation]] = {}
    for violation in violations:
        grouped.setdefault(violation.severity, []).append(violation)
    return grouped
