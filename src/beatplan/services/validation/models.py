"""Violation records produced by the constraint validator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional

ViolationKind = Literal[
    "outlet_count",
    "working_time",
    "isolation",
    "intra_beat_distance",
    "territory_size",
    "territory_revenue",
]
Severity = Literal["warning", "error"]


@dataclass(slots=True)
class Violation:
    kind: ViolationKind
    severity: Severity
    message: str
    beat_id: Optional[int] = None
    territory_id: Optional[str] = None
    actual: Optional[float] = None
    limit: Optional[float] = None
    related_beat_id: Optional[int] = None
    customer_ids: List[str] = field(default_factory=list)


@dataclass(slots=True)
class ValidationSummary:
    total_beats: int = 0
    total_outlets: int = 0
    avg_outlets_per_beat: float = 0.0
    avg_working_time_min: float = 0.0
    max_working_time_min: float = 0.0
    outlet_count_violations: int = 0
    working_time_violations: int = 0
    isolation_violations: int = 0
    intra_beat_distance_violations: int = 0
    total_checks: int = 0
    compliance_percentage: float = 100.0
    max_intra_beat_distance_m: float = 0.0
    avg_intra_beat_distance_m: float = 0.0


@dataclass(slots=True)
class ViolationReport:
    violations: List[Violation]
    summary: ValidationSummary

    @property
    def is_valid(self) -> bool:
        return not any(violation.severity == "error" for violation in self.violations)
