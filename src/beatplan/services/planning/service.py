"""High-level orchestration: territories, then beats, then validation."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from ...models.constraints import ConstraintSet
from ...models.domain import Beat, Customer, Depot
from ..routing.dispatcher import DEFAULT_STRATEGY, build_beats
from ..routing.enhanced import mode_distance_km
from ..routing.models import BuildResult
from ..routing.repair import renumber_beats
from ..territories.service import PartitionResult, partition_territories
from ..validation.models import Violation, ViolationReport
from ..validation.validator import validate_beats, validate_territories

logger = logging.getLogger(__name__)

TRAVEL_MINUTES_PER_OUTLET = 10


@dataclass(slots=True)
class PlanResult:
    partition: PartitionResult
    builds: List[BuildResult]
    report: ViolationReport
    territory_violations: List[Violation] = field(default_factory=list)

    @property
    def beats(self) -> List[Beat]:
        return [beat for build in self.builds for beat in build.beats]


@dataclass(slots=True)
class FeasibilityEstimate:
    total_beats: int
    avg_outlets_per_beat: int
    avg_outlets_per_territory: int
    estimated_working_time_min: float
    feasible: bool


def estimate_plan_feasibility(
    total_customers: int,
    constraints: ConstraintSet | None = None,
    territories: Optional[int] = None,
) -> FeasibilityEstimate:
    """Rough check that the configured beats can be worked within a day.

    Assumes ten minutes of travel per outlet on top of the visit time.
    """

    constraints = constraints or ConstraintSet()
    if total_customers < 0:
        raise ValueError("total_customers must be >= 0")
    if territories is None:
        territories = max(1, math.ceil(total_customers / constraints.max_outlets_per_territory))
    if territories < 1:
        raise ValueError("territories must be >= 1")

    total_beats = territories * constraints.beats_per_territory
    avg_per_beat = math.ceil(total_customers / total_beats)
    avg_per_territory = math.ceil(total_customers / territories)
    working_time = avg_per_beat * (constraints.visit_time_minutes + TRAVEL_MINUTES_PER_OUTLET)
    return FeasibilityEstimate(
        total_beats=total_beats,
        avg_outlets_per_beat=avg_per_beat,
        avg_outlets_per_territory=avg_per_territory,
        estimated_working_time_min=working_time,
        feasible=(
            working_time <= constraints.max_working_time_minutes
            and constraints.min_outlets_per_beat <= avg_per_beat <= constraints.max_outlets_per_beat
        ),
    )


def plan_beats(
    customers: Sequence[Customer],
    depot: Depot,
    constraints: ConstraintSet | None = None,
    strategy: str = DEFAULT_STRATEGY,
    **kwargs: Any,
) -> PlanResult:
    """Partition customers into territories and build validated beats for each.

    Territories are processed one after another; beat ids are renumbered
    across the whole plan so they stay unique.
    """

    constraints = constraints or ConstraintSet()
    partition = partition_territories(customers, constraints)

    if strategy == "enhanced-nearest-neighbor" and kwargs.get("mode_distance_km") is None:
        kwargs["mode_distance_km"] = mode_distance_km(customers)
        logger.info("Dataset mode distance: %.2f km", kwargs["mode_distance_km"])

    builds: list[BuildResult] = []
    next_id = 1
    for territory in partition.territories:
        result = build_beats(territory, depot, constraints, strategy, **kwargs)
        renumber_beats(result.beats, start=next_id)
        next_id += len(result.beats)
        builds.append(result)

    beats = [beat for build in builds for beat in build.beats]
    report = validate_beats(beats, constraints)
    return PlanResult(
        partition=partition,
        builds=builds,
        report=report,
        territory_violations=validate_territories(partition.territories, constraints),
    )
