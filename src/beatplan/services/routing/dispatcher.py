"""Factory for beat construction strategies based on user selection."""

from __future__ import annotations

import logging
from typing import Any

from ...models.constraints import ConstraintSet
from ...models.domain import Depot, Territory
from ...exceptions import InfrastructureError
from .annealing import SimulatedAnnealingBuilder
from .base import BeatBuilder
from .checkpoint import Checkpoint
from .enhanced import EnhancedNearestNeighborBuilder
from .isolation import IsolationBuilder
from .models import BuildResult
from .nearest_neighbor import NearestNeighborBuilder

logger = logging.getLogger(__name__)

STRATEGIES = ("nearest-neighbor", "simulated-annealing", "isolation", "enhanced-nearest-neighbor")
DEFAULT_STRATEGY = "nearest-neighbor"


def _pick(kwargs: dict[str, Any], allowed: set[str]) -> dict[str, Any]:
    return {key: value for key, value in kwargs.items() if key in allowed}


def get_builder(strategy: str, **kwargs: Any) -> BeatBuilder:
    match strategy:
        case "nearest-neighbor":
            return NearestNeighborBuilder(**_pick(kwargs, {"two_opt_iterations", "checkpoint"}))
        case "simulated-annealing":
            return SimulatedAnnealingBuilder(
                **_pick(
                    kwargs,
                    {
                        "rng",
                        "seed",
                        "initial_temperature",
                        "cooling_rate",
                        "min_temperature",
                        "iterations_per_temperature",
                        "max_iterations",
                        "max_rounds_without_improvement",
                        "checkpoint",
                    },
                )
            )
        case "isolation":
            return IsolationBuilder(
                **_pick(kwargs, {"clusterer", "max_rounds", "max_moves_per_round", "checkpoint"})
            )
        case "enhanced-nearest-neighbor":
            return EnhancedNearestNeighborBuilder(
                **_pick(
                    kwargs,
                    {"mode_distance_km", "clusterer", "transition_penalty", "two_opt_iterations", "checkpoint"},
                )
            )
        case _:
            raise ValueError(f"Unknown beat strategy '{strategy}'.")


def build_beats(
    territory: Territory,
    depot: Depot,
    constraints: ConstraintSet | None = None,
    strategy: str = DEFAULT_STRATEGY,
    **kwargs: Any,
) -> BuildResult:
    """Build the beats of one territory with the chosen strategy.

    Infrastructure failures such as an exhausted time budget fall back to the
    plain nearest-neighbour builder; constraint errors propagate unchanged.
    """

    constraints = constraints or ConstraintSet()
    builder = get_builder(strategy, **kwargs)
    try:
        return builder.build(territory=territory, depot=depot, constraints=constraints)
    except (InfrastructureError, MemoryError) as exc:
        if strategy == DEFAULT_STRATEGY:
            raise
        logger.warning(
            "Strategy %s failed for territory %s (%s); falling back to %s",
            strategy,
            territory.territory_id,
            exc,
            DEFAULT_STRATEGY,
        )
        fallback = NearestNeighborBuilder(checkpoint=Checkpoint())
        result = fallback.build(territory=territory, depot=depot, constraints=constraints)
        result.metadata["fallback_from"] = strategy
        result.metadata["fallback_reason"] = str(exc)
        return result
