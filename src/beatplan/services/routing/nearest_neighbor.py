"""Greedy nearest-neighbour beat construction with size rebalancing."""

from __future__ import annotations

import logging
import math
from typing import List, Optional

from ...models.constraints import ConstraintSet
from ...models.domain import Beat, Customer, Depot, RepairRecord, Stop, Territory
from ..geospatial import haversine_km, travel_time_minutes
from .base import BeatBuilder, Construction
from .checkpoint import Checkpoint
from .ledger import AssignmentLedger
from .repair import Compatibility, merge_undersized, new_beat, split_oversized
from .sequencing import two_opt

logger = logging.getLogger(__name__)


def target_beat_size(remaining: int, max_outlets: int) -> int:
    """Size of the next beat given how many customers are still unrouted."""

    if remaining <= max_outlets:
        return remaining
    if remaining < 2 * max_outlets:
        return math.ceil(remaining / 2)
    return max_outlets


class NearestNeighborBuilder(BeatBuilder):
    """Grow beats from the depot by always visiting the closest customer next."""

    name = "nearest-neighbor"

    def __init__(
        self,
        *,
        two_opt_iterations: Optional[int] = None,
        checkpoint: Optional[Checkpoint] = None,
    ) -> None:
        super().__init__(checkpoint=checkpoint)
        self.two_opt_iterations = two_opt_iterations

    def construct(
        self,
        *,
        territory: Territory,
        depot: Depot,
        constraints: ConstraintSet,
        ledger: AssignmentLedger,
    ) -> Construction:
        remaining: list[Customer] = list(territory.customers)
        beats: list[Beat] = []
        repairs: list[RepairRecord] = []

        while remaining:
            target = target_beat_size(len(remaining), constraints.max_outlets_per_beat)
            beat = new_beat(len(beats) + 1, territory, depot)
            current_lat, current_lon = depot.latitude, depot.longitude
            elapsed = 0.0

            while remaining and beat.size < target:
                self.checkpoint.tick()
                nearest = min(
                    remaining,
                    key=lambda c: haversine_km(current_lat, current_lon, c.latitude, c.longitude),
                )
                leg = haversine_km(current_lat, current_lon, nearest.latitude, nearest.longitude)
                added = travel_time_minutes(leg, constraints.travel_speed_kmh) + constraints.visit_time_minutes
                if elapsed + added > constraints.max_working_time_minutes:
                    if beat.size:
                        break
                    logger.warning(
                        "Customer %s alone exceeds the working time budget", nearest.customer_id
                    )
                    repairs.append(
                        RepairRecord(
                            kind="time_budget_exceeded",
                            subject_id=nearest.customer_id,
                            message="Customer cannot be reached within the working time budget.",
                            detail={"minutes": added},
                        )
                    )

                remaining.remove(nearest)
                beat.stops.append(Stop.from_customer(nearest, territory.territory_id))
                ledger.assign(nearest.customer_id, beat.beat_id)
                elapsed += added
                current_lat, current_lon = nearest.latitude, nearest.longitude

            beats.append(beat)

        repairs.extend(self.rebalance(beats, depot, constraints))
        return beats, repairs, {"initial_beats": len(beats)}

    def rebalance(
        self,
        beats: List[Beat],
        depot: Depot,
        constraints: ConstraintSet,
        *,
        compatible: Optional[Compatibility] = None,
    ) -> List[RepairRecord]:
        """Merge undersized beats, split oversized ones and reorder every beat."""

        repairs = merge_undersized(beats, constraints, compatible=compatible)
        repairs.extend(split_oversized(beats, constraints))
        for beat in beats:
            beat.stops = two_opt(
                beat.stops,
                depot.latitude,
                depot.longitude,
                max_iterations=self.two_opt_iterations,
            )
        return repairs
