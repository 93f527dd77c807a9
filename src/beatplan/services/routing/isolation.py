"""Density-seeded beat construction that keeps neighbouring beats apart."""

from __future__ import annotations

import logging
import math
from typing import List, Optional

import numpy as np

from ...config import settings
from ...models.constraints import ConstraintSet
from ...models.domain import Beat, Depot, RepairRecord, Stop, Territory
from ..clustering.density import DensityClusterer
from ..geospatial import haversine_matrix
from .base import BeatBuilder, Construction
from .checkpoint import Checkpoint
from .ledger import AssignmentLedger
from .repair import new_beat
from .sequencing import nearest_neighbor_order, two_opt

logger = logging.getLogger(__name__)


class IsolationBuilder(BeatBuilder):
    """Split a territory into a fixed number of beats with a minimum gap between them.

    Two stops of different beats in the same territory violate isolation when
    they are closer than ``min_isolation_distance_km``. Construction places
    customers so as to avoid violations; repair rounds then relocate the worst
    offenders while the violation count keeps dropping.
    """

    name = "isolation"

    def __init__(
        self,
        *,
        clusterer: Optional[DensityClusterer] = None,
        max_rounds: Optional[int] = None,
        max_moves_per_round: Optional[int] = None,
        checkpoint: Optional[Checkpoint] = None,
    ) -> None:
        super().__init__(checkpoint=checkpoint)
        self.clusterer = clusterer or DensityClusterer()
        self.max_rounds = max_rounds or settings.isolation_max_rounds
        self.max_moves_per_round = max_moves_per_round or settings.isolation_max_moves_per_round

    @staticmethod
    def beat_count(customers: int, constraints: ConstraintSet) -> int:
        wanted = max(constraints.beats_per_territory, math.ceil(customers / constraints.max_outlets_per_beat))
        return max(1, min(customers, wanted))

    @staticmethod
    def _conflicts(index: int, beat: int, assignment: np.ndarray, distances: np.ndarray, threshold: float) -> int:
        """Customers of other beats closer than ``threshold`` if ``index`` sat in ``beat``."""

        mask = (assignment >= 0) & (assignment != beat) & (distances[index] < threshold)
        mask[index] = False
        return int(np.count_nonzero(mask))

    @staticmethod
    def count_violations(assignment: np.ndarray, distances: np.ndarray, threshold: float) -> int:
        close = distances < threshold
        apart = assignment[:, None] != assignment[None, :]
        return int(np.count_nonzero(np.triu(close & apart, k=1)))

    def assign(self, territory: Territory, distances: np.ndarray, constraints: ConstraintSet) -> np.ndarray:
        customers = territory.customers
        count = self.beat_count(len(customers), constraints)
        capacity = math.ceil(len(customers) / count)
        threshold = constraints.min_isolation_distance_km

        labels = self.clusterer.labels(customers)
        order = sorted(
            range(len(customers)),
            key=lambda i: (labels[i], customers[i].latitude, customers[i].longitude),
        )
        assignment = np.full(len(customers), -1, dtype=int)
        sizes = [0] * count
        for index in order:
            open_beats = [beat for beat in range(count) if sizes[beat] < capacity]
            chosen = next(
                (
                    beat
                    for beat in open_beats
                    if self._conflicts(index, beat, assignment, distances, threshold) == 0
                ),
                None,
            )
            if chosen is None:
                chosen = min(
                    open_beats,
                    key=lambda beat: (
                        self._conflicts(index, beat, assignment, distances, threshold),
                        sizes[beat],
                        beat,
                    ),
                )
            assignment[index] = chosen
            sizes[chosen] += 1
        return assignment

    def repair(
        self, assignment: np.ndarray, distances: np.ndarray, constraints: ConstraintSet
    ) -> tuple[np.ndarray, list[int], int]:
        """Relocate offending customers; return the assignment, violation history and move count."""

        threshold = constraints.min_isolation_distance_km
        history = [self.count_violations(assignment, distances, threshold)]
        total_moves = 0

        for _ in range(self.max_rounds):
            if history[-1] == 0:
                break
            rows, cols = np.nonzero(
                np.triu(
                    (distances < threshold) & (assignment[:, None] != assignment[None, :]),
                    k=1,
                )
            )
            pairs = sorted(zip(distances[rows, cols], rows.tolist(), cols.tolist()))
            sizes = np.bincount(assignment, minlength=int(assignment.max()) + 1)

            moves = 0
            touched: set[int] = set()
            for _, first, second in pairs:
                if moves >= self.max_moves_per_round:
                    break
                if first in touched or second in touched or assignment[first] == assignment[second]:
                    continue
                for mover, partner in ((first, second), (second, first)):
                    source = int(assignment[mover])
                    if sizes[source] <= 1:
                        continue
                    targets = [int(assignment[partner])] + [
                        beat for beat in range(len(sizes)) if beat not in (source, int(assignment[partner]))
                    ]
                    target = next(
                        (
                            beat
                            for beat in targets
                            if sizes[beat] < constraints.max_outlets_per_beat
                            and self._conflicts(mover, beat, assignment, distances, threshold) == 0
                        ),
                        None,
                    )
                    if target is None:
                        continue
                    self.checkpoint.tick()
                    assignment[mover] = target
                    sizes[source] -= 1
                    sizes[target] += 1
                    touched.update((first, second))
                    moves += 1
                    break

            total_moves += moves
            if not moves:
                break
            history.append(self.count_violations(assignment, distances, threshold))

        if history[-1]:
            logger.warning("Isolation repair left %d violating pairs", history[-1])
        return assignment, history, total_moves

    def construct(
        self,
        *,
        territory: Territory,
        depot: Depot,
        constraints: ConstraintSet,
        ledger: AssignmentLedger,
    ) -> Construction:
        customers = territory.customers
        distances = haversine_matrix(
            [customer.latitude for customer in customers],
            [customer.longitude for customer in customers],
        )
        assignment = self.assign(territory, distances, constraints)
        assignment, history, moves = self.repair(assignment, distances, constraints)

        beats: list[Beat] = []
        repairs: list[RepairRecord] = []
        for beat_index in sorted(set(assignment.tolist())):
            stops = [
                Stop.from_customer(customers[i], territory.territory_id)
                for i in np.flatnonzero(assignment == beat_index).tolist()
            ]
            ordered = two_opt(
                nearest_neighbor_order(stops, depot.latitude, depot.longitude),
                depot.latitude,
                depot.longitude,
            )
            beat = new_beat(len(beats) + 1, territory, depot, ordered)
            for stop in ordered:
                ledger.assign(stop.customer_id, beat.beat_id)
            beats.append(beat)

        if history[-1]:
            repairs.append(
                RepairRecord(
                    kind="isolation_unresolved",
                    subject_id=territory.territory_id,
                    message=f"{history[-1]} stop pairs of different beats remain closer than the isolation distance.",
                    detail={"violations": history[-1]},
                )
            )
        return beats, repairs, {"violation_history": history, "relocations": moves}
