"""Nearest-neighbour construction tuned to the dataset's typical customer spacing."""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from ...config import settings
from ...models.constraints import ConstraintSet
from ...models.domain import Beat, Customer, Depot, RepairRecord, Stop, Territory
from ..clustering.density import DensityClusterer
from ..geospatial import convex_hull_area_km2, haversine_matrix, travel_time_minutes
from .base import Construction
from .checkpoint import Checkpoint
from .ledger import AssignmentLedger
from .nearest_neighbor import NearestNeighborBuilder
from .repair import new_beat, within_distance

logger = logging.getLogger(__name__)


def mode_distance_km(
    customers: Sequence[Customer],
    *,
    bin_km: float | None = None,
    floor_km: float | None = None,
    default_km: float | None = None,
) -> float:
    """Most frequent pairwise distance, read from a histogram of fixed-width bins.

    Distances are rounded to the nearest bin; ties resolve to the shorter bin.
    The result never drops below ``floor_km``; fewer than two customers yield
    ``default_km``.
    """

    bin_km = bin_km or settings.mode_distance_bin_km
    floor_km = settings.mode_distance_floor_km if floor_km is None else floor_km
    default_km = default_km or settings.mode_distance_default_km
    if len(customers) < 2:
        return default_km

    lats = np.asarray([c.latitude for c in customers], dtype=float)
    lons = np.asarray([c.longitude for c in customers], dtype=float)
    counts = np.zeros(1, dtype=np.int64)
    # Row by row keeps memory linear in the number of customers
    for i in range(len(customers) - 1):
        row = haversine_matrix(lats[i : i + 1], lons[i : i + 1], lats[i + 1 :], lons[i + 1 :])[0]
        bins = np.rint(row / bin_km).astype(np.int64)
        row_counts = np.bincount(bins)
        if row_counts.size > counts.size:
            counts = np.pad(counts, (0, row_counts.size - counts.size))
        counts[: row_counts.size] += row_counts

    mode = int(np.argmax(counts)) * bin_km
    return max(mode, floor_km)


def hull_area_cap_km2(stops: int) -> float:
    if stops < settings.hull_area_stop_threshold:
        return settings.hull_area_small_beat_km2
    return settings.hull_area_large_beat_km2


def reduce_hull_area(beat: List[int], points: Sequence[tuple[float, float]]) -> List[int]:
    """Drop stops from ``beat`` until its hull fits the area cap; return the dropped indices.

    Each step removes the stop whose removal shrinks the hull the most. A beat
    never goes below three stops.
    """

    removed: list[int] = []
    area = convex_hull_area_km2([points[i] for i in beat])
    while len(beat) > 3 and area > hull_area_cap_km2(len(beat)):
        best_position, best_area = None, area
        for position in range(len(beat)):
            trial = beat[:position] + beat[position + 1 :]
            trial_area = convex_hull_area_km2([points[i] for i in trial])
            if trial_area < best_area:
                best_position, best_area = position, trial_area
        if best_position is None:
            break
        removed.append(beat.pop(best_position))
        area = best_area
    return removed


def optimal_seed(remaining: Sequence[int], distances: np.ndarray, mode_km: float) -> int:
    """Pick the customer with the densest neighbourhood within the mode distance."""

    candidates = np.asarray(remaining)
    sub = distances[np.ix_(candidates, candidates)]
    near = (sub <= mode_km) & ~np.eye(len(candidates), dtype=bool)
    counts = near.sum(axis=1)
    totals = np.where(near, sub, 0.0).sum(axis=1)
    averages = np.divide(totals, counts, out=np.zeros_like(totals), where=counts > 0)
    scores = np.where(counts > 0, counts * (mode_km - averages), 0.0)
    return int(candidates[int(np.argmax(scores))])


class EnhancedNearestNeighborBuilder(NearestNeighborBuilder):
    """Nearest-neighbour beats bounded by the mode distance and a hull area cap."""

    name = "enhanced-nearest-neighbor"

    def __init__(
        self,
        *,
        mode_distance_km: Optional[float] = None,
        clusterer: Optional[DensityClusterer] = None,
        transition_penalty: Optional[float] = None,
        two_opt_iterations: Optional[int] = None,
        checkpoint: Optional[Checkpoint] = None,
    ) -> None:
        super().__init__(two_opt_iterations=two_opt_iterations, checkpoint=checkpoint)
        self.mode_distance_km = mode_distance_km
        self.clusterer = clusterer or DensityClusterer()
        self.transition_penalty = (
            settings.sub_cluster_transition_penalty if transition_penalty is None else transition_penalty
        )

    def _grow(
        self,
        seed: int,
        remaining: List[int],
        distances: np.ndarray,
        depot_distances: np.ndarray,
        labels: Sequence[int],
        mode_km: float,
        constraints: ConstraintSet,
    ) -> List[int]:
        beat = [seed]
        elapsed = (
            travel_time_minutes(float(depot_distances[seed]), constraints.travel_speed_kmh)
            + constraints.visit_time_minutes
        )
        hard_cap = 2 * mode_km
        budget = constraints.max_working_time_minutes

        while remaining and len(beat) < constraints.max_outlets_per_beat:
            self.checkpoint.tick()
            candidates = np.asarray(remaining)
            to_members = distances[np.ix_(candidates, beat)]
            percentile_index = math.floor(len(beat) * 0.9)
            p90 = np.sort(to_members, axis=1)[:, percentile_index]
            added = (
                distances[beat[-1], candidates] / constraints.travel_speed_kmh * 60
                + constraints.visit_time_minutes
            )
            feasible = (to_members.max(axis=1) <= hard_cap) & (p90 <= mode_km) & (elapsed + added <= budget)
            if not feasible.any():
                break

            proximity = np.maximum(0.0, (mode_km - to_members.mean(axis=1)) * 100)
            time_score = (budget - elapsed - added) / budget * 100
            penalty = np.asarray(
                [self.transition_penalty if labels[c] != labels[seed] else 0.0 for c in remaining]
            )
            scores = np.where(feasible, proximity + time_score - penalty, -np.inf)
            choice = int(np.argmax(scores))
            customer = remaining.pop(choice)
            beat.append(customer)
            elapsed += float(added[choice])
        return beat

    def construct(
        self,
        *,
        territory: Territory,
        depot: Depot,
        constraints: ConstraintSet,
        ledger: AssignmentLedger,
    ) -> Construction:
        customers = territory.customers
        lats = [customer.latitude for customer in customers]
        lons = [customer.longitude for customer in customers]
        points = list(zip(lats, lons))
        distances = haversine_matrix(lats, lons)
        depot_distances = haversine_matrix([depot.latitude], [depot.longitude], lats, lons)[0]
        mode_km = self.mode_distance_km or mode_distance_km(customers)
        labels = self.clusterer.labels(customers)

        remaining = list(range(len(customers)))
        groups: list[list[int]] = []
        returned = 0
        while remaining:
            seed = optimal_seed(remaining, distances, mode_km)
            remaining.remove(seed)
            beat = self._grow(seed, remaining, distances, depot_distances, labels, mode_km, constraints)
            dropped = reduce_hull_area(beat, points)
            if dropped:
                returned += len(dropped)
                remaining.extend(dropped)
            groups.append(beat)

        beats: list[Beat] = []
        for group in groups:
            beat = new_beat(
                len(beats) + 1,
                territory,
                depot,
                [
                    Stop.from_customer(customers[i], territory.territory_id, sub_cluster=labels[i])
                    for i in group
                ],
            )
            for stop in beat.stops:
                ledger.assign(stop.customer_id, beat.beat_id)
            beats.append(beat)

        repairs: list[RepairRecord] = self.rebalance(
            beats, depot, constraints, compatible=within_distance(2 * mode_km)
        )
        metadata = {
            "mode_distance_km": mode_km,
            "initial_beats": len(groups),
            "hull_returns": returned,
            "sub_clusters": len(set(labels)),
        }
        return beats, repairs, metadata
