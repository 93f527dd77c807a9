"""Simulated annealing beat construction under a proximity radius."""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from ...config import settings
from ...models.constraints import ConstraintSet
from ...models.domain import Beat, Depot, RepairRecord, Stop, Territory
from ..geospatial import haversine_matrix
from .base import BeatBuilder, Construction
from .checkpoint import Checkpoint
from .ledger import AssignmentLedger
from .repair import new_beat

logger = logging.getLogger(__name__)

PROXIMITY_WEIGHT = 10_000.0
BALANCE_WEIGHT = 100.0
DISTANCE_WEIGHT = 0.1

# A solution is a list of beats, each a list of indices into the territory's customers
Solution = List[List[int]]


@dataclass(slots=True)
class EnergyBreakdown:
    violations: int
    balance: float
    distance_km: float

    @property
    def total(self) -> float:
        return (
            PROXIMITY_WEIGHT * self.violations
            + BALANCE_WEIGHT * self.balance
            + DISTANCE_WEIGHT * self.distance_km
        )


def solution_energy(
    solution: Solution, distances: np.ndarray, depot_distances: np.ndarray, radius_km: float
) -> EnergyBreakdown:
    """Score a solution: proximity violations, size imbalance and route length."""

    beats = [beat for beat in solution if beat]
    if not beats:
        return EnergyBreakdown(violations=0, balance=0.0, distance_km=0.0)

    mean_size = sum(len(beat) for beat in beats) / len(beats)
    violations = 0
    balance = 0.0
    distance = 0.0
    for beat in beats:
        sub = distances[np.ix_(beat, beat)]
        violations += int(np.count_nonzero(np.triu(sub > radius_km, k=1)))
        balance += abs(len(beat) - mean_size)
        distance += float(depot_distances[beat[0]])
        if len(beat) > 1:
            distance += float(distances[beat[:-1], beat[1:]].sum())
    return EnergyBreakdown(violations=violations, balance=balance, distance_km=distance)


def beats_energy(beats: Sequence[Beat], depot: Depot, radius_km: float) -> EnergyBreakdown:
    """Energy of already materialised beats."""

    stops = [stop for beat in beats for stop in beat.stops]
    if not stops:
        return EnergyBreakdown(violations=0, balance=0.0, distance_km=0.0)
    lats = [stop.latitude for stop in stops]
    lons = [stop.longitude for stop in stops]
    distances = haversine_matrix(lats, lons)
    depot_distances = haversine_matrix([depot.latitude], [depot.longitude], lats, lons)[0]
    solution: Solution = []
    offset = 0
    for beat in beats:
        solution.append(list(range(offset, offset + beat.size)))
        offset += beat.size
    return solution_energy(solution, distances, depot_distances, radius_km)


def _snapshot(solution: Solution) -> Solution:
    return [list(beat) for beat in solution]


class SimulatedAnnealingBuilder(BeatBuilder):
    """Search for compact, balanced beats by simulated annealing."""

    name = "simulated-annealing"

    def __init__(
        self,
        *,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
        initial_temperature: Optional[float] = None,
        cooling_rate: Optional[float] = None,
        min_temperature: Optional[float] = None,
        iterations_per_temperature: Optional[int] = None,
        max_iterations: Optional[int] = None,
        max_rounds_without_improvement: Optional[int] = None,
        checkpoint: Optional[Checkpoint] = None,
    ) -> None:
        super().__init__(checkpoint=checkpoint)
        if rng is None:
            rng = random.Random(seed if seed is not None else settings.annealing_seed)
        self.rng = rng
        self.initial_temperature = initial_temperature or settings.annealing_initial_temperature
        self.cooling_rate = cooling_rate or settings.annealing_cooling_rate
        self.min_temperature = min_temperature or settings.annealing_min_temperature
        self.iterations_per_temperature = iterations_per_temperature or settings.annealing_iterations_per_temperature
        self.max_iterations = max_iterations or settings.annealing_max_iterations
        self.max_rounds_without_improvement = (
            max_rounds_without_improvement or settings.annealing_max_rounds_without_improvement
        )
        if not 0 < self.cooling_rate < 1:
            raise ValueError("cooling_rate must be within (0, 1)")

    def initial_solution(self, distances: np.ndarray, radius_km: float, max_size: int) -> Solution:
        """Insert customers in order into the first beat they fit without breaking the radius."""

        solution: Solution = []
        for index in range(distances.shape[0]):
            for beat in solution:
                if len(beat) < max_size and bool(np.all(distances[index, beat] <= radius_km)):
                    beat.append(index)
                    break
            else:
                solution.append([index])
        return solution

    def _propose(self, solution: Solution, distances: np.ndarray, radius_km: float, max_size: int) -> Optional[Solution]:
        candidate = _snapshot(solution)
        move = self.rng.choice(("swap", "reverse", "relocate"))

        if move in ("swap", "reverse"):
            ordered = [beat for beat in candidate if len(beat) >= 2]
            if not ordered:
                return None
            beat = self.rng.choice(ordered)
            if move == "swap":
                i = self.rng.randrange(len(beat) - 1)
                beat[i], beat[i + 1] = beat[i + 1], beat[i]
            else:
                i = self.rng.randrange(len(beat) - 1)
                j = self.rng.randrange(i + 1, len(beat))
                beat[i : j + 1] = beat[i : j + 1][::-1]
            return candidate

        sources = [index for index, beat in enumerate(candidate) if len(beat) >= 2]
        if not sources:
            return None
        source_index = self.rng.choice(sources)
        source = candidate[source_index]
        position = self.rng.randrange(len(source))
        customer = source[position]
        targets = [
            beat
            for index, beat in enumerate(candidate)
            if index != source_index
            and len(beat) < max_size
            and bool(np.all(distances[customer, beat] <= radius_km))
        ]
        if not targets:
            others = source[:position] + source[position + 1 :]
            if not bool(np.any(distances[customer, others] > radius_km)):
                return None
            # No compatible beat: the stop starts a beat of its own
            del source[position]
            candidate.append([customer])
            return candidate
        target = self.rng.choice(targets)
        del source[position]
        # Cheapest insertion position within the target beat
        best_position, best_cost = len(target), math.inf
        for slot in range(len(target) + 1):
            cost = 0.0
            if slot > 0:
                cost += distances[target[slot - 1], customer]
            if slot < len(target):
                cost += distances[customer, target[slot]]
                if slot > 0:
                    cost -= distances[target[slot - 1], target[slot]]
            if cost < best_cost:
                best_position, best_cost = slot, cost
        target.insert(best_position, customer)
        return candidate

    def optimize(
        self,
        solution: Solution,
        distances: np.ndarray,
        depot_distances: np.ndarray,
        radius_km: float,
        max_size: int,
    ) -> tuple[Solution, dict]:
        """Anneal ``solution`` and return the best solution seen plus run statistics."""

        current = _snapshot(solution)
        current_energy = solution_energy(current, distances, depot_distances, radius_km)
        best, best_energy = _snapshot(current), current_energy
        initial_energy = current_energy

        temperature = self.initial_temperature
        iterations = 0
        stale_rounds = 0
        accepted = 0
        while (
            temperature > self.min_temperature
            and iterations < self.max_iterations
            and stale_rounds < self.max_rounds_without_improvement
        ):
            improved = False
            for _ in range(self.iterations_per_temperature):
                if iterations >= self.max_iterations:
                    break
                iterations += 1
                self.checkpoint.tick()

                candidate = self._propose(current, distances, radius_km, max_size)
                if candidate is None:
                    continue
                energy = solution_energy(candidate, distances, depot_distances, radius_km)
                if energy.violations > current_energy.violations:
                    continue
                delta = energy.total - current_energy.total
                if delta < 0 or self.rng.random() < math.exp(-delta / temperature):
                    current, current_energy = candidate, energy
                    accepted += 1
                    if current_energy.total < best_energy.total - 1e-9:
                        best, best_energy = _snapshot(current), current_energy
                        improved = True
            stale_rounds = 0 if improved else stale_rounds + 1
            temperature *= self.cooling_rate

        stats = {
            "iterations": iterations,
            "accepted_moves": accepted,
            "final_temperature": temperature,
            "initial_energy": initial_energy.total,
            "best_energy": best_energy.total,
            "best_violations": best_energy.violations,
        }
        logger.debug("Annealing finished after %d iterations: %s", iterations, stats)
        return best, stats

    def repair_minimum_size(
        self,
        solution: Solution,
        distances: np.ndarray,
        points: np.ndarray,
        radius_km: float,
        constraints: ConstraintSet,
    ) -> tuple[Solution, List[RepairRecord]]:
        """Merge or drain beats below the minimum size without breaking the radius."""

        solution = [beat for beat in _snapshot(solution) if beat]
        repairs: list[RepairRecord] = []
        exhausted: set[int] = set()

        def centroid_gap(first: list[int], second: list[int]) -> float:
            return float(np.linalg.norm(points[first].mean(axis=0) - points[second].mean(axis=0)))

        while True:
            undersized = [
                beat
                for beat in solution
                if len(beat) < constraints.min_outlets_per_beat and id(beat) not in exhausted
            ]
            if not undersized:
                break
            source = min(undersized, key=len)
            siblings = sorted(
                (beat for beat in solution if beat is not source),
                key=lambda beat: centroid_gap(source, beat),
            )

            merged = False
            for sibling in siblings:
                if len(sibling) + len(source) > constraints.max_outlets_per_beat:
                    continue
                if bool(np.all(distances[np.ix_(source, sibling)] <= radius_km)):
                    sibling.extend(source)
                    solution.remove(source)
                    repairs.append(
                        RepairRecord(
                            kind="merge",
                            subject_id="undersized-beat",
                            message=f"Merged an undersized beat of {len(source)} stops into a compatible sibling.",
                            detail={"stops": len(source)},
                        )
                    )
                    merged = True
                    break
            if merged:
                continue

            moved = 0
            for customer in list(source):
                for sibling in siblings:
                    if len(sibling) >= constraints.max_outlets_per_beat:
                        continue
                    if bool(np.all(distances[customer, sibling] <= radius_km)):
                        source.remove(customer)
                        sibling.append(customer)
                        moved += 1
                        break
            if moved:
                repairs.append(
                    RepairRecord(
                        kind="transfer",
                        subject_id="undersized-beat",
                        message=f"Moved {moved} compatible stops out of an undersized beat.",
                        detail={"moved": moved, "left": len(source)},
                    )
                )
            if not source:
                solution.remove(source)
            else:
                exhausted.add(id(source))
        return solution, repairs

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
        distances = haversine_matrix(lats, lons)
        depot_distances = haversine_matrix([depot.latitude], [depot.longitude], lats, lons)[0]
        radius = constraints.proximity_radius_km

        initial = self.initial_solution(distances, radius, constraints.max_outlets_per_beat)
        best, stats = self.optimize(initial, distances, depot_distances, radius, constraints.max_outlets_per_beat)
        points = np.column_stack([lats, lons])
        solution, repairs = self.repair_minimum_size(best, distances, points, radius, constraints)

        beats: list[Beat] = []
        for beat_indices in solution:
            beat = new_beat(
                len(beats) + 1,
                territory,
                depot,
                [Stop.from_customer(customers[index], territory.territory_id) for index in beat_indices],
            )
            for index in beat_indices:
                ledger.assign(customers[index].customer_id, beat.beat_id)
            beats.append(beat)

        stats["initial_beats"] = len(initial)
        return beats, repairs, stats
