"""Visiting order heuristics for the stops of a single beat."""

from __future__ import annotations

from typing import List, Sequence

from ...config import settings
from ...models.domain import Stop
from ..geospatial import haversine_km


def _distance(a: Stop | tuple[float, float], b: Stop) -> float:
    if isinstance(a, tuple):
        return haversine_km(a[0], a[1], b.latitude, b.longitude)
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def nearest_neighbor_order(stops: Sequence[Stop], depot_latitude: float, depot_longitude: float) -> List[Stop]:
    """Greedy visiting order starting at the depot."""

    remaining = list(stops)
    ordered: list[Stop] = []
    current: Stop | tuple[float, float] = (depot_latitude, depot_longitude)
    while remaining:
        nearest = min(remaining, key=lambda stop: _distance(current, stop))
        remaining.remove(nearest)
        ordered.append(nearest)
        current = nearest
    return ordered


def two_opt(
    stops: Sequence[Stop],
    depot_latitude: float,
    depot_longitude: float,
    *,
    max_iterations: int | None = None,
) -> List[Stop]:
    """Improve an open path from the depot by reversing segments.

    Runs at most ``max_iterations`` full sweeps and stops early once a sweep
    finds no improving reversal.
    """

    route = list(stops)
    if len(route) < 3:
        return route
    max_iterations = settings.two_opt_max_iterations if max_iterations is None else max_iterations
    depot = (depot_latitude, depot_longitude)

    def before(index: int) -> Stop | tuple[float, float]:
        return depot if index == 0 else route[index - 1]

    for _ in range(max_iterations):
        improved = False
        for i in range(len(route) - 1):
            for j in range(i + 1, len(route)):
                prev = before(i)
                current_cost = _distance(prev, route[i])
                candidate_cost = _distance(prev, route[j])
                if j + 1 < len(route):
                    current_cost += _distance(route[j], route[j + 1])
                    candidate_cost += _distance(route[i], route[j + 1])
                if candidate_cost + 1e-9 < current_cost:
                    route[i : j + 1] = reversed(route[i : j + 1])
                    improved = True
        if not improved:
            break
    return route
