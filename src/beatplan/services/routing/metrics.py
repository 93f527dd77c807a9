"""Distance and time bookkeeping for beats."""

from __future__ import annotations

from typing import Sequence

from ...models.constraints import ConstraintSet
from ...models.domain import Beat, Stop
from ..geospatial import centroid, haversine_km, travel_time_minutes


def recompute_metrics(beat: Beat, constraints: ConstraintSet) -> Beat:
    """Refresh per-stop legs and beat totals.

    The route starts at the depot and ends at the last stop; there is no
    return leg. Must be called after every structural change to a beat.
    """

    total_distance = 0.0
    total_time = 0.0
    prev_lat, prev_lon = beat.depot_latitude, beat.depot_longitude
    for index, stop in enumerate(beat.stops):
        leg = haversine_km(prev_lat, prev_lon, stop.latitude, stop.longitude)
        total_distance += leg
        total_time += travel_time_minutes(leg, constraints.travel_speed_kmh) + constraints.visit_time_minutes
        stop.visit_time_min = constraints.visit_time_minutes

        if index + 1 < len(beat.stops):
            following = beat.stops[index + 1]
            stop.distance_to_next_km = haversine_km(
                stop.latitude, stop.longitude, following.latitude, following.longitude
            )
            stop.time_to_next_min = travel_time_minutes(stop.distance_to_next_km, constraints.travel_speed_kmh)
        else:
            stop.distance_to_next_km = 0.0
            stop.time_to_next_min = 0.0
        prev_lat, prev_lon = stop.latitude, stop.longitude

    beat.total_distance_km = total_distance
    beat.total_time_min = total_time
    return beat


def path_distance_km(stops: Sequence[Stop], depot_latitude: float, depot_longitude: float) -> float:
    distance = 0.0
    prev_lat, prev_lon = depot_latitude, depot_longitude
    for stop in stops:
        distance += haversine_km(prev_lat, prev_lon, stop.latitude, stop.longitude)
        prev_lat, prev_lon = stop.latitude, stop.longitude
    return distance


def beat_centroid(beat: Beat) -> tuple[float, float]:
    return centroid((stop.latitude, stop.longitude) for stop in beat.stops)
