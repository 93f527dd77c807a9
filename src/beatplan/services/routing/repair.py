"""Shared repair passes applied to the beats of one territory."""

from __future__ import annotations

import logging
import math
from typing import Callable, List, Optional, Sequence

import numpy as np

from ...models.constraints import ConstraintSet
from ...models.domain import Beat, Depot, RepairRecord, Stop, Territory
from ..geospatial import haversine_km, haversine_matrix
from .ledger import AssignmentLedger
from .metrics import beat_centroid

logger = logging.getLogger(__name__)

Compatibility = Callable[[Beat, Beat], bool]


def new_beat(beat_id: int, territory: Territory, depot: Depot, stops: Optional[List[Stop]] = None) -> Beat:
    return Beat(
        beat_id=beat_id,
        stops=list(stops or []),
        territory_ids=[territory.territory_id],
        depot_latitude=depot.latitude,
        depot_longitude=depot.longitude,
    )


def within_distance(limit_km: float) -> Compatibility:
    """Compatibility check: every stop pair across both beats within ``limit_km``."""

    def check(first: Beat, second: Beat) -> bool:
        if not first.stops or not second.stops:
            return True
        matrix = haversine_matrix(
            [stop.latitude for stop in first.stops],
            [stop.longitude for stop in first.stops],
            [stop.latitude for stop in second.stops],
            [stop.longitude for stop in second.stops],
        )
        return bool(np.all(matrix <= limit_km))

    return check


def _centroid_distance(first: Beat, second: Beat) -> float:
    a, b = beat_centroid(first), beat_centroid(second)
    return haversine_km(a[0], a[1], b[0], b[1])


def merge_undersized(
    beats: List[Beat],
    constraints: ConstraintSet,
    *,
    compatible: Optional[Compatibility] = None,
) -> List[RepairRecord]:
    """Fold beats below the minimum size into the nearest sibling with room.

    Siblings must share a territory and the merged beat may not exceed the
    maximum size. Beats without any eligible sibling are left as they are.
    """

    repairs: list[RepairRecord] = []
    skipped: set[int] = set()
    while True:
        undersized = sorted(
            (
                beat
                for beat in beats
                if beat.size < constraints.min_outlets_per_beat and id(beat) not in skipped
            ),
            key=lambda beat: beat.size,
        )
        if not undersized:
            break

        source = undersized[0]
        candidates = [
            beat
            for beat in beats
            if beat is not source
            and set(beat.territory_ids) & set(source.territory_ids)
            and beat.size + source.size <= constraints.max_outlets_per_beat
            and (compatible is None or compatible(beat, source))
        ]
        if not candidates:
            skipped.add(id(source))
            continue

        target = min(candidates, key=lambda beat: _centroid_distance(beat, source))
        target.stops.extend(source.stops)
        beats[:] = [beat for beat in beats if beat is not source]
        logger.info("Merged beat %d (%d stops) into beat %d", source.beat_id, source.size, target.beat_id)
        repairs.append(
            RepairRecord(
                kind="merge",
                subject_id=str(source.beat_id),
                message=f"Merged undersized beat {source.beat_id} into beat {target.beat_id}.",
                detail={"target_beat_id": target.beat_id, "stops": source.size},
            )
        )
    return repairs


def split_oversized(beats: List[Beat], constraints: ConstraintSet) -> List[RepairRecord]:
    """Halve beats above the maximum size until every beat fits."""

    repairs: list[RepairRecord] = []
    next_id = max((beat.beat_id for beat in beats), default=0) + 1
    index = 0
    while index < len(beats):
        beat = beats[index]
        if beat.size <= constraints.max_outlets_per_beat:
            index += 1
            continue
        cut = math.ceil(beat.size / 2)
        tail = Beat(
            beat_id=next_id,
            stops=beat.stops[cut:],
            territory_ids=list(beat.territory_ids),
            depot_latitude=beat.depot_latitude,
            depot_longitude=beat.depot_longitude,
        )
        beat.stops = beat.stops[:cut]
        beats.insert(index + 1, tail)
        repairs.append(
            RepairRecord(
                kind="split",
                subject_id=str(beat.beat_id),
                message=f"Split oversized beat {beat.beat_id}; {tail.size} stops moved to beat {next_id}.",
                detail={"new_beat_id": next_id},
            )
        )
        next_id += 1
    return repairs


def _worst_distance(customer_lat: float, customer_lon: float, beat: Beat) -> float:
    return max(
        haversine_km(customer_lat, customer_lon, stop.latitude, stop.longitude) for stop in beat.stops
    )


def ensure_coverage(
    beats: List[Beat],
    territory: Territory,
    depot: Depot,
    constraints: ConstraintSet,
    ledger: AssignmentLedger,
) -> List[RepairRecord]:
    """Guarantee that every territory customer appears in exactly one beat.

    Duplicate or foreign stops are dropped. Missing customers are placed in
    the beat with room whose farthest stop is closest to them; when every
    beat is full a new single-stop beat is opened.
    """

    repairs: list[RepairRecord] = []
    rejected = ledger.sync(beats)
    for beat_id, customer_id in rejected:
        for beat in beats:
            if beat.beat_id != beat_id:
                continue
            # Drop the last occurrence, which is the one the ledger rejected
            for position in range(len(beat.stops) - 1, -1, -1):
                if beat.stops[position].customer_id == customer_id:
                    del beat.stops[position]
                    break
            break
        logger.warning("Removed duplicate stop for customer %s from beat %d", customer_id, beat_id)
        repairs.append(
            RepairRecord(
                kind="duplicate_removed",
                subject_id=customer_id,
                message=f"Removed a duplicate stop from beat {beat_id}.",
                detail={"beat_id": beat_id},
            )
        )
    beats[:] = [beat for beat in beats if beat.stops]

    by_id = {customer.customer_id: customer for customer in territory.customers}
    for customer_id in ledger.unassigned():
        customer = by_id[customer_id]
        open_beats = [beat for beat in beats if beat.size < constraints.max_outlets_per_beat and beat.stops]
        stop = Stop.from_customer(customer, territory.territory_id)
        if open_beats:
            target = min(open_beats, key=lambda beat: _worst_distance(customer.latitude, customer.longitude, beat))
            target.stops.append(stop)
        else:
            target = new_beat(max((beat.beat_id for beat in beats), default=0) + 1, territory, depot, [stop])
            beats.append(target)
        ledger.assign(customer_id, target.beat_id)
        logger.warning("Force-assigned customer %s to beat %d", customer_id, target.beat_id)
        repairs.append(
            RepairRecord(
                kind="force_assign",
                subject_id=customer_id,
                message=f"Force-assigned an unrouted customer to beat {target.beat_id}.",
                detail={"beat_id": target.beat_id},
            )
        )
    return repairs


def renumber_beats(beats: Sequence[Beat], start: int = 1) -> None:
    for offset, beat in enumerate(beats):
        beat.beat_id = start + offset
