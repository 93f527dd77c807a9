"""Balancing passes that bring polar sectors within the territory bounds."""

from __future__ import annotations

import logging
import math
from typing import List, Sequence, Tuple

from ...models.constraints import ConstraintSet
from ...models.domain import RepairRecord
from ..geospatial import TWO_PI, angular_distance
from ..territories.sectors import PolarCustomer, Sector

logger = logging.getLogger(__name__)

ADJACENCY_LIMIT = math.pi / 2


def _sector_label(sector: Sector) -> str:
    return f"sector@{math.degrees(sector.start_angle):.1f}"


def _adjacent_targets(sector: Sector, candidates: Sequence[Sector], constraints: ConstraintSet) -> list[Sector]:
    mid = sector.mid_angle
    scored = [
        (angular_distance(candidate.mid_angle, mid), index, candidate)
        for index, candidate in enumerate(candidates)
        if candidate.capacity(constraints) > 0
    ]
    return [candidate for distance, _, candidate in sorted(scored) if distance <= ADJACENCY_LIMIT]


def _within_bounds(sector: Sector, constraints: ConstraintSet) -> bool:
    return constraints.min_outlets_per_territory <= sector.size <= constraints.max_outlets_per_territory


def smooth_sector_sizes(
    sectors: List[Sector],
    constraints: ConstraintSet,
    *,
    max_iterations: int | None = None,
) -> Tuple[List[Sector], List[RepairRecord]]:
    """Shift boundary customers between angular neighbours while a sector is out of bounds.

    Each step moves one customer from the larger to the smaller sector of the
    most unequal neighbouring pair, picking the customer angularly closest to
    the receiving sector.
    """

    ordered = sorted(sectors, key=lambda sector: sector.start_angle)
    if len(ordered) < 2:
        return ordered, []

    max_iterations = max_iterations or sum(sector.size for sector in ordered)
    moves = 0
    for _ in range(max_iterations):
        if all(_within_bounds(sector, constraints) for sector in ordered):
            break

        pairs = [(ordered[i], ordered[(i + 1) % len(ordered)]) for i in range(len(ordered))]
        first, second = max(pairs, key=lambda pair: abs(pair[0].size - pair[1].size))
        if abs(first.size - second.size) < 2:
            break
        donor, receiver = (first, second) if first.size > second.size else (second, first)

        receiver_mid = receiver.mid_angle
        customer_to_move = min(donor.members, key=lambda point: angular_distance(point.angle, receiver_mid))
        donor.members.remove(customer_to_move)
        receiver.members.append(customer_to_move)
        moves += 1

    if not moves:
        return ordered, []

    for sector in ordered:
        sector.refresh_bounds()
    logger.info("Smoothed sector sizes with %d boundary moves", moves)
    return ordered, [
        RepairRecord(
            kind="smooth",
            subject_id="sectors",
            message=f"Moved {moves} boundary customers between neighbouring sectors.",
            detail={"moves": moves, "sizes": [sector.size for sector in ordered]},
        )
    ]


def _greedy_revenue_sector(pool: Sequence[PolarCustomer], constraints: ConstraintSet) -> list[PolarCustomer]:
    """Pick customers by descending revenue until a valid sector can be formed.

    Returns an empty list when the pool cannot reach both revenue floors
    within the size cap.
    """

    ordered = sorted(pool, key=lambda point: point.rev1 + point.rev2, reverse=True)
    chosen: list[PolarCustomer] = []
    rev1 = rev2 = 0.0
    for point in ordered:
        if len(chosen) >= constraints.max_outlets_per_territory:
            break
        chosen.append(point)
        rev1 += point.rev1
        rev2 += point.rev2
        if (
            len(chosen) >= constraints.min_outlets_per_territory
            and rev1 >= constraints.effective_min_rev1
            and rev2 >= constraints.effective_min_rev2
        ):
            return chosen
    return []


def _plan_dissolve(
    sector: Sector, targets: Sequence[Sector], constraints: ConstraintSet
) -> Tuple[list[tuple[Sector, list[PolarCustomer]]], list[list[PolarCustomer]], list[PolarCustomer]]:
    """Work out where the members of ``sector`` would go without moving anyone.

    Returns the transfers into adjacent sectors, the revenue-complete sectors
    that can be carved from the rest, and the leftover customers.
    """

    pool = list(sector.members)
    transfers: list[tuple[Sector, list[PolarCustomer]]] = []
    for target in _adjacent_targets(sector, targets, constraints):
        if not pool:
            break
        room = target.capacity(constraints)
        target_mid = target.mid_angle
        pool.sort(key=lambda point: angular_distance(point.angle, target_mid))
        moved, pool = pool[:room], pool[room:]
        transfers.append((target, moved))

    created: list[list[PolarCustomer]] = []
    while len(pool) >= constraints.min_outlets_per_territory:
        chosen = _greedy_revenue_sector(pool, constraints)
        if not chosen:
            break
        chosen_ids = {point.customer_id for point in chosen}
        pool = [point for point in pool if point.customer_id not in chosen_ids]
        created.append(chosen)
    return transfers, created, pool


def enforce_revenue_floors(
    sectors: List[Sector], constraints: ConstraintSet
) -> Tuple[List[Sector], List[RepairRecord]]:
    """Dissolve sectors that miss the size bounds or the revenue floors.

    Members of an invalid sector flow to angularly adjacent valid sectors
    first, then into freshly built revenue-complete sectors, and finally into
    the sectors with the fewest members. No customer is dropped. A sector
    whose size is in bounds is kept as is when its leftovers would push the
    others past the maximum; the missed floor is reported as a repair.
    """

    repairs: list[RepairRecord] = []
    valid = [sector for sector in sectors if sector.is_valid(constraints)]
    invalid = sorted(
        (sector for sector in sectors if not sector.is_valid(constraints)),
        key=lambda sector: sector.start_angle,
    )
    if not invalid:
        return sectors, repairs

    if not valid:
        for sector in invalid:
            if sector.size == 0:
                continue
            logger.warning(
                "No valid sector available; keeping %s with %d customers (rev1=%.0f, rev2=%.0f)",
                _sector_label(sector),
                sector.size,
                sector.rev1_total,
                sector.rev2_total,
            )
            repairs.append(
                RepairRecord(
                    kind="invalid_sector_kept",
                    subject_id=_sector_label(sector),
                    message="Sector kept although it misses its bounds; no valid sector can absorb it.",
                    detail={"size": sector.size, "rev1": sector.rev1_total, "rev2": sector.rev2_total},
                )
            )
        return [sector for sector in sectors if sector.size > 0], repairs

    result = list(valid)
    kept: list[Sector] = []
    for sector in invalid:
        if not sector.members:
            continue

        transfers, created, pool = _plan_dissolve(sector, result, constraints)
        room = (
            sum(target.capacity(constraints) for target in result)
            - sum(len(moved) for _, moved in transfers)
            + sum(constraints.max_outlets_per_territory - len(chosen) for chosen in created)
        )
        if len(pool) > room and _within_bounds(sector, constraints):
            logger.warning(
                "Keeping %s with %d customers below its revenue floor (rev1=%.0f, rev2=%.0f)",
                _sector_label(sector),
                sector.size,
                sector.rev1_total,
                sector.rev2_total,
            )
            repairs.append(
                RepairRecord(
                    kind="revenue_shortfall",
                    subject_id=_sector_label(sector),
                    message="Sector kept below its revenue floor; its neighbours cannot absorb it within the size cap.",
                    detail={"size": sector.size, "rev1": sector.rev1_total, "rev2": sector.rev2_total},
                )
            )
            kept.append(sector)
            continue

        for target, moved in transfers:
            target.members.extend(moved)
            repairs.append(
                RepairRecord(
                    kind="transfer",
                    subject_id=_sector_label(target),
                    message=f"Absorbed {len(moved)} customers from invalid {_sector_label(sector)}.",
                    detail={"customer_ids": [point.customer_id for point in moved]},
                )
            )

        for chosen in created:
            new_sector = Sector(members=chosen)
            new_sector.refresh_bounds()
            result.append(new_sector)
            repairs.append(
                RepairRecord(
                    kind="new_sector",
                    subject_id=_sector_label(new_sector),
                    message=f"Built a revenue-complete sector of {len(chosen)} customers.",
                    detail={"rev1": new_sector.rev1_total, "rev2": new_sector.rev2_total},
                )
            )

        if pool:
            for point in pool:
                open_sectors = [candidate for candidate in result if candidate.capacity(constraints) > 0]
                target = min(open_sectors or result, key=lambda candidate: candidate.size)
                target.members.append(point)
            logger.warning(
                "Force-merged %d leftover customers from %s", len(pool), _sector_label(sector)
            )
            repairs.append(
                RepairRecord(
                    kind="force_merge",
                    subject_id=_sector_label(sector),
                    message=f"Force-merged {len(pool)} leftover customers into the smallest sectors.",
                    detail={"customer_ids": [point.customer_id for point in pool]},
                )
            )

    result.extend(kept)
    for sector in result:
        sector.refresh_bounds()
    return result, repairs


def enforce_minimum_size(
    sectors: List[Sector], constraints: ConstraintSet
) -> Tuple[List[Sector], List[RepairRecord]]:
    """Dissolve sectors below the minimum size, smallest first."""

    repairs: list[RepairRecord] = []
    sectors = list(sectors)
    while len(sectors) > 1:
        undersized = [sector for sector in sectors if sector.size < constraints.min_outlets_per_territory]
        if not undersized:
            break
        victim = min(undersized, key=lambda sector: sector.size)
        sectors.remove(victim)
        mids = {id(sector): sector.mid_angle for sector in sectors}

        for point in victim.members:
            open_sectors = [sector for sector in sectors if sector.capacity(constraints) > 0]
            if open_sectors:
                target = min(open_sectors, key=lambda sector: angular_distance(point.angle, mids[id(sector)]))
            else:
                target = min(sectors, key=lambda sector: sector.size)
            target.members.append(point)

        if victim.members:
            logger.info("Dissolved undersized %s (%d customers)", _sector_label(victim), victim.size)
            repairs.append(
                RepairRecord(
                    kind="dissolve",
                    subject_id=_sector_label(victim),
                    message=f"Redistributed {victim.size} customers of an undersized sector.",
                    detail={"size": victim.size},
                )
            )

    for sector in sectors:
        sector.refresh_bounds()
    return sectors, repairs


def _split_count(size: int, constraints: ConstraintSet) -> int:
    for pieces in range(math.ceil(size / constraints.max_outlets_per_territory), 1, -1):
        if size // pieces >= constraints.min_outlets_per_territory:
            return pieces
    return 0


def split_oversized(
    sectors: List[Sector], constraints: ConstraintSet
) -> Tuple[List[Sector], List[RepairRecord]]:
    """Split sectors above the maximum size into near-equal angular pieces."""

    repairs: list[RepairRecord] = []
    result: list[Sector] = []
    for sector in sectors:
        if sector.size <= constraints.max_outlets_per_territory:
            result.append(sector)
            continue

        pieces = _split_count(sector.size, constraints)
        if pieces < 2:
            logger.warning(
                "Cannot split %s of %d customers without breaking the minimum size",
                _sector_label(sector),
                sector.size,
            )
            result.append(sector)
            continue

        sector.refresh_bounds()
        ordered = sorted(sector.members, key=lambda point: (point.angle - sector.start_angle) % TWO_PI)
        base, extra = divmod(len(ordered), pieces)
        offset = 0
        for index in range(pieces):
            length = base + (1 if index < extra else 0)
            piece = Sector(members=ordered[offset : offset + length])
            piece.refresh_bounds()
            result.append(piece)
            offset += length

        repairs.append(
            RepairRecord(
                kind="split",
                subject_id=_sector_label(sector),
                message=f"Split an oversized sector of {sector.size} customers into {pieces} pieces.",
                detail={"pieces": pieces},
            )
        )
    return result, repairs
