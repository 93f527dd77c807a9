"""Partition a customer set into sales territories."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Sequence

from ...exceptions import PartitionError
from ...models.constraints import ConstraintSet
from ...models.domain import Customer, RepairRecord, Territory
from ..balancing.service import (
    enforce_minimum_size,
    enforce_revenue_floors,
    smooth_sector_sizes,
    split_oversized,
)
from ..geospatial import median_center
from .sectors import Sector, sector_count, slice_sectors, to_polar

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PartitionResult:
    territories: List[Territory]
    repairs: List[RepairRecord] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)

    def counts(self) -> dict[str, int]:
        return {territory.territory_id: territory.size for territory in self.territories}

    def assignments(self) -> dict[str, str]:
        return {
            customer.customer_id: territory.territory_id
            for territory in self.territories
            for customer in territory.customers
        }


def _to_territory(sector: Sector, territory_id: str, center: tuple[float, float]) -> Territory:
    radii = [member.radius_km for member in sector.members]
    return Territory(
        territory_id=territory_id,
        customers=[member.customer for member in sector.members],
        rev1_total=sector.rev1_total,
        rev2_total=sector.rev2_total,
        center=center,
        start_angle=sector.start_angle,
        end_angle=sector.end_angle,
        min_radius_km=min(radii) if radii else 0.0,
        max_radius_km=max(radii) if radii else 0.0,
        avg_radius_km=sum(radii) / len(radii) if radii else 0.0,
    )


def _validate_partition(
    customers: Sequence[Customer], sectors: Sequence[Sector], constraints: ConstraintSet
) -> None:
    assigned = [member.customer_id for sector in sectors for member in sector.members]
    if len(assigned) != len(customers):
        logger.error("Partition covers %d of %d customers", len(assigned), len(customers))
        raise PartitionError(
            "count_mismatch",
            f"Partition covers {len(assigned)} customers but {len(customers)} were supplied.",
            {"expected": len(customers), "assigned": len(assigned)},
        )

    duplicates = sorted(cid for cid, count in Counter(assigned).items() if count > 1)
    if duplicates:
        logger.error("Customers assigned more than once: %s", duplicates[:10])
        raise PartitionError(
            "duplicate_customers",
            f"{len(duplicates)} customers are assigned to more than one territory.",
            {"customer_ids": duplicates},
        )

    for index, sector in enumerate(sectors):
        if sector.size < constraints.min_outlets_per_territory:
            logger.error("Territory %d has %d customers, below the minimum", index + 1, sector.size)
            raise PartitionError(
                "undersized_territory",
                f"Territory {index + 1} has {sector.size} customers; minimum is "
                f"{constraints.min_outlets_per_territory}.",
                {"size": sector.size, "minimum": constraints.min_outlets_per_territory},
            )
        if sector.size > constraints.max_outlets_per_territory:
            logger.error("Territory %d has %d customers, above the maximum", index + 1, sector.size)
            raise PartitionError(
                "oversized_territory",
                f"Territory {index + 1} has {sector.size} customers; maximum is "
                f"{constraints.max_outlets_per_territory}.",
                {"size": sector.size, "maximum": constraints.max_outlets_per_territory},
            )


def partition_territories(
    customers: Sequence[Customer],
    constraints: ConstraintSet | None = None,
    *,
    id_prefix: str = "T",
) -> PartitionResult:
    """Split customers into angular territories around their median center.

    The run slices the plane into equal-angle sectors, smooths their sizes
    between angular neighbours, then applies the revenue-floor, minimum-size
    and oversized-split passes before validating the result. Recoverable corrections are returned as
    repair records; a partition that still breaks coverage or the size bounds
    raises :class:`PartitionError`.
    """

    constraints = constraints or ConstraintSet()
    if not customers:
        return PartitionResult(territories=[], metadata={"sector_count": 0})

    unique_ids = {customer.customer_id for customer in customers}
    if len(unique_ids) != len(customers):
        raise ValueError("customer_id values must be unique")

    if len(customers) < constraints.min_outlets_per_territory:
        logger.error(
            "Only %d customers supplied; a territory needs at least %d",
            len(customers),
            constraints.min_outlets_per_territory,
        )
        raise PartitionError(
            "insufficient_customers",
            f"{len(customers)} customers cannot fill a single territory of at least "
            f"{constraints.min_outlets_per_territory}.",
            {"customers": len(customers), "minimum": constraints.min_outlets_per_territory},
        )

    center = median_center((customer.latitude, customer.longitude) for customer in customers)
    points = to_polar(customers, center)
    count = sector_count(customers, constraints)
    logger.info("Partitioning %d customers into %d initial sectors", len(customers), count)

    sectors = slice_sectors(points, count)
    repairs: list[RepairRecord] = []

    sectors, step_repairs = smooth_sector_sizes(sectors, constraints)
    repairs.extend(step_repairs)
    sectors, step_repairs = enforce_revenue_floors(sectors, constraints)
    repairs.extend(step_repairs)
    sectors, step_repairs = enforce_minimum_size(sectors, constraints)
    repairs.extend(step_repairs)
    sectors, step_repairs = split_oversized(sectors, constraints)
    repairs.extend(step_repairs)

    sectors = [sector for sector in sectors if sector.size > 0]
    _validate_partition(customers, sectors, constraints)

    sectors.sort(key=lambda sector: sector.start_angle)
    territories = [
        _to_territory(sector, f"{id_prefix}{index + 1:02d}", center) for index, sector in enumerate(sectors)
    ]
    for territory in territories:
        if (
            territory.rev1_total < constraints.effective_min_rev1
            or territory.rev2_total < constraints.effective_min_rev2
        ):
            logger.warning(
                "Territory %s misses a revenue floor (rev1=%.0f, rev2=%.0f)",
                territory.territory_id,
                territory.rev1_total,
                territory.rev2_total,
            )

    logger.info("Partition produced %d territories with %d repairs", len(territories), len(repairs))
    return PartitionResult(
        territories=territories,
        repairs=repairs,
        metadata={
            "initial_sector_count": count,
            "sector_count": len(territories),
            "median_center": center,
        },
    )
