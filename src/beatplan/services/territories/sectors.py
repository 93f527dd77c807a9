"""Polar sector slicing around the median center of a customer set."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Sequence

from ...models.constraints import ConstraintSet
from ...models.domain import Customer
from ..geospatial import TWO_PI, angular_distance, haversine_km, normalize_angle, polar_angle


@dataclass(slots=True)
class PolarCustomer:
    customer: Customer
    angle: float
    radius_km: float

    @property
    def customer_id(self) -> str:
        return self.customer.customer_id

    @property
    def rev1(self) -> float:
        return self.customer.rev1 or 0.0

    @property
    def rev2(self) -> float:
        return self.customer.rev2 or 0.0


@dataclass(slots=True)
class Sector:
    """Working state of one territory while the partitioner rebalances it."""

    members: List[PolarCustomer] = field(default_factory=list)
    start_angle: float = 0.0
    end_angle: float = 0.0

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def rev1_total(self) -> float:
        return sum(member.rev1 for member in self.members)

    @property
    def rev2_total(self) -> float:
        return sum(member.rev2 for member in self.members)

    @property
    def mid_angle(self) -> float:
        if not self.members:
            span = (self.end_angle - self.start_angle) % TWO_PI
            return normalize_angle(self.start_angle + span / 2)
        sin_sum = sum(math.sin(member.angle) for member in self.members)
        cos_sum = sum(math.cos(member.angle) for member in self.members)
        return normalize_angle(math.atan2(sin_sum, cos_sum))

    def capacity(self, constraints: ConstraintSet) -> int:
        return max(0, constraints.max_outlets_per_territory - self.size)

    def meets_revenue(self, constraints: ConstraintSet) -> bool:
        return (
            self.rev1_total >= constraints.effective_min_rev1
            and self.rev2_total >= constraints.effective_min_rev2
        )

    def is_valid(self, constraints: ConstraintSet) -> bool:
        return (
            constraints.min_outlets_per_territory <= self.size <= constraints.max_outlets_per_territory
            and self.meets_revenue(constraints)
        )

    def refresh_bounds(self) -> None:
        """Recompute the angular span from the current members."""

        if not self.members:
            return
        ordered = sorted(member.angle for member in self.members)
        # The span starts after the widest empty gap around the circle
        gaps = [
            ((ordered[(i + 1) % len(ordered)] - ordered[i]) % TWO_PI, i)
            for i in range(len(ordered))
        ]
        if len(ordered) == 1:
            self.start_angle = self.end_angle = ordered[0]
            return
        _, widest = max(gaps)
        self.start_angle = ordered[(widest + 1) % len(ordered)]
        self.end_angle = ordered[widest]


def to_polar(customers: Sequence[Customer], center: tuple[float, float]) -> list[PolarCustomer]:
    lat0, lon0 = center
    return [
        PolarCustomer(
            customer=customer,
            angle=polar_angle(lat0, lon0, customer.latitude, customer.longitude),
            radius_km=haversine_km(lat0, lon0, customer.latitude, customer.longitude),
        )
        for customer in customers
    ]


def sector_count(customers: Sequence[Customer], constraints: ConstraintSet) -> int:
    """Number of equal-angle sectors balancing size bounds and revenue floors."""

    total = len(customers)
    max_by_size = total // constraints.min_outlets_per_territory
    min_by_size = math.ceil(total / constraints.max_outlets_per_territory)

    min_by_revenue = 0
    total_rev1 = sum(customer.rev1 or 0.0 for customer in customers)
    total_rev2 = sum(customer.rev2 or 0.0 for customer in customers)
    if constraints.effective_min_rev1 > 0:
        min_by_revenue = max(min_by_revenue, math.ceil(total_rev1 / (constraints.effective_min_rev1 * 1.1)))
    if constraints.effective_min_rev2 > 0:
        min_by_revenue = max(min_by_revenue, math.ceil(total_rev2 / (constraints.effective_min_rev2 * 1.1)))

    return max(1, min(max_by_size, max(min_by_size, min_by_revenue)))


def slice_sectors(points: Sequence[PolarCustomer], count: int) -> list[Sector]:
    """Split the circle into ``count`` equal angular slices."""

    if count < 1:
        raise ValueError("count must be >= 1")

    width = TWO_PI / count
    sectors = [Sector(start_angle=i * width, end_angle=(i + 1) * width) for i in range(count)]
    for point in points:
        index = int(point.angle // width)
        if 0 <= index < count and sectors[index].start_angle <= point.angle < sectors[index].end_angle:
            sectors[index].members.append(point)
            continue
        # Floating point edge at the slice boundaries
        nearest = min(
            sectors,
            key=lambda sector: angular_distance(point.angle, (sector.start_angle + sector.end_angle) / 2),
        )
        nearest.members.append(point)
    return sectors
