"""Domain models for customers, territories and beats."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass(slots=True, frozen=True)
class Customer:
    """Represents a sales outlet with coordinates and optional revenue figures."""

    customer_id: str
    latitude: float
    longitude: float
    outlet_name: Optional[str] = None
    rev1: Optional[float] = None
    rev2: Optional[float] = None


@dataclass(slots=True)
class Depot:
    """Represents the distribution center every beat starts from."""

    latitude: float
    longitude: float
    code: str = "DEPOT"


@dataclass(slots=True)
class Territory:
    """A sales territory owning a disjoint subset of the customers."""

    territory_id: str
    customers: List[Customer]
    rev1_total: float = 0.0
    rev2_total: float = 0.0
    center: tuple[float, float] = (0.0, 0.0)
    start_angle: Optional[float] = None
    end_angle: Optional[float] = None
    min_radius_km: float = 0.0
    max_radius_km: float = 0.0
    avg_radius_km: float = 0.0

    @property
    def size(self) -> int:
        return len(self.customers)

    @property
    def customer_ids(self) -> list[str]:
        return [customer.customer_id for customer in self.customers]


@dataclass(slots=True)
class Stop:
    customer_id: str
    latitude: float
    longitude: float
    territory_id: str
    outlet_name: Optional[str] = None
    sub_cluster: Optional[int] = None
    visit_time_min: float = 0.0
    distance_to_next_km: float = 0.0
    time_to_next_min: float = 0.0

    @classmethod
    def from_customer(
        cls, customer: Customer, territory_id: str, *, sub_cluster: Optional[int] = None
    ) -> "Stop":
        return cls(
            customer_id=customer.customer_id,
            latitude=customer.latitude,
            longitude=customer.longitude,
            territory_id=territory_id,
            outlet_name=customer.outlet_name,
            sub_cluster=sub_cluster,
        )


@dataclass(slots=True)
class Beat:
    """An ordered daily route starting at the depot."""

    beat_id: int
    stops: List[Stop]
    territory_ids: List[str]
    depot_latitude: float
    depot_longitude: float
    total_distance_km: float = 0.0
    total_time_min: float = 0.0

    @property
    def size(self) -> int:
        return len(self.stops)

    @property
    def customer_ids(self) -> list[str]:
        return [stop.customer_id for stop in self.stops]


@dataclass(slots=True)
class RepairRecord:
    """A recoverable correction applied by a partitioning or beat repair pass."""

    kind: str
    subject_id: str
    message: str
    detail: dict[str, Any] = field(default_factory=dict)
