"""Pydantic request/response models for territory partitioning."""

from __future__ import annotations

from typing import Optional, Sequence

from pydantic import BaseModel, Field, field_validator

from ..models.domain import Territory
from ..services.territories.service import PartitionResult
from .constraints import ConstraintOverrides, CustomerModel, RepairModel


class PartitionRequest(BaseModel):
    customers: Sequence[CustomerModel] = Field(..., description="Customers to split into territories.")
    constraints: Optional[ConstraintOverrides] = None

    @field_validator("customers")
    @classmethod
    def validate_unique_ids(cls, value: Sequence[CustomerModel]) -> Sequence[CustomerModel]:
        ids = [customer.customer_id for customer in value]
        if len(ids) != len(set(ids)):
            raise ValueError("customer_id values must be unique")
        return value


class TerritoryModel(BaseModel):
    territory_id: str
    customer_ids: list[str]
    customer_count: int
    rev1_total: float
    rev2_total: float
    center: tuple[float, float]
    start_angle: Optional[float] = None
    end_angle: Optional[float] = None
    min_radius_km: float
    max_radius_km: float
    avg_radius_km: float

    @classmethod
    def from_domain(cls, territory: Territory) -> "TerritoryModel":
        return cls(
            territory_id=territory.territory_id,
            customer_ids=territory.customer_ids,
            customer_count=territory.size,
            rev1_total=territory.rev1_total,
            rev2_total=territory.rev2_total,
            center=territory.center,
            start_angle=territory.start_angle,
            end_angle=territory.end_angle,
            min_radius_km=territory.min_radius_km,
            max_radius_km=territory.max_radius_km,
            avg_radius_km=territory.avg_radius_km,
        )


class PartitionResponse(BaseModel):
    territories: list[TerritoryModel]
    assignments: dict[str, str]
    repairs: list[RepairModel]
    metadata: dict

    @classmethod
    def from_result(cls, result: PartitionResult) -> "PartitionResponse":
        return cls(
            territories=[TerritoryModel.from_domain(territory) for territory in result.territories],
            assignments=result.assignments(),
            repairs=[RepairModel.from_domain(record) for record in result.repairs],
            metadata=result.metadata,
        )
