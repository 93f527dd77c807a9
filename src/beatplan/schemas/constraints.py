"""Pydantic models shared by the planning endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from ..models.constraints import ConstraintSet
from ..models.domain import Customer, Depot, RepairRecord


class ConstraintOverrides(BaseModel):
    """Optional overrides applied on top of the configured constraint defaults."""

    min_outlets_per_beat: Optional[int] = Field(default=None, ge=1)
    max_outlets_per_beat: Optional[int] = Field(default=None, ge=1)
    max_working_time_minutes: Optional[float] = Field(default=None, gt=0)
    visit_time_minutes: Optional[float] = Field(default=None, ge=0)
    travel_speed_kmh: Optional[float] = Field(default=None, gt=0)
    min_isolation_distance_km: Optional[float] = Field(default=None, ge=0)
    max_intra_beat_distance_km: Optional[float] = Field(default=None, ge=0)
    min_outlets_per_territory: Optional[int] = Field(default=None, ge=1)
    max_outlets_per_territory: Optional[int] = Field(default=None, ge=1)
    min_rev1_per_territory: Optional[float] = Field(default=None, ge=0)
    min_rev2_per_territory: Optional[float] = Field(default=None, ge=0)
    revenue_error_margin: Optional[float] = Field(default=None, ge=0, lt=1)
    beats_per_territory: Optional[int] = Field(default=None, ge=1)
    proximity_radius_km: Optional[float] = Field(default=None, gt=0)

    def to_constraints(self) -> ConstraintSet:
        return ConstraintSet().with_overrides(**self.model_dump())


def resolve_constraints(overrides: Optional[ConstraintOverrides]) -> ConstraintSet:
    return overrides.to_constraints() if overrides else ConstraintSet()


class CustomerModel(BaseModel):
    customer_id: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    outlet_name: Optional[str] = None
    rev1: Optional[float] = None
    rev2: Optional[float] = None

    def to_domain(self) -> Customer:
        return Customer(
            customer_id=self.customer_id,
            latitude=self.latitude,
            longitude=self.longitude,
            outlet_name=self.outlet_name,
            rev1=self.rev1,
            rev2=self.rev2,
        )


class DepotModel(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    code: str = "DEPOT"

    def to_domain(self) -> Depot:
        return Depot(latitude=self.latitude, longitude=self.longitude, code=self.code)


class RepairModel(BaseModel):
    kind: str
    subject_id: str
    message: str
    detail: dict

    @classmethod
    def from_domain(cls, record: RepairRecord) -> "RepairModel":
        return cls(kind=record.kind, subject_id=record.subject_id, message=record.message, detail=record.detail)
