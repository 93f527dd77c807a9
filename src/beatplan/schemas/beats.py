"""Pydantic request/response models for beat construction and validation."""

from __future__ import annotations

from typing import Literal, Optional, Sequence

from pydantic import BaseModel, Field

from ..models.domain import Beat, Stop
from ..services.planning.service import FeasibilityEstimate, PlanResult
from ..services.routing.models import BuildResult
from ..services.validation.models import ValidationSummary, Violation, ViolationReport
from .constraints import ConstraintOverrides, CustomerModel, DepotModel, RepairModel
from .territories import TerritoryModel

StrategyName = Literal["nearest-neighbor", "simulated-annealing", "isolation", "enhanced-nearest-neighbor"]


class BuildBeatsRequest(BaseModel):
    territory_id: str = Field(default="T01", description="Identifier stamped on every stop.")
    customers: Sequence[CustomerModel]
    depot: DepotModel
    strategy: StrategyName = "nearest-neighbor"
    constraints: Optional[ConstraintOverrides] = None
    seed: Optional[int] = Field(default=None, description="Seed for the annealing strategy.")


class PlanRequest(BaseModel):
    customers: Sequence[CustomerModel]
    depot: DepotModel
    strategy: StrategyName = "nearest-neighbor"
    constraints: Optional[ConstraintOverrides] = None
    seed: Optional[int] = None


class BeatInputModel(BaseModel):
    beat_id: int
    territory_id: str = "T01"
    customers: Sequence[CustomerModel] = Field(..., description="Stops in visiting order.")


class ValidateBeatsRequest(BaseModel):
    beats: Sequence[BeatInputModel]
    depot: DepotModel
    constraints: Optional[ConstraintOverrides] = None


class FeasibilityRequest(BaseModel):
    total_customers: int = Field(..., ge=0)
    territories: Optional[int] = Field(default=None, ge=1)
    constraints: Optional[ConstraintOverrides] = None


class StopModel(BaseModel):
    customer_id: str
    latitude: float
    longitude: float
    territory_id: str
    outlet_name: Optional[str] = None
    sub_cluster: Optional[int] = None
    visit_time_min: float
    distance_to_next_km: float
    time_to_next_min: float

    @classmethod
    def from_domain(cls, stop: Stop) -> "StopModel":
        return cls(
            customer_id=stop.customer_id,
            latitude=stop.latitude,
            longitude=stop.longitude,
            territory_id=stop.territory_id,
            outlet_name=stop.outlet_name,
            sub_cluster=stop.sub_cluster,
            visit_time_min=stop.visit_time_min,
            distance_to_next_km=stop.distance_to_next_km,
            time_to_next_min=stop.time_to_next_min,
        )


class BeatModel(BaseModel):
    beat_id: int
    territory_ids: list[str]
    stop_count: int
    total_distance_km: float
    total_time_min: float
    stops: list[StopModel]

    @classmethod
    def from_domain(cls, beat: Beat) -> "BeatModel":
        return cls(
            beat_id=beat.beat_id,
            territory_ids=list(beat.territory_ids),
            stop_count=beat.size,
            total_distance_km=beat.total_distance_km,
            total_time_min=beat.total_time_min,
            stops=[StopModel.from_domain(stop) for stop in beat.stops],
        )


class ViolationModel(BaseModel):
    kind: str
    severity: Literal["warning", "error"]
    message: str
    beat_id: Optional[int] = None
    territory_id: Optional[str] = None
    related_beat_id: Optional[int] = None
    actual: Optional[float] = None
    limit: Optional[float] = None
    customer_ids: list[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, violation: Violation) -> "ViolationModel":
        return cls(
            kind=violation.kind,
            severity=violation.severity,
            message=violation.message,
            beat_id=violation.beat_id,
            territory_id=violation.territory_id,
            related_beat_id=violation.related_beat_id,
            actual=violation.actual,
            limit=violation.limit,
            customer_ids=list(violation.customer_ids),
        )


class ValidationSummaryModel(BaseModel):
    total_beats: int
    total_outlets: int
    avg_outlets_per_beat: float
    avg_working_time_min: float
    max_working_time_min: float
    outlet_count_violations: int
    working_time_violations: int
    isolation_violations: int
    intra_beat_distance_violations: int
    total_checks: int
    compliance_percentage: float
    max_intra_beat_distance_m: float
    avg_intra_beat_distance_m: float

    @classmethod
    def from_domain(cls, summary: ValidationSummary) -> "ValidationSummaryModel":
        return cls(
            total_beats=summary.total_beats,
            total_outlets=summary.total_outlets,
            avg_outlets_per_beat=summary.avg_outlets_per_beat,
            avg_working_time_min=summary.avg_working_time_min,
            max_working_time_min=summary.max_working_time_min,
            outlet_count_violations=summary.outlet_count_violations,
            working_time_violations=summary.working_time_violations,
            isolation_violations=summary.isolation_violations,
            intra_beat_distance_violations=summary.intra_beat_distance_violations,
            total_checks=summary.total_checks,
            compliance_percentage=summary.compliance_percentage,
            max_intra_beat_distance_m=summary.max_intra_beat_distance_m,
            avg_intra_beat_distance_m=summary.avg_intra_beat_distance_m,
        )


class ValidationReportModel(BaseModel):
    is_valid: bool
    violations: list[ViolationModel]
    summary: ValidationSummaryModel

    @classmethod
    def from_domain(cls, report: ViolationReport) -> "ValidationReportModel":
        return cls(
            is_valid=report.is_valid,
            violations=[ViolationModel.from_domain(violation) for violation in report.violations],
            summary=ValidationSummaryModel.from_domain(report.summary),
        )


class BuildBeatsResponse(BaseModel):
    territory_id: str
    strategy: str
    beats: list[BeatModel]
    repairs: list[RepairModel]
    metadata: dict
    report: ValidationReportModel

    @classmethod
    def from_result(cls, result: BuildResult, report: ViolationReport) -> "BuildBeatsResponse":
        return cls(
            territory_id=result.territory_id,
            strategy=result.strategy,
            beats=[BeatModel.from_domain(beat) for beat in result.beats],
            repairs=[RepairModel.from_domain(record) for record in result.repairs],
            metadata=result.metadata,
            report=ValidationReportModel.from_domain(report),
        )


class PlanResponse(BaseModel):
    territories: list[TerritoryModel]
    beats: list[BeatModel]
    repairs: list[RepairModel]
    report: ValidationReportModel
    territory_violations: list[ViolationModel]
    metadata: dict

    @classmethod
    def from_result(cls, result: PlanResult) -> "PlanResponse":
        repairs = list(result.partition.repairs)
        for build in result.builds:
            repairs.extend(build.repairs)
        return cls(
            territories=[TerritoryModel.from_domain(territory) for territory in result.partition.territories],
            beats=[BeatModel.from_domain(beat) for beat in result.beats],
            repairs=[RepairModel.from_domain(record) for record in repairs],
            report=ValidationReportModel.from_domain(result.report),
            territory_violations=[ViolationModel.from_domain(v) for v in result.territory_violations],
            metadata={
                "partition": result.partition.metadata,
                "builds": {build.territory_id: build.metadata for build in result.builds},
            },
        )


class FeasibilityResponse(BaseModel):
    total_beats: int
    avg_outlets_per_beat: int
    avg_outlets_per_territory: int
    estimated_working_time_min: float
    feasible: bool

    @classmethod
    def from_domain(cls, estimate: FeasibilityEstimate) -> "FeasibilityResponse":
        return cls(
            total_beats=estimate.total_beats,
            avg_outlets_per_beat=estimate.avg_outlets_per_beat,
            avg_outlets_per_territory=estimate.avg_outlets_per_territory,
            estimated_working_time_min=estimate.estimated_working_time_min,
            feasible=estimate.feasible,
        )
