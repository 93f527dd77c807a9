"""API routes for beat construction, validation and full planning runs."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ...exceptions import PartitionError
from ...models.domain import Beat, Stop, Territory
from ...schemas.beats import (
    BuildBeatsRequest,
    BuildBeatsResponse,
    FeasibilityRequest,
    FeasibilityResponse,
    PlanRequest,
    PlanResponse,
    ValidateBeatsRequest,
    ValidationReportModel,
)
from ...schemas.constraints import resolve_constraints
from ...services.planning.service import estimate_plan_feasibility, plan_beats
from ...services.routing.dispatcher import STRATEGIES, build_beats
from ...services.routing.metrics import recompute_metrics
from ...services.validation.validator import validate_beats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/beats", tags=["beats"])


@router.get("/strategies", status_code=status.HTTP_200_OK)
def list_strategies() -> dict:
    return {"strategies": list(STRATEGIES)}


@router.post("/build", response_model=BuildBeatsResponse, status_code=status.HTTP_200_OK)
def build(payload: BuildBeatsRequest) -> BuildBeatsResponse:
    """Build beats for a single territory and validate them."""
    try:
        constraints = resolve_constraints(payload.constraints)
        customers = [customer.to_domain() for customer in payload.customers]
        if len({customer.customer_id for customer in customers}) != len(customers):
            raise ValueError("customer_id values must be unique")
        territory = Territory(
            territory_id=payload.territory_id,
            customers=customers,
            rev1_total=sum(customer.rev1 or 0.0 for customer in customers),
            rev2_total=sum(customer.rev2 or 0.0 for customer in customers),
        )
        result = build_beats(
            territory,
            payload.depot.to_domain(),
            constraints,
            payload.strategy,
            seed=payload.seed,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    report = validate_beats(result.beats, constraints)
    return BuildBeatsResponse.from_result(result, report)


@router.post("/validate", response_model=ValidationReportModel, status_code=status.HTTP_200_OK)
def validate(payload: ValidateBeatsRequest) -> ValidationReportModel:
    """Recompute metrics for caller-supplied beats and report constraint violations."""
    try:
        constraints = resolve_constraints(payload.constraints)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    depot = payload.depot.to_domain()
    beats = []
    for item in payload.beats:
        beat = Beat(
            beat_id=item.beat_id,
            stops=[Stop.from_customer(customer.to_domain(), item.territory_id) for customer in item.customers],
            territory_ids=[item.territory_id],
            depot_latitude=depot.latitude,
            depot_longitude=depot.longitude,
        )
        beats.append(recompute_metrics(beat, constraints))
    return ValidationReportModel.from_domain(validate_beats(beats, constraints))


@router.post("/plan", response_model=PlanResponse, status_code=status.HTTP_200_OK)
def plan(payload: PlanRequest) -> PlanResponse:
    """Partition customers into territories and build beats for every territory."""
    try:
        constraints = resolve_constraints(payload.constraints)
        result = plan_beats(
            [customer.to_domain() for customer in payload.customers],
            payload.depot.to_domain(),
            constraints,
            payload.strategy,
            seed=payload.seed,
        )
    except PartitionError as exc:
        raise HTTPException(status_code=422, detail=exc.to_dict()) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    logger.info("Planned %d beats across %d territories", len(result.beats), len(result.partition.territories))
    return PlanResponse.from_result(result)


@router.post("/feasibility", response_model=FeasibilityResponse, status_code=status.HTTP_200_OK)
def feasibility(payload: FeasibilityRequest) -> FeasibilityResponse:
    """Estimate whether the configured beat sizes fit into a working day."""
    try:
        constraints = resolve_constraints(payload.constraints)
        estimate = estimate_plan_feasibility(payload.total_customers, constraints, payload.territories)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return FeasibilityResponse.from_domain(estimate)
