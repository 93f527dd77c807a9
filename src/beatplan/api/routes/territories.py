"""API routes for territory partitioning."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ...exceptions import PartitionError
from ...schemas.constraints import resolve_constraints
from ...schemas.territories import PartitionRequest, PartitionResponse
from ...services.territories.service import partition_territories

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/territories", tags=["territories"])


@router.post("/partition", response_model=PartitionResponse, status_code=status.HTTP_200_OK)
def partition(payload: PartitionRequest) -> PartitionResponse:
    """Split the supplied customers into sales territories."""
    try:
        constraints = resolve_constraints(payload.constraints)
        result = partition_territories([customer.to_domain() for customer in payload.customers], constraints)
    except PartitionError as exc:
        raise HTTPException(status_code=422, detail=exc.to_dict()) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return PartitionResponse.from_result(result)
