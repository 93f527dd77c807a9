"""Error types raised by the planning engine."""

from __future__ import annotations

from typing import Any


class BeatPlanError(ValueError):
    """Base class for planning errors caused by input or constraints."""


class PartitionError(BeatPlanError):
    """Fatal territory partitioning failure.

    Raised when the partition invariants (complete coverage, no duplicates,
    every territory within its size bounds) cannot be satisfied. Callers are
    expected to relax the constraints and run again.
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class InfrastructureError(RuntimeError):
    """Failure unrelated to the input data, eligible for a strategy fallback."""


class BuildTimeoutError(InfrastructureError):
    """A beat builder exhausted its wall-clock budget."""
