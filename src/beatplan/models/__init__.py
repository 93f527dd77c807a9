"""Domain records shared across services."""

from .constraints import ConstraintSet
from .domain import Beat, Customer, Depot, RepairRecord, Stop, Territory

__all__ = ["Beat", "ConstraintSet", "Customer", "Depot", "RepairRecord", "Stop", "Territory"]
