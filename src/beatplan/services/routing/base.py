"""Base classes for beat construction strategies."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from ...config import settings
from ...models.constraints import ConstraintSet
from ...models.domain import Beat, Depot, RepairRecord, Territory
from .checkpoint import Checkpoint
from .ledger import AssignmentLedger
from .metrics import recompute_metrics
from .models import BuildResult
from .repair import ensure_coverage, renumber_beats

logger = logging.getLogger(__name__)

Construction = Tuple[List[Beat], List[RepairRecord], dict]


class BeatBuilder(ABC):
    """Contract for beat construction strategies.

    Subclasses implement :meth:`construct`; :meth:`build` wraps it with the
    shared verification pass, metric recomputation and renumbering so every
    strategy returns beats covering the territory exactly once.
    """

    name: str = "base"

    def __init__(self, *, checkpoint: Optional[Checkpoint] = None) -> None:
        self.checkpoint = checkpoint or Checkpoint(time_budget_seconds=settings.builder_time_budget_seconds)

    @abstractmethod
    def construct(
        self,
        *,
        territory: Territory,
        depot: Depot,
        constraints: ConstraintSet,
        ledger: AssignmentLedger,
    ) -> Construction:
        raise NotImplementedError

    def build(self, *, territory: Territory, depot: Depot, constraints: ConstraintSet) -> BuildResult:
        self.checkpoint.start()
        ledger = AssignmentLedger(territory.customer_ids)
        if not territory.customers:
            return BuildResult(territory_id=territory.territory_id, strategy=self.name, beats=[])

        beats, repairs, metadata = self.construct(
            territory=territory, depot=depot, constraints=constraints, ledger=ledger
        )
        renumber_beats(beats)
        repairs.extend(
            ensure_coverage(beats, territory, depot, constraints, ledger)
        )
        for beat in beats:
            recompute_metrics(beat, constraints)
        renumber_beats(beats)

        logger.info(
            "%s built %d beats for territory %s (%d customers, %d repairs)",
            self.name,
            len(beats),
            territory.territory_id,
            territory.size,
            len(repairs),
        )
        return BuildResult(
            territory_id=territory.territory_id,
            strategy=self.name,
            beats=beats,
            repairs=repairs,
            metadata=metadata,
        )
