"""Routing result containers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from ...models.domain import Beat, RepairRecord


@dataclass(slots=True)
class BuildResult:
    territory_id: str
    strategy: str
    beats: List[Beat]
    repairs: List[RepairRecord] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)

    @property
    def customer_count(self) -> int:
        return sum(beat.size for beat in self.beats)
