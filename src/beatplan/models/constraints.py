"""Constraint set shared by the partitioner, the beat builders and the validator."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any

from ..config import settings


@dataclass(slots=True)
class ConstraintSet:
    min_outlets_per_beat: int = field(default_factory=lambda: settings.min_outlets_per_beat)
    max_outlets_per_beat: int = field(default_factory=lambda: settings.max_outlets_per_beat)
    max_working_time_minutes: float = field(default_factory=lambda: settings.max_working_time_minutes)
    visit_time_minutes: float = field(default_factory=lambda: settings.visit_time_minutes)
    travel_speed_kmh: float = field(default_factory=lambda: settings.travel_speed_kmh)
    min_isolation_distance_km: float = field(default_factory=lambda: settings.min_isolation_distance_km)
    max_intra_beat_distance_km: float = field(default_factory=lambda: settings.max_intra_beat_distance_km)
    min_outlets_per_territory: int = field(default_factory=lambda: settings.min_outlets_per_territory)
    max_outlets_per_territory: int = field(default_factory=lambda: settings.max_outlets_per_territory)
    min_rev1_per_territory: float = field(default_factory=lambda: settings.min_rev1_per_territory)
    min_rev2_per_territory: float = field(default_factory=lambda: settings.min_rev2_per_territory)
    revenue_error_margin: float = field(default_factory=lambda: settings.revenue_error_margin)
    beats_per_territory: int = field(default_factory=lambda: settings.beats_per_territory)
    proximity_radius_km: float = field(default_factory=lambda: settings.proximity_radius_km)

    def __post_init__(self) -> None:
        if self.min_outlets_per_beat < 1:
            raise ValueError("min_outlets_per_beat must be >= 1")
        if self.max_outlets_per_beat < self.min_outlets_per_beat:
            raise ValueError("max_outlets_per_beat must be >= min_outlets_per_beat")
        if self.min_outlets_per_territory < 1:
            raise ValueError("min_outlets_per_territory must be >= 1")
        if self.max_outlets_per_territory < self.min_outlets_per_territory:
            raise ValueError("max_outlets_per_territory must be >= min_outlets_per_territory")
        if self.max_working_time_minutes <= 0:
            raise ValueError("max_working_time_minutes must be > 0")
        if self.visit_time_minutes < 0:
            raise ValueError("visit_time_minutes must be >= 0")
        if self.travel_speed_kmh <= 0:
            raise ValueError("travel_speed_kmh must be > 0")
        if not 0 <= self.revenue_error_margin < 1:
            raise ValueError("revenue_error_margin must be within [0, 1)")
        if self.beats_per_territory < 1:
            raise ValueError("beats_per_territory must be >= 1")
        if self.proximity_radius_km <= 0:
            raise ValueError("proximity_radius_km must be > 0")

    @property
    def effective_min_rev1(self) -> float:
        return self.min_rev1_per_territory * (1 - self.revenue_error_margin)

    @property
    def effective_min_rev2(self) -> float:
        return self.min_rev2_per_territory * (1 - self.revenue_error_margin)

    def with_overrides(self, **overrides: Any) -> "ConstraintSet":
        """Return a copy with the non-null overrides applied."""

        known = {item.name for item in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown constraint(s): {', '.join(sorted(unknown))}")
        return replace(self, **{key: value for key, value in overrides.items() if value is not None})
