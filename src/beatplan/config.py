"""Application configuration and settings management."""

from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="BEATPLAN_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Beat Planner API"
    api_prefix: str = "/api"
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Beat constraints
    min_outlets_per_beat: int = Field(default=30, ge=1)
    max_outlets_per_beat: int = Field(default=45, ge=1)
    max_working_time_minutes: float = Field(default=360.0, gt=0.0)
    visit_time_minutes: float = Field(default=6.0, ge=0.0)
    travel_speed_kmh: float = Field(default=30.0, gt=0.0)
    min_isolation_distance_km: float = Field(
        default=0.05,
        ge=0.0,
        description="Minimum distance between stops of different beats in the same territory.",
    )
    max_intra_beat_distance_km: float = Field(
        default=0.2,
        ge=0.0,
        description="Maximum distance between any two stops of the same beat.",
    )
    beats_per_territory: int = Field(default=6, ge=1)
    proximity_radius_km: float = Field(default=0.2, gt=0.0)

    # Territory constraints
    min_outlets_per_territory: int = Field(default=180, ge=1)
    max_outlets_per_territory: int = Field(default=240, ge=1)
    min_rev1_per_territory: float = Field(default=600_000.0, ge=0.0)
    min_rev2_per_territory: float = Field(default=250_000.0, ge=0.0)
    revenue_error_margin: float = Field(default=0.05, ge=0.0, lt=1.0)

    # Simulated annealing
    annealing_initial_temperature: float = Field(default=1000.0, gt=0.0)
    annealing_cooling_rate: float = Field(default=0.98, gt=0.0, lt=1.0)
    annealing_min_temperature: float = Field(default=0.01, gt=0.0)
    annealing_iterations_per_temperature: int = Field(default=100, ge=1)
    annealing_max_iterations: int = Field(default=50_000, ge=1)
    annealing_max_rounds_without_improvement: int = Field(default=20, ge=1)
    annealing_seed: Optional[int] = Field(default=None, description="Seed for reproducible annealing runs.")

    # Isolation repair
    isolation_max_rounds: int = Field(default=50, ge=1)
    isolation_max_moves_per_round: int = Field(default=20, ge=1)

    # Density sub-clustering
    dbscan_eps_km: float = Field(default=0.3, gt=0.0)
    dbscan_min_samples: int = Field(default=4, ge=1)

    # Enhanced nearest neighbour
    mode_distance_bin_km: float = Field(default=0.1, gt=0.0)
    mode_distance_floor_km: float = Field(default=1.0, ge=0.0)
    mode_distance_default_km: float = Field(default=2.0, gt=0.0)
    hull_area_small_beat_km2: float = Field(default=2.5, gt=0.0)
    hull_area_large_beat_km2: float = Field(default=3.0, gt=0.0)
    hull_area_stop_threshold: int = Field(default=35, ge=1)
    sub_cluster_transition_penalty: float = Field(default=1000.0, ge=0.0)

    # Sequencing and scheduling
    two_opt_max_iterations: int = Field(default=20, ge=0)
    cooperative_yield_every: int = Field(default=20, ge=1)
    builder_time_budget_seconds: Optional[float] = Field(
        default=None,
        gt=0.0,
        description="Wall-clock budget per territory build; exceeding it falls back to nearest-neighbour.",
    )

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
