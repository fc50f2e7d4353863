from __future__ import annotations

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ALGORITHM_NAMES: frozenset[str] = frozenset({"ils_cas", "ils_backtrack"})
MODE_NAMES: frozenset[str] = frozenset(
    {"normal", "fixed_percentage_budget", "incremental_budget", "normalized_scores"}
)


def _default_out_dir() -> str:
    # Keep run artifacts in backend/out by default to avoid polluting source assets.
    return str(Path(__file__).resolve().parents[1] / "out")


def _default_graph_asset_path() -> str:
    return str(Path(_default_out_dir()) / "graph" / "bike_graph.json")


class Settings(BaseSettings):
    """Validated settings (env-driven), keeping search parameters out of code."""

    model_config = SettingsConfigDict(
        # Support both "repo root/.env" and "backend/.env" (local dev)
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    out_dir: str = Field(default_factory=_default_out_dir, alias="OUT_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    graph_asset_path: str = Field(default_factory=_default_graph_asset_path, alias="GRAPH_ASSET_PATH")
    graph_max_nearest_node_distance_m: float = Field(
        default=2_000.0,
        gt=0.0,
        alias="GRAPH_MAX_NEAREST_NODE_DISTANCE_M",
    )

    ils_algorithm: str = Field(default="ils_cas", alias="ILS_ALGORITHM")
    # Budget and floor are route lengths in meters.
    ils_max_cost: float = Field(default=15_000.0, gt=0.0, alias="ILS_MAX_COST")
    ils_min_cost: float = Field(default=0.0, ge=0.0, alias="ILS_MIN_COST")
    ils_max_iterations: int = Field(default=100, ge=0, le=1_000_000, alias="ILS_MAX_ITERATIONS")
    ils_min_road_score: float = Field(default=0.5, ge=0.0, alias="ILS_MIN_ROAD_SCORE")
    ils_min_road_length: float = Field(default=10.0, ge=0.0, alias="ILS_MIN_ROAD_LENGTH")
    ils_max_depth: int = Field(default=10, ge=1, le=500, alias="ILS_MAX_DEPTH")
    ils_seed: int | None = Field(default=None, alias="ILS_SEED")

    # Experiment toggles for the CAS search budget/scoring variants.
    ils_mode: str = Field(default="normal", alias="ILS_MODE")
    ils_budget_percentage: float = Field(default=0.9, gt=0.0, le=1.0, alias="ILS_BUDGET_PERCENTAGE")
    ils_score_cutoff: float = Field(default=0.5, ge=0.0, alias="ILS_SCORE_CUTOFF")
    ils_use_scaled_scores: bool = Field(default=False, alias="ILS_USE_SCALED_SCORES")

    @model_validator(mode="after")
    def _normalize_names(self) -> "Settings":
        algorithm = str(self.ils_algorithm or "ils_cas").strip().lower()
        if algorithm not in ALGORITHM_NAMES:
            algorithm = "ils_cas"
        self.ils_algorithm = algorithm
        mode = str(self.ils_mode or "normal").strip().lower()
        if mode not in MODE_NAMES:
            mode = "normal"
        self.ils_mode = mode
        if self.ils_min_cost > self.ils_max_cost:
            self.ils_min_cost = 0.0
        return self


settings = Settings()
