from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from .settings import settings

IlsMode = Literal["normal", "fixed_percentage_budget", "incremental_budget", "normalized_scores"]
AlgorithmName = Literal["ils_cas", "ils_backtrack"]


class IlsParams(BaseModel):
    """Parameters of one search run."""

    max_cost: float = Field(..., gt=0.0)
    min_cost: float = Field(default=0.0, ge=0.0)
    max_iterations: int = Field(default=100, ge=0)
    min_road_score: float = Field(default=0.5, ge=0.0)
    min_road_length: float = Field(default=10.0, ge=0.0)
    max_depth: int = Field(default=10, ge=1)
    seed: int | None = None
    mode: IlsMode = "normal"
    budget_percentage: float = Field(default=0.9, gt=0.0, le=1.0)
    score_cutoff: float = Field(default=0.5, ge=0.0)
    use_scaled_scores: bool = False

    @model_validator(mode="after")
    def _min_cost_within_budget(self) -> "IlsParams":
        if self.min_cost > self.max_cost:
            raise ValueError("min_cost must not exceed max_cost")
        return self

    @classmethod
    def from_settings(cls, **overrides: Any) -> "IlsParams":
        values: dict[str, Any] = {
            "max_cost": settings.ils_max_cost,
            "min_cost": settings.ils_min_cost,
            "max_iterations": settings.ils_max_iterations,
            "min_road_score": settings.ils_min_road_score,
            "min_road_length": settings.ils_min_road_length,
            "max_depth": settings.ils_max_depth,
            "seed": settings.ils_seed,
            "mode": settings.ils_mode,
            "budget_percentage": settings.ils_budget_percentage,
            "score_cutoff": settings.ils_score_cutoff,
            "use_scaled_scores": settings.ils_use_scaled_scores,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
