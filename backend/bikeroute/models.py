from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from .params import AlgorithmName, IlsMode


class LatLng(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class GeoJSONLineString(BaseModel):
    type: Literal["LineString"] = "LineString"
    coordinates: list[tuple[float, float]]  # [lon, lat]


class RouteRequest(BaseModel):
    """Round-trip or A -> B request; parameters left unset come from settings."""

    origin: LatLng
    destination: LatLng | None = None
    algorithm: AlgorithmName | None = None
    max_cost: float | None = Field(default=None, gt=0.0)
    min_cost: float | None = Field(default=None, ge=0.0)
    max_iterations: int | None = Field(default=None, ge=0, le=10_000)
    min_road_score: float | None = Field(default=None, ge=0.0)
    min_road_length: float | None = Field(default=None, ge=0.0)
    max_depth: int | None = Field(default=None, ge=1, le=500)
    seed: int | None = None
    mode: IlsMode | None = None
    budget_percentage: float | None = Field(default=None, gt=0.0, le=1.0)
    score_cutoff: float | None = Field(default=None, ge=0.0)
    use_scaled_scores: bool | None = None

    @field_validator("max_cost", "min_cost")
    @classmethod
    def finite(cls, v: float | None) -> float | None:
        if v is not None and (v != v or v in (float("inf"), float("-inf"))):
            raise ValueError("cost must be finite")
        return v

    @model_validator(mode="after")
    def _cost_bounds(self) -> "RouteRequest":
        if self.max_cost is not None and self.min_cost is not None and self.min_cost > self.max_cost:
            raise ValueError("min_cost must not exceed max_cost")
        return self


class IterationOut(BaseModel):
    iteration: int
    score: float
    time_s: float


class RouteMetrics(BaseModel):
    distance_m: float
    score: float
    edge_count: int


class RouteResponse(BaseModel):
    algorithm: AlgorithmName
    seed: int
    found: bool
    start_node: int
    end_node: int
    geometry: GeoJSONLineString
    metrics: RouteMetrics
    edge_ids: list[int]
    iterations: list[IterationOut] = Field(default_factory=list)


class GraphStatusResponse(BaseModel):
    loaded: bool
    asset_path: str
    version: str | None = None
    source: str | None = None
    nodes: int = 0
    edges: int = 0
    bike_edges: int = 0
