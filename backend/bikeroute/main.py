from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from .algorithms import create_algorithm, oracle_for_params
from .errors import IlsError, normalize_reason_code
from .graph import BikeGraph, graph_summary, load_configured_graph, nearest_node
from .logging_utils import log_event
from .models import (
    GeoJSONLineString,
    GraphStatusResponse,
    IterationOut,
    LatLng,
    RouteMetrics,
    RouteRequest,
    RouteResponse,
)
from .params import IlsParams
from .run_store import write_run_manifest
from .settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.graph = load_configured_graph()
    yield
    app.state.graph = None


app = FastAPI(title="Bike Route Orienteering (ILS)", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def bike_graph(request: Request) -> BikeGraph:
    graph: BikeGraph | None = getattr(request.app.state, "graph", None)
    if graph is None:
        raise HTTPException(
            status_code=503,
            detail={"reason_code": "graph_unavailable", "message": "Bike graph not loaded"},
        )
    return graph


GraphDep = Annotated[BikeGraph, Depends(bike_graph)]


def _error_detail(err: IlsError) -> dict[str, object]:
    return {"reason_code": normalize_reason_code(err.reason_code), "message": err.message}


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "Backend is running. Visit /docs for the API UI.", "docs": "/docs"}


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/graph/status", response_model=GraphStatusResponse)
async def graph_status(request: Request) -> GraphStatusResponse:
    graph: BikeGraph | None = getattr(request.app.state, "graph", None)
    if graph is None:
        return GraphStatusResponse(loaded=False, asset_path=settings.graph_asset_path)
    return GraphStatusResponse(loaded=True, asset_path=settings.graph_asset_path, **graph_summary(graph))


def _snap(graph: BikeGraph, point: LatLng, *, role: str) -> int:
    node, distance_m = nearest_node(
        graph,
        lat=point.lat,
        lon=point.lon,
        max_distance_m=settings.graph_max_nearest_node_distance_m,
    )
    if node is None:
        raise HTTPException(
            status_code=422,
            detail={
                "reason_code": "node_not_found",
                "message": f"No graph node within {settings.graph_max_nearest_node_distance_m:.0f} m of the {role}",
            },
        )
    return node


@app.post("/route", response_model=RouteResponse)
async def compute_route(req: RouteRequest, graph: GraphDep) -> RouteResponse:
    request_id = str(uuid.uuid4())
    t0 = time.perf_counter()

    try:
        params = IlsParams.from_settings(
            max_cost=req.max_cost,
            min_cost=req.min_cost,
            max_iterations=req.max_iterations,
            min_road_score=req.min_road_score,
            min_road_length=req.min_road_length,
            max_depth=req.max_depth,
            seed=req.seed,
            mode=req.mode,
            budget_percentage=req.budget_percentage,
            score_cutoff=req.score_cutoff,
            use_scaled_scores=req.use_scaled_scores,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    start = _snap(graph, req.origin, role="origin")
    end = _snap(graph, req.destination, role="destination") if req.destination is not None else start

    algorithm_name = req.algorithm or settings.ils_algorithm
    oracle = oracle_for_params(graph, params)
    try:
        algorithm = create_algorithm(algorithm_name, oracle, params)
        path = await asyncio.to_thread(algorithm.calc_path, start, end)
    except IlsError as e:
        status = 422 if e.reason_code == "invalid_algorithm" else 500
        raise HTTPException(status_code=status, detail=_error_detail(e)) from e

    iterations = [
        IterationOut(iteration=idx, score=entry.score, time_s=entry.elapsed_s)
        for idx, entry in enumerate(algorithm.iteration_info(), start=1)
    ]
    response = RouteResponse(
        algorithm=algorithm.name,
        seed=algorithm.seed,
        found=path.found,
        start_node=start,
        end_node=end,
        geometry=GeoJSONLineString(coordinates=path.coordinates(graph.coordinate_of)),
        metrics=RouteMetrics(distance_m=path.distance, score=path.score, edge_count=len(path.edges)),
        edge_ids=list(path.edge_ids),
        iterations=iterations,
    )

    manifest_path = write_run_manifest(
        request_id,
        {
            "type": "route",
            "algorithm": algorithm.name,
            "params": params.model_dump(),
            "seed": algorithm.seed,
            "start_node": start,
            "end_node": end,
            "found": path.found,
            "distance_m": path.distance,
            "score": path.score,
            "oracle_queries": oracle.query_count,
        },
    )

    log_event(
        "route_request",
        request_id=request_id,
        algorithm=algorithm.name,
        seed=algorithm.seed,
        origin=req.origin.model_dump(),
        destination=req.destination.model_dump() if req.destination is not None else None,
        start_node=start,
        end_node=end,
        found=path.found,
        distance_m=round(path.distance, 2),
        score=round(path.score, 6),
        iterations=len(iterations),
        manifest=str(manifest_path),
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
    )
    return response
