from __future__ import annotations

from typing import Protocol

from .backtrack import BacktrackIteratedLocalSearch
from .errors import IlsError
from .graph import BikeGraph
from .ils_cas import CasIteratedLocalSearch
from .iteration import Iteration
from .oracle import GraphOracle, RoutingOracle
from .params import IlsParams
from .path import IlsPath
from .weighting import score_fn_for


class IlsAlgorithm(Protocol):
    name: str
    seed: int

    def calc_path(self, start: int, end: int) -> IlsPath: ...

    def iteration_info(self) -> tuple[Iteration, ...]: ...


def oracle_for_params(graph: BikeGraph, params: IlsParams) -> GraphOracle:
    """Graph oracle scoring edges with the strategy the run parameters select."""
    return GraphOracle(
        graph,
        score_fn=score_fn_for(
            mode=params.mode,
            score_cutoff=params.score_cutoff,
            use_scaled_scores=params.use_scaled_scores,
        ),
    )


def create_algorithm(name: str, oracle: RoutingOracle, params: IlsParams) -> IlsAlgorithm:
    key = str(name or "").strip().lower()
    if key == "ils_cas":
        return CasIteratedLocalSearch(oracle, params)
    if key == "ils_backtrack":
        return BacktrackIteratedLocalSearch(oracle, params)
    raise IlsError(
        reason_code="invalid_algorithm",
        message=f"Unknown algorithm '{name}'",
        details={"known": ["ils_backtrack", "ils_cas"]},
    )
