from __future__ import annotations

from collections.abc import Callable

from .graph import EdgeView

ScoreFn = Callable[[EdgeView], float]


def raw_priority_score() -> ScoreFn:
    """Score an edge by its bike priority as stored in the graph."""

    def _score(edge: EdgeView) -> float:
        return float(edge.priority)

    return _score


def thresholded_priority_score(cutoff: float) -> ScoreFn:
    """Score 1 for edges whose priority is above ``cutoff``, else 0."""

    def _score(edge: EdgeView) -> float:
        return 1.0 if float(edge.priority) > cutoff else 0.0

    return _score


def length_scaled_priority_score() -> ScoreFn:
    """Score an edge by priority times length so long good roads dominate."""

    def _score(edge: EdgeView) -> float:
        return float(edge.distance_m) * float(edge.priority)

    return _score


def score_fn_for(*, mode: str, score_cutoff: float, use_scaled_scores: bool) -> ScoreFn:
    # The scaled strategy wins over the thresholded one when both are requested.
    if use_scaled_scores:
        return length_scaled_priority_score()
    if mode == "normalized_scores":
        return thresholded_priority_score(score_cutoff)
    return raw_priority_score()
