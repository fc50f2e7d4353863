from __future__ import annotations

from collections.abc import Collection, Iterator
from typing import Protocol

from .graph import BikeGraph, EdgeFilter, EdgeView, bike_edge_filter
from .shortest_path import PathNotFoundError, SegmentPath, dijkstra_shortest_path
from .weighting import ScoreFn, raw_priority_score


class ArcLike(Protocol):
    base_node: int
    adj_node: int
    cost: float


class RoutingOracle(Protocol):
    """What the searches need from the host graph."""

    def shortest_path(
        self,
        from_node: int,
        to_node: int,
        forbidden_edges: Collection[int] | None = None,
    ) -> SegmentPath: ...

    def distance(self, from_node: int, to_node: int) -> float: ...

    def path_cost(self, start: int, end: int, arc: ArcLike) -> float: ...

    def edges_from(self, node: int) -> Iterator[EdgeView]: ...

    def coordinate_of(self, node: int) -> tuple[float, float]: ...

    def score_of(self, edge: EdgeView) -> float: ...


class GraphOracle:
    """Routing oracle backed by an in-memory :class:`BikeGraph`.

    Unrestricted shortest paths are memoized; queries with forbidden edges are
    always recomputed. ``query_count`` counts every request, cached or not.
    """

    def __init__(
        self,
        graph: BikeGraph,
        *,
        score_fn: ScoreFn | None = None,
        edge_filter: EdgeFilter = bike_edge_filter,
    ) -> None:
        self.graph = graph
        self.score_fn = score_fn or raw_priority_score()
        self.edge_filter = edge_filter
        self.query_count = 0
        self._cache: dict[tuple[int, int], SegmentPath] = {}

    def shortest_path(
        self,
        from_node: int,
        to_node: int,
        forbidden_edges: Collection[int] | None = None,
    ) -> SegmentPath:
        self.query_count += 1
        if not forbidden_edges:
            key = (from_node, to_node)
            cached = self._cache.get(key)
            if cached is None:
                cached = self._search(from_node, to_node, None)
                self._cache[key] = cached
            return cached
        return self._search(from_node, to_node, forbidden_edges)

    def _search(
        self,
        from_node: int,
        to_node: int,
        forbidden_edges: Collection[int] | None,
    ) -> SegmentPath:
        try:
            return dijkstra_shortest_path(
                adjacency=self.graph.adjacency,
                start=from_node,
                goal=to_node,
                banned_edges=forbidden_edges,
                edge_filter=self.edge_filter,
            )
        except PathNotFoundError:
            return SegmentPath.not_found(from_node, to_node)

    def distance(self, from_node: int, to_node: int) -> float:
        return self.shortest_path(from_node, to_node).distance

    def path_cost(self, start: int, end: int, arc: ArcLike) -> float:
        """Cost of start --> arc --> end where --> is a shortest path."""
        return self.distance(start, arc.base_node) + arc.cost + self.distance(arc.adj_node, end)

    def edges_from(self, node: int) -> Iterator[EdgeView]:
        for edge in self.graph.edges_from(node):
            if self.edge_filter(edge):
                yield edge

    def coordinate_of(self, node: int) -> tuple[float, float]:
        return self.graph.coordinate_of(node)

    def score_of(self, edge: EdgeView) -> float:
        return self.score_fn(edge)
