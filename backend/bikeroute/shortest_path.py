from __future__ import annotations

import heapq
from collections.abc import Callable, Collection
from dataclasses import dataclass
from math import inf

from .graph import EdgeView


@dataclass(frozen=True)
class SegmentPath:
    """Shortest path between two nodes as an ordered run of directed edges."""

    start: int
    end: int
    edges: tuple[EdgeView, ...]
    distance: float
    found: bool = True

    @property
    def edge_ids(self) -> frozenset[int]:
        return frozenset(edge.edge_id for edge in self.edges)

    @property
    def nodes(self) -> tuple[int, ...]:
        if not self.found:
            return ()
        return (self.start, *(edge.adj_node for edge in self.edges))

    @classmethod
    def not_found(cls, start: int, end: int) -> "SegmentPath":
        return cls(start=start, end=end, edges=(), distance=inf, found=False)


class PathNotFoundError(ValueError):
    pass


def dijkstra_shortest_path(
    *,
    adjacency: dict[int, tuple[EdgeView, ...]],
    start: int,
    goal: int,
    banned_edges: Collection[int] | None = None,
    edge_filter: Callable[[EdgeView], bool] | None = None,
) -> SegmentPath:
    banned_edges = banned_edges or frozenset()
    if start == goal:
        return SegmentPath(start=start, end=goal, edges=(), distance=0.0)
    # Equal costs pop in push order.
    seq = 0
    heap: list[tuple[float, int, int]] = [(0.0, seq, start)]
    best_cost: dict[int, float] = {start: 0.0}
    via_edge: dict[int, EdgeView] = {}
    settled: set[int] = set()
    while heap:
        cost, _, node = heapq.heappop(heap)
        if node in settled:
            continue
        settled.add(node)
        if node == goal:
            return SegmentPath(
                start=start,
                end=goal,
                edges=_unwind(via_edge, start=start, goal=goal),
                distance=cost,
            )
        for edge in adjacency.get(node, ()):
            nxt = edge.adj_node
            if nxt in settled:
                continue
            if edge.edge_id in banned_edges:
                continue
            if edge_filter is not None and not edge_filter(edge):
                continue
            new_cost = cost + max(0.0, float(edge.distance_m))
            prev_best = best_cost.get(nxt)
            if prev_best is not None and new_cost >= prev_best:
                continue
            best_cost[nxt] = new_cost
            via_edge[nxt] = edge
            seq += 1
            heapq.heappush(heap, (new_cost, seq, nxt))
    raise PathNotFoundError("no path")


def _unwind(via_edge: dict[int, EdgeView], *, start: int, goal: int) -> tuple[EdgeView, ...]:
    edges: list[EdgeView] = []
    node = goal
    while node != start:
        edge = via_edge[node]
        edges.append(edge)
        node = edge.base_node
    edges.reverse()
    return tuple(edges)
