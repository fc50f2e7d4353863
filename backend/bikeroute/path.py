from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .graph import EdgeView
from .oracle import RoutingOracle
from .weighting import ScoreFn


@dataclass(frozen=True)
class IlsPath:
    """Fully connected start -> end path handed back to callers.

    ``score`` sums the active score strategy over every traversed edge,
    connecting segments included. ``found`` is False when no scored route was
    produced; ``edges`` then holds the plain shortest path for display.
    """

    start_node: int
    end_node: int
    edges: tuple[EdgeView, ...]
    distance: float
    score: float
    found: bool

    @classmethod
    def from_edges(
        cls,
        *,
        start: int,
        end: int,
        edges: Iterable[EdgeView],
        score_fn: ScoreFn,
        found: bool,
    ) -> "IlsPath":
        edge_tuple = tuple(edges)
        return cls(
            start_node=start,
            end_node=end,
            edges=edge_tuple,
            distance=sum(float(edge.distance_m) for edge in edge_tuple),
            score=sum(score_fn(edge) for edge in edge_tuple),
            found=found,
        )

    @classmethod
    def shortest_fallback(cls, oracle: RoutingOracle, start: int, end: int) -> "IlsPath":
        segment = oracle.shortest_path(start, end)
        return cls.from_edges(
            start=start,
            end=end,
            edges=segment.edges,
            score_fn=oracle.score_of,
            found=False,
        )

    @property
    def edge_ids(self) -> tuple[int, ...]:
        return tuple(edge.edge_id for edge in self.edges)

    @property
    def node_ids(self) -> tuple[int, ...]:
        if not self.edges:
            return (self.start_node,) if self.start_node == self.end_node else ()
        return (self.edges[0].base_node, *(edge.adj_node for edge in self.edges))

    def coordinates(self, coordinate_of: Callable[[int], tuple[float, float]]) -> list[tuple[float, float]]:
        """Path polyline as ``(lon, lat)`` pairs, edge geometry included."""
        if not self.edges:
            return []
        lat, lon = coordinate_of(self.edges[0].base_node)
        out: list[tuple[float, float]] = [(lon, lat)]
        for edge in self.edges:
            out.extend((p_lon, p_lat) for p_lat, p_lon in edge.geometry)
            lat, lon = coordinate_of(edge.adj_node)
            out.append((lon, lat))
        return out
