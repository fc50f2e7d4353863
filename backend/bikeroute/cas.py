from __future__ import annotations

import math
from collections import deque

from .arc import Arc
from .geometry import Ellipse
from .logging_utils import log_debug
from .oracle import RoutingOracle


class CandidateArcEngine:
    """Computes and maintains candidate arc sets (CAS).

    The CAS of an arc holds every graph arc that could take its place between
    ``start`` and ``end`` within a cost budget: it lies in the budget ellipse
    around both nodes, passes the minimum score and length thresholds, and the
    shortest path through it fits the budget.
    """

    def __init__(
        self,
        oracle: RoutingOracle,
        *,
        min_road_score: float,
        min_road_length: float,
    ) -> None:
        self.oracle = oracle
        self.min_road_score = float(min_road_score)
        self.min_road_length = float(min_road_length)
        self.cas_computations = 0
        self.graph_scans = 0

    def ellipse(self, start: int, end: int, budget: float) -> Ellipse:
        return Ellipse(self.oracle.coordinate_of(start), self.oracle.coordinate_of(end), budget)

    def discover_arcs(self, ellipse: Ellipse, start_node: int) -> list[Arc]:
        """Breadth-first scan from ``start_node`` collecting every edge inside ``ellipse``.

        Only nodes inside the ellipse are expanded, and each edge id is kept
        once in the direction it was first reached.
        """
        self.graph_scans += 1
        arcs: list[Arc] = []
        edge_ids: set[int] = set()
        visited: set[int] = {start_node}
        queue: deque[int] = deque([start_node])
        while queue:
            node = queue.popleft()
            lat, lon = self.oracle.coordinate_of(node)
            if not ellipse.contains(lat, lon):
                continue
            for edge in self.oracle.edges_from(node):
                adj_lat, adj_lon = self.oracle.coordinate_of(edge.adj_node)
                if not ellipse.contains(adj_lat, adj_lon):
                    continue
                if edge.edge_id not in edge_ids:
                    edge_ids.add(edge.edge_id)
                    arcs.append(Arc.from_edge(edge, self.oracle.score_of(edge)))
                if edge.adj_node not in visited:
                    visited.add(edge.adj_node)
                    queue.append(edge.adj_node)
        log_debug("cas_arcs_discovered", start_node=start_node, arcs=len(arcs))
        return arcs

    def _arc_inside(self, ellipse: Ellipse, arc: Arc) -> bool:
        points = (
            self.oracle.coordinate_of(arc.base_node),
            *arc.geometry,
            self.oracle.coordinate_of(arc.adj_node),
        )
        return ellipse.contains_all(points)

    def quality_ratio(self, arc: Arc, start: int, end: int) -> float:
        """Score per meter of the shortest path start -> arc -> end."""
        head = self.oracle.shortest_path(start, arc.base_node)
        tail = self.oracle.shortest_path(arc.adj_node, end)
        score = arc.score
        score += sum(self.oracle.score_of(edge) for edge in head.edges)
        score += sum(self.oracle.score_of(edge) for edge in tail.edges)
        length = head.distance + arc.cost + tail.distance
        if length <= 0.0 or not math.isfinite(length):
            return 0.0
        value = score / length
        return 0.0 if math.isnan(value) else value

    def compute_cas(
        self,
        arc: Arc,
        pool: list[Arc] | None,
        start: int,
        end: int,
        budget: float,
    ) -> list[Arc]:
        self.cas_computations += 1
        ellipse = self.ellipse(start, end, budget)

        # Without a pool to inherit, scan the graph for every arc in the ellipse.
        if pool is None:
            pool = self.discover_arcs(ellipse, start)

        result: list[Arc] = []
        for candidate in pool:
            if candidate.score <= self.min_road_score or candidate.cost <= self.min_road_length:
                continue
            if not self._arc_inside(ellipse, candidate):
                continue
            if self.oracle.path_cost(start, end, candidate) <= budget:
                result.append(candidate.candidate_copy(quality_ratio=self.quality_ratio(candidate, start, end)))

        log_debug(
            "cas_computed",
            edge_id=arc.edge_id,
            pool=len(pool),
            cas=len(result),
            budget=budget,
        )
        arc.set_cas(result)
        return result

    def update_cas(
        self,
        arc: Arc,
        prior_cas: list[Arc],
        start: int,
        end: int,
        new_budget: float,
        old_budget: float,
    ) -> list[Arc]:
        """Adjust a CAS to a budget change without rescanning when the budget shrank."""
        if new_budget < old_budget:
            kept = [
                candidate
                for candidate in prior_cas
                if self.oracle.path_cost(start, end, candidate) <= new_budget
            ]
            arc.set_cas(kept)
            return kept
        if new_budget > old_budget:
            return self.compute_cas(arc, None, start, end, new_budget)
        return arc.cas

    @staticmethod
    def candidates_by_quality_ratio(cas: list[Arc]) -> list[Arc]:
        """Arcs whose quality ratio is at least the CAS average."""
        if not cas:
            return []
        mean = math.fsum(candidate.quality_ratio for candidate in cas) / len(cas)
        return [candidate for candidate in cas if candidate.quality_ratio >= mean] or list(cas)
