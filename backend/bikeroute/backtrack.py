from __future__ import annotations

import random
import time

from .arc import Arc
from .errors import IlsError
from .iteration import Iteration, IterationTracker
from .logging_utils import log_debug, log_event
from .oracle import RoutingOracle
from .params import IlsParams
from .path import IlsPath


class EdgeRoute:
    """Flat route: consecutive arcs with running cost/score and a used-edge set.

    The edge set also carries blacklisted ids, which block a search from
    reusing them without adding to cost or score.
    """

    def __init__(self) -> None:
        self._arcs: list[Arc] = []
        self._edge_ids: set[int] = set()
        self.cost = 0.0
        self.score = 0.0

    def __len__(self) -> int:
        return len(self._arcs)

    @property
    def arcs(self) -> tuple[Arc, ...]:
        return tuple(self._arcs)

    def add_edge(self, arc: Arc) -> None:
        self._arcs.append(arc)
        self._edge_ids.add(arc.edge_id)
        self.cost += arc.cost
        self.score += arc.score

    def remove_edge(self, edge_id: int) -> None:
        for index in range(len(self._arcs) - 1, -1, -1):
            if self._arcs[index].edge_id == edge_id:
                self.remove_index(index)
                return

    def remove_index(self, index: int) -> Arc:
        arc = self._arcs.pop(index)
        self._edge_ids.discard(arc.edge_id)
        self.cost -= arc.cost
        self.score -= arc.score
        return arc

    def clear(self) -> None:
        self._arcs.clear()
        self._edge_ids.clear()
        self.cost = 0.0
        self.score = 0.0

    def copy(self) -> "EdgeRoute":
        other = EdgeRoute()
        other._arcs = list(self._arcs)
        other._edge_ids = set(self._edge_ids)
        other.cost = self.cost
        other.score = self.score
        return other

    def contains_edge(self, edge_id: int) -> bool:
        return edge_id in self._edge_ids

    def insert_route(self, other: "EdgeRoute", index: int) -> None:
        self._arcs[index:index] = other._arcs
        self._edge_ids.update(other._edge_ids)
        self.cost += other.cost
        self.score += other.score

    def blacklist(self, other: "EdgeRoute") -> None:
        self._edge_ids.update(other._edge_ids)

    def to_path(self, oracle: RoutingOracle, start: int, end: int) -> IlsPath:
        if not self._arcs:
            return IlsPath.shortest_fallback(oracle, start, end)
        edges = []
        for arc in self._arcs:
            if arc.edge is None:
                raise IlsError(reason_code="search_failed", message=f"arc {arc.edge_id} has no graph edge")
            edges.append(arc.edge)
        return IlsPath.from_edges(start=start, end=end, edges=edges, score_fn=oracle.score_of, found=True)


class BacktrackIteratedLocalSearch:
    """Iterated local search with a sliding removal window and randomized backtracking repair."""

    name = "ils_backtrack"

    def __init__(self, oracle: RoutingOracle, params: IlsParams) -> None:
        self.oracle = oracle
        self.params = params
        self.seed = params.seed if params.seed is not None else time.time_ns() // 1_000_000
        self.rng = random.Random(self.seed)
        self.tracker = IterationTracker()
        self.expanded_edges = 0
        self._already_run = False
        self._start = 0
        self._end = 0

    def calc_path(self, start: int, end: int) -> IlsPath:
        if self._already_run:
            raise IlsError(
                reason_code="algorithm_already_run",
                message="Create a new search instance for every calc_path call",
            )
        self._already_run = True
        self._start = start
        self._end = end
        self.tracker.start()
        log_event(
            "backtrack_run_started",
            algorithm=self.name,
            start=start,
            end=end,
            max_cost=self.params.max_cost,
            max_depth=self.params.max_depth,
            max_iterations=self.params.max_iterations,
            seed=self.seed,
        )
        solution = self.initialize()
        solution = self.improve(solution)
        path = solution.to_path(self.oracle, start, end)
        log_event(
            "backtrack_run_finished",
            algorithm=self.name,
            seed=self.seed,
            iterations=len(self.tracker),
            expanded_edges=self.expanded_edges,
            route_cost=round(solution.cost, 3),
            route_score=round(solution.score, 6),
            found=path.found,
            elapsed_s=round(self.tracker.elapsed_s(), 4),
        )
        return path

    def iteration_info(self) -> tuple[Iteration, ...]:
        return self.tracker.entries

    def initialize(self) -> EdgeRoute:
        route = EdgeRoute()
        if not self.local_search(
            route,
            self._start,
            self._end,
            self.params.max_cost,
            0.0,
            self.params.max_depth,
            min_cost=self.params.min_cost,
        ):
            route.clear()
        return route

    def improve(self, solution: EdgeRoute) -> EdgeRoute:
        a = r = 1
        for count in range(self.params.max_iterations):
            score = solution.score
            temp = solution.copy()
            size = len(temp)

            if size == 0:
                # Nothing to perturb yet: retry the full start -> end search.
                fresh = EdgeRoute()
                if self.local_search(
                    fresh,
                    self._start,
                    self._end,
                    self.params.max_cost,
                    0.0,
                    self.params.max_depth,
                    min_cost=self.params.min_cost,
                ):
                    solution = fresh
                self.tracker.record(score)
                continue

            if a > size:
                a = r = 1
            r = min(r, size - a + 1)

            # Remove arcs a .. a + r - 1 (1-based)
            min_score = 0.0
            start_node, end_node = self._start, self._end
            for i in range(r):
                arc = temp.remove_index(a - 1)
                min_score += arc.score
                if i == 0:
                    start_node = arc.base_node
                if i == r - 1:
                    end_node = arc.adj_node

            # Don't let the repair traverse roads still in the route
            new_path = EdgeRoute()
            new_path.blacklist(temp)
            found = self.local_search(
                new_path,
                start_node,
                end_node,
                self.params.max_cost - temp.cost,
                min_score,
                self.params.max_depth,
                min_cost=max(0.0, self.params.min_cost - temp.cost),
            )
            log_debug(
                "backtrack_iteration",
                iteration=count + 1,
                window_start=a,
                window_size=r,
                removed_score=min_score,
                found=found,
            )
            if found:
                temp.insert_route(new_path, a - 1)
                solution = temp
                a = r = 1
            else:
                a += 1
                r += 1

            self.tracker.record(score)

        return solution

    def local_search(
        self,
        route: EdgeRoute,
        from_node: int,
        to_node: int,
        budget: float,
        min_score: float,
        max_depth: int,
        *,
        min_cost: float = 0.0,
    ) -> bool:
        """Depth-bounded DFS appending arcs to ``route`` until ``to_node`` is reached.

        Succeeds on reaching ``to_node`` with route cost >= ``min_cost`` and
        score > ``min_score``. Edges are tried in a seeded random order; an
        edge is skipped when even the shortest way on from its far end would
        not fit the remaining budget.
        """
        if max_depth == 0:
            return False

        edges = list(self.oracle.edges_from(from_node))
        self.rng.shuffle(edges)
        for edge in edges:
            if route.contains_edge(edge.edge_id):
                continue

            remaining = budget - edge.distance_m
            if self.oracle.distance(edge.adj_node, to_node) >= remaining:
                continue

            self.expanded_edges += 1
            route.add_edge(Arc.from_edge(edge, self.oracle.score_of(edge)))

            if edge.adj_node == to_node and route.cost >= min_cost and route.score > min_score:
                return True
            if self.local_search(route, edge.adj_node, to_node, remaining, min_score, max_depth - 1, min_cost=min_cost):
                return True

            route.remove_edge(edge.edge_id)

        return False
