from __future__ import annotations

import random
import time

from .arc import Arc
from .cas import CandidateArcEngine
from .errors import IlsError
from .iteration import Iteration, IterationTracker
from .logging_utils import log_debug, log_event
from .oracle import RoutingOracle
from .params import IlsParams
from .path import IlsPath
from .route import Route


class CasIteratedLocalSearch:
    """Iterated local search over candidate arc sets.

    Each iteration removes one arc picked among those with above-average
    improve potential and tries to rebuild the gap from the removed arc's CAS
    with a higher score. Successful repairs are spliced in and the CAS of
    every arc is refreshed for its new budget.
    """

    name = "ils_cas"

    def __init__(self, oracle: RoutingOracle, params: IlsParams) -> None:
        self.oracle = oracle
        self.params = params
        self.seed = params.seed if params.seed is not None else time.time_ns() // 1_000_000
        self.rng = random.Random(self.seed)
        self.engine = CandidateArcEngine(
            oracle,
            min_road_score=params.min_road_score,
            min_road_length=params.min_road_length,
        )
        self.tracker = IterationTracker()
        self._already_run = False

    def calc_path(self, start: int, end: int) -> IlsPath:
        if self._already_run:
            raise IlsError(
                reason_code="algorithm_already_run",
                message="Create a new search instance for every calc_path call",
            )
        self._already_run = True
        self.tracker.start()
        max_cost = self.params.max_cost

        direct = self.oracle.shortest_path(start, end)
        if not direct.found or direct.distance > max_cost:
            log_event(
                "ils_run_shortcut_infeasible",
                algorithm=self.name,
                start=start,
                end=end,
                max_cost=max_cost,
                direct_distance=direct.distance if direct.found else None,
            )
            return IlsPath.shortest_fallback(self.oracle, start, end)

        log_event(
            "ils_run_started",
            algorithm=self.name,
            start=start,
            end=end,
            max_cost=max_cost,
            max_iterations=self.params.max_iterations,
            seed=self.seed,
            mode=self.params.mode,
        )
        solution = self._initialize(start, end)
        improvements = 0
        for iteration in range(1, self.params.max_iterations + 1):
            score = solution.score
            if self._iterate(solution, iteration):
                improvements += 1
            self.tracker.record(score)

        path = solution.to_path()
        log_event(
            "ils_run_finished",
            algorithm=self.name,
            seed=self.seed,
            iterations=len(self.tracker),
            improvements=improvements,
            cas_computations=self.engine.cas_computations,
            graph_scans=self.engine.graph_scans,
            route_cost=round(solution.cost, 3),
            route_score=round(solution.score, 6),
            path_score=round(path.score, 6),
            found=path.found,
            elapsed_s=round(self.tracker.elapsed_s(), 4),
        )
        return path

    def iteration_info(self) -> tuple[Iteration, ...]:
        return self.tracker.entries

    def _initialize(self, start: int, end: int) -> Route:
        """Route holding one fake arc over the whole budget, with its CAS computed."""
        route = Route(self.oracle, start=start, end=end, max_cost=self.params.max_cost)
        fake = Arc.fake(start, end, self.params.max_cost)
        self.engine.compute_cas(fake, None, start, end, self.params.max_cost)
        route.add_arc(0, fake)
        return route

    def _scaled_budget(self, budget: float, iteration: int) -> float:
        mode = self.params.mode
        percentage = self.params.budget_percentage
        if mode == "fixed_percentage_budget":
            return budget * percentage
        if mode == "incremental_budget":
            progress = (iteration - 1) / max(1, self.params.max_iterations - 1)
            return budget * (percentage + (1.0 - percentage) * progress)
        return budget

    def _iterate(self, solution: Route, iteration: int) -> bool:
        removal_pool = solution.candidate_arcs_by_improve_potential()
        if not removal_pool:
            return False
        removed = removal_pool[self.rng.randrange(len(removal_pool))]
        inherited = removed.cas

        gap_start = solution.prev_node(removed)
        gap_end = solution.next_node(removed)
        budget = self._scaled_budget(solution.remaining_budget + removed.cost, iteration)
        replacement = self.generate_path(
            gap_start,
            gap_end,
            budget,
            removed.score,
            inherited,
            blacklist=solution.blacklist_around(removed),
        )
        log_debug(
            "ils_iteration",
            iteration=iteration,
            removal_pool=len(removal_pool),
            removed_edge=removed.edge_id,
            budget=budget,
            replacement_arcs=len(replacement),
            replacement_score=replacement.score,
        )
        if replacement.is_empty():
            return False

        old_budgets = {arc.key: solution.remaining_budget + arc.cost for arc in solution}
        index = solution.remove_arc(removed)
        solution.insert_route(index, replacement)

        inserted = set(replacement.arcs)
        for arc in solution:
            new_budget = solution.remaining_budget + arc.cost
            cas_start = solution.prev_node(arc)
            cas_end = solution.next_node(arc)
            if arc in inserted or arc.adj_node == gap_start or arc.base_node == gap_end:
                self.engine.compute_cas(arc, inherited, cas_start, cas_end, new_budget)
            else:
                self.engine.update_cas(arc, arc.cas, cas_start, cas_end, new_budget, old_budgets[arc.key])
        return True

    def generate_path(
        self,
        start: int,
        end: int,
        budget: float,
        min_score: float,
        pool: list[Arc],
        *,
        blacklist: frozenset[int] = frozenset(),
    ) -> Route:
        """Randomly fill a fresh start -> end route from the best-ratio candidates.

        Returns an empty route unless the result scores strictly above ``min_score``.
        """
        route = Route(self.oracle, start=start, end=end, max_cost=budget, base_blacklist=blacklist)
        candidates = self.engine.candidates_by_quality_ratio(pool)
        while candidates and route.cost < budget:
            candidate = candidates.pop(self.rng.randrange(len(candidates)))
            route.insert_arc_at_min_path_segment(candidate.candidate_copy(quality_ratio=candidate.quality_ratio))

        if route.score > min_score:
            return route
        return Route(self.oracle, start=start, end=end, max_cost=budget)
