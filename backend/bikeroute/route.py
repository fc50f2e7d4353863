from __future__ import annotations

import math
from collections.abc import Iterator

from .arc import Arc
from .errors import ArcNotInRouteError, IlsError, RouteInvariantError
from .oracle import RoutingOracle
from .path import IlsPath
from .shortest_path import SegmentPath


class Route:
    """Start -> end route built from attractive arcs joined by blank segments.

    Layout with n arcs: ``seg[0] arc[0] seg[1] arc[1] ... arc[n-1] seg[n]``,
    where ``seg[i]`` is a shortest path from the end of the previous arc (or
    the route start) to the beginning of the next arc (or the route end).
    An empty route holds no segments and costs nothing.

    No edge is used twice: new segments are routed around every edge already
    held by an arc or another segment, plus ``base_blacklist``.
    """

    def __init__(
        self,
        oracle: RoutingOracle,
        *,
        start: int,
        end: int,
        max_cost: float,
        base_blacklist: frozenset[int] = frozenset(),
    ) -> None:
        self.oracle = oracle
        self.start = start
        self.end = end
        self.max_cost = float(max_cost)
        self.base_blacklist = base_blacklist
        self._arcs: list[Arc] = []
        self._segments: list[SegmentPath] = []
        self.cost = 0.0
        self.score = 0.0

    def __len__(self) -> int:
        return len(self._arcs)

    def __iter__(self) -> Iterator[Arc]:
        return iter(tuple(self._arcs))

    def __contains__(self, arc: object) -> bool:
        return arc in self._arcs

    @property
    def arcs(self) -> tuple[Arc, ...]:
        return tuple(self._arcs)

    @property
    def segments(self) -> tuple[SegmentPath, ...]:
        return tuple(self._segments)

    @property
    def remaining_budget(self) -> float:
        return self.max_cost - self.cost

    def is_empty(self) -> bool:
        return not self._arcs

    def contains(self, arc: Arc) -> bool:
        return arc in self._arcs

    def has_fake_arc(self) -> bool:
        return any(arc.is_fake for arc in self._arcs)

    def index_of(self, arc: Arc) -> int:
        try:
            return self._arcs.index(arc)
        except ValueError:
            raise ArcNotInRouteError(arc.edge_id, details={"route": str(self)}) from None

    def prev_node(self, arc: Arc) -> int:
        index = self.index_of(arc)
        return self._arcs[index - 1].adj_node if index > 0 else self.start

    def next_node(self, arc: Arc) -> int:
        index = self.index_of(arc)
        return self._arcs[index + 1].base_node if index + 1 < len(self._arcs) else self.end

    def edge_ids(
        self,
        *,
        skip_arc: int | None = None,
        skip_segments: tuple[int, ...] = (),
    ) -> set[int]:
        ids: set[int] = set(self.base_blacklist)
        for i, arc in enumerate(self._arcs):
            if i != skip_arc:
                ids.add(arc.edge_id)
        for i, segment in enumerate(self._segments):
            if i not in skip_segments:
                ids.update(segment.edge_ids)
        return ids

    def blacklist_around(self, arc: Arc) -> frozenset[int]:
        """Edges a replacement for ``arc`` must avoid: everything but the arc and its two segments."""
        index = self.index_of(arc)
        return frozenset(self.edge_ids(skip_arc=index, skip_segments=(index, index + 1)))

    def _check_index(self, index: int) -> None:
        length = len(self._arcs)
        if index < 0 or index > length:
            raise IlsError(
                reason_code="route_index_out_of_range",
                message=f"index {index}, length {length}",
            )

    def _gap_nodes(self, index: int) -> tuple[int, int]:
        gap_start = self._arcs[index - 1].adj_node if index > 0 else self.start
        gap_end = self._arcs[index].base_node if index < len(self._arcs) else self.end
        return gap_start, gap_end

    def _plan_segments(self, index: int, arc: Arc) -> tuple[SegmentPath, SegmentPath] | None:
        """Blank segments that would border ``arc`` if inserted at ``index``.

        Returns None when the arc's edge is already used elsewhere in the route.
        """
        gap_start, gap_end = self._gap_nodes(index)
        replaced = (index,) if self._segments else ()
        blacklist = self.edge_ids(skip_segments=replaced)
        if arc.edge_id in blacklist:
            return None
        blacklist.add(arc.edge_id)
        head = self.oracle.shortest_path(gap_start, arc.base_node, blacklist)
        blacklist.update(head.edge_ids)
        tail = self.oracle.shortest_path(arc.adj_node, gap_end, blacklist)
        return head, tail

    def _commit_arc(self, index: int, arc: Arc, head: SegmentPath, tail: SegmentPath) -> None:
        # The single segment spanning the gap is replaced by the two new ones.
        if self._segments:
            removed = self._segments.pop(index)
            self.cost -= removed.distance
        self._segments.insert(index, tail)
        self._segments.insert(index, head)
        self._arcs.insert(index, arc)
        self.cost += head.distance + arc.cost + tail.distance
        self.score += arc.score

    def add_arc(self, index: int, arc: Arc) -> None:
        self._check_index(index)
        planned = self._plan_segments(index, arc)
        if planned is None:
            raise RouteInvariantError(
                f"edge {arc.edge_id} is already part of the route",
                details={"index": index},
            )
        head, tail = planned
        if not head.found or not tail.found:
            raise RouteInvariantError(
                f"no blank segment around arc {arc.edge_id}",
                details={
                    "index": index,
                    "head": (head.start, head.end, head.found),
                    "tail": (tail.start, tail.end, tail.found),
                },
            )
        self._commit_arc(index, arc, head, tail)

    def remove_arc(self, arc: Arc) -> int:
        """Remove ``arc`` and bridge the gap it leaves; returns its former index."""
        index = self.index_of(arc)

        head = self._segments.pop(index)
        tail = self._segments.pop(index)
        self.cost -= head.distance + tail.distance

        # With other arcs left the route must be joined again; an emptied route has no segments.
        if len(self._arcs) > 1:
            gap_start = self._arcs[index - 1].adj_node if index > 0 else self.start
            gap_end = self._arcs[index + 1].base_node if index + 1 < len(self._arcs) else self.end
            blacklist = self.edge_ids(skip_arc=index)
            bridge = self.oracle.shortest_path(gap_start, gap_end, blacklist)
            if not bridge.found:
                raise RouteInvariantError(
                    f"no blank segment bridging {gap_start} -> {gap_end}",
                    details={"index": index, "removed_edge": arc.edge_id},
                )
            self._segments.insert(index, bridge)
            self.cost += bridge.distance

        self._arcs.pop(index)
        self.cost -= arc.cost
        self.score -= arc.score
        return index

    def insert_route(self, index: int, other: "Route") -> None:
        """Splice ``other`` (spanning the gap at ``index``) into this route."""
        self._check_index(index)
        if other.is_empty():
            return
        if self._segments:
            removed = self._segments.pop(index)
            self.cost -= removed.distance
        self._arcs[index:index] = other._arcs
        self._segments[index:index] = other._segments
        self.cost += other.cost
        self.score += other.score

    def insert_arc_at_min_path_segment(self, arc: Arc) -> bool:
        """Greedily insert ``arc`` in place of the shortest blank segment if the budget allows."""
        if self.is_empty():
            index = 0
            limit = self.remaining_budget
        else:
            index = min(range(len(self._segments)), key=lambda i: self._segments[i].distance)
            limit = self.remaining_budget + self._segments[index].distance

        planned = self._plan_segments(index, arc)
        if planned is None:
            return False
        head, tail = planned
        if not head.found or not tail.found:
            return False
        if head.distance + arc.cost + tail.distance > limit:
            return False
        self._commit_arc(index, arc, head, tail)
        return True

    def improve_potential(self, arc: Arc) -> float:
        v1 = self.prev_node(arc)
        v2 = self.next_node(arc)
        own_cost = self.oracle.path_cost(v1, v2, arc)

        gain = 0.0
        max_cost = 0.0
        for candidate in arc.cas:
            gain += candidate.score - arc.score
            max_cost = max(max_cost, self.oracle.path_cost(v1, v2, candidate))

        # No headroom over the arc's own detour leaves nothing to improve.
        headroom = max_cost - own_cost
        if headroom <= 0.0 or math.isnan(headroom):
            return 0.0
        result = gain / headroom
        if math.isnan(result) or result < 0.0:
            return 0.0
        return result

    def candidate_arcs_by_improve_potential(self) -> list[Arc]:
        """Arcs whose improve potential is at least the route average."""
        arcs = list(self._arcs)
        if not arcs:
            return []
        for arc in arcs:
            arc.improve_potential = self.improve_potential(arc)
        mean = math.fsum(arc.improve_potential for arc in arcs) / len(arcs)
        return [arc for arc in arcs if arc.improve_potential >= mean] or arcs

    def to_path(self) -> IlsPath:
        if self.is_empty() or self.has_fake_arc():
            return IlsPath.shortest_fallback(self.oracle, self.start, self.end)
        edges = []
        for i, segment in enumerate(self._segments):
            edges.extend(segment.edges)
            if i < len(self._arcs):
                arc = self._arcs[i]
                if arc.edge is None:
                    raise RouteInvariantError(f"arc {arc.edge_id} has no graph edge")
                edges.append(arc.edge)
        return IlsPath.from_edges(
            start=self.start,
            end=self.end,
            edges=edges,
            score_fn=self.oracle.score_of,
            found=True,
        )

    def __str__(self) -> str:
        parts = [f"[{self.start}] -> "]
        for i, segment in enumerate(self._segments):
            for edge in segment.edges:
                parts.append(f"{edge.edge_id}->")
            if i < len(self._arcs):
                parts.append(f"({self._arcs[i].edge_id})")
            parts.append(" -> ")
        parts.append(f" [{self.end}]")
        return "".join(parts)
