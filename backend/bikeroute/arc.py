from __future__ import annotations

from dataclasses import dataclass, field, replace

from .graph import EdgeView

FAKE_ARC_ID = -1


@dataclass(eq=False)
class Arc:
    """A directed edge considered as an "attractive arc" of a route.

    Two arcs are the same entity when ``(edge_id, base_node, adj_node)``
    match; the cached metrics and the candidate arc set do not take part in
    equality. The candidate arc set holds independent copies, so arcs never
    reference each other.
    """

    edge_id: int
    base_node: int
    adj_node: int
    cost: float
    score: float
    geometry: tuple[tuple[float, float], ...] = ()
    quality_ratio: float = -1.0
    improve_potential: float = -1.0
    cas: list["Arc"] = field(default_factory=list, repr=False)
    edge: EdgeView | None = field(default=None, repr=False)

    @classmethod
    def from_edge(cls, edge: EdgeView, score: float) -> "Arc":
        return cls(
            edge_id=edge.edge_id,
            base_node=edge.base_node,
            adj_node=edge.adj_node,
            cost=float(edge.distance_m),
            score=float(score),
            geometry=edge.geometry,
            edge=edge,
        )

    @classmethod
    def fake(cls, start: int, end: int, cost: float) -> "Arc":
        """Placeholder spanning start -> end that stands for "no arc chosen yet"."""
        return cls(edge_id=FAKE_ARC_ID, base_node=start, adj_node=end, cost=float(cost), score=0.0)

    @property
    def key(self) -> tuple[int, int, int]:
        return (self.edge_id, self.base_node, self.adj_node)

    @property
    def is_fake(self) -> bool:
        return self.edge_id == FAKE_ARC_ID

    def candidate_copy(self, *, quality_ratio: float) -> "Arc":
        return replace(self, quality_ratio=quality_ratio, improve_potential=-1.0, cas=[])

    def set_cas(self, cas: list["Arc"]) -> None:
        self.cas = list(cas)

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Arc):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        return f"Arc{{edgeId={self.edge_id}}}"
