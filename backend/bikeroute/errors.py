from __future__ import annotations

from dataclasses import dataclass
from typing import Any

FROZEN_REASON_CODES: frozenset[str] = frozenset(
    {
        "arc_not_in_route",
        "route_segment_not_found",
        "route_index_out_of_range",
        "algorithm_already_run",
        "invalid_algorithm",
        "graph_unavailable",
        "node_not_found",
        "search_failed",
    }
)


@dataclass
class IlsError(ValueError):
    reason_code: str
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


class ArcNotInRouteError(IlsError):
    def __init__(self, edge_id: int, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            reason_code="arc_not_in_route",
            message=f"Arc {edge_id} is not in route",
            details=details,
        )


class RouteInvariantError(IlsError):
    """A blank segment the route bookkeeping guarantees to exist was not found.

    This aborts the run: it points at broken segment bookkeeping or an
    inconsistent graph, never at a normal search outcome.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(reason_code="route_segment_not_found", message=message, details=details)


def normalize_reason_code(reason_code: str, *, default: str = "search_failed") -> str:
    code = str(reason_code or "").strip()
    if code in FROZEN_REASON_CODES:
        return code
    return default
