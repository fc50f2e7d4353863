from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any

import ijson

from .geometry import haversine_m
from .logging_utils import log_event
from .settings import settings

Point = tuple[float, float]


@dataclass(frozen=True)
class GraphEdge:
    edge_id: int
    u: int
    v: int
    distance_m: float
    priority: float
    oneway: bool = False
    bike: bool = True
    # Intermediate points from u to v; the end nodes are not repeated.
    geometry: tuple[Point, ...] = ()


@dataclass(frozen=True)
class EdgeView:
    """One traversal direction of a :class:`GraphEdge`."""

    edge_id: int
    base_node: int
    adj_node: int
    distance_m: float
    priority: float
    bike: bool
    geometry: tuple[Point, ...]


EdgeFilter = Callable[[EdgeView], bool]


def bike_edge_filter(edge: EdgeView) -> bool:
    return edge.bike


@dataclass(frozen=True)
class BikeGraph:
    version: str
    source: str
    nodes: dict[int, Point]
    edges: dict[int, GraphEdge]
    adjacency: dict[int, tuple[EdgeView, ...]]
    grid_index: dict[tuple[int, int], tuple[int, ...]]

    def coordinate_of(self, node: int) -> Point:
        return self.nodes[node]

    def edges_from(self, node: int) -> tuple[EdgeView, ...]:
        return self.adjacency.get(node, ())


def _grid_key(lat: float, lon: float, bucket_deg: float = 0.05) -> tuple[int, int]:
    return (int(math.floor(lat / bucket_deg)), int(math.floor(lon / bucket_deg)))


def _forward_view(edge: GraphEdge) -> EdgeView:
    return EdgeView(
        edge_id=edge.edge_id,
        base_node=edge.u,
        adj_node=edge.v,
        distance_m=edge.distance_m,
        priority=edge.priority,
        bike=edge.bike,
        geometry=edge.geometry,
    )


def _reverse_view(edge: GraphEdge) -> EdgeView:
    return EdgeView(
        edge_id=edge.edge_id,
        base_node=edge.v,
        adj_node=edge.u,
        distance_m=edge.distance_m,
        priority=edge.priority,
        bike=edge.bike,
        geometry=tuple(reversed(edge.geometry)),
    )


def build_bike_graph(
    nodes: Mapping[int, Point],
    edges: Iterable[GraphEdge],
    *,
    version: str = "memory",
    source: str = "memory",
) -> BikeGraph:
    node_map = {int(node_id): (float(lat), float(lon)) for node_id, (lat, lon) in nodes.items()}
    edge_map: dict[int, GraphEdge] = {}
    adjacency_mut: dict[int, list[EdgeView]] = {}
    for edge in edges:
        if edge.u not in node_map or edge.v not in node_map:
            continue
        if edge.edge_id in edge_map:
            continue
        edge_map[edge.edge_id] = edge
        adjacency_mut.setdefault(edge.u, []).append(_forward_view(edge))
        if not edge.oneway:
            adjacency_mut.setdefault(edge.v, []).append(_reverse_view(edge))

    grid_mut: dict[tuple[int, int], list[int]] = {}
    for node_id, (lat, lon) in node_map.items():
        grid_mut.setdefault(_grid_key(lat, lon), []).append(node_id)

    return BikeGraph(
        version=version,
        source=source,
        nodes=node_map,
        edges=edge_map,
        adjacency={k: tuple(v) for k, v in adjacency_mut.items() if v},
        grid_index={key: tuple(values) for key, values in grid_mut.items()},
    )


def nearest_node(
    graph: BikeGraph,
    *,
    lat: float,
    lon: float,
    max_radius: int = 4,
    max_distance_m: float | None = None,
) -> tuple[int | None, float]:
    """Return the closest node and its distance by scanning grid rings around the point."""
    center_key = _grid_key(lat, lon)
    best_node: int | None = None
    best_dist = float("inf")
    for radius in range(0, max(0, int(max_radius)) + 1):
        for dy in range(-radius, radius + 1):
            for dx in range(-radius, radius + 1):
                if max(abs(dx), abs(dy)) != radius:
                    continue
                for node_id in graph.grid_index.get((center_key[0] + dy, center_key[1] + dx), ()):
                    n_lat, n_lon = graph.nodes[node_id]
                    dist = haversine_m(lat, lon, n_lat, n_lon)
                    if dist < best_dist or (dist == best_dist and best_node is not None and node_id < best_node):
                        best_node = node_id
                        best_dist = dist
    if best_node is None:
        return None, float("inf")
    if max_distance_m is not None and best_dist > max_distance_m:
        return None, best_dist
    return best_node, best_dist


def _parse_number(raw: object) -> float | None:
    if not isinstance(raw, (int, float, str, Decimal)) or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _parse_node(raw: dict[str, object]) -> tuple[int, float, float] | None:
    node_id_raw = raw.get("id")
    if node_id_raw is None:
        return None
    try:
        node_id = int(node_id_raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    lat = _parse_number(raw.get("lat", 0.0))
    lon = _parse_number(raw.get("lon", 0.0))
    if lat is None or lon is None:
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return None
    return (node_id, lat, lon)


def _parse_geometry(raw: object) -> tuple[Point, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    points: list[Point] = []
    for pt in raw:
        if isinstance(pt, (list, tuple)) and len(pt) == 2:
            lat = _parse_number(pt[0])
            lon = _parse_number(pt[1])
            if lat is not None and lon is not None:
                points.append((lat, lon))
    return tuple(points)


def _parse_edge(raw: object, *, fallback_id: int) -> GraphEdge | None:
    if isinstance(raw, dict):
        u = raw.get("u")
        v = raw.get("v")
        if u is None or v is None:
            return None
        edge_id_raw = raw.get("id", fallback_id)
        distance_m = _parse_number(raw.get("distance_m", raw.get("weight", 0.0)))
        priority = _parse_number(raw.get("priority", raw.get("score", 0.0)))
        oneway = bool(raw.get("oneway", False))
        bike = bool(raw.get("bike", True))
        geometry = _parse_geometry(raw.get("geometry"))
    elif isinstance(raw, (list, tuple)) and len(raw) >= 4:
        u, v = raw[0], raw[1]
        edge_id_raw = fallback_id
        distance_m = _parse_number(raw[2])
        priority = _parse_number(raw[3])
        oneway = bool(raw[4]) if len(raw) > 4 else False
        bike = True
        geometry = ()
    else:
        return None
    if distance_m is None or priority is None:
        return None
    try:
        return GraphEdge(
            edge_id=int(edge_id_raw),  # type: ignore[arg-type]
            u=int(u),  # type: ignore[arg-type]
            v=int(v),  # type: ignore[arg-type]
            distance_m=max(0.0, distance_m),
            priority=max(0.0, priority),
            oneway=oneway,
            bike=bike,
            geometry=geometry,
        )
    except (TypeError, ValueError):
        return None


def _graph_meta_from_head(path: Path) -> tuple[str, str]:
    try:
        with path.open("rb") as fh:
            head = fh.read(65_536).decode("utf-8", errors="ignore")
    except OSError:
        return "unknown", str(path)
    version_match = re.search(r'"version"\s*:\s*"([^"]+)"', head)
    source_match = re.search(r'"source"\s*:\s*"([^"]+)"', head)
    version = version_match.group(1) if version_match else "unknown"
    source = source_match.group(1) if source_match else str(path)
    return version, source


def load_bike_graph(path: Path) -> BikeGraph | None:
    """Stream a graph asset from disk; nodes and edges are parsed in two passes."""
    if not path.exists():
        return None
    version, source = _graph_meta_from_head(path)
    nodes: dict[int, Point] = {}
    edges: list[GraphEdge] = []
    nodes_seen = 0
    edges_seen = 0
    try:
        with path.open("rb") as fh:
            for raw_node in ijson.items(fh, "nodes.item"):
                nodes_seen += 1
                parsed = _parse_node(raw_node)
                if parsed is not None:
                    node_id, lat, lon = parsed
                    nodes[node_id] = (lat, lon)
        with path.open("rb") as fh:
            for raw_edge in ijson.items(fh, "edges.item"):
                parsed_edge = _parse_edge(raw_edge, fallback_id=edges_seen)
                edges_seen += 1
                if parsed_edge is not None:
                    edges.append(parsed_edge)
    except (OSError, ijson.JSONError) as exc:
        log_event("bike_graph_load_failed", path=str(path), error=str(exc))
        return None

    graph = build_bike_graph(nodes, edges, version=version, source=source)
    if not graph.nodes or not graph.edges:
        log_event(
            "bike_graph_load_failed",
            path=str(path),
            error="empty graph",
            nodes_seen=nodes_seen,
            edges_seen=edges_seen,
        )
        return None
    log_event(
        "bike_graph_loaded",
        path=str(path),
        version=graph.version,
        nodes_seen=nodes_seen,
        nodes_kept=len(graph.nodes),
        edges_seen=edges_seen,
        edges_kept=len(graph.edges),
    )
    return graph


@lru_cache(maxsize=1)
def load_configured_graph() -> BikeGraph | None:
    return load_bike_graph(Path(settings.graph_asset_path))


def graph_summary(graph: BikeGraph) -> dict[str, Any]:
    return {
        "version": graph.version,
        "source": graph.source,
        "nodes": len(graph.nodes),
        "edges": len(graph.edges),
        "bike_edges": sum(1 for edge in graph.edges.values() if edge.bike),
    }
