from __future__ import annotations

import argparse
import json
import math
import random
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Sequence

EARTH_RADIUS_M = 6_371_000.0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Write a seeded synthetic lattice bike graph asset.")
    parser.add_argument("--rows", type=int, default=20)
    parser.add_argument("--cols", type=int, default=20)
    parser.add_argument("--spacing-m", type=float, default=100.0)
    parser.add_argument("--origin-lat", type=float, default=51.5)
    parser.add_argument("--origin-lon", type=float, default=-0.12)
    parser.add_argument("--seed", type=int, default=7)
    parser.add_argument(
        "--no-bike-fraction",
        type=float,
        default=0.0,
        help="Share of edges closed to bikes (0..1).",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("backend/out/graph/bike_graph.json"),
        help="Output graph JSON path.",
    )
    return parser


def _haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2.0) ** 2
    return 2.0 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))


def grid_payload(
    *,
    rows: int,
    cols: int,
    spacing_m: float,
    origin_lat: float,
    origin_lon: float,
    seed: int,
    no_bike_fraction: float = 0.0,
) -> dict[str, Any]:
    if rows < 2 or cols < 2:
        raise ValueError("grid needs at least 2 rows and 2 cols")
    if spacing_m <= 0:
        raise ValueError("spacing_m must be positive")
    rng = random.Random(seed)
    dlat = math.degrees(spacing_m / EARTH_RADIUS_M)
    dlon = dlat / max(1e-9, math.cos(math.radians(origin_lat)))

    nodes: list[dict[str, Any]] = []
    coords: dict[int, tuple[float, float]] = {}
    for r in range(rows):
        for c in range(cols):
            node_id = r * cols + c
            lat = round(origin_lat + r * dlat, 7)
            lon = round(origin_lon + c * dlon, 7)
            coords[node_id] = (lat, lon)
            nodes.append({"id": node_id, "lat": lat, "lon": lon})

    edges: list[dict[str, Any]] = []
    for r in range(rows):
        for c in range(cols):
            u = r * cols + c
            neighbours = []
            if c + 1 < cols:
                neighbours.append(u + 1)
            if r + 1 < rows:
                neighbours.append(u + cols)
            for v in neighbours:
                (lat1, lon1), (lat2, lon2) = coords[u], coords[v]
                edges.append(
                    {
                        "id": len(edges),
                        "u": u,
                        "v": v,
                        "distance_m": round(_haversine_m(lat1, lon1, lat2, lon2), 3),
                        "priority": round(rng.random(), 4),
                        "oneway": False,
                        "bike": rng.random() >= no_bike_fraction,
                    }
                )

    return {
        "version": "grid-bike-graph-v1",
        "source": f"synthetic-grid:{rows}x{cols}@{spacing_m:g}m/seed={seed}",
        "generated_at_utc": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "nodes": nodes,
        "edges": edges,
    }


def build(args: argparse.Namespace) -> dict[str, Any]:
    payload = grid_payload(
        rows=int(args.rows),
        cols=int(args.cols),
        spacing_m=float(args.spacing_m),
        origin_lat=float(args.origin_lat),
        origin_lon=float(args.origin_lon),
        seed=int(args.seed),
        no_bike_fraction=min(1.0, max(0.0, float(args.no_bike_fraction))),
    )
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(payload), encoding="utf-8")
    return {
        "nodes": len(payload["nodes"]),
        "edges": len(payload["edges"]),
        "source": payload["source"],
        "output": str(output),
    }


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    report = build(args)
    print(json.dumps(report, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
