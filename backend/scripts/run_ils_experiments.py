from __future__ import annotations

import argparse
import json
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Sequence

from bikeroute.algorithms import create_algorithm, oracle_for_params
from bikeroute.graph import load_bike_graph
from bikeroute.logging_utils import log_event
from bikeroute.params import IlsParams
from bikeroute.run_store import write_iterations_csv, write_json

PROGRESS_EVERY = 10


def _utc_now_compact() -> str:
    return datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run an ILS search repeatedly on one node pair and export per-iteration scores."
    )
    parser.add_argument("--graph", type=Path, required=True, help="Bike graph JSON asset.")
    parser.add_argument("--from-node", type=int, required=True)
    parser.add_argument("--to-node", type=int, default=None, help="Defaults to --from-node (round trip).")
    parser.add_argument("--algorithm", choices=("ils_cas", "ils_backtrack"), default="ils_cas")
    parser.add_argument("--runs", type=int, default=10)
    parser.add_argument("--seed", type=int, default=0, help="Run i uses seed + i.")
    parser.add_argument("--max-cost", type=float, default=None)
    parser.add_argument("--min-cost", type=float, default=None)
    parser.add_argument("--max-iterations", type=int, default=None)
    parser.add_argument("--min-road-score", type=float, default=None)
    parser.add_argument("--min-road-length", type=float, default=None)
    parser.add_argument("--max-depth", type=int, default=None)
    parser.add_argument(
        "--mode",
        choices=("normal", "fixed_percentage_budget", "incremental_budget", "normalized_scores"),
        default=None,
    )
    parser.add_argument("--budget-percentage", type=float, default=None)
    parser.add_argument("--out-dir", default="out/experiments")
    return parser


def run_experiments(args: argparse.Namespace) -> dict[str, Any]:
    graph = load_bike_graph(Path(args.graph))
    if graph is None:
        raise RuntimeError(f"Could not load bike graph from {args.graph}")
    runs = max(1, int(args.runs))
    start = int(args.from_node)
    end = int(args.to_node) if args.to_node is not None else start
    for node in (start, end):
        if node not in graph.nodes:
            raise ValueError(f"Node {node} is not in the graph")

    base_params = IlsParams.from_settings(
        max_cost=args.max_cost,
        min_cost=args.min_cost,
        max_iterations=args.max_iterations,
        min_road_score=args.min_road_score,
        min_road_length=args.min_road_length,
        max_depth=args.max_depth,
        mode=args.mode,
        budget_percentage=args.budget_percentage,
    )
    oracle = oracle_for_params(graph, base_params)

    t0 = time.perf_counter()
    iteration_runs = []
    results: list[dict[str, Any]] = []
    for run_idx in range(runs):
        params = base_params.model_copy(update={"seed": int(args.seed) + run_idx})
        algorithm = create_algorithm(args.algorithm, oracle, params)
        path = algorithm.calc_path(start, end)
        iteration_runs.append(algorithm.iteration_info())
        results.append(
            {
                "run": run_idx + 1,
                "seed": algorithm.seed,
                "found": path.found,
                "distance_m": round(path.distance, 3),
                "score": round(path.score, 6),
                "edges": len(path.edges),
            }
        )
        if (run_idx + 1) % PROGRESS_EVERY == 0 or run_idx + 1 == runs:
            log_event(
                "experiment_progress",
                algorithm=args.algorithm,
                runs_done=run_idx + 1,
                runs_total=runs,
                elapsed_s=round(time.perf_counter() - t0, 3),
            )

    out_dir = Path(args.out_dir) / f"{args.algorithm}_{_utc_now_compact()}"
    csv_path = write_iterations_csv(out_dir / "iterations.csv", iteration_runs)
    found = [row for row in results if row["found"]]
    summary = {
        "algorithm": args.algorithm,
        "graph": str(args.graph),
        "start_node": start,
        "end_node": end,
        "runs": runs,
        "found_runs": len(found),
        "mean_score": round(sum(row["score"] for row in found) / len(found), 6) if found else 0.0,
        "best_score": max((row["score"] for row in found), default=0.0),
        "params": base_params.model_dump(),
        "results": results,
        "iterations_csv": str(csv_path),
    }
    summary_path = write_json(out_dir / "summary.json", summary)
    summary["summary_file"] = str(summary_path)
    return summary


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    summary = run_experiments(args)
    print(json.dumps({k: v for k, v in summary.items() if k != "results"}, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
