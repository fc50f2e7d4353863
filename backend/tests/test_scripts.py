from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest

from bikeroute.graph import load_bike_graph
from scripts.build_grid_graph import build_parser as grid_parser
from scripts.build_grid_graph import grid_payload
from scripts.build_grid_graph import main as grid_main
from scripts.run_ils_experiments import build_parser as experiments_parser
from scripts.run_ils_experiments import run_experiments


def test_grid_payload_is_seeded_and_complete() -> None:
    first = grid_payload(rows=3, cols=4, spacing_m=50.0, origin_lat=51.5, origin_lon=-0.1, seed=2)
    second = grid_payload(rows=3, cols=4, spacing_m=50.0, origin_lat=51.5, origin_lon=-0.1, seed=2)

    assert len(first["nodes"]) == 12
    assert len(first["edges"]) == 3 * 3 + 4 * 2
    assert [e["priority"] for e in first["edges"]] == [e["priority"] for e in second["edges"]]
    assert all(e["distance_m"] == pytest.approx(50.0, rel=1e-3) for e in first["edges"])

    with pytest.raises(ValueError):
        grid_payload(rows=1, cols=4, spacing_m=50.0, origin_lat=51.5, origin_lon=-0.1, seed=2)


def test_build_grid_graph_writes_loadable_asset(tmp_path: Path, capsys) -> None:
    output = tmp_path / "graph" / "grid.json"

    assert grid_main(["--rows", "4", "--cols", "4", "--spacing-m", "100", "--output", str(output)]) == 0

    report = json.loads(capsys.readouterr().out)
    assert report["nodes"] == 16
    graph = load_bike_graph(output)
    assert graph is not None
    assert len(graph.nodes) == 16
    assert len(graph.edges) == 24

    args = grid_parser().parse_args([])
    assert args.rows == 20
    assert args.seed == 7


@pytest.mark.parametrize("algorithm", ["ils_cas", "ils_backtrack"])
def test_run_experiments_exports_iteration_csv(tmp_path: Path, algorithm: str) -> None:
    graph_path = tmp_path / "grid.json"
    grid_main(["--rows", "4", "--cols", "4", "--spacing-m", "100", "--seed", "3", "--output", str(graph_path)])

    args = experiments_parser().parse_args(
        [
            "--graph",
            str(graph_path),
            "--from-node",
            "0",
            "--to-node",
            "15",
            "--algorithm",
            algorithm,
            "--runs",
            "3",
            "--seed",
            "10",
            "--max-cost",
            "1000",
            "--max-iterations",
            "4",
            "--min-road-score",
            "0.3",
            "--max-depth",
            "8",
            "--out-dir",
            str(tmp_path / "experiments"),
        ]
    )
    summary = run_experiments(args)

    assert summary["runs"] == 3
    assert [row["seed"] for row in summary["results"]] == [10, 11, 12]
    assert all(row["distance_m"] <= 1000.0 + 1e-6 for row in summary["results"])
    assert Path(summary["summary_file"]).exists()
    with Path(summary["iterations_csv"]).open("r", encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 3 * 4
    assert {row["run"] for row in rows} == {"1", "2", "3"}


def test_run_experiments_rejects_unknown_node(tmp_path: Path) -> None:
    graph_path = tmp_path / "grid.json"
    grid_main(["--rows", "2", "--cols", "2", "--output", str(graph_path)])
    args = experiments_parser().parse_args(["--graph", str(graph_path), "--from-node", "99"])

    with pytest.raises(ValueError):
        run_experiments(args)
