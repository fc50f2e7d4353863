from __future__ import annotations

import csv
import json
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .iteration import Iteration
from .settings import settings

ITERATION_CSV_COLUMNS: tuple[str, ...] = ("run", "iteration", "score", "time")


def write_run_manifest(run_id: str, manifest: dict[str, Any]) -> Path:
    out_dir = Path(settings.out_dir) / "manifests"
    out_dir.mkdir(parents=True, exist_ok=True)

    enriched = {
        "run_id": run_id,
        "created_at": datetime.now(UTC).isoformat(),
        **manifest,
    }

    path = out_dir / f"{run_id}.json"
    path.write_text(json.dumps(enriched, indent=2), encoding="utf-8")
    return path


def iteration_rows(runs: Sequence[Sequence[Iteration]]) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for run_idx, entries in enumerate(runs, start=1):
        for iteration_idx, entry in enumerate(entries, start=1):
            rows.append(
                {
                    "run": run_idx,
                    "iteration": iteration_idx,
                    "score": entry.score,
                    "time": entry.elapsed_s,
                }
            )
    return rows


def write_iterations_csv(path: Path, runs: Sequence[Sequence[Iteration]]) -> Path:
    """One row per recorded iteration of every run, runs and iterations numbered from 1."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(ITERATION_CSV_COLUMNS))
        writer.writeheader()
        for row in iteration_rows(runs):
            writer.writerow({k: row.get(k, "") for k in ITERATION_CSV_COLUMNS})
    return path


def write_json(path: Path, payload: Mapping[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(dict(payload), indent=2), encoding="utf-8")
    return path
