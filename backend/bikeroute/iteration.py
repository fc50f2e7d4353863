from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Iteration:
    score: float
    elapsed_s: float


class IterationTracker:
    """Per-run record of (score, elapsed seconds), one entry per search loop pass."""

    def __init__(self) -> None:
        self._entries: list[Iteration] = []
        self._started_monotonic: float | None = None

    def start(self) -> None:
        self._entries.clear()
        self._started_monotonic = time.monotonic()

    def elapsed_s(self) -> float:
        if self._started_monotonic is None:
            return 0.0
        return max(0.0, time.monotonic() - self._started_monotonic)

    def record(self, score: float) -> Iteration:
        entry = Iteration(score=float(score), elapsed_s=self.elapsed_s())
        self._entries.append(entry)
        return entry

    @property
    def entries(self) -> tuple[Iteration, ...]:
        return tuple(self._entries)

    @property
    def scores(self) -> tuple[float, ...]:
        return tuple(entry.score for entry in self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def rows(self) -> list[dict[str, Any]]:
        return [
            {"iteration": idx, "score": entry.score, "time": entry.elapsed_s}
            for idx, entry in enumerate(self._entries, start=1)
        ]
