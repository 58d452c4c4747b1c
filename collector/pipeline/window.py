"""Fixed wall-clock window aggregation of drained samples.

The accumulator keeps only running sum / count / min / max, so memory stays
constant no matter how many samples a window sees. Batches are reduced with
numpy before being merged in.
"""

from __future__ import annotations

import math
import threading
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class WindowSummary:
    """Statistics of one closed, non-empty window."""

    avg: float
    minimum: float
    maximum: float
    count: int
    window_start: float
    window_end: float


def breaches(summary: WindowSummary, avg_threshold: float, max_threshold: float) -> bool:
    """Return True when the window is loud enough for an alert (inclusive)."""
    return summary.avg >= avg_threshold or summary.maximum >= max_threshold


class WindowAggregator:
    """The single live accumulator of a collector process."""

    def __init__(self, window_start: float) -> None:
        self._lock = threading.Lock()
        self._reset_locked(window_start)

    def _reset_locked(self, window_start: float) -> None:
        self._total = 0.0
        self._count = 0
        self._minimum = math.inf
        self._maximum = -math.inf
        self._window_start = window_start

    @property
    def count(self) -> int:
        return self._count

    @property
    def total(self) -> float:
        return self._total

    @property
    def minimum(self) -> float:
        return self._minimum

    @property
    def maximum(self) -> float:
        return self._maximum

    @property
    def window_start(self) -> float:
        return self._window_start

    def fold(self, values: Sequence[float]) -> None:
        """Merge a drained batch into the running statistics."""
        if not values:
            return
        batch = np.asarray(values, dtype=np.float64)
        batch_sum = float(batch.sum())
        batch_min = float(batch.min())
        batch_max = float(batch.max())
        with self._lock:
            self._total += batch_sum
            self._count += int(batch.size)
            self._minimum = min(self._minimum, batch_min)
            self._maximum = max(self._maximum, batch_max)

    def close(self, now: float) -> WindowSummary | None:
        """Snapshot and reset the window; None when it saw no samples."""
        with self._lock:
            if self._count == 0:
                self._window_start = now
                return None
            summary = WindowSummary(
                avg=self._total / self._count,
                minimum=self._minimum,
                maximum=self._maximum,
                count=self._count,
                window_start=self._window_start,
                window_end=now,
            )
            self._reset_locked(now)
        return summary
