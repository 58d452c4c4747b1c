"""Thread-safe hand-off between the serial reader and the drain tick."""

from __future__ import annotations

import threading

from collector.models.sample import RawSample


class SampleBuffer:
    """Accumulates accepted samples until the next drain.

    The lock is held only for a list append or a list swap, so the reader
    thread never waits behind a drain for longer than that.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._samples: list[RawSample] = []

    def append(self, sample: RawSample) -> None:
        with self._lock:
            self._samples.append(sample)

    def drain(self) -> list[RawSample]:
        """Remove and return every buffered sample, oldest first."""
        with self._lock:
            drained, self._samples = self._samples, []
        return drained

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)
