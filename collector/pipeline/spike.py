"""Instantaneous spike detection with a write-confirmed cooldown."""

from __future__ import annotations

import threading


class SpikeDetector:
    """Decides which individual samples deserve a spike report.

    The cooldown only starts when the caller ``confirm``s a persisted
    report; a failed write leaves it untouched so the next loud sample
    retries. Callers must check and confirm one sample at a time.
    """

    def __init__(self, threshold: float, cooldown_ms: int) -> None:
        self.threshold = threshold
        self.cooldown_ms = cooldown_ms
        self._lock = threading.Lock()
        self._last_spike_at: float | None = None

    @property
    def last_spike_at(self) -> float | None:
        return self._last_spike_at

    def is_spike(self, value: float) -> bool:
        return value >= self.threshold

    def should_alert(self, value: float, at: float) -> bool:
        """True when *value* observed at epoch seconds *at* spikes outside the cooldown."""
        if not self.is_spike(value):
            return False
        with self._lock:
            return (
                self._last_spike_at is None
                or (at - self._last_spike_at) * 1000 > self.cooldown_ms
            )

    def confirm(self, at: float) -> None:
        """Record a persisted spike report attempted at *at*."""
        with self._lock:
            self._last_spike_at = at
