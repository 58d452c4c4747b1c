"""Hardware-free line source that mimics the Arduino microphone firmware.

The firmware calibrates a baseline from 100 quiet reads at boot, then every
50 ms prints ``{"raw":N,"baseline":B,"loud":bool}`` where ``loud`` means
``raw > baseline + 40``. This source reproduces that stream with Gaussian
ambient noise and occasional loud bursts so the whole collector can run
without a board attached.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np

_ADC_MIN = 0
_ADC_MAX = 1023
_CALIBRATION_SAMPLES = 100


@dataclass(frozen=True)
class NoiseProfile:
    """Parameters of the simulated room."""

    ambient_level: float = 350.0
    noise_std: float = 25.0
    burst_probability: float = 0.005
    burst_level: float = 680.0
    burst_std: float = 40.0
    burst_samples: int = 40
    threshold_offset: int = 40
    interval_seconds: float = 0.05


class SimulatedLineSource:
    """Produces firmware-shaped JSON lines at the firmware's cadence."""

    def __init__(
        self,
        profile: NoiseProfile | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.profile = profile or NoiseProfile()
        self._rng = rng if rng is not None else np.random.default_rng()
        self._stop = threading.Event()
        self._burst_remaining = 0
        self.baseline: int | None = None

    def _clamp(self, value: float) -> int:
        return int(max(_ADC_MIN, min(_ADC_MAX, round(value))))

    def _ambient(self) -> int:
        return self._clamp(self._rng.normal(self.profile.ambient_level, self.profile.noise_std))

    def calibrate(self) -> int:
        """Average 100 quiet reads, as the firmware does in ``setup()``."""
        reads = [self._ambient() for _ in range(_CALIBRATION_SAMPLES)]
        self.baseline = sum(reads) // len(reads)
        return self.baseline

    def next_value(self) -> int:
        """Draw the next ADC reading, entering a burst with small probability."""
        if self._burst_remaining == 0 and self._rng.random() < self.profile.burst_probability:
            self._burst_remaining = self.profile.burst_samples
        if self._burst_remaining > 0:
            self._burst_remaining -= 1
            return self._clamp(self._rng.normal(self.profile.burst_level, self.profile.burst_std))
        return self._ambient()

    def next_line(self) -> str:
        if self.baseline is None:
            self.calibrate()
        raw = self.next_value()
        payload = {
            "raw": raw,
            "baseline": self.baseline,
            "loud": raw > self.baseline + self.profile.threshold_offset,
        }
        return json.dumps(payload, separators=(",", ":"))

    def lines(self) -> Iterator[str]:
        """Iterate simulated lines every ``interval_seconds`` until ``close()``."""
        self.calibrate()
        while not self._stop.is_set():
            yield self.next_line()
            self._stop.wait(self.profile.interval_seconds)

    def close(self) -> None:
        self._stop.set()
