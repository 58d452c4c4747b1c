"""In-memory stages between the line parser and the store writer."""

from collector.pipeline.buffer import SampleBuffer
from collector.pipeline.spike import SpikeDetector
from collector.pipeline.window import WindowAggregator, WindowSummary, breaches

__all__ = [
    "SampleBuffer",
    "SpikeDetector",
    "WindowAggregator",
    "WindowSummary",
    "breaches",
]
