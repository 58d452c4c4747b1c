"""Line sources feeding the collector."""

from collector.sources.serial_reader import SerialLineReader
from collector.sources.simulated import NoiseProfile, SimulatedLineSource

__all__ = [
    "NoiseProfile",
    "SerialLineReader",
    "SimulatedLineSource",
]
