"""Shared fixtures for the noise collector test suite.

Provides a deterministic clock, an in-memory store writer and a ready-made
configuration so unit tests never touch a serial port or the network.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator

import pytest

from collector.config import CollectorConfig
from collector.models.records import Measurement, Report


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock returning a settable epoch-seconds value."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWriter:
    """Records every write; failures are switched on per record type.

    Methods are called from worker threads via ``asyncio.to_thread``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.measurements: list[Measurement] = []
        self.reports: list[Report] = []
        self.report_attempts = 0
        self.fail_measurements = False
        self.fail_reports = False
        # Reject this many report writes before accepting any.
        self.fail_next_reports = 0

    def insert_measurement(self, measurement: Measurement) -> str | None:
        with self._lock:
            if self.fail_measurements:
                return None
            self.measurements.append(measurement)
            return f"m-{len(self.measurements)}"

    def insert_report(self, report: Report) -> bool:
        with self._lock:
            self.report_attempts += 1
            if self.fail_reports:
                return False
            if self.fail_next_reports > 0:
                self.fail_next_reports -= 1
                return False
            self.reports.append(report)
            return True

    def close(self) -> None:
        pass


class ListSource:
    """Line source that yields a fixed list of lines, then ends."""

    def __init__(self, lines: list[str]) -> None:
        self._lines = list(lines)
        self.closed = False

    def lines(self) -> Iterator[str]:
        yield from self._lines

    def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def config() -> CollectorConfig:
    """Return a configuration with the stock thresholds and dummy credentials."""
    return CollectorConfig(
        supabase_url="https://example.supabase.co",
        supabase_key="service-role-key",
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def writer() -> FakeWriter:
    return FakeWriter()


@pytest.fixture()
def make_source():
    """Return a factory building a ``ListSource`` from lines."""
    return ListSource
