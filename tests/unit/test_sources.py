"""Unit tests for the line sources: serial reader and simulated firmware.

The serial port is replaced by an in-memory fake so the reader's framing,
trimming and reconnect behaviour can be checked without hardware.
"""

from __future__ import annotations

import json
import logging

import numpy as np
import pytest
import serial

from collector.models.sample import parse_line
from collector.sources.serial_reader import SerialLineReader
from collector.sources.simulated import NoiseProfile, SimulatedLineSource


class FakeSerial:
    """Serves canned ``readline`` chunks, then closes the reader."""

    def __init__(self, chunks: list[bytes], reader: SerialLineReader) -> None:
        self._chunks = list(chunks)
        self._reader = reader
        self.closed = False

    def readline(self) -> bytes:
        if self._chunks:
            chunk = self._chunks.pop(0)
            if isinstance(chunk, Exception):
                raise chunk
            return chunk
        self._reader.close()
        return b""

    def close(self) -> None:
        self.closed = True


# =========================================================================
# SerialLineReader tests
# =========================================================================


class TestSerialLineReader:
    """Tests for newline framing and error handling of the serial reader."""

    def _install(
        self,
        monkeypatch: pytest.MonkeyPatch,
        reader: SerialLineReader,
        sessions: list[list[bytes] | Exception],
    ) -> list[FakeSerial]:
        opened: list[FakeSerial] = []

        def factory(port: str, baud: int, timeout: float) -> FakeSerial:
            session = sessions.pop(0)
            if isinstance(session, Exception):
                raise session
            fake = FakeSerial(session, reader)
            opened.append(fake)
            return fake

        monkeypatch.setattr(serial, "Serial", factory)
        return opened

    def test_lines_are_framed_and_trimmed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify partial reads are joined and blank lines filtered."""
        reader = SerialLineReader("/dev/fake", 9600, reconnect_delay=0)
        opened = self._install(
            monkeypatch,
            reader,
            [[b'{"raw":1', b'0}\n', b"\n", b"   \r\n", b'{"raw":20}\r\n']],
        )

        assert list(reader.lines()) == ['{"raw":10}', '{"raw":20}']
        assert opened[0].closed

    def test_invalid_utf8_is_replaced(self, monkeypatch: pytest.MonkeyPatch) -> None:
        reader = SerialLineReader("/dev/fake", 9600, reconnect_delay=0)
        self._install(monkeypatch, reader, [[b'\xff{"raw":5}\n']])

        lines = list(reader.lines())
        assert len(lines) == 1
        assert lines[0].endswith('{"raw":5}')

    def test_open_failure_retries(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Verify an open error is logged and the port is opened again."""
        reader = SerialLineReader("/dev/fake", 9600, reconnect_delay=0)
        self._install(
            monkeypatch,
            reader,
            [serial.SerialException("could not open port"), [b'{"raw":1}\n']],
        )

        with caplog.at_level(logging.ERROR, logger="collector.sources.serial_reader"):
            assert list(reader.lines()) == ['{"raw":1}']
        assert "could not open port" in caplog.text

    def test_read_error_reconnects(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify a read error closes the port and reading resumes on a new one."""
        reader = SerialLineReader("/dev/fake", 9600, reconnect_delay=0)
        opened = self._install(
            monkeypatch,
            reader,
            [
                [b'{"raw":1}\n', serial.SerialException("device disconnected")],
                [b'{"raw":2}\n'],
            ],
        )

        assert list(reader.lines()) == ['{"raw":1}', '{"raw":2}']
        assert len(opened) == 2
        assert all(fake.closed for fake in opened)

    def test_overlong_garbage_discarded(self, monkeypatch: pytest.MonkeyPatch) -> None:
        reader = SerialLineReader("/dev/fake", 9600, reconnect_delay=0)
        self._install(monkeypatch, reader, [[b"x" * 5000, b'{"raw":3}\n']])

        assert list(reader.lines()) == ['{"raw":3}']

    def test_close_before_iteration(self) -> None:
        """Verify a closed reader yields nothing and never opens the port."""
        reader = SerialLineReader("/dev/does-not-exist", 9600)
        reader.close()
        assert list(reader.lines()) == []


# =========================================================================
# SimulatedLineSource tests
# =========================================================================


class TestSimulatedLineSource:
    """Tests for the firmware-shaped simulated stream."""

    def test_lines_parse_as_samples(self) -> None:
        """Verify every simulated line is accepted by the sample parser."""
        source = SimulatedLineSource(rng=np.random.default_rng(seed=7))
        for _ in range(200):
            line = source.next_line()
            sample = parse_line(line, received_at=0.0)
            assert sample is not None
            assert 0 <= sample.value <= 1023

    def test_loud_flag_matches_firmware_rule(self) -> None:
        """Verify ``loud`` is raw > baseline + 40, as in the firmware."""
        source = SimulatedLineSource(rng=np.random.default_rng(seed=3))
        for _ in range(500):
            payload = json.loads(source.next_line())
            assert payload["loud"] == (payload["raw"] > payload["baseline"] + 40)

    def test_calibration_near_ambient(self) -> None:
        profile = NoiseProfile(ambient_level=400.0, noise_std=10.0)
        source = SimulatedLineSource(profile, rng=np.random.default_rng(seed=1))
        assert abs(source.calibrate() - 400) < 10

    def test_bursts_reach_spike_levels(self) -> None:
        """Verify a forced burst produces readings above the spike threshold."""
        profile = NoiseProfile(burst_probability=1.0, burst_level=800.0, burst_std=1.0)
        source = SimulatedLineSource(profile, rng=np.random.default_rng(seed=5))
        values = [source.next_value() for _ in range(10)]
        assert min(values) >= 600

    def test_values_clamped_to_adc_range(self) -> None:
        profile = NoiseProfile(ambient_level=1020.0, noise_std=200.0, burst_probability=0.0)
        source = SimulatedLineSource(profile, rng=np.random.default_rng(seed=9))
        values = [source.next_value() for _ in range(500)]
        assert max(values) <= 1023
        assert min(values) >= 0

    def test_lines_stop_after_close(self) -> None:
        profile = NoiseProfile(interval_seconds=0.0)
        source = SimulatedLineSource(profile, rng=np.random.default_rng(seed=2))
        produced = []
        for line in source.lines():
            produced.append(line)
            if len(produced) == 5:
                source.close()
        assert len(produced) == 5
