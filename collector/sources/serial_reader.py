"""Line reader for the microcontroller's USB serial link."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator

import serial

logger = logging.getLogger(__name__)

# A record longer than this without a newline is line noise, not a sample.
_MAX_LINE_BYTES = 4096


class SerialLineReader:
    """Yields newline-delimited text records from a serial port.

    The port is (re)opened inside ``lines()``; open and read failures are
    logged and retried after *reconnect_delay* seconds, so an unplugged
    board leaves the caller waiting rather than crashing it. ``close()``
    may be called from any thread and ends iteration within *read_timeout*.
    """

    def __init__(
        self,
        port: str,
        baud_rate: int = 9600,
        reconnect_delay: float = 5.0,
        read_timeout: float = 1.0,
    ) -> None:
        self.port = port
        self.baud_rate = baud_rate
        self._reconnect_delay = reconnect_delay
        self._read_timeout = read_timeout
        self._stop = threading.Event()

    def _open(self) -> serial.Serial | None:
        try:
            conn = serial.Serial(self.port, self.baud_rate, timeout=self._read_timeout)
        except (serial.SerialException, OSError, ValueError) as exc:
            logger.error("Serial error opening %s: %s", self.port, exc)
            return None
        logger.info("Serial port %s opened at %d baud", self.port, self.baud_rate)
        return conn

    def _read_records(self, conn: serial.Serial) -> Iterator[str]:
        pending = bytearray()
        while not self._stop.is_set():
            # readline returns a partial record when the read timeout expires
            chunk = conn.readline()
            if not chunk:
                continue
            pending.extend(chunk)
            if not pending.endswith(b"\n"):
                if len(pending) > _MAX_LINE_BYTES:
                    logger.warning("Discarding %d bytes without a line terminator", len(pending))
                    pending.clear()
                continue
            line = pending.decode("utf-8", errors="replace").strip()
            pending.clear()
            if line:
                yield line

    def lines(self) -> Iterator[str]:
        """Iterate decoded, trimmed, non-empty lines until ``close()``."""
        logger.info("Connecting to serial port %s at %d baud ...", self.port, self.baud_rate)
        while not self._stop.is_set():
            conn = self._open()
            if conn is not None:
                try:
                    yield from self._read_records(conn)
                except (serial.SerialException, OSError) as exc:
                    logger.error("Serial error on %s: %s", self.port, exc)
                finally:
                    conn.close()
            if not self._stop.is_set():
                self._stop.wait(self._reconnect_delay)
        logger.info("Serial reader on %s stopped", self.port)

    def close(self) -> None:
        self._stop.set()
