"""Collector runtime: the read loop plus two independent periodic ticks.

Three activities share the process:

* a daemon thread iterating the line source and feeding the sample buffer,
* the drain tick (every ``sample_interval_ms``), which empties the buffer,
  folds the batch into the window and runs spike detection,
* the window tick (every ``window_minutes``), which closes the window.

Both ticks are synchronous and only *schedule* store writes as detached
tasks, so neither a slow store nor the other timer can delay a tick.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable, Coroutine, Iterator
from typing import Any, Protocol

from collector.config import CollectorConfig
from collector.models.records import Measurement, Report, ReportType
from collector.models.sample import RawSample, parse_line
from collector.pipeline.buffer import SampleBuffer
from collector.pipeline.spike import SpikeDetector
from collector.pipeline.window import WindowAggregator, WindowSummary, breaches
from collector.store.writer import StoreWriter

logger = logging.getLogger(__name__)

# How long shutdown waits for in-flight store writes.
_SHUTDOWN_GRACE_SECONDS = 10.0
# How long shutdown waits for the line reader thread after closing the source.
_READER_JOIN_SECONDS = 5.0


class LineSource(Protocol):
    def lines(self) -> Iterator[str]: ...

    def close(self) -> None: ...


# ── Stats tracker ───────────────────────────────────────────────────────


class _Stats:
    """Accumulates runtime statistics and logs them periodically.

    Counters are bumped from both the reader thread and the event loop.
    """

    _FIELDS = (
        "samples",
        "dropped",
        "measurements_ok",
        "measurements_fail",
        "spike_ok",
        "spike_fail",
        "window_ok",
        "window_fail",
    )

    def __init__(self, report_interval: float = 30.0) -> None:
        self._lock = threading.Lock()
        self._counts = dict.fromkeys(self._FIELDS, 0)
        self._last_report = time.monotonic()
        self._report_interval = report_interval

    def add(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counts[name] += amount

    def get(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    def maybe_report(self) -> None:
        now = time.monotonic()
        if now - self._last_report < self._report_interval:
            return
        with self._lock:
            counts = dict(self._counts)
            self._counts = dict.fromkeys(self._FIELDS, 0)
            elapsed = now - self._last_report
            self._last_report = now
        logger.info(
            "STATS | samples=%d | dropped=%d | sps=%.1f | "
            "measurements ok=%d fail=%d | spike ok=%d fail=%d | window ok=%d fail=%d",
            counts["samples"],
            counts["dropped"],
            counts["samples"] / max(elapsed, 0.001),
            counts["measurements_ok"],
            counts["measurements_fail"],
            counts["spike_ok"],
            counts["spike_fail"],
            counts["window_ok"],
            counts["window_fail"],
        )


# ── Collector ───────────────────────────────────────────────────────────


class Collector:
    """Owns the buffer, window and cooldown state of one device/room pair."""

    def __init__(
        self,
        config: CollectorConfig,
        source: LineSource,
        writer: StoreWriter,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.source = source
        self.writer = writer
        self._clock = clock

        self.buffer = SampleBuffer()
        self.window = WindowAggregator(window_start=clock())
        self.spikes = SpikeDetector(config.threshold_spike, config.spike_cooldown_ms)
        self.stats = _Stats(report_interval=config.stats_interval_seconds)

        self._pending: set[asyncio.Task[None]] = set()
        self._spike_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._reader: threading.Thread | None = None

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    # ── Ingestion ───────────────────────────────────────────────────────

    def ingest_line(self, line: str) -> RawSample | None:
        """Parse one line and buffer the sample; None if it was dropped."""
        sample = parse_line(line, received_at=self._clock())
        if sample is None:
            self.stats.add("dropped")
            return None
        self.buffer.append(sample)
        self.stats.add("samples")
        return sample

    def _read_loop(self) -> None:
        try:
            for line in self.source.lines():
                self.ingest_line(line)
        except Exception:
            logger.exception("Line reader stopped unexpectedly")

    # ── Ticks ───────────────────────────────────────────────────────────

    def drain_tick(self) -> int:
        """Drain the buffer, fold it into the window and check for spikes.

        Returns the number of samples drained. Must run on the event loop.
        """
        self.stats.maybe_report()
        samples = self.buffer.drain()
        if not samples:
            return 0

        self.window.fold([s.value for s in samples])
        candidates = [s for s in samples if self.spikes.is_spike(s.value)]
        if candidates:
            self._spawn(self._report_spikes(candidates), "spike-report")
        return len(samples)

    def window_tick(self) -> WindowSummary | None:
        """Close the current window and schedule its persistence."""
        summary = self.window.close(self._clock())
        if summary is None:
            logger.debug("Window closed with no samples")
            return None
        self._spawn(self._persist_window(summary), "window-measurement")
        return summary

    # ── Store writes (detached) ─────────────────────────────────────────

    async def _report_spikes(self, candidates: list[RawSample]) -> None:
        """Walk a batch's loud samples in order, one awaited write at a time.

        Batches queue on ``_spike_lock`` so the cooldown is always checked
        against the outcome of every earlier write.
        """
        async with self._spike_lock:
            for sample in candidates:
                if not self.spikes.should_alert(sample.value, sample.received_at):
                    continue
                report = Report(
                    type=ReportType.AUTO,
                    text=f"Instant noise peak detected in {self.config.room} (raw={sample.value:g}).",
                    location=self.config.location,
                    room=self.config.room,
                    date=sample.received_at,
                )
                if await asyncio.to_thread(self.writer.insert_report, report):
                    self.spikes.confirm(sample.received_at)
                    self.stats.add("spike_ok")
                    logger.info("Spike report created for raw=%g", sample.value)
                else:
                    self.stats.add("spike_fail")

    async def _persist_window(self, summary: WindowSummary) -> None:
        measurement = Measurement(
            device_id=self.config.device_id,
            room=self.config.room,
            avg_value=summary.avg,
            min_value=summary.minimum,
            max_value=summary.maximum,
            created_at=summary.window_end,
        )
        measurement_id = await asyncio.to_thread(self.writer.insert_measurement, measurement)
        if measurement_id is None:
            self.stats.add("measurements_fail")
            logger.warning(
                "Window of %d samples lost; threshold report skipped", summary.count
            )
            return

        self.stats.add("measurements_ok")
        logger.info(
            "Saved %dmin measurement: avg=%.1f, min=%g, max=%g",
            self.config.window_minutes,
            summary.avg,
            summary.minimum,
            summary.maximum,
        )

        if not breaches(summary, self.config.threshold_avg, self.config.threshold_max):
            return

        report = Report(
            type=ReportType.AUTO,
            text=(
                f"Loud noise detected in {self.config.room} over "
                f"{self.config.window_minutes} minute(s) "
                f"(avg={summary.avg:.1f}, min={summary.minimum:g}, max={summary.maximum:g})."
            ),
            location=self.config.location,
            room=self.config.room,
            date=self._clock(),
            measurement_id=measurement_id,
        )
        if await asyncio.to_thread(self.writer.insert_report, report):
            self.stats.add("window_ok")
            logger.info("Created auto report for high noise level (window)")
        else:
            self.stats.add("window_fail")

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._pending.add(task)
        task.add_done_callback(self._on_write_done)

    def _on_write_done(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background %s failed", task.get_name(), exc_info=exc)

    async def wait_pending(self, timeout: float | None = None) -> None:
        """Wait for in-flight writes; cancel whatever is left after *timeout*."""
        if not self._pending:
            return
        _, not_done = await asyncio.wait(set(self._pending), timeout=timeout)
        for task in not_done:
            task.cancel()
        if not_done:
            logger.warning("Abandoned %d in-flight store writes", len(not_done))

    # ── Timers ──────────────────────────────────────────────────────────

    async def _every(self, interval: float, tick: Callable[[], object], name: str) -> None:
        """Call *tick* on fixed deadlines; missed deadlines are skipped, not queued."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + interval
        while True:
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            try:
                tick()
            except Exception:
                logger.exception("%s tick failed", name)
            deadline += interval
            now = loop.time()
            while deadline <= now:
                deadline += interval

    async def run(self) -> None:
        """Run until ``stop()`` is called."""
        self._reader = threading.Thread(target=self._read_loop, name="line-reader", daemon=True)
        self._reader.start()

        timers = [
            asyncio.create_task(
                self._every(self.config.sample_interval_ms / 1000, self.drain_tick, "drain"),
                name="drain-timer",
            ),
            asyncio.create_task(
                self._every(self.config.window_ms / 1000, self.window_tick, "window"),
                name="window-timer",
            ),
        ]
        logger.info(
            "Collector started | device=%s | room=%s | window=%dmin | tick=%dms",
            self.config.device_id,
            self.config.room,
            self.config.window_minutes,
            self.config.sample_interval_ms,
        )

        try:
            await self._stop_event.wait()
        finally:
            logger.info("Stopping timers and line source ...")
            for timer in timers:
                timer.cancel()
            await asyncio.gather(*timers, return_exceptions=True)
            self.source.close()
            await asyncio.to_thread(self._reader.join, _READER_JOIN_SECONDS)
            if self._reader.is_alive():
                logger.warning("Line reader did not stop within %.0fs", _READER_JOIN_SECONDS)
            await self.wait_pending(timeout=_SHUTDOWN_GRACE_SECONDS)

    def stop(self) -> None:
        self._stop_event.set()
