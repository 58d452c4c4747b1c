"""CLI entrypoint for the noise collector.

Reads microphone samples from the Arduino's serial port (or a simulated
source), aggregates them into windows and writes measurements and alerts
to Supabase.

Usage::

    python -m collector.main --port /dev/ttyACM0 --baud 9600
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import signal
import sys

import click

from collector.config import CollectorConfig, ConfigError
from collector.scheduler import Collector, LineSource
from collector.sources.serial_reader import SerialLineReader
from collector.sources.simulated import SimulatedLineSource
from collector.store.client import SupabaseClient
from collector.store.writer import StoreWriter

logger = logging.getLogger(__name__)


async def _serve(collector: Collector) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, collector.stop)
        except NotImplementedError:
            # Windows: SIGINT still arrives as KeyboardInterrupt
            pass
    await collector.run()


@click.command("noise-collector")
@click.option(
    "--port",
    default=None,
    help="Serial port path (overrides SERIAL_PORT env var).",
)
@click.option(
    "--baud",
    default=None,
    type=int,
    help="Serial baud rate (overrides BAUD_RATE env var).",
)
@click.option(
    "--device-id",
    default=None,
    help="Device identifier stored with measurements (overrides DEVICE_ID env var).",
)
@click.option(
    "--window-minutes",
    default=None,
    type=int,
    help="Aggregation window length (overrides WINDOW_MINUTES env var).",
)
@click.option(
    "--simulate",
    is_flag=True,
    default=False,
    help="Read from a simulated microphone instead of the serial port.",
)
def main(
    port: str | None,
    baud: int | None,
    device_id: str | None,
    window_minutes: int | None,
    simulate: bool,
) -> None:
    """Sound level collector: serial samples in, measurements and alerts out."""
    # ── Configuration ───────────────────────────────────────────────────
    try:
        config = CollectorConfig.from_env()
        overrides = {
            key: value
            for key, value in (
                ("serial_port", port),
                ("baud_rate", baud),
                ("device_id", device_id),
                ("window_minutes", window_minutes),
            )
            if value is not None
        }
        if overrides:
            config = dataclasses.replace(config, **overrides)
            config.validate()
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        sys.exit(1)

    config.configure_logging()

    # ── Wiring ──────────────────────────────────────────────────────────
    source: LineSource
    if simulate:
        logger.info("Using simulated microphone source")
        source = SimulatedLineSource()
    else:
        source = SerialLineReader(
            config.serial_port,
            config.baud_rate,
            reconnect_delay=config.serial_reconnect_seconds,
        )

    writer = StoreWriter(
        SupabaseClient(
            config.supabase_url,
            config.supabase_key,
            timeout=config.store_timeout_seconds,
        )
    )
    collector = Collector(config, source, writer)

    logger.info("Collector starting -- press Ctrl+C to stop")
    try:
        asyncio.run(_serve(collector))
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received")
    finally:
        source.close()
        writer.close()
        logger.info("Collector stopped")


if __name__ == "__main__":
    main()
