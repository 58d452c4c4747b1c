"""Centralized configuration loaded from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass


class ConfigError(Exception):
    """Raised when the environment cannot produce a usable configuration."""


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class CollectorConfig:
    """Configuration for the noise collector daemon.

    Store credentials have no default and must come from the environment.
    Everything else falls back to values suited to a single Arduino on a
    local USB serial port.
    """

    supabase_url: str
    supabase_key: str
    serial_port: str = "/dev/ttyACM0"
    baud_rate: int = 9600
    device_id: str = "arduino-uno-01"
    room: str = "kamer 1"
    location: str = "School"
    threshold_spike: float = 600
    threshold_avg: float = 550
    threshold_max: float = 600
    spike_cooldown_ms: int = 5000
    window_minutes: int = 1
    sample_interval_ms: int = 1000
    store_timeout_seconds: float = 5.0
    serial_reconnect_seconds: float = 5.0
    stats_interval_seconds: float = 30.0
    log_level: str = "INFO"

    @property
    def window_ms(self) -> int:
        return self.window_minutes * 60 * 1000

    @classmethod
    def from_env(cls) -> CollectorConfig:
        """Build configuration from environment variables.

        Raises ConfigError when the store credentials are missing or a
        numeric variable does not parse.
        """
        supabase_url = os.environ.get("SUPABASE_URL", "").strip()
        supabase_key = os.environ.get("SUPABASE_SERVICE_ROLE", "").strip()
        if not supabase_url or not supabase_key:
            raise ConfigError("Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE in environment")

        config = cls(
            supabase_url=supabase_url,
            supabase_key=supabase_key,
            serial_port=os.environ.get("SERIAL_PORT", "/dev/ttyACM0"),
            baud_rate=_int_env("BAUD_RATE", 9600),
            device_id=os.environ.get("DEVICE_ID", "arduino-uno-01"),
            room=os.environ.get("ROOM", "kamer 1"),
            location=os.environ.get("LOCATION", "School"),
            threshold_spike=_float_env("THRESHOLD_SPIKE", 600),
            threshold_avg=_float_env("THRESHOLD_AVG", 550),
            threshold_max=_float_env("THRESHOLD_MAX", 600),
            spike_cooldown_ms=_int_env("SPIKE_COOLDOWN_MS", 5000),
            window_minutes=_int_env("WINDOW_MINUTES", 1),
            sample_interval_ms=_int_env("SAMPLE_AGGREGATION_INTERVAL_MS", 1000),
            store_timeout_seconds=_float_env("STORE_TIMEOUT_SECONDS", 5.0),
            serial_reconnect_seconds=_float_env("SERIAL_RECONNECT_SECONDS", 5.0),
            stats_interval_seconds=_float_env("STATS_INTERVAL_SECONDS", 30.0),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Reject intervals that would make the scheduler spin or never fire."""
        if self.window_minutes <= 0:
            raise ConfigError(f"WINDOW_MINUTES must be positive, got {self.window_minutes}")
        if self.sample_interval_ms <= 0:
            raise ConfigError(
                f"SAMPLE_AGGREGATION_INTERVAL_MS must be positive, got {self.sample_interval_ms}"
            )
        if self.spike_cooldown_ms < 0:
            raise ConfigError(f"SPIKE_COOLDOWN_MS must not be negative, got {self.spike_cooldown_ms}")
        if self.baud_rate <= 0:
            raise ConfigError(f"BAUD_RATE must be positive, got {self.baud_rate}")

    def configure_logging(self) -> None:
        """Set up structured logging based on configured level."""
        logging.basicConfig(
            level=getattr(logging, self.log_level.upper(), logging.INFO),
            format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
