"""Raw microphone samples and the line parser that produces them."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RawSample:
    """A single reading from the microcontroller.

    ``received_at`` is collector wall-clock time (epoch seconds), not device
    time -- the firmware has no clock worth trusting.
    """

    value: float
    received_at: float


def _is_number(value: object) -> bool:
    # bool is an int subclass; JSON true/false are not readings
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def parse_line(line: str, received_at: float) -> RawSample | None:
    """Decode one newline-delimited JSON record into a ``RawSample``.

    Returns None (after logging a warning) for anything that is not a JSON
    object with a finite numeric ``raw`` field. Never raises.
    """
    try:
        payload = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError):
        logger.warning("Invalid JSON from sensor: %r", line)
        return None

    if not isinstance(payload, dict):
        logger.warning("Sensor payload is not an object: %r", line)
        return None

    raw = payload.get("raw")
    if not _is_number(raw):
        logger.warning("Sensor payload missing numeric 'raw': %r", line)
        return None

    # firmware extras (baseline, loud) are ignored
    return RawSample(value=raw, received_at=received_at)
