"""Row shapes written to the ``measurements`` and ``reports`` tables.

Field names match the columns the dashboard reads, so renaming anything
here breaks the dashboard.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any


class ReportType(StrEnum):
    """Origin of a report row."""

    MANUAL = "manual"
    AUTO = "auto"


def iso_timestamp(epoch_seconds: float) -> str:
    """Format epoch seconds as an ISO-8601 UTC string with milliseconds."""
    return (
        datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


@dataclass(frozen=True)
class Measurement:
    """Summary of one closed aggregation window."""

    device_id: str
    room: str
    avg_value: float
    min_value: float
    max_value: float
    created_at: float  # epoch seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "device_id": self.device_id,
            "avg_value": self.avg_value,
            "min_value": self.min_value,
            "max_value": self.max_value,
            "room": self.room,
            "created_at": iso_timestamp(self.created_at),
        }


@dataclass(frozen=True)
class Report:
    """A manual complaint or an automatically raised noise alert.

    ``measurement_id`` and ``user_id`` are left out of the payload when
    unset so the store applies its own NULL default.
    """

    type: ReportType
    text: str
    location: str
    room: str
    date: float  # epoch seconds
    measurement_id: str | None = None
    user_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        row: dict[str, Any] = {
            "type": self.type.value,
            "text": self.text,
            "location": self.location,
            "room": self.room,
            "date": iso_timestamp(self.date),
        }
        if self.measurement_id is not None:
            row["measurement_id"] = self.measurement_id
        if self.user_id is not None:
            row["user_id"] = self.user_id
        return row
