"""Pipeline-facing writer that never lets a store failure escape."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from collector.store.client import StoreError

if TYPE_CHECKING:
    from collector.models.records import Measurement, Report
    from collector.store.client import SupabaseClient

logger = logging.getLogger(__name__)

MEASUREMENTS_TABLE = "measurements"
REPORTS_TABLE = "reports"


class StoreWriter:
    """Persists measurements and reports, reporting failure as a return value.

    There is no retry: a failed write is logged and abandoned.
    """

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    def insert_measurement(self, measurement: Measurement) -> str | None:
        """Insert a measurement row; return its id, or None on failure."""
        try:
            row = self._client.insert(MEASUREMENTS_TABLE, measurement.to_dict(), returning="id")
        except StoreError as exc:
            logger.error("Store insert error (measurement): %s", exc)
            return None

        measurement_id = row.get("id") if row else None
        if measurement_id is None:
            logger.error("Store insert error (measurement): no id returned")
            return None
        return str(measurement_id)

    def insert_report(self, report: Report) -> bool:
        """Insert a report row; return True on success."""
        try:
            self._client.insert(REPORTS_TABLE, report.to_dict())
        except StoreError as exc:
            logger.error("Store insert error (%s report): %s", report.type.value, exc)
            return False
        return True

    def close(self) -> None:
        self._client.close()
