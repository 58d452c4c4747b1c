"""Domain models for the noise collector."""

from collector.models.records import Measurement, Report, ReportType, iso_timestamp
from collector.models.sample import RawSample, parse_line

__all__ = [
    "Measurement",
    "RawSample",
    "Report",
    "ReportType",
    "iso_timestamp",
    "parse_line",
]
