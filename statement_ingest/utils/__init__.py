"""Utility modules."""

from .audit_logger import AuditLogger
from .normalization import (
    DATE_FORMATS,
    DateFormat,
    detect_date_format,
    get_date_format,
    is_numeric_value,
    parse_amount,
    parse_date,
    strip_time,
)
from .progress import CancellationToken, ProgressReporter

__all__ = [
    "AuditLogger",
    "CancellationToken",
    "DATE_FORMATS",
    "DateFormat",
    "ProgressReporter",
    "detect_date_format",
    "get_date_format",
    "is_numeric_value",
    "parse_amount",
    "parse_date",
    "strip_time",
]
