"""Canonical text conversions for datafile fields.

This module centralizes how typed values are written to and read from the
datafile so the projection and the CLI share a single behavior. Parsers are
strict and raise `ValueError`; callers decide whether to skip or report.
"""

from __future__ import annotations

from datetime import datetime
import math
import re
from urllib.parse import urlsplit

CSV_DT_FMT = "%Y-%m-%d %H:%M:%S"

# ASCII digits only: no "1_000", no "inf" or "nan"
_INTEGER = re.compile(r"[+-]?[0-9]+")
_DECIMAL = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


def parse_csv_datetime(value: str, fmt: str = CSV_DT_FMT) -> datetime:
    """Parse timestamp from CSV using `fmt`."""
    return datetime.strptime(value.strip(), fmt)


def format_csv_datetime(dt: datetime, fmt: str = CSV_DT_FMT) -> str:
    """Format datetime for CSV."""
    return dt.strftime(fmt)


def parse_record_id(value: str) -> int:
    """Parse a non-negative integer identifier."""
    text = value.strip()
    if not _INTEGER.fullmatch(text):
        raise ValueError(f"not an integer: {value}")
    result = int(text)
    if result < 0:
        raise ValueError(f"negative identifier: {result}")
    return result


def parse_coordinate(value: str) -> float:
    """Parse a finite decimal float; NaN and infinities are rejected."""
    text = value.strip()
    if not _DECIMAL.fullmatch(text):
        raise ValueError(f"not a decimal number: {value}")
    result = float(text)
    if not math.isfinite(result):
        raise ValueError(f"non-finite coordinate: {value}")
    return result


def format_coordinate(value: float) -> str:
    """Shortest text that parses back to the same float."""
    return repr(float(value))


def parse_url(value: str) -> str:
    """Return `value` if it is an absolute URL, else raise ValueError."""
    text = value.strip()
    parts = urlsplit(text)
    if not parts.scheme:
        raise ValueError(f"URL without scheme: {value}")
    # file URLs may have an empty authority ("file:///tmp/a.jpg")
    if not parts.netloc and not (parts.scheme == "file" and parts.path):
        raise ValueError(f"URL without host: {value}")
    return text
