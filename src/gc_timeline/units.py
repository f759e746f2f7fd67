"""Conversion of log tokens ("1.234ms", "104M", "46.474") into numbers."""

from __future__ import annotations

import re

from gc_timeline.errors import GCLogDefectError

DURATION_TOKEN: re.Pattern[str] = re.compile(r"(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>ns|us|ms|s)")
SIZE_TOKEN: re.Pattern[str] = re.compile(r"(?P<value>\d+(?:\.\d+)?)(?P<unit>[BKMGT])B?")

UNITS_PER_SECOND: dict[str, float] = {
    "ns": 1e9,
    "us": 1e6,
    "ms": 1e3,
    "s": 1.0,
}

BYTES_PER_UNIT: dict[str, int] = {
    "B": 1,
    "K": 1024,
    "M": 1024**2,
    "G": 1024**3,
    "T": 1024**4,
}


def parse_duration_seconds(text: str) -> float:
    """Parse a duration token like '1.234ms' or '0.5s' into seconds."""
    match = DURATION_TOKEN.fullmatch(text.strip())
    if not match:
        raise GCLogDefectError(f"Unrecognized duration token: {text!r}")
    return float(match.group("value")) / UNITS_PER_SECOND[match.group("unit")]


def parse_size_bytes(text: str) -> int:
    """Parse a JVM size token like '104M', '12K' or '1.5G' into bytes."""
    match = SIZE_TOKEN.fullmatch(text.strip())
    if not match:
        raise GCLogDefectError(f"Unrecognized size token: {text!r}")
    return int(float(match.group("value")) * BYTES_PER_UNIT[match.group("unit")])


def parse_number(text: str) -> float:
    """Parse a plain numeric column value."""
    try:
        return float(text)
    except ValueError as e:
        raise GCLogDefectError(f"Expected a number, got {text!r}") from e
