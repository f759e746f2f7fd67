"""Unified-logging line reader: strips decorations before the parser sees a line."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator

from pydantic import BaseModel, ConfigDict

from gc_timeline.event_types import CollectorType
from gc_timeline.model import GCModel
from gc_timeline.parser import GCLogParser

# Example:
# [2024-05-14T10:01:02.345+0000][0.593s][info][gc,phases   ] GC(0) Young Pause Mark Start 0.010ms
DECORATIONS_PATTERN: re.Pattern[str] = re.compile(r"^(?:\[[^\]]*\])+")
UPTIME_PATTERN: re.Pattern[str] = re.compile(r"\[(?P<value>\d+(?:\.\d+)?)(?P<unit>s|ms)\]")
GC_ID_PATTERN: re.Pattern[str] = re.compile(r"GC\((?P<gc_id>\d+)\) ")


class LogRecord(BaseModel):
    """One decorated log line reduced to what the parser needs."""

    model_config = ConfigDict(frozen=True)

    uptime: float
    gc_id: int | None = None
    detail: str


def read_record(line: str) -> LogRecord | None:
    """Split a unified-logging line, or return None if it has no uptime decoration.

    Only the single separator space after the decorations and after
    ``GC(n)`` is removed; the heap table rows rely on the remaining indent.
    """
    line = line.rstrip("\r\n")
    decorations = DECORATIONS_PATTERN.match(line)
    if not decorations:
        return None
    uptime_match = UPTIME_PATTERN.search(decorations.group(0))
    if not uptime_match:
        return None

    uptime = float(uptime_match.group("value"))
    if uptime_match.group("unit") == "ms":
        uptime /= 1000

    detail = line[decorations.end() :].removeprefix(" ")
    gc_id = None
    if gc_id_match := GC_ID_PATTERN.match(detail):
        gc_id = int(gc_id_match.group("gc_id"))
        detail = detail[gc_id_match.end() :]
    return LogRecord(uptime=uptime, gc_id=gc_id, detail=detail)


def iter_log_records(lines: Iterable[str]) -> Iterator[LogRecord]:
    """Yield records for every decorated line, in file order."""
    for line in lines:
        record = read_record(line)
        if record is not None:
            yield record


def feed_lines(parser: GCLogParser, lines: Iterable[str]) -> GCLogParser:
    """Push every decorated line of ``lines`` through ``parser``."""
    for record in iter_log_records(lines):
        parser.parse_line(record.detail, record.uptime, record.gc_id)
    return parser


def parse_log(lines: Iterable[str], collector: CollectorType = CollectorType.GENZ) -> GCModel:
    """Parse a whole log into a fresh model."""
    return feed_lines(GCLogParser(collector), lines).model
