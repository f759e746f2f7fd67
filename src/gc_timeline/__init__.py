"""Typed timeline reconstruction for Generational ZGC logs."""

from gc_timeline.errors import GCLogDefectError, UnknownEventLabelError
from gc_timeline.event_types import CollectorType, GCEventType, get_registry
from gc_timeline.model import GCModel
from gc_timeline.parser import GCLogParser, get_profile
from gc_timeline.reader import parse_log

__version__ = "0.1.0"

__all__ = [
    "CollectorType",
    "GCEventType",
    "GCLogDefectError",
    "GCLogParser",
    "GCModel",
    "UnknownEventLabelError",
    "get_profile",
    "get_registry",
    "parse_log",
]
