"""Timeline entities produced by the parser."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from gc_timeline.event_types import GCEventType

# ============================================================
# LINE CONTEXT
# ============================================================


class LineContext(BaseModel):
    """What the outer reader extracted from one line besides its detail text."""

    model_config = ConfigDict(frozen=True)

    uptime: float = Field(ge=0.0)
    gc_id: int | None = None


# ============================================================
# MEMORY
# ============================================================


class MemoryArea(str, Enum):
    HEAP = "heap"
    METASPACE = "metaspace"


class GCMemoryItem(BaseModel):
    """Sizes of one memory area around a collection, in bytes (None = not reported)."""

    area: MemoryArea
    pre_capacity: int | None = None
    post_capacity: int | None = None
    pre_used: int | None = None
    post_used: int | None = None


# ============================================================
# EVENTS
# ============================================================


class GCEvent(BaseModel):
    """A collection cycle or one of its phases.

    Cycles are opened by their start line and closed when the end line sets
    ``duration``. Phases arrive already closed. Events are never removed from
    the model, so a truncated log leaves trailing cycles with no duration.
    """

    event_type: GCEventType = Field(frozen=True)
    start_time: float = Field(frozen=True)
    duration: float | None = None
    gc_id: int | None = None
    cause: str | None = None
    phases: list[GCEvent] = Field(default_factory=list)
    memory: dict[MemoryArea, GCMemoryItem] = Field(default_factory=dict)
    reclamation: int | None = None
    allocation: int | None = None

    @field_serializer("event_type")
    def _serialize_event_type(self, event_type: GCEventType) -> str:
        return event_type.name

    @property
    def is_closed(self) -> bool:
        return self.duration is not None

    @property
    def end_time(self) -> float | None:
        if self.duration is None:
            return None
        return self.start_time + self.duration

    def get_memory_item(self, area: MemoryArea) -> GCMemoryItem | None:
        return self.memory.get(area)

    def set_memory_item(self, item: GCMemoryItem) -> None:
        """Create or replace the item for ``item.area``."""
        self.memory[item.area] = item


class ThreadEvent(BaseModel):
    """Allocation stall or out-of-memory notice for a single thread."""

    event_type: GCEventType
    thread_name: str
    start_time: float
    duration: float | None = None

    @field_serializer("event_type")
    def _serialize_event_type(self, event_type: GCEventType) -> str:
        return event_type.name


# ============================================================
# PERIODIC STATISTICS
# ============================================================


class StatisticsItem(BaseModel):
    """One row of the collector's periodic statistics table."""

    model_config = ConfigDict(frozen=True)

    avg_10s: float
    max_10s: float
    avg_10m: float
    max_10m: float
    avg_10h: float
    max_10h: float
    avg_total: float
    max_total: float


class StatisticsSample(BaseModel):
    """All statistics rows printed in one reporting window, keyed by metric name + unit."""

    start_time: float
    items: dict[str, StatisticsItem] = Field(default_factory=dict)

    def put(self, name: str, item: StatisticsItem) -> None:
        self.items[name] = item

    def get(self, name: str) -> StatisticsItem | None:
        return self.items.get(name)
