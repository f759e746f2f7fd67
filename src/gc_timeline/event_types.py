"""Event type table shared by the Z collectors and the per-collector registries.

Every event kind any supported collector can report lives in ``GCEventType``.
A collector only sees the subset it declares; ``get_registry`` derives that
subset (pauses, main pauses, parent cycles, important types, label lookup)
once per collector and caches the frozen result.
"""

from __future__ import annotations

from enum import Enum
from functools import cache

from pydantic import BaseModel, ConfigDict

from gc_timeline.errors import UnknownEventLabelError


class CollectorType(str, Enum):
    """Collectors with a known event table."""

    ZGC = "zgc"
    GENZ = "genz"


class Generation(str, Enum):
    YOUNG = "young"
    OLD = "old"
    NONE = "none"


class EventKind(str, Enum):
    CYCLE = "cycle"
    PAUSE = "pause"
    CONCURRENT = "concurrent"
    THREAD = "thread"


_ZGC = frozenset({CollectorType.ZGC})
_GENZ = frozenset({CollectorType.GENZ})
_ALL_Z = frozenset({CollectorType.ZGC, CollectorType.GENZ})

Y, O, N = Generation.YOUNG, Generation.OLD, Generation.NONE
CYCLE, PAUSE, CONCURRENT, THREAD = (
    EventKind.CYCLE,
    EventKind.PAUSE,
    EventKind.CONCURRENT,
    EventKind.THREAD,
)


class GCEventType(Enum):
    """Superset of event kinds: (label, generation, kind, parent name, collectors)."""

    # Non-generational ZGC
    ZGC_GARBAGE_COLLECTION = ("Garbage Collection", N, CYCLE, None, _ZGC)
    ZGC_PAUSE_MARK_START = ("Pause Mark Start", N, PAUSE, "ZGC_GARBAGE_COLLECTION", _ZGC)
    ZGC_CONCURRENT_MARK = ("Concurrent Mark", N, CONCURRENT, "ZGC_GARBAGE_COLLECTION", _ZGC)
    ZGC_PAUSE_MARK_END = ("Pause Mark End", N, PAUSE, "ZGC_GARBAGE_COLLECTION", _ZGC)
    ZGC_CONCURRENT_NONREF = (
        "Concurrent Process Non-Strong References",
        N,
        CONCURRENT,
        "ZGC_GARBAGE_COLLECTION",
        _ZGC,
    )
    ZGC_CONCURRENT_RESET_RELOC_SET = (
        "Concurrent Reset Relocation Set",
        N,
        CONCURRENT,
        "ZGC_GARBAGE_COLLECTION",
        _ZGC,
    )
    ZGC_CONCURRENT_SELECT_RELOC_SET = (
        "Concurrent Select Relocation Set",
        N,
        CONCURRENT,
        "ZGC_GARBAGE_COLLECTION",
        _ZGC,
    )
    ZGC_PAUSE_RELOCATE_START = ("Pause Relocate Start", N, PAUSE, "ZGC_GARBAGE_COLLECTION", _ZGC)
    ZGC_CONCURRENT_RELOCATE = (
        "Concurrent Relocate",
        N,
        CONCURRENT,
        "ZGC_GARBAGE_COLLECTION",
        _ZGC,
    )

    # Thread anomalies, shared by both Z collectors
    ZGC_ALLOCATION_STALL = ("Allocation Stall", N, THREAD, None, _ALL_Z)
    OUT_OF_MEMORY = ("Out Of Memory", N, THREAD, None, _ALL_Z)

    # Generational ZGC cycles
    GENZ_MINOR_COLLECTION = ("Minor Collection", Y, CYCLE, None, _GENZ)
    GENZ_MAJOR_COLLECTION = ("Major Collection", O, CYCLE, None, _GENZ)

    # Generational ZGC young phases
    GENZ_YOUNG_PAUSE_MARK_START = (
        "Young Pause Mark Start",
        Y,
        PAUSE,
        "GENZ_MINOR_COLLECTION",
        _GENZ,
    )
    GENZ_YOUNG_CONCURRENT_MARK = (
        "Young Concurrent Mark",
        Y,
        CONCURRENT,
        "GENZ_MINOR_COLLECTION",
        _GENZ,
    )
    GENZ_YOUNG_PAUSE_MARK_END = ("Young Pause Mark End", Y, PAUSE, "GENZ_MINOR_COLLECTION", _GENZ)
    GENZ_YOUNG_CONCURRENT_MARK_FREE = (
        "Young Concurrent Mark Free",
        Y,
        CONCURRENT,
        "GENZ_MINOR_COLLECTION",
        _GENZ,
    )
    GENZ_YOUNG_CONCURRENT_NONREF = (
        "Young Concurrent Process Non-Strong References",
        Y,
        CONCURRENT,
        "GENZ_MINOR_COLLECTION",
        _GENZ,
    )
    GENZ_YOUNG_CONCURRENT_RESET_RELOC_SET = (
        "Young Concurrent Reset Relocation Set",
        Y,
        CONCURRENT,
        "GENZ_MINOR_COLLECTION",
        _GENZ,
    )
    GENZ_YOUNG_CONCURRENT_SELECT_RELOC_SET = (
        "Young Concurrent Select Relocation Set",
        Y,
        CONCURRENT,
        "GENZ_MINOR_COLLECTION",
        _GENZ,
    )
    GENZ_YOUNG_PAUSE_RELOCATE_START = (
        "Young Pause Relocate Start",
        Y,
        PAUSE,
        "GENZ_MINOR_COLLECTION",
        _GENZ,
    )
    GENZ_YOUNG_CONCURRENT_RELOCATE = (
        "Young Concurrent Relocate",
        Y,
        CONCURRENT,
        "GENZ_MINOR_COLLECTION",
        _GENZ,
    )

    # Generational ZGC old phases
    GENZ_MAJOR_PAUSE_MARK_START = (
        "Major Pause Mark Start",
        O,
        PAUSE,
        "GENZ_MAJOR_COLLECTION",
        _GENZ,
    )
    GENZ_MAJOR_CONCURRENT_MARK = (
        "Major Concurrent Mark",
        O,
        CONCURRENT,
        "GENZ_MAJOR_COLLECTION",
        _GENZ,
    )
    GENZ_MAJOR_PAUSE_MARK_END = ("Major Pause Mark End", O, PAUSE, "GENZ_MAJOR_COLLECTION", _GENZ)
    GENZ_MAJOR_CONCURRENT_MARK_FREE = (
        "Major Concurrent Mark Free",
        O,
        CONCURRENT,
        "GENZ_MAJOR_COLLECTION",
        _GENZ,
    )
    GENZ_MAJOR_CONCURRENT_NONREF = (
        "Major Concurrent Process Non-Strong References",
        O,
        CONCURRENT,
        "GENZ_MAJOR_COLLECTION",
        _GENZ,
    )
    GENZ_MAJOR_CONCURRENT_RESET_RELOC_SET = (
        "Major Concurrent Reset Relocation Set",
        O,
        CONCURRENT,
        "GENZ_MAJOR_COLLECTION",
        _GENZ,
    )
    GENZ_MAJOR_CONCURRENT_SELECT_RELOC_SET = (
        "Major Concurrent Select Relocation Set",
        O,
        CONCURRENT,
        "GENZ_MAJOR_COLLECTION",
        _GENZ,
    )
    GENZ_MAJOR_PAUSE_RELOCATE_START = (
        "Major Pause Relocate Start",
        O,
        PAUSE,
        "GENZ_MAJOR_COLLECTION",
        _GENZ,
    )
    GENZ_MAJOR_CONCURRENT_RELOCATE = (
        "Major Concurrent Relocate",
        O,
        CONCURRENT,
        "GENZ_MAJOR_COLLECTION",
        _GENZ,
    )

    def __init__(
        self,
        label: str,
        generation: Generation,
        kind: EventKind,
        parent_name: str | None,
        collectors: frozenset[CollectorType],
    ) -> None:
        self.label = label
        self.generation = generation
        self.kind = kind
        self.parent_name = parent_name
        self.collectors = collectors

    @property
    def parent(self) -> GCEventType | None:
        """Top-level cycle type this phase is reported under."""
        if self.parent_name is None:
            return None
        return GCEventType[self.parent_name]

    @property
    def is_pause(self) -> bool:
        return self.kind is EventKind.PAUSE

    @property
    def is_parent(self) -> bool:
        return self.kind is EventKind.CYCLE

    @property
    def is_main_pause(self) -> bool:
        """Pause counted in headline stop-the-world totals (not nested in another pause)."""
        if not self.is_pause:
            return False
        parent = self.parent
        return parent is None or not parent.is_pause


IMPORTANT_EVENT_TYPES: dict[CollectorType, tuple[GCEventType, ...]] = {
    CollectorType.ZGC: (
        GCEventType.ZGC_GARBAGE_COLLECTION,
        GCEventType.ZGC_PAUSE_MARK_START,
        GCEventType.ZGC_PAUSE_MARK_END,
        GCEventType.ZGC_PAUSE_RELOCATE_START,
        GCEventType.ZGC_CONCURRENT_MARK,
        GCEventType.ZGC_CONCURRENT_NONREF,
        GCEventType.ZGC_CONCURRENT_RELOCATE,
    ),
    CollectorType.GENZ: (
        GCEventType.GENZ_MINOR_COLLECTION,
        GCEventType.GENZ_MAJOR_COLLECTION,
        GCEventType.GENZ_YOUNG_PAUSE_MARK_START,
        GCEventType.GENZ_YOUNG_PAUSE_MARK_END,
        GCEventType.GENZ_YOUNG_PAUSE_RELOCATE_START,
        GCEventType.GENZ_YOUNG_CONCURRENT_MARK,
        GCEventType.GENZ_YOUNG_CONCURRENT_NONREF,
        GCEventType.GENZ_YOUNG_CONCURRENT_RELOCATE,
        GCEventType.GENZ_MAJOR_PAUSE_MARK_START,
        GCEventType.GENZ_MAJOR_PAUSE_MARK_END,
        GCEventType.GENZ_MAJOR_PAUSE_RELOCATE_START,
        GCEventType.GENZ_MAJOR_CONCURRENT_MARK,
        GCEventType.GENZ_MAJOR_CONCURRENT_NONREF,
        GCEventType.GENZ_MAJOR_CONCURRENT_RELOCATE,
    ),
}


class EventTypeRegistry(BaseModel):
    """Event types one collector supports, grouped the way summaries need them.

    Instances are built by ``get_registry`` and must be treated as read-only.
    """

    model_config = ConfigDict(frozen=True)

    collector: CollectorType
    all_types: tuple[GCEventType, ...]
    pause_types: tuple[GCEventType, ...]
    main_pause_types: tuple[GCEventType, ...]
    important_types: tuple[GCEventType, ...]
    parent_types: tuple[GCEventType, ...]
    labels: dict[str, GCEventType]

    def event_type_for_label(self, label: str) -> GCEventType:
        """Map a verbatim log label (e.g. 'Young Pause Mark Start') to its type.

        Raises:
            UnknownEventLabelError: the label table and the rule table disagree.
        """
        try:
            return self.labels[label]
        except KeyError:
            raise UnknownEventLabelError(label, self.collector.value) from None

    def supports(self, event_type: GCEventType) -> bool:
        return self.collector in event_type.collectors


@cache
def get_registry(collector: CollectorType) -> EventTypeRegistry:
    """Build (once) the registry for a collector from the shared type table."""
    collector = CollectorType(collector)
    all_types = tuple(t for t in GCEventType if collector in t.collectors)
    return EventTypeRegistry(
        collector=collector,
        all_types=all_types,
        pause_types=tuple(t for t in all_types if t.is_pause),
        main_pause_types=tuple(t for t in all_types if t.is_main_pause),
        important_types=IMPORTANT_EVENT_TYPES.get(collector, ()),
        parent_types=tuple(t for t in all_types if t.is_parent),
        labels={t.label: t for t in all_types},
    )
