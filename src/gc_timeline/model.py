"""Event store for one parsed log."""

from __future__ import annotations

from pydantic import BaseModel, Field

from gc_timeline.event_types import (
    CollectorType,
    EventTypeRegistry,
    GCEventType,
    Generation,
    get_registry,
)
from gc_timeline.events import GCEvent, StatisticsSample, ThreadEvent


class GCModel(BaseModel):
    """Everything reconstructed from one log, in file order.

    ``events`` holds cycles and phases chronologically by the line that
    produced them. Cycles are also appended to the list of their generation
    so the parser can find "the current minor/major cycle" without scanning.
    Nothing is ever removed.
    """

    collector: CollectorType = CollectorType.GENZ
    events: list[GCEvent] = Field(default_factory=list)
    minor_collections: list[GCEvent] = Field(default_factory=list)
    major_collections: list[GCEvent] = Field(default_factory=list)
    allocation_stalls: list[ThreadEvent] = Field(default_factory=list)
    ooms: list[ThreadEvent] = Field(default_factory=list)
    statistics: list[StatisticsSample] = Field(default_factory=list)

    @property
    def registry(self) -> EventTypeRegistry:
        return get_registry(self.collector)

    def _cycle_list(self, event_type: GCEventType) -> list[GCEvent] | None:
        if not event_type.is_parent:
            return None
        if event_type.generation is Generation.YOUNG:
            return self.minor_collections
        if event_type.generation is Generation.OLD:
            return self.major_collections
        return None

    # ------------------------------------------------------------
    # Writers (used by parser handlers)
    # ------------------------------------------------------------

    def put_event(self, event: GCEvent) -> None:
        self.events.append(event)
        cycles = self._cycle_list(event.event_type)
        if cycles is not None:
            cycles.append(event)

    def add_phase(self, parent: GCEvent, phase: GCEvent) -> None:
        parent.phases.append(phase)
        self.events.append(phase)

    def add_oom(self, event: ThreadEvent) -> None:
        self.ooms.append(event)

    def add_allocation_stall(self, event: ThreadEvent) -> None:
        self.allocation_stalls.append(event)

    def new_statistics(self, start_time: float) -> StatisticsSample:
        sample = StatisticsSample(start_time=start_time)
        self.statistics.append(sample)
        return sample

    def last_statistics(self) -> StatisticsSample | None:
        return self.statistics[-1] if self.statistics else None

    # ------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------

    def get_last_event_of_type(self, event_type: GCEventType) -> GCEvent | None:
        """Most recently added event of ``event_type``, closed or not.

        This is how follow-up lines find the event they belong to; cycle ids
        are not used because data lines do not repeat them reliably.
        """
        cycles = self._cycle_list(event_type)
        if cycles is not None:
            return cycles[-1] if cycles else None
        for event in reversed(self.events):
            if event.event_type is event_type:
                return event
        return None

    def get_events_of_type(self, event_type: GCEventType) -> list[GCEvent]:
        cycles = self._cycle_list(event_type)
        if cycles is not None:
            return list(cycles)
        return [e for e in self.events if e.event_type is event_type]

    def get_pause_events(self, main_only: bool = False) -> list[GCEvent]:
        """Pause phases in file order; ``main_only`` keeps headline stop-the-world pauses."""
        wanted = self.registry.main_pause_types if main_only else self.registry.pause_types
        return [e for e in self.events if e.event_type in wanted]

    def get_important_events(self) -> list[GCEvent]:
        important = self.registry.important_types
        return [e for e in self.events if e.event_type in important]
