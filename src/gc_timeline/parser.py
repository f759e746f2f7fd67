"""Generational ZGC line handlers and the parser that drives them.

The outer reader hands each line over as ``(gc_id | None, uptime, detail)``.
Lines carrying a cycle id go through ``with_gc_id_rules``, the rest through
``without_gc_id_rules``. Handlers attach data to "the latest event of the
matching type" in the model, which assumes uptimes never go backwards.

Missing antecedents (a phase before its cycle start, a statistics row before
the sample header) mean the log was cut; those lines are skipped. A line that
matches a rule but does not have the expected columns is a defect and raises
``GCLogDefectError``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from functools import cache

from gc_timeline.errors import GCLogDefectError
from gc_timeline.event_types import CollectorType, GCEventType
from gc_timeline.events import (
    GCEvent,
    GCMemoryItem,
    LineContext,
    MemoryArea,
    StatisticsItem,
    ThreadEvent,
)
from gc_timeline.model import GCModel
from gc_timeline.rules import ParseRule, PredicateRule, PrefixRule, apply_rules
from gc_timeline.units import parse_duration_seconds, parse_number, parse_size_bytes

logger = logging.getLogger(__name__)

STATISTICS_HEADER = "Collector: Garbage Collection Cycle ms"

# Longer labels come before labels they start with ("... Mark Free" before
# "... Mark") because the first matching prefix wins.
YOUNG_PHASE_LABELS: tuple[str, ...] = (
    "Young Pause Mark Start",
    "Young Pause Mark End",
    "Young Concurrent Mark Free",
    "Young Concurrent Mark",
    "Young Concurrent Process Non-Strong References",
    "Young Concurrent Reset Relocation Set",
    "Young Concurrent Select Relocation Set",
    "Young Pause Relocate Start",
    "Young Concurrent Relocate",
)
MAJOR_PHASE_LABELS: tuple[str, ...] = tuple(
    label.replace("Young", "Major", 1) for label in YOUNG_PHASE_LABELS
)


# ============================================================
# HELPERS
# ============================================================


def _column(parts: Sequence[str], index: int, value: str) -> str:
    """Token at ``index``; a short row means the column layout changed."""
    try:
        return parts[index]
    except IndexError:
        raise GCLogDefectError(f"Expected at least {index + 1} columns in {value!r}") from None


def _split_by_bracket(value: str) -> tuple[str, str]:
    """Split '(GC Thread#3) 2.500ms' into ('GC Thread#3', '2.500ms')."""
    start = value.find("(")
    end = value.rfind(")")
    if start < 0 or end < start:
        raise GCLogDefectError(f"Expected a bracketed thread name in {value!r}")
    return value[start + 1 : end], value[end + 1 :].strip()


def _current_cycle(model: GCModel) -> GCEvent | None:
    """Latest minor cycle, falling back to the latest major cycle."""
    event = model.get_last_event_of_type(GCEventType.GENZ_MINOR_COLLECTION)
    if event is None:
        event = model.get_last_event_of_type(GCEventType.GENZ_MAJOR_COLLECTION)
    return event


# ============================================================
# HANDLERS: LINES WITH A CYCLE ID
# ============================================================


def _collection_handler(cycle_type: GCEventType):
    """Build the start/end handler for one cycle type ('Minor Collection', 'Major Collection')."""

    def parse_collection(model: GCModel, context: LineContext, prefix: str, value: str) -> None:
        close_index = value.find(")")
        if value.startswith("(") and close_index == len(value) - 1:
            # Start: "Minor Collection (Warmup)"
            model.put_event(
                GCEvent(
                    event_type=cycle_type,
                    start_time=context.uptime,
                    gc_id=context.gc_id,
                    cause=value[1:close_index],
                )
            )
        elif value.endswith("%)"):
            # End: "Minor Collection (Warmup) 104M(10%)->88M(9%)"
            event = model.get_last_event_of_type(cycle_type)
            if event is None or event.is_closed:
                logger.debug("No open %s for end line at %.3fs", cycle_type.label, context.uptime)
                return
            event.duration = context.uptime - event.start_time

    parse_collection.__name__ = f"parse_{cycle_type.name.lower()}"
    return parse_collection


def parse_phase(model: GCModel, context: LineContext, phase_name: str, value: str) -> None:
    event_type = model.registry.event_type_for_label(phase_name)
    parent = model.get_last_event_of_type(event_type.parent)
    if parent is None:
        logger.debug("Dropping %s at %.3fs: no cycle started yet", phase_name, context.uptime)
        return
    duration = parse_duration_seconds(value)
    phase = GCEvent(
        event_type=event_type,
        start_time=context.uptime - duration,
        duration=duration,
        gc_id=parent.gc_id,
    )
    model.add_phase(parent, phase)


def parse_metaspace(model: GCModel, context: LineContext, prefix: str, value: str) -> None:
    event = _current_cycle(model)
    if event is None:
        return
    parts = value.split()
    # "12M used, 13M committed, 1088M reserved" has no separate capacity column
    capacity = _column(parts, 2 if len(parts) == 6 else 4, value)
    event.set_memory_item(
        GCMemoryItem(
            area=MemoryArea.METASPACE,
            post_used=parse_size_bytes(_column(parts, 0, value)),
            post_capacity=parse_size_bytes(capacity),
        )
    )


def parse_heap(model: GCModel, context: LineContext, prefix: str, value: str) -> None:
    """Heap table rows: Capacity/Used/Allocated/Reclaimed, one column per phase."""
    event = _current_cycle(model)
    if event is None:
        return
    row = prefix.strip()
    parts = value.split()
    if row == "Capacity":
        event.set_memory_item(
            GCMemoryItem(
                area=MemoryArea.HEAP,
                pre_capacity=parse_size_bytes(_column(parts, 0, value)),
                post_capacity=parse_size_bytes(_column(parts, 6, value)),
            )
        )
    elif row == "Used":
        item = event.get_memory_item(MemoryArea.HEAP)
        if item is None:
            logger.debug("Used row at %.3fs without a preceding Capacity row", context.uptime)
            return
        item.pre_used = parse_size_bytes(_column(parts, 0, value))
        item.post_used = parse_size_bytes(_column(parts, 6, value))
    elif row == "Reclaimed":
        event.reclamation = parse_size_bytes(_column(parts, 4, value))
    elif row == "Allocated":
        event.allocation = parse_size_bytes(_column(parts, 5, value))


# ============================================================
# HANDLERS: LINES WITHOUT A CYCLE ID
# ============================================================


def parse_allocation_stall(model: GCModel, context: LineContext, prefix: str, value: str) -> None:
    thread_name, duration_text = _split_by_bracket(value)
    duration = parse_duration_seconds(duration_text)
    model.add_allocation_stall(
        ThreadEvent(
            event_type=GCEventType.ZGC_ALLOCATION_STALL,
            thread_name=thread_name,
            start_time=context.uptime - duration,
            duration=duration,
        )
    )


def parse_out_of_memory(model: GCModel, context: LineContext, prefix: str, value: str) -> None:
    thread_name, _ = _split_by_bracket(value)
    model.add_oom(
        ThreadEvent(
            event_type=GCEventType.OUT_OF_MEMORY,
            thread_name=thread_name,
            start_time=context.uptime,
        )
    )


def parse_statistics_line(model: GCModel, context: LineContext, text: str) -> bool:
    """Rows of the periodic statistics table.

    Example::

        Collector: Garbage Collection Cycle   46.474 / 46.474   46.474 / 46.474   46.474 / 46.474   46.474 / 46.474   ms

    The columns are avg / max for the last 10s, 10m, 10h and the whole run.
    The unit is appended to the metric name because some metrics are printed
    once per unit.
    """
    tokens = text.split()
    length = len(tokens)
    if length < 15 or any(tokens[length - offset] != "/" for offset in (3, 6, 9, 12)):
        return False

    name = " ".join(tokens[: length - 13]) + " " + tokens[-1]
    if name == STATISTICS_HEADER:
        sample = model.new_statistics(context.uptime)
    else:
        sample = model.last_statistics()
        if sample is None:
            logger.debug("Statistics row %r before any sample header", name)
            return True

    sample.put(
        name,
        StatisticsItem(
            avg_10s=parse_number(tokens[length - 13]),
            max_10s=parse_number(tokens[length - 11]),
            avg_10m=parse_number(tokens[length - 10]),
            max_10m=parse_number(tokens[length - 8]),
            avg_10h=parse_number(tokens[length - 7]),
            max_10h=parse_number(tokens[length - 5]),
            avg_total=parse_number(tokens[length - 4]),
            max_total=parse_number(tokens[length - 2]),
        ),
    )
    return True


# ============================================================
# COLLECTOR PROFILES
# ============================================================


@dataclass(frozen=True)
class CollectorProfile:
    """Rule lists for one collector; the parser itself is collector agnostic."""

    collector: CollectorType
    with_gc_id_rules: tuple[ParseRule, ...]
    without_gc_id_rules: tuple[ParseRule, ...]


def _build_genz_profile() -> CollectorProfile:
    with_gc_id_rules: list[ParseRule] = [
        PrefixRule(label, parse_phase) for label in YOUNG_PHASE_LABELS + MAJOR_PHASE_LABELS
    ]
    with_gc_id_rules += [
        PrefixRule("Metaspace", parse_metaspace),
        PrefixRule(" Capacity", parse_heap),
        PrefixRule("     Used", parse_heap),
        PrefixRule("Allocated", parse_heap),
        PrefixRule("Reclaimed", parse_heap),
        PrefixRule("Minor Collection", _collection_handler(GCEventType.GENZ_MINOR_COLLECTION)),
        PrefixRule("Major Collection", _collection_handler(GCEventType.GENZ_MAJOR_COLLECTION)),
    ]
    without_gc_id_rules: list[ParseRule] = [
        PrefixRule("Allocation Stall", parse_allocation_stall),
        PrefixRule("Out Of Memory", parse_out_of_memory),
        PredicateRule(parse_statistics_line),
    ]
    return CollectorProfile(
        collector=CollectorType.GENZ,
        with_gc_id_rules=tuple(with_gc_id_rules),
        without_gc_id_rules=tuple(without_gc_id_rules),
    )


PROFILE_BUILDERS = {
    CollectorType.GENZ: _build_genz_profile,
}


@cache
def get_profile(collector: CollectorType) -> CollectorProfile:
    """Rule lists for ``collector``, built on first use."""
    collector = CollectorType(collector)
    if collector not in PROFILE_BUILDERS:
        raise ValueError(
            f"No parser rules for collector {collector.value!r}. "
            f"Supported: {', '.join(c.value for c in PROFILE_BUILDERS)}"
        )
    return PROFILE_BUILDERS[collector]()


# ============================================================
# PARSER
# ============================================================


class GCLogParser:
    """Feeds reader output through a collector profile into one ``GCModel``.

    One parser owns one model; parse separate logs with separate parsers.
    """

    def __init__(self, collector: CollectorType = CollectorType.GENZ) -> None:
        self.profile = get_profile(collector)
        self.model = GCModel(collector=self.profile.collector)
        self.matched_lines = 0
        self.unmatched_lines = 0

    def parse_line(self, detail: str, uptime: float, gc_id: int | None = None) -> bool:
        """Dispatch one line; returns False when no rule recognised it."""
        context = LineContext(uptime=uptime, gc_id=gc_id)
        if gc_id is not None:
            rules = self.profile.with_gc_id_rules
        else:
            rules = self.profile.without_gc_id_rules
        matched = apply_rules(rules, self.model, context, detail)
        if matched:
            self.matched_lines += 1
        else:
            self.unmatched_lines += 1
        return matched
