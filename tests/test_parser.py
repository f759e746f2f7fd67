import pytest
from pydantic import ValidationError

from gc_timeline.errors import GCLogDefectError, UnknownEventLabelError
from gc_timeline.event_types import CollectorType, GCEventType
from gc_timeline.events import LineContext, MemoryArea
from gc_timeline.parser import GCLogParser, get_profile, parse_phase
from gc_timeline.reader import parse_log

MB = 1024 * 1024


def _counts(model):
    return (
        len(model.events),
        len(model.allocation_stalls),
        len(model.ooms),
        len(model.statistics),
    )


def _open_minor(parser, uptime=1.0, gc_id=0):
    parser.parse_line("Minor Collection (Allocation Rate)", uptime, gc_id)
    return parser.model.minor_collections[-1]


# === Cycles and phases ===


def test_minor_cycle_with_phase_scenario(parser):
    lines = [
        "Minor Collection (Warmup)",
        "Young Pause Mark Start 1.234ms",
        "Minor Collection (Warmup) 104M(10%)->88M(9%)",
    ]
    for line, uptime in zip(lines, [10.000, 10.005, 10.006]):
        assert parser.parse_line(line, uptime, gc_id=7)

    model = parser.model
    assert len(model.minor_collections) == 1
    cycle = model.minor_collections[0]
    assert cycle.event_type is GCEventType.GENZ_MINOR_COLLECTION
    assert cycle.cause == "Warmup"
    assert cycle.gc_id == 7
    assert cycle.start_time == 10.000
    assert cycle.duration == pytest.approx(0.006)

    assert len(cycle.phases) == 1
    phase = cycle.phases[0]
    assert phase.event_type is GCEventType.GENZ_YOUNG_PAUSE_MARK_START
    assert phase.duration == pytest.approx(0.001234)
    assert phase.start_time == pytest.approx(10.005 - 0.001234)
    assert phase.gc_id == 7
    assert model.events == [cycle, phase]


@pytest.mark.parametrize("start, end", [(0.0, 0.0), (1.5, 2.25), (100.125, 4000.5)])
def test_cycle_duration_is_end_minus_start(parser, start, end):
    parser.parse_line("Major Collection (Proactive)", start, 1)
    parser.parse_line("Major Collection (Proactive) 155M(16%)->110M(11%)", end, 1)

    cycle = parser.model.major_collections[0]
    assert cycle.duration == end - start
    assert cycle.cause == "Proactive"


def test_end_line_without_start_is_ignored(parser):
    assert parser.parse_line("Minor Collection (Warmup) 104M(10%)->88M(9%)", 1.0, 0)
    assert parser.model.events == []


def test_end_line_does_not_reclose_cycle(parser):
    cycle = _open_minor(parser, 1.0)
    parser.parse_line("Minor Collection (Allocation Rate) 10M(1%)->8M(1%)", 1.5, 0)
    parser.parse_line("Minor Collection (Allocation Rate) 10M(1%)->8M(1%)", 3.0, 0)

    assert cycle.duration == 0.5


def test_cycle_start_time_is_immutable(parser):
    cycle = _open_minor(parser, 1.0)
    with pytest.raises(ValidationError):
        cycle.start_time = 2.0


def test_unclosed_trailing_cycle_stays_in_model(parser):
    cycle = _open_minor(parser, 4.0)
    parser.parse_line("Young Concurrent Mark 3.000ms", 4.01, 0)

    assert cycle.duration is None
    assert not cycle.is_closed
    assert len(cycle.phases) == 1


def test_phase_before_any_cycle_is_noop(parser):
    assert parser.parse_line("Young Pause Mark Start 0.010ms", 1.0, 0)
    assert parser.parse_line("Major Concurrent Relocate 5.000ms", 1.0, 0)
    assert _counts(parser.model) == (0, 0, 0, 0)


def test_phases_attach_to_their_own_generation(parser):
    parser.parse_line("Major Collection (Proactive)", 1.0, 1)
    minor = _open_minor(parser, 1.05, 2)
    parser.parse_line("Young Pause Mark Start 0.010ms", 1.051, 2)
    parser.parse_line("Major Concurrent Mark 70.000ms", 1.08, 1)

    major = parser.model.major_collections[0]
    assert [p.event_type for p in minor.phases] == [GCEventType.GENZ_YOUNG_PAUSE_MARK_START]
    assert [p.event_type for p in major.phases] == [GCEventType.GENZ_MAJOR_CONCURRENT_MARK]
    assert major.phases[0].gc_id == 1


def test_mark_free_is_not_mistaken_for_mark(parser):
    cycle = _open_minor(parser)
    parser.parse_line("Young Concurrent Mark Free 0.001ms", 1.1, 0)
    parser.parse_line("Young Concurrent Mark 8.500ms", 1.2, 0)

    assert [p.event_type for p in cycle.phases] == [
        GCEventType.GENZ_YOUNG_CONCURRENT_MARK_FREE,
        GCEventType.GENZ_YOUNG_CONCURRENT_MARK,
    ]


def test_all_phase_labels_are_recognised(parser):
    cycle = _open_minor(parser)
    parser.parse_line("Major Collection (Proactive)", 1.0, 1)
    labels = [
        "Pause Mark Start",
        "Concurrent Mark",
        "Pause Mark End",
        "Concurrent Mark Free",
        "Concurrent Process Non-Strong References",
        "Concurrent Reset Relocation Set",
        "Concurrent Select Relocation Set",
        "Pause Relocate Start",
        "Concurrent Relocate",
    ]
    for label in labels:
        assert parser.parse_line(f"Young {label} 1.000ms", 2.0, 0)
        assert parser.parse_line(f"Major {label} 1.000ms", 2.0, 1)

    major = parser.model.major_collections[0]
    assert [p.event_type.label for p in cycle.phases] == [f"Young {label}" for label in labels]
    assert [p.event_type.label for p in major.phases] == [f"Major {label}" for label in labels]


def test_unknown_phase_label_is_fatal(parser):
    _open_minor(parser)
    with pytest.raises(UnknownEventLabelError):
        parse_phase(parser.model, LineContext(uptime=1.0, gc_id=0), "Young Pause Sweep", "1.0ms")


def test_malformed_phase_duration_is_fatal(parser):
    _open_minor(parser)
    with pytest.raises(GCLogDefectError):
        parser.parse_line("Young Pause Mark Start soon", 1.0, 0)


# === Memory lines ===


def test_capacity_and_used_combine_into_one_heap_item(parser):
    cycle = _open_minor(parser)
    parser.parse_line(
        " Capacity:     2048M (100%)       2048M (100%)       2048M (100%)       2100M (100%)", 1.1, 0
    )
    parser.parse_line(
        "     Used:      104M (5%)           96M (5%)           96M (5%)           88M (4%)", 1.1, 0
    )

    heap = cycle.get_memory_item(MemoryArea.HEAP)
    assert heap.pre_capacity == 2048 * MB
    assert heap.post_capacity == 2100 * MB
    assert heap.pre_used == 104 * MB
    assert heap.post_used == 88 * MB
    assert list(cycle.memory) == [MemoryArea.HEAP]


def test_used_without_capacity_is_skipped(parser):
    cycle = _open_minor(parser)
    assert parser.parse_line("     Used:      104M (5%)   96M (5%)   96M (5%)   88M (4%)", 1.1, 0)
    assert cycle.get_memory_item(MemoryArea.HEAP) is None


def test_allocated_and_reclaimed(parser):
    cycle = _open_minor(parser)
    parser.parse_line("Allocated:         -                 4M (0%)             6M (0%)             8M (0%)", 1.1, 0)
    parser.parse_line("Reclaimed:         -                  -                 14M (1%)            16M (1%)", 1.1, 0)

    assert cycle.allocation == 8 * MB
    assert cycle.reclamation == 16 * MB


def test_memory_lines_fall_back_to_major_cycle(parser):
    parser.parse_line("Major Collection (Proactive)", 1.0, 1)
    parser.parse_line("Metaspace: 12M used, 13M committed, 1088M reserved", 1.1, 1)

    metaspace = parser.model.major_collections[0].get_memory_item(MemoryArea.METASPACE)
    assert metaspace.post_used == 12 * MB
    assert metaspace.post_capacity == 13 * MB
    assert metaspace.pre_used is None


def test_metaspace_with_capacity_column(parser):
    cycle = _open_minor(parser)
    parser.parse_line("Metaspace: 12M used, 13M capacity, 14M committed, 1088M reserved", 1.1, 0)

    metaspace = cycle.get_memory_item(MemoryArea.METASPACE)
    assert metaspace.post_used == 12 * MB
    assert metaspace.post_capacity == 14 * MB


def test_memory_lines_without_cycle_are_ignored(parser):
    assert parser.parse_line("Metaspace: 12M used, 13M committed, 1088M reserved", 1.0, 0)
    assert parser.parse_line(" Capacity:  2048M (100%) 2048M (100%) 2048M (100%) 2048M (100%)", 1.0, 0)
    assert parser.model.events == []


def test_short_heap_row_is_fatal(parser):
    _open_minor(parser)
    with pytest.raises(GCLogDefectError):
        parser.parse_line(" Capacity:     2048M (100%)", 1.1, 0)


# === Thread anomalies ===


def test_out_of_memory_scenario(parser):
    assert parser.parse_line("Out Of Memory (GC Thread#3)", 5.0)

    assert len(parser.model.ooms) == 1
    oom = parser.model.ooms[0]
    assert oom.event_type is GCEventType.OUT_OF_MEMORY
    assert oom.thread_name == "GC Thread#3"
    assert oom.start_time == 5.0
    assert oom.duration is None


def test_allocation_stall_scenario(parser):
    assert parser.parse_line("Allocation Stall (main) 2.500ms", 7.0)

    stall = parser.model.allocation_stalls[0]
    assert stall.event_type is GCEventType.ZGC_ALLOCATION_STALL
    assert stall.thread_name == "main"
    assert stall.duration == pytest.approx(0.0025)
    assert stall.start_time == pytest.approx(7.0 - 0.0025)
    assert parser.model.events == []


def test_anomaly_lines_need_no_cycle_id(parser):
    # With a cycle id these lines go through the other rule list
    assert not parser.parse_line("Out Of Memory (main)", 5.0, gc_id=3)
    assert parser.model.ooms == []


# === Statistics ===

HEADER = (
    "  Collector: Garbage Collection Cycle                    46.474 / 46.474        "
    "40.100 / 50.200        40.100 / 50.200        40.100 / 50.200        ms"
)
RATE = (
    "     Memory: Allocation Rate                               85 / 210              "
    "85 / 210              85 / 210              85 / 210         MB/s"
)


def test_statistics_header_opens_sample(parser):
    assert parser.parse_line(HEADER, 30.0)
    assert parser.parse_line(RATE, 30.0)

    assert len(parser.model.statistics) == 1
    sample = parser.model.statistics[0]
    assert sample.start_time == 30.0
    cycle = sample.get("Collector: Garbage Collection Cycle ms")
    assert (cycle.avg_10s, cycle.max_10s, cycle.avg_10m, cycle.max_10m) == (
        46.474,
        46.474,
        40.1,
        50.2,
    )
    assert (cycle.avg_10h, cycle.max_10h, cycle.avg_total, cycle.max_total) == (
        40.1,
        50.2,
        40.1,
        50.2,
    )
    assert sample.get("Memory: Allocation Rate MB/s").max_total == 210


def test_statistics_row_before_header_is_noop(parser):
    assert parser.parse_line(RATE, 20.0)
    assert parser.model.statistics == []

    parser.parse_line(HEADER, 30.0)
    parser.parse_line(RATE, 30.0)
    assert list(parser.model.statistics[0].items) == [
        "Collector: Garbage Collection Cycle ms",
        "Memory: Allocation Rate MB/s",
    ]


def test_statistics_rows_overwrite_within_sample_and_split_by_unit(parser):
    parser.parse_line(HEADER, 30.0)
    parser.parse_line(RATE, 30.0)
    parser.parse_line(RATE.replace("85 / 210", "90 / 300", 1), 30.0)
    parser.parse_line(RATE.replace("MB/s", "ops/s"), 30.0)
    parser.parse_line(HEADER, 40.0)

    first, second = parser.model.statistics
    assert len(first.items) == 3
    assert first.get("Memory: Allocation Rate MB/s").avg_10s == 90
    assert first.get("Memory: Allocation Rate ops/s") is not None
    assert list(second.items) == ["Collector: Garbage Collection Cycle ms"]


def test_statistics_table_headings_are_not_rows(parser):
    assert not parser.parse_line(
        "                Avg / Max             Avg / Max             Avg / Max             Avg / Max",
        30.0,
    )
    assert not parser.parse_line("=== Garbage Collection Statistics ===", 30.0)


# === Unmatched input and determinism ===


@pytest.mark.parametrize(
    "detail, gc_id",
    [
        ("Using The Z Garbage Collector", None),
        ("Initializing The Z Garbage Collector", None),
        ("                 Mark Start          Mark End        Relocate Start      Relocate End", 0),
        ("Y: Young Generation", 0),
        ("", None),
    ],
)
def test_unmatched_lines_leave_model_unchanged(parser, detail, gc_id):
    _open_minor(parser)
    before = parser.model.model_dump()

    assert parser.parse_line(detail, 2.0, gc_id) is False
    assert parser.model.model_dump() == before
    assert parser.unmatched_lines == 1


def test_parsing_is_deterministic(genz_log_lines):
    first = parse_log(genz_log_lines)
    second = parse_log(genz_log_lines)
    assert first is not second
    assert first.model_dump() == second.model_dump()


def test_parser_rejects_collector_without_rules():
    with pytest.raises(ValueError):
        GCLogParser(CollectorType.ZGC)
    with pytest.raises(ValueError):
        get_profile(CollectorType.ZGC)
