#!/usr/bin/env python3
"""gc-timeline - rebuild the cycle timeline of a Generational ZGC log.

Reads a JDK unified-logging GC log (-Xlog:gc*), reconstructs minor/major
cycles with their pause and concurrent phases, heap and metaspace sizes,
allocation stalls, out-of-memory notices and periodic statistics, then:
- prints a Rich summary (cycles, slowest phases, anomalies, statistics)
- optionally exports the full model as JSON
"""

from __future__ import annotations

import logging
import sys
from collections import defaultdict
from pathlib import Path
from typing import Annotated

import typer
from pydantic import BaseModel, ConfigDict, Field
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.theme import Theme

from gc_timeline import __version__
from gc_timeline.event_types import CollectorType, GCEventType
from gc_timeline.events import GCEvent
from gc_timeline.model import GCModel
from gc_timeline.parser import STATISTICS_HEADER, GCLogParser
from gc_timeline.reader import feed_lines

# ============================================================
# SETTINGS
# ============================================================


class AnalyzeSettings(BaseModel):
    """Options of one ``analyze`` run."""

    model_config = ConfigDict(frozen=True)

    collector: CollectorType = CollectorType.GENZ
    top_phases: int = Field(default=10, ge=1)
    json_output: Path | None = None
    verbose: bool = False


# ============================================================
# RICH OUTPUT RENDERING
# ============================================================

GC_TIMELINE_THEME = Theme(
    {
        "critical": "bold red",
        "warning": "bold yellow",
        "success": "bold green",
        "info": "cyan",
        "metric": "white",
        "label": "dim white",
        "header": "bold magenta",
    }
)

console = Console(theme=GC_TIMELINE_THEME)


def configure_logging(verbose: bool) -> None:
    """Route library log records through Rich; DEBUG shows skipped lines."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def format_seconds(seconds: float) -> str:
    """Format seconds for human-readable output."""
    if seconds > 60:
        return f"{seconds:.1f}s ({seconds / 60:.1f}m)"
    if seconds < 1:
        return f"{seconds * 1000:.3f}ms"
    return f"{seconds:.3f}s"


def format_bytes(size_bytes: int | None) -> str:
    if size_bytes is None:
        return "n/a"
    if size_bytes >= 1024**3:
        return f"{size_bytes / (1024**3):.1f}G"
    if size_bytes >= 1024**2:
        return f"{size_bytes / (1024**2):.1f}M"
    if size_bytes >= 1024:
        return f"{size_bytes / 1024:.1f}K"
    return f"{size_bytes}B"


def create_key_value_table(title: str, rows: list[tuple[str, str]]) -> Table:
    """Create a simple two-column key/value table."""
    table = Table(title=title, show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="label")
    table.add_column("Value", style="metric")
    for label, value in rows:
        table.add_row(label, value)
    return table


def build_parsing_coverage_rows(parser: GCLogParser, total_log_lines: int) -> list[tuple[str, str]]:
    """Rows describing how much of the log the rules recognised."""
    rows = [
        ("Total log lines", str(total_log_lines)),
        ("Recognised lines", str(parser.matched_lines)),
        ("Unrecognised lines", str(parser.unmatched_lines)),
    ]
    dispatched = parser.matched_lines + parser.unmatched_lines
    if dispatched > 0:
        rows.append(("Recognised rate", f"{parser.matched_lines / dispatched * 100.0:.1f}%"))
    return rows


def build_cycle_rows(label: str, cycles: list[GCEvent]) -> list[tuple[str, str]]:
    """Count and duration rows for one generation's cycles."""
    closed = [c.duration for c in cycles if c.duration is not None]
    rows = [
        (f"{label} cycles", str(len(cycles))),
        (f"{label} cycles without end line", str(len(cycles) - len(closed))),
    ]
    if closed:
        rows += [
            (f"{label} total time", format_seconds(sum(closed))),
            (f"{label} average", format_seconds(sum(closed) / len(closed))),
            (f"{label} longest", format_seconds(max(closed))),
        ]
    heap_reclaimed = [c.reclamation for c in cycles if c.reclamation is not None]
    if heap_reclaimed:
        rows.append((f"{label} reclaimed", format_bytes(sum(heap_reclaimed))))
    return rows


def build_phase_rows(model: GCModel, top_n: int) -> list[dict[str, str]]:
    """Phases ranked by total time, one row per phase type."""
    durations: dict[GCEventType, list[float]] = defaultdict(list)
    for event in model.events:
        if event.event_type.is_parent or event.duration is None:
            continue
        durations[event.event_type].append(event.duration)

    ranked = sorted(durations.items(), key=lambda item: sum(item[1]), reverse=True)[:top_n]
    return [
        {
            "phase": event_type.label,
            "kind": event_type.kind.value,
            "count": str(len(values)),
            "total": format_seconds(sum(values)),
            "max": format_seconds(max(values)),
        }
        for event_type, values in ranked
    ]


def build_anomaly_rows(model: GCModel) -> list[tuple[str, str]]:
    rows = [("Allocation stalls", str(len(model.allocation_stalls)))]
    stall_times = [s.duration for s in model.allocation_stalls if s.duration is not None]
    if stall_times:
        worst = max(model.allocation_stalls, key=lambda s: s.duration or 0.0)
        rows += [
            ("Total stall time", format_seconds(sum(stall_times))),
            ("Longest stall", f"{format_seconds(max(stall_times))} ({worst.thread_name})"),
        ]
    rows.append(("Out of memory notices", str(len(model.ooms))))
    if model.ooms:
        threads = sorted({oom.thread_name for oom in model.ooms})
        rows.append(("OOM threads", ", ".join(threads)))
    return rows


def build_statistics_rows(model: GCModel) -> list[dict[str, str]]:
    """Rows of the most recent statistics sample, header metric first."""
    sample = model.last_statistics()
    if sample is None:
        return []
    names = sorted(sample.items, key=lambda name: (name != STATISTICS_HEADER, name))
    return [
        {
            "metric": name,
            "avg_10s": f"{sample.items[name].avg_10s:g}",
            "max_10s": f"{sample.items[name].max_10s:g}",
            "avg_total": f"{sample.items[name].avg_total:g}",
            "max_total": f"{sample.items[name].max_total:g}",
        }
        for name in names
    ]


def render_rich_output(
    model: GCModel, parser: GCLogParser, total_log_lines: int, settings: AnalyzeSettings
) -> None:
    """Render the reconstructed timeline using Rich components."""
    console.print()
    console.print(Panel(f"Collector: {model.collector.value}", style="header", expand=True))
    console.print()

    console.print(
        create_key_value_table("Parsing Coverage", build_parsing_coverage_rows(parser, total_log_lines))
    )
    console.print()

    cycle_rows = build_cycle_rows("Minor", model.minor_collections)
    cycle_rows += build_cycle_rows("Major", model.major_collections)
    main_pauses = [
        p.duration for p in model.get_pause_events(main_only=True) if p.duration is not None
    ]
    if main_pauses:
        cycle_rows.append(("Stop-the-world total", format_seconds(sum(main_pauses))))
        cycle_rows.append(("Longest pause", format_seconds(max(main_pauses))))
    console.print(create_key_value_table("Collection Cycles", cycle_rows))
    console.print()

    phase_rows = build_phase_rows(model, settings.top_phases)
    if phase_rows:
        table = Table(title=f"Top {len(phase_rows)} Phases by Total Time", header_style="header")
        for column in ("phase", "kind", "count", "total", "max"):
            table.add_column(column.title(), style="metric")
        for row in phase_rows:
            table.add_row(*row.values())
        console.print(table)
        console.print()

    anomaly_rows = build_anomaly_rows(model)
    border = "red" if model.ooms else "yellow" if model.allocation_stalls else "green"
    console.print(
        Panel(
            create_key_value_table("", anomaly_rows),
            title="Thread Anomalies",
            border_style=border,
        )
    )

    statistics_rows = build_statistics_rows(model)
    if statistics_rows:
        console.print()
        table = Table(
            title=f"Latest Statistics Sample ({len(model.statistics)} samples)",
            header_style="header",
        )
        for column in ("metric", "avg_10s", "max_10s", "avg_total", "max_total"):
            table.add_column(column, style="metric")
        for row in statistics_rows:
            table.add_row(*row.values())
        console.print(table)


def export_json(model: GCModel, output_path: Path) -> None:
    """Write the whole model (event types by name) as indented JSON."""
    output_path.write_text(model.model_dump_json(indent=2), encoding="utf-8")


# ============================================================
# TYPER CLI INTERFACE
# ============================================================

app = typer.Typer(
    name="gc-timeline",
    help="Rebuild the collection timeline of a Generational ZGC log",
    add_completion=False,
    rich_markup_mode="rich",
)


@app.command()
def analyze(
    log_file: Annotated[
        Path,
        typer.Argument(
            help="Path to GC log file (-Xlog:gc*)",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    json_output: Annotated[
        Path | None,
        typer.Option(
            "--json",
            "-j",
            help="Export the reconstructed model to a JSON file",
            file_okay=True,
            dir_okay=False,
        ),
    ] = None,
    collector: Annotated[
        CollectorType,
        typer.Option("--collector", "-c", help="Collector that wrote the log"),
    ] = CollectorType.GENZ,
    top_phases: Annotated[
        int,
        typer.Option("--top-phases", help="Number of phase types to list", min=1),
    ] = 10,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log skipped and incomplete lines"),
    ] = False,
) -> None:
    """Analyze a Generational ZGC log file.

    Exit codes: 0 = timeline built, 1 = error or no collection cycles found.
    """
    settings = AnalyzeSettings(
        collector=collector, top_phases=top_phases, json_output=json_output, verbose=verbose
    )
    configure_logging(settings.verbose)

    try:
        with log_file.open(encoding="utf-8") as f:
            lines = f.readlines()

        if settings.verbose:
            console.print(f"[info]Read {len(lines)} lines from {log_file}[/info]")

        parser = GCLogParser(settings.collector)
        with Progress(
            SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console
        ) as progress:
            parse_task = progress.add_task("[cyan]Rebuilding timeline...", total=None)
            feed_lines(parser, lines)
            progress.update(parse_task, completed=100)

        model = parser.model
        if not model.minor_collections and not model.major_collections:
            console.print("[critical]ERROR: No collection cycles found in log file[/critical]")
            sys.exit(1)

        render_rich_output(model, parser, len(lines), settings)

        if settings.json_output:
            export_json(model, settings.json_output)
            console.print(f"\n[success]Model exported to {settings.json_output}[/success]")

    except ValueError as e:
        console.print(f"[critical]ERROR: {escape(str(e))}[/critical]")
        sys.exit(1)


@app.command()
def version() -> None:
    """Display version."""
    console.print(f"gc-timeline {__version__}")


if __name__ == "__main__":
    app()
