from __future__ import annotations

from typing import Callable, Dict, Sequence

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import GanttSlice, MemoryBlock

COLORS = ["red", "green", "yellow", "blue", "magenta", "cyan"]


def render_gantt(slices: Sequence[GanttSlice]) -> str:
    """
    Plain-text Gantt chart. Idle gaps between slices are drawn as dots.
    """
    if not slices:
        return "(no execution)"

    slices = sorted(slices, key=lambda s: (s.start, s.end))

    line = "|"
    labels = ""
    time_marks = "0"
    last_time = 0

    for sl in slices:
        idle_gap = sl.start - last_time
        if idle_gap > 0:
            line += "." * idle_gap
            labels += " " * idle_gap
            last_time = sl.start
            time_marks += f"{last_time:>3}"

        width = max(1, sl.duration)
        line += "=" * width
        labels += sl.process_id[:width].ljust(width)
        last_time = sl.end
        time_marks += f"{last_time:>3}"

    line += "|"

    return "\n".join(
        [
            "Gantt Chart:",
            line,
            labels,
            time_marks,
        ]
    )


def _color_picker() -> Callable[[str], str]:
    assigned: Dict[str, str] = {}

    def pick(key: str) -> str:
        if key not in assigned:
            assigned[key] = COLORS[len(assigned) % len(COLORS)]
        return assigned[key]

    return pick


def build_rich_gantt(slices: Sequence[GanttSlice]) -> tuple[Panel, str]:
    """
    Build a Rich Panel containing a colored Gantt chart and a string with time marks.
    """
    if not slices:
        panel = Panel("No execution", title="Gantt Chart")
        return panel, ""

    slices = sorted(slices, key=lambda s: (s.start, s.end))
    pid_color = _color_picker()

    timeline = Text()
    labels = Text()
    time_marks = "0"
    last_time = 0

    for sl in slices:
        idle_gap = sl.start - last_time
        if idle_gap > 0:
            timeline.append(" " * idle_gap)
            labels.append("Idle"[:idle_gap].ljust(idle_gap), style="dim")
            last_time = sl.start
            time_marks += f"{last_time:>3}"

        width = max(1, sl.duration)
        color = pid_color(sl.process_id)

        timeline.append(" " * width, style=f"on {color}")
        labels.append(sl.process_id[:width].ljust(width), style="bold")

        last_time = sl.end
        time_marks += f"{last_time:>3}"

    table = Table.grid(padding=(0, 0))
    table.add_row(timeline)
    table.add_row(labels)

    panel = Panel.fit(table, title="Gantt Chart")
    return panel, time_marks


def build_memory_map(blocks: Sequence[MemoryBlock], total: int, width: int = 64) -> Panel:
    """
    Scaled bar of the address space plus one table row per block.
    """
    color_for = _color_picker()
    bar = Text()
    drawn = 0
    for i, block in enumerate(blocks):
        # Last block takes the rounding remainder so the bar is exactly `width`.
        if i == len(blocks) - 1:
            cells = max(0, width - drawn)
        else:
            cells = max(1, round(block.size * width / total)) if total else 0
        drawn += cells
        style = "on grey23" if block.is_free else f"on {color_for(block.id)}"
        bar.append(" " * cells, style=style)

    table = Table(box=None, padding=(0, 1))
    table.add_column("Block")
    table.add_column("Start", justify="right")
    table.add_column("End", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Seq", justify="right")

    for block in blocks:
        label = Text(block.id, style="dim" if block.is_free else "bold")
        seq = "" if block.is_free else str(block.allocation_sequence)
        table.add_row(label, str(block.start), str(block.end), f"{block.size} KB", seq)

    grid = Table.grid()
    grid.add_row(bar)
    grid.add_row(table)
    return Panel.fit(grid, title=f"Memory ({total} KB)")
