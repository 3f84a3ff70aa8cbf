from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .algorithms import DEFAULT_QUANTUM, run_algorithm
from .deadlock import GraphState
from .gantt import build_memory_map, build_rich_gantt, render_gantt
from .memory import INITIAL_PARTITIONS, MemoryAllocator
from .metrics import calculate_averages
from .models import Algorithm, FitStrategy, ScheduleResult
from .session import SchedulingSession
from .workload_io import load_memory_script, load_resource_graph, load_workload

logger = logging.getLogger(__name__)

ALGORITHM_CHOICES = ["fcfs", "rr", "sjf", "srtf", "priority", "priority-p"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ossim-cli",
        description="Operating-systems simulator: CPU scheduling, deadlock safety and memory allocation.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log every scheduling, safety and allocation decision.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a scheduling algorithm on a workload file.")
    run_parser.add_argument(
        "--algorithm",
        "-a",
        required=True,
        help=f"Algorithm to use ({', '.join(ALGORITHM_CHOICES)}).",
    )
    run_parser.add_argument(
        "--workload",
        "-w",
        required=True,
        help="Path to JSON or CSV workload file.",
    )
    run_parser.add_argument(
        "--quantum",
        "-q",
        type=int,
        default=DEFAULT_QUANTUM,
        help=f"Time quantum for round-robin, coerced to at least 1 (default: {DEFAULT_QUANTUM}).",
    )
    run_parser.add_argument(
        "--plain",
        action="store_true",
        help="Draw the Gantt chart as plain text instead of colored blocks.",
    )

    compare_parser = subparsers.add_parser(
        "compare",
        help="Run multiple algorithms on the same workload and compare average metrics.",
    )
    compare_parser.add_argument(
        "--workload",
        "-w",
        required=True,
        help="Path to JSON or CSV workload file.",
    )
    compare_parser.add_argument(
        "--algorithms",
        "-a",
        nargs="+",
        default=ALGORITHM_CHOICES,
        help=f"Algorithms to compare (default: {' '.join(ALGORITHM_CHOICES)}).",
    )
    compare_parser.add_argument(
        "--quantum",
        "-q",
        type=int,
        default=DEFAULT_QUANTUM,
        help=f"Time quantum used for RR when included (default: {DEFAULT_QUANTUM}).",
    )

    safety_parser = subparsers.add_parser(
        "safety",
        help="Check a resource-allocation graph for a safe completion sequence.",
    )
    safety_parser.add_argument(
        "--graph",
        "-g",
        required=True,
        help="Path to a JSON resource graph.",
    )

    memory_parser = subparsers.add_parser(
        "memory",
        help="Replay allocate/deallocate operations against the partitioned memory.",
    )
    memory_parser.add_argument(
        "--script",
        "-s",
        default=None,
        help="Path to a JSON memory operation script.",
    )
    memory_parser.add_argument(
        "--algorithm",
        "-a",
        default=None,
        help="Fit strategy (first, best, worst, next). Overrides the script's algorithm.",
    )
    memory_parser.add_argument(
        "--allocate",
        type=int,
        action="append",
        default=[],
        metavar="KB",
        help="Allocate a block of this size (repeatable, runs after the script).",
    )
    memory_parser.add_argument(
        "--free",
        action="append",
        default=[],
        metavar="PID",
        help="Deallocate this process (repeatable, runs after --allocate).",
    )

    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


def _print_result(result: ScheduleResult, console: Console, plain: bool = False) -> None:
    console.print(f"[bold]Algorithm:[/bold] {result.algorithm.value}")
    if result.quantum is not None:
        console.print(f"[bold]Quantum:[/bold] {result.quantum}")
    if result.message:
        console.print(f"[yellow]{result.message}[/yellow]")

    console.print()

    if plain:
        console.print(render_gantt(result.timeline), markup=False, highlight=False)
    else:
        panel, time_marks = build_rich_gantt(result.timeline)
        console.print(panel)
        if time_marks:
            console.print(time_marks)

    console.print()

    proc_table = Table(title="Per-process metrics", box=box.SIMPLE_HEAVY)
    for h in ["ID", "Complete", "Turnaround", "Wait"]:
        proc_table.add_column(h, justify="center" if h == "ID" else "right")

    for pid, m in sorted(result.metrics.items()):
        proc_table.add_row(pid, str(m.completion_time), str(m.turnaround_time), str(m.waiting_time))

    console.print(proc_table)
    console.print()

    averages = calculate_averages(result.metrics)
    sys_table = Table(title="System metrics", box=box.SIMPLE_HEAVY)
    sys_table.add_column("Metric")
    sys_table.add_column("Value", justify="right")

    sys_table.add_row("Avg waiting", f"{averages.average_waiting_time:.2f}")
    sys_table.add_row("Avg turnaround", f"{averages.average_turnaround_time:.2f}")
    if result.system:
        sys = result.system
        sys_table.add_row("Makespan", str(sys.makespan))
        sys_table.add_row("Throughput (proc/time)", f"{sys.throughput:.3f}")
        sys_table.add_row("CPU utilization", f"{sys.cpu_utilization*100:.1f}%")

    console.print(sys_table)


def _run_compare(workload_path: Path, algorithms: Sequence[Algorithm], quantum: int, console: Console) -> None:
    processes = load_workload(workload_path)

    summary_table = Table(title=f"Algorithm comparison: {workload_path}", box=box.SIMPLE_HEAVY)
    summary_table.add_column("Algorithm")
    summary_table.add_column("Quantum", justify="right")
    summary_table.add_column("Avg waiting", justify="right")
    summary_table.add_column("Avg turnaround", justify="right")
    summary_table.add_column("CPU utilization", justify="right")

    for alg in algorithms:
        result = run_algorithm(alg, processes, quantum=quantum)
        averages = calculate_averages(result.metrics)
        summary_table.add_row(
            result.algorithm.value,
            "" if result.quantum is None else str(result.quantum),
            f"{averages.average_waiting_time:.2f}",
            f"{averages.average_turnaround_time:.2f}",
            f"{result.system.cpu_utilization*100:.1f}%" if result.system else "",
        )

    console.print(summary_table)


def _print_safety(graph: GraphState, console: Console) -> None:
    result = graph.check_safety()

    if result.is_safe:
        console.print("[bold green]SYSTEM IS SAFE[/bold green]")
        console.print(f"Safe sequence: <{', '.join(result.safe_sequence)}>")
    else:
        console.print("[bold red]SYSTEM IS UNSAFE[/bold red]")
        console.print("No safe sequence found")

    console.print()

    allocated = graph.allocated_counts()
    available = graph.available_instances()
    table = Table(title="Resources", box=box.SIMPLE_HEAVY)
    table.add_column("Resource")
    table.add_column("Total", justify="right")
    table.add_column("Allocated", justify="right")
    table.add_column("Available", justify="right")
    for r in graph.resources:
        table.add_row(r.id, str(r.total_instances), str(allocated[r.id]), str(available[r.id]))
    console.print(table)

    edge_table = Table(title="Edges", box=box.SIMPLE_HEAVY)
    edge_table.add_column("From")
    edge_table.add_column("To")
    edge_table.add_column("Kind")
    for e in graph.edges:
        edge_table.add_row(e.from_id, e.to_id, "request" if e.is_request else "allocation")
    console.print(edge_table)


def _run_memory(
    script: Dict[str, Any],
    algorithm: str | None,
    allocations: List[int],
    frees: List[str],
    console: Console,
) -> None:
    allocator = MemoryAllocator(
        partitions=script.get("partitions", INITIAL_PARTITIONS),
        algorithm=algorithm or script.get("algorithm", FitStrategy.FIRST_FIT),
    )

    operations = list(script.get("operations", []))
    operations += [{"op": "allocate", "size": size} for size in allocations]
    operations += [{"op": "deallocate", "process": pid} for pid in frees]

    for op in operations:
        kind = op["op"]
        if kind == "allocate":
            result = allocator.allocate(op["size"])
        elif kind == "deallocate":
            result = allocator.deallocate(op["process"])
        elif kind == "algorithm":
            result = allocator.set_algorithm(op["name"])
        elif kind == "reset":
            result = allocator.reset()
        else:
            raise ValueError(f"Unknown memory operation: {kind!r}")
        style = "green" if result.success else "red"
        console.print(f"[{style}]{escape(result.message)}[/{style}]")

    console.print()
    console.print(build_memory_map(allocator.blocks, allocator.total_memory))

    stats = allocator.stats
    stats_table = Table(title=f"Fragmentation ({allocator.algorithm.value})", box=box.SIMPLE_HEAVY)
    stats_table.add_column("Metric")
    stats_table.add_column("Value", justify="right")
    stats_table.add_row("Total free", f"{stats.total_free} KB")
    stats_table.add_row("Internal", f"{stats.internal} KB")
    stats_table.add_row("External", f"{stats.external} KB")
    console.print(stats_table)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    console = Console()

    try:
        if args.command == "run":
            session = SchedulingSession(load_workload(Path(args.workload)), args.algorithm, args.quantum)
            _print_result(session.result, console, plain=args.plain)
            return 0

        if args.command == "compare":
            algorithms = [Algorithm.from_name(a) for a in args.algorithms]
            _run_compare(Path(args.workload), algorithms, args.quantum, console)
            return 0

        if args.command == "safety":
            _print_safety(load_resource_graph(Path(args.graph)), console)
            return 0

        if args.command == "memory":
            script = load_memory_script(Path(args.script)) if args.script else {}
            _run_memory(script, args.algorithm, args.allocate, args.free, console)
            return 0
    except (ValueError, OSError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
