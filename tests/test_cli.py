import io
import json
from pathlib import Path

import pytest
from rich.console import Console

from ossim_cli.cli import _run_memory, build_parser, main
from ossim_cli.gantt import build_rich_gantt, render_gantt
from ossim_cli.models import GanttSlice


def _workload(tmp_path: Path) -> Path:
    p = tmp_path / "w.json"
    p.write_text(json.dumps([
        {"id": "P1", "arrival_time": 0, "burst_time": 5, "priority": 2},
        {"id": "P2", "arrival_time": 2, "burst_time": 3, "priority": 1},
    ]))
    return p


def test_render_gantt_marks_idle_gaps():
    chart = render_gantt([GanttSlice("P1", 0, 2), GanttSlice("P2", 4, 6)])
    lines = chart.splitlines()
    assert lines[0] == "Gantt Chart:"
    assert lines[1] == "|==..==|"
    assert lines[3].split() == ["0", "2", "4", "6"]


def test_render_empty_gantt():
    assert render_gantt([]) == "(no execution)"
    panel, marks = build_rich_gantt([])
    assert marks == ""


def test_parser_defaults():
    args = build_parser().parse_args(["run", "-a", "rr", "-w", "x.json"])
    assert args.quantum == 4
    assert not args.verbose


def test_run_command(tmp_path: Path, capsys):
    assert main(["run", "-a", "fcfs", "-w", str(_workload(tmp_path))]) == 0
    out = capsys.readouterr().out
    assert "FCFS" in out
    assert "Avg waiting" in out


def test_compare_command(tmp_path: Path, capsys):
    assert main(["compare", "-w", str(_workload(tmp_path)), "-a", "fcfs", "rr", "-q", "2"]) == 0
    out = capsys.readouterr().out
    assert "Round Robin" in out


def test_run_command_reports_bad_input(tmp_path: Path, capsys):
    missing = tmp_path / "missing.json"
    assert main(["run", "-a", "fcfs", "-w", str(missing)]) == 1
    assert "Error" in capsys.readouterr().out

    assert main(["run", "-a", "lottery", "-w", str(_workload(tmp_path))]) == 1


def test_safety_command(tmp_path: Path, capsys):
    g = tmp_path / "g.json"
    g.write_text(json.dumps({
        "processes": ["P1", "P2"],
        "resources": [{"id": "R1", "instances": 1}],
        "edges": [{"from": "P1", "to": "R1", "request": True}, {"from": "R1", "to": "P2", "request": False}],
    }))
    assert main(["safety", "-g", str(g)]) == 0
    out = capsys.readouterr().out
    assert "SYSTEM IS SAFE" in out
    assert "P2, P1" in out


def test_memory_command(tmp_path: Path, capsys):
    s = tmp_path / "m.json"
    s.write_text(json.dumps({"algorithm": "Worst-Fit", "operations": [{"op": "allocate", "size": 40}]}))
    assert main(["memory", "-s", str(s), "--allocate", "500", "--free", "P1"]) == 0
    out = capsys.readouterr().out
    assert "Allocated 40 KB to P1 using Worst-Fit" in out
    assert "Allocation failed" in out
    assert "Deallocated process P1" in out


def test_run_command_plain_gantt(tmp_path: Path, capsys):
    assert main(["run", "-a", "fcfs", "-w", str(_workload(tmp_path)), "--plain"]) == 0
    out = capsys.readouterr().out
    assert "Gantt Chart:" in out
    assert "|========|" in out


def test_memory_replay_rejects_unknown_operation():
    console = Console(file=io.StringIO())
    with pytest.raises(ValueError, match="Unknown memory operation"):
        _run_memory({"operations": [{"op": "compact"}]}, None, [], [], console)
