import json
from pathlib import Path

import pytest

from ossim_cli.models import Edge, Process
from ossim_cli.workload_io import load_memory_script, load_resource_graph, load_workload


def test_load_json(tmp_path: Path):
    p = tmp_path / "w.json"
    p.write_text('[{"id":"A","arrival_time":0,"burst_time":3,"priority":1},'
                 '{"id":"B","arrival_time":1,"burst_time":2}]')
    procs = load_workload(p)
    assert isinstance(procs[0], Process)
    assert procs[1].priority == 0
    assert procs[1].arrival_time == 1


def test_load_csv(tmp_path: Path):
    p = tmp_path / "w.csv"
    p.write_text("pid,arrival_time,burst_time,priority\nA,0,3,1\nB,1,2,\n")
    procs = load_workload(p)
    assert procs[0].id == "A"
    assert procs[0].priority == 1
    assert procs[1].priority == 0


@pytest.mark.parametrize(
    "entry",
    [
        {"id": "A", "arrival_time": 0, "burst_time": 0},
        {"id": "A", "arrival_time": -1, "burst_time": 2},
        {"id": "A", "arrival_time": "soon", "burst_time": 2},
        {"arrival_time": 0, "burst_time": 2},
    ],
)
def test_invalid_entries_are_rejected(tmp_path: Path, entry):
    p = tmp_path / "w.json"
    p.write_text(json.dumps([entry]))
    with pytest.raises(ValueError):
        load_workload(p)


def test_duplicate_ids_are_rejected(tmp_path: Path):
    p = tmp_path / "w.csv"
    p.write_text("id,arrival_time,burst_time\nA,0,3\nA,1,2\n")
    with pytest.raises(ValueError, match="Duplicate"):
        load_workload(p)


def test_unsupported_format(tmp_path: Path):
    p = tmp_path / "w.yaml"
    p.write_text("- id: A\n")
    with pytest.raises(ValueError, match="Unsupported"):
        load_workload(p)


def test_load_resource_graph_skips_invalid_edges(tmp_path: Path):
    p = tmp_path / "g.json"
    p.write_text(json.dumps({
        "processes": ["P1", "P2"],
        "resources": [{"id": "R1", "instances": 1}],
        "edges": [
            {"from": "P1", "to": "R1", "request": True},
            {"from": "R1", "to": "P2", "request": False},
            {"from": "R1", "to": "P1", "request": False},  # over the instance cap
        ],
    }))
    graph = load_resource_graph(p)
    assert graph.edges == [Edge("P1", "R1", True), Edge("R1", "P2", False)]
    assert graph.check_safety().safe_sequence == ["P2", "P1"]


def test_load_resource_graph_requires_boolean_request_flag(tmp_path: Path):
    p = tmp_path / "g.json"
    p.write_text(json.dumps({
        "processes": ["P1"],
        "resources": [{"id": "R1", "instances": 1}],
        "edges": [{"from": "R1", "to": "P1", "request": "false"}],
    }))
    with pytest.raises(ValueError, match="request"):
        load_resource_graph(p)


def test_load_resource_graph_rejects_malformed_json(tmp_path: Path):
    p = tmp_path / "g.json"
    p.write_text("{not json")
    with pytest.raises(ValueError):
        load_resource_graph(p)


def test_load_memory_script(tmp_path: Path):
    p = tmp_path / "m.json"
    p.write_text(json.dumps({
        "algorithm": "Best-Fit",
        "partitions": [64, 64],
        "operations": [
            {"op": "allocate", "size": "40"},
            {"op": "deallocate", "process": "P1"},
            {"op": "reset"},
        ],
    }))
    script = load_memory_script(p)
    assert script["algorithm"] == "Best-Fit"
    assert script["partitions"] == [64, 64]
    assert script["operations"][0] == {"op": "allocate", "size": 40}
    assert [op["op"] for op in script["operations"]] == ["allocate", "deallocate", "reset"]


def test_load_memory_script_rejects_unknown_operation(tmp_path: Path):
    p = tmp_path / "m.json"
    p.write_text(json.dumps({"operations": [{"op": "compact"}]}))
    with pytest.raises(ValueError, match="Unknown memory operation"):
        load_memory_script(p)
