from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping

from .deadlock import GraphState
from .models import Edge, Process

logger = logging.getLogger(__name__)


def load_workload(path: str | Path) -> List[Process]:
    """
    Load a workload from a JSON or CSV file into a list of Process objects.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".json":
        processes = _load_json(path)
    elif suffix == ".csv":
        processes = _load_csv(path)
    else:
        raise ValueError(f"Unsupported workload format: {suffix} (use .json or .csv)")

    seen = set()
    for p in processes:
        if p.id in seen:
            raise ValueError(f"Duplicate process id '{p.id}' in {path}")
        seen.add(p.id)
    return processes


def _load_json(path: Path) -> List[Process]:
    raw = _read_json(path)

    if not isinstance(raw, list):
        raise ValueError("JSON workload must be a list of process objects")

    return [_process_from_mapping(entry) for entry in raw]


def _load_csv(path: Path) -> List[Process]:
    processes: List[Process] = []
    with path.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            processes.append(_process_from_mapping(row))
    return processes


def _process_from_mapping(mapping) -> Process:
    try:
        pid = str(mapping["id"] if "id" in mapping else mapping["pid"])
        arrival_time = int(mapping["arrival_time"])
        burst_time = int(mapping["burst_time"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid process entry: {mapping!r}") from exc

    if arrival_time < 0 or burst_time < 1:
        raise ValueError(f"Invalid process entry (arrival >= 0, burst >= 1): {mapping!r}")

    priority_val = mapping.get("priority")
    try:
        priority = int(priority_val) if priority_val not in (None, "") else 0
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid priority in process entry: {mapping!r}") from exc

    return Process(
        id=pid,
        arrival_time=arrival_time,
        burst_time=burst_time,
        priority=priority,
    )


def _read_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{path} is not valid JSON: {exc}") from exc


def load_resource_graph(path: str | Path) -> GraphState:
    """
    Load a resource-allocation graph::

        {"processes": ["P1", "P2"],
         "resources": [{"id": "R1", "instances": 1}],
         "edges": [{"from": "P1", "to": "R1", "request": true}]}

    Edges that break the graph rules are logged and skipped.
    """
    raw = _read_json(Path(path))
    if not isinstance(raw, Mapping):
        raise ValueError("Resource graph must be a JSON object")

    graph = GraphState()
    try:
        for pid in raw.get("processes", []):
            graph.add_process(str(pid))
        for entry in raw.get("resources", []):
            graph.add_resource(str(entry["id"]), int(entry.get("instances", 1)))
        edges = [_edge_from_mapping(e) for e in raw.get("edges", [])]
    except (KeyError, TypeError, AttributeError) as exc:
        raise ValueError(f"Invalid resource graph entry: {exc}") from exc

    for edge in edges:
        ok, reason = graph.add_edge(edge)
        if not ok:
            logger.warning("Skipping edge %s -> %s: %s", edge.from_id, edge.to_id, reason)

    return graph


def _edge_from_mapping(mapping) -> Edge:
    is_request = mapping.get("request", True)
    if not isinstance(is_request, bool):
        raise ValueError(f"Edge 'request' must be true or false: {mapping!r}")
    return Edge(from_id=str(mapping["from"]), to_id=str(mapping["to"]), is_request=is_request)


def load_memory_script(path: str | Path) -> Dict[str, Any]:
    """
    Load a memory operation script::

        {"algorithm": "Best-Fit",
         "partitions": [50, 100, 76, 30],
         "operations": [{"op": "allocate", "size": 40},
                        {"op": "deallocate", "process": "P1"},
                        {"op": "algorithm", "name": "Next-Fit"},
                        {"op": "reset"}]}

    Only the structure is checked here; ``algorithm`` names are resolved by
    the allocator.
    """
    raw = _read_json(Path(path))
    if not isinstance(raw, Mapping):
        raise ValueError("Memory script must be a JSON object")

    operations = raw.get("operations", [])
    if not isinstance(operations, list):
        raise ValueError("'operations' must be a list")

    script: Dict[str, Any] = {"operations": [_operation_from_mapping(op) for op in operations]}
    if "algorithm" in raw:
        script["algorithm"] = str(raw["algorithm"])
    if "partitions" in raw:
        script["partitions"] = _partitions(raw["partitions"])
    return script


def _operation_from_mapping(mapping) -> Dict[str, Any]:
    try:
        op = str(mapping["op"]).lower()
        if op == "allocate":
            return {"op": op, "size": int(mapping["size"])}
        if op == "deallocate":
            return {"op": op, "process": str(mapping["process"])}
        if op == "algorithm":
            return {"op": op, "name": str(mapping["name"])}
        if op == "reset":
            return {"op": op}
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid memory operation: {mapping!r}") from exc
    raise ValueError(f"Unknown memory operation: {mapping!r}")


def _partitions(values: Iterable[Any]) -> List[int]:
    try:
        sizes = [int(v) for v in values]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid partition sizes: {values!r}") from exc
    if not sizes or any(s < 1 for s in sizes):
        raise ValueError(f"Partition sizes must be positive: {sizes!r}")
    return sizes
