"""
Deadlock safety analysis over a unit-edge resource-allocation graph.

Each edge stands for one instance of a resource:

- request edge ``P -> R`` (``is_request=True``): P waits for one unit of R,
- allocation edge ``R -> P`` (``is_request=False``): P holds one unit of R.

``check_safety`` runs a Banker's-style safety scan over the tallied graph.
``GraphState`` is the caller-side editor that keeps the graph well formed
(direction rules, allocation caps) before it is handed to the checker.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import Edge, ResourceData, SafetyResult

logger = logging.getLogger(__name__)


def _next_id(prefix: str, taken: Iterable[str]) -> str:
    taken = set(taken)
    n = len(taken) + 1
    while f"{prefix}{n}" in taken:
        n += 1
    return f"{prefix}{n}"


def tally_edges(
    process_ids: Iterable[str],
    resources: Iterable[ResourceData],
    edges: Iterable[Edge],
) -> Tuple[Dict[str, Dict[str, int]], Dict[str, Dict[str, int]]]:
    """
    Count allocation and request units per process and resource.

    Returns ``(allocated, requested)``, both mapping process -> resource ->
    count. Edges whose endpoints are not a known process and resource in the
    expected direction are ignored.
    """
    processes = set(process_ids)
    resource_ids = {r.id for r in resources}

    allocated: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    requested: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))

    for edge in edges:
        if edge.is_request:
            if edge.from_id in processes and edge.to_id in resource_ids:
                requested[edge.from_id][edge.to_id] += 1
        elif edge.from_id in resource_ids and edge.to_id in processes:
            allocated[edge.to_id][edge.from_id] += 1

    return allocated, requested


def check_safety(
    process_ids: Sequence[str],
    resources: Sequence[ResourceData],
    edges: Iterable[Edge],
) -> SafetyResult:
    """
    Decide whether every process can run to completion.

    Algorithm:
        1. work = total instances - allocated instances, per resource
        2. find the first unfinished process whose requests all fit in work
        3. pretend it finishes: work += its allocation, append it to the
           sequence, restart the scan from the first process
        4. stop when a full scan finds nobody; safe iff everyone finished
    """
    if not process_ids:
        return SafetyResult(is_safe=True)

    order = list(dict.fromkeys(process_ids))
    allocated, requested = tally_edges(order, resources, edges)

    work: Dict[str, int] = {r.id: r.total_instances for r in resources}
    for held in allocated.values():
        for rid, count in held.items():
            work[rid] -= count

    finished = dict.fromkeys(order, False)
    safe_sequence: List[str] = []

    made_progress = True
    while made_progress:
        made_progress = False
        for pid in order:
            if finished[pid]:
                continue

            need = requested.get(pid, {})
            if all(work.get(rid, 0) >= count for rid, count in need.items()):
                for rid, count in allocated.get(pid, {}).items():
                    work[rid] += count
                finished[pid] = True
                safe_sequence.append(pid)
                made_progress = True
                logger.debug("Safety: %s can finish, work=%s", pid, dict(work))
                break  # rescan from the first process

    if all(finished.values()):
        return SafetyResult(is_safe=True, safe_sequence=safe_sequence)

    stuck = [pid for pid in order if not finished[pid]]
    logger.info("Unsafe state: %s cannot finish", ", ".join(stuck))
    return SafetyResult(is_safe=False)


@dataclass
class GraphState:
    """
    Editable resource-allocation graph.

    Mutations go through ``add_edge``/``remove_node`` so that edges always
    respect their role: requests run process -> resource, allocations run
    resource -> process, and no resource hands out more units than it has.
    """

    processes: List[str] = field(default_factory=list)
    resources: List[ResourceData] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)

    def _resource(self, rid: str) -> Optional[ResourceData]:
        for r in self.resources:
            if r.id == rid:
                return r
        return None

    def add_process(self, pid: Optional[str] = None) -> str:
        pid = pid or _next_id("P", self.processes)
        if pid in self.processes or self._resource(pid) is not None:
            raise ValueError(f"Duplicate node id '{pid}'")
        self.processes.append(pid)
        return pid

    def add_resource(self, rid: Optional[str] = None, total_instances: int = 1) -> str:
        rid = rid or _next_id("R", [r.id for r in self.resources])
        if rid in self.processes or self._resource(rid) is not None:
            raise ValueError(f"Duplicate node id '{rid}'")
        if total_instances < 1:
            raise ValueError(f"Resource {rid} needs at least one instance")
        self.resources.append(ResourceData(id=rid, total_instances=total_instances))
        return rid

    def set_instances(self, rid: str, total_instances: int) -> None:
        if self._resource(rid) is None:
            raise ValueError(f"Unknown resource '{rid}'")
        if total_instances < 1:
            raise ValueError(f"Resource {rid} needs at least one instance")
        held = self.allocated_counts()[rid]
        if total_instances < held:
            raise ValueError(f"Resource {rid} already has {held} instance(s) allocated")
        self.resources = [
            ResourceData(id=r.id, total_instances=total_instances) if r.id == rid else r
            for r in self.resources
        ]

    def remove_node(self, node_id: str) -> None:
        """Remove a process or resource together with every edge touching it."""
        self.processes = [p for p in self.processes if p != node_id]
        self.resources = [r for r in self.resources if r.id != node_id]
        self.edges = [e for e in self.edges if node_id not in (e.from_id, e.to_id)]

    def allocated_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {r.id: 0 for r in self.resources}
        for edge in self.edges:
            if not edge.is_request and edge.from_id in counts:
                counts[edge.from_id] += 1
        return counts

    def available_instances(self) -> Dict[str, int]:
        counts = self.allocated_counts()
        return {r.id: r.total_instances - counts[r.id] for r in self.resources}

    def validate_edge(self, edge: Edge) -> Tuple[bool, str]:
        from_is_process = edge.from_id in self.processes
        to_is_process = edge.to_id in self.processes
        from_resource = self._resource(edge.from_id)
        to_resource = self._resource(edge.to_id)

        if not (from_is_process or from_resource) or not (to_is_process or to_resource):
            return False, f"Unknown node in edge {edge.from_id} -> {edge.to_id}"

        if edge.is_request:
            if not (from_is_process and to_resource):
                return False, "A request edge must go from a process to a resource"
        else:
            if not (from_resource and to_is_process):
                return False, "An allocation edge must go from a resource to a process"
            if self.allocated_counts()[from_resource.id] >= from_resource.total_instances:
                return False, f"All instances of {from_resource.id} are already allocated"

        if edge in self.edges:
            return False, "Edge already exists"

        return True, "ok"

    def add_edge(self, edge: Edge) -> Tuple[bool, str]:
        ok, reason = self.validate_edge(edge)
        if ok:
            self.edges.append(edge)
        else:
            logger.debug("Rejected edge %s -> %s: %s", edge.from_id, edge.to_id, reason)
        return ok, reason

    def remove_edge(self, edge: Edge) -> bool:
        if edge not in self.edges:
            return False
        self.edges = [e for e in self.edges if e != edge]
        return True

    def check_safety(self) -> SafetyResult:
        return check_safety(self.processes, self.resources, self.edges)
