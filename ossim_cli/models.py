from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class Algorithm(Enum):
    FCFS = "FCFS"
    ROUND_ROBIN = "Round Robin"
    SJF = "SJF"
    SRTF = "SRTF"
    PRIORITY = "Priority (Non-Preemptive)"
    PRIORITY_PREEMPTIVE = "Priority (Preemptive)"

    @property
    def uses_quantum(self) -> bool:
        return self is Algorithm.ROUND_ROBIN

    @classmethod
    def from_name(cls, name: str | Algorithm) -> Algorithm:
        """
        Resolve a display name ("Round Robin") or short alias ("rr").
        """
        if isinstance(name, Algorithm):
            return name
        key = name.strip().lower()
        for alg in cls:
            if alg.value.lower() == key:
                return alg
        if key in _ALGORITHM_ALIASES:
            return _ALGORITHM_ALIASES[key]
        raise ValueError(f"Unknown algorithm '{name}'")


_ALGORITHM_ALIASES = {
    "fcfs": Algorithm.FCFS,
    "rr": Algorithm.ROUND_ROBIN,
    "round-robin": Algorithm.ROUND_ROBIN,
    "sjf": Algorithm.SJF,
    "srtf": Algorithm.SRTF,
    "priority": Algorithm.PRIORITY,
    "priority-np": Algorithm.PRIORITY,
    "priority-p": Algorithm.PRIORITY_PREEMPTIVE,
}


@dataclass(frozen=True)
class Process:
    id: str
    arrival_time: int
    burst_time: int
    priority: int = 0


@dataclass
class GanttSlice:
    """
    One contiguous slice of execution for a process in the Gantt chart.
    """

    process_id: str
    start: int
    end: int

    @property
    def duration(self) -> int:
        return self.end - self.start


@dataclass
class ProcessMetrics:
    completion_time: int
    turnaround_time: int
    waiting_time: int


@dataclass
class SimulationMetrics:
    average_waiting_time: float = 0.0
    average_turnaround_time: float = 0.0


@dataclass
class SystemMetrics:
    cpu_busy_time: int
    makespan: int
    throughput: float
    cpu_utilization: float


@dataclass
class ScheduleResult:
    algorithm: Algorithm
    quantum: Optional[int]
    timeline: List[GanttSlice] = field(default_factory=list)
    metrics: Dict[str, ProcessMetrics] = field(default_factory=dict)
    system: Optional[SystemMetrics] = None
    message: Optional[str] = None


# Deadlock


@dataclass(frozen=True)
class ResourceData:
    id: str
    total_instances: int


@dataclass(frozen=True)
class Edge:
    """
    A unit edge of the resource-allocation graph.

    ``is_request=True`` means process -> resource, otherwise the edge is an
    allocation going resource -> process.
    """

    from_id: str
    to_id: str
    is_request: bool


@dataclass
class SafetyResult:
    is_safe: bool
    safe_sequence: List[str] = field(default_factory=list)


# Memory


FREE_BLOCK_ID = "Free"


class FitStrategy(Enum):
    FIRST_FIT = "First-Fit"
    BEST_FIT = "Best-Fit"
    WORST_FIT = "Worst-Fit"
    NEXT_FIT = "Next-Fit"

    @classmethod
    def from_name(cls, name: str | FitStrategy) -> FitStrategy:
        if isinstance(name, FitStrategy):
            return name
        key = name.strip().lower()
        for strategy in cls:
            if key in (strategy.value.lower(), strategy.value.split("-")[0].lower()):
                return strategy
        raise ValueError(f"Unknown fit strategy '{name}'")


@dataclass(frozen=True)
class MemoryBlock:
    id: str
    start: int
    size: int
    is_free: bool
    process_size: int = 0
    internal_fragmentation: int = 0
    allocation_sequence: int = 0

    @property
    def end(self) -> int:
        return self.start + self.size


@dataclass
class FragmentationStats:
    total_free: int = 0
    internal: int = 0
    external: int = 0


@dataclass
class AllocationResult:
    success: bool
    message: str
    process_id: Optional[str] = None
    block: Optional[MemoryBlock] = None
