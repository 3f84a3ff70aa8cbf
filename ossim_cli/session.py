from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from .algorithms import DEFAULT_QUANTUM, coerce_quantum, run_algorithm
from .metrics import calculate_averages
from .models import Algorithm, GanttSlice, Process, ProcessMetrics, ScheduleResult, SimulationMetrics


class SchedulingSession:
    """
    Holds an editable process list plus the algorithm settings and re-runs
    the simulation after every change, so ``timeline``/``metrics`` always
    describe the current inputs.
    """

    def __init__(
        self,
        processes: Optional[Sequence[Process]] = None,
        algorithm: Algorithm | str = Algorithm.FCFS,
        quantum: int = DEFAULT_QUANTUM,
    ) -> None:
        self.processes: List[Process] = list(processes) if processes is not None else [
            Process(id="P1", arrival_time=0, burst_time=1, priority=1)
        ]
        self.algorithm = Algorithm.from_name(algorithm)
        self.quantum = coerce_quantum(quantum)
        self.result: ScheduleResult = self.run_simulation()

    @property
    def timeline(self) -> List[GanttSlice]:
        return self.result.timeline

    @property
    def metrics(self) -> Dict[str, ProcessMetrics]:
        return self.result.metrics

    @property
    def averages(self) -> SimulationMetrics:
        return calculate_averages(self.result.metrics)

    def run_simulation(self) -> ScheduleResult:
        self.result = run_algorithm(self.algorithm, self.processes, quantum=self.quantum)
        return self.result

    def set_algorithm(self, algorithm: Algorithm | str) -> ScheduleResult:
        self.algorithm = Algorithm.from_name(algorithm)
        return self.run_simulation()

    def update_quantum(self, quantum: int) -> ScheduleResult:
        self.quantum = coerce_quantum(quantum)
        return self.run_simulation()

    def update_processes(self, processes: Sequence[Process]) -> ScheduleResult:
        self.processes = list(processes)
        return self.run_simulation()

    def add_process(self) -> Process:
        """
        Append the next free ``P{n}`` id with burst 5, reusing the last
        process's arrival time and priority.
        """
        last = self.processes[-1] if self.processes else None
        taken = {p.id for p in self.processes}
        n = len(self.processes) + 1
        while f"P{n}" in taken:
            n += 1
        process = Process(
            id=f"P{n}",
            arrival_time=max(0, last.arrival_time) if last else 0,
            burst_time=5,
            priority=last.priority if last else 0,
        )
        self.update_processes(self.processes + [process])
        return process

    def remove_process(self, process_id: str) -> ScheduleResult:
        return self.update_processes([p for p in self.processes if p.id != process_id])
