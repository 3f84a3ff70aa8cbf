from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Sequence, Tuple

from .metrics import compute_system_metrics
from .models import Algorithm, GanttSlice, Process, ProcessMetrics, ScheduleResult

logger = logging.getLogger(__name__)

DEFAULT_QUANTUM = 4

# Selection key for preemptive schedulers: (process, remaining burst) -> sort key.
PreemptiveKey = Callable[[Process, int], tuple]


def _completed(p: Process, completion_time: int) -> ProcessMetrics:
    turnaround_time = completion_time - p.arrival_time
    return ProcessMetrics(
        completion_time=completion_time,
        turnaround_time=turnaround_time,
        waiting_time=turnaround_time - p.burst_time,
    )


def _empty_result(algorithm: Algorithm, quantum: Optional[int], message: str) -> ScheduleResult:
    logger.info("%s: %s", algorithm.value, message)
    result = ScheduleResult(algorithm=algorithm, quantum=quantum, message=message)
    compute_system_metrics(result)
    return result


def schedule_fcfs(processes: Sequence[Process], quantum: Optional[int] = None) -> ScheduleResult:
    """
    First-Come First-Serve (non-preemptive) scheduling.
    """
    if not processes:
        return _empty_result(Algorithm.FCFS, quantum, "No processes to schedule.")

    processes_sorted = sorted(processes, key=lambda p: (p.arrival_time, p.id))

    time = 0
    timeline: List[GanttSlice] = []
    metrics: Dict[str, ProcessMetrics] = {}

    for p in processes_sorted:
        start_time = max(time, p.arrival_time)
        end_time = start_time + p.burst_time

        timeline.append(GanttSlice(process_id=p.id, start=start_time, end=end_time))
        metrics[p.id] = _completed(p, end_time)

        time = end_time

    result = ScheduleResult(algorithm=Algorithm.FCFS, quantum=quantum, timeline=timeline, metrics=metrics)
    compute_system_metrics(result)
    return result


def _run_non_preemptive(
    processes: Sequence[Process],
    algorithm: Algorithm,
    key: Callable[[Process], tuple],
    quantum: Optional[int],
) -> ScheduleResult:
    """
    Shared loop for SJF and static priority.

    At each decision point, among processes that have arrived and are not yet
    completed, run the one with the smallest ``key`` to completion.
    """
    # Work on a shallow copy so we don't surprise callers.
    pending: List[Process] = list(processes)

    time = 0
    timeline: List[GanttSlice] = []
    metrics: Dict[str, ProcessMetrics] = {}

    while pending:
        ready = [p for p in pending if p.arrival_time <= time]

        if not ready:
            # CPU is idle: jump to the next arrival.
            time = min(p.arrival_time for p in pending)
            continue

        p = min(ready, key=key)
        logger.debug("%s: t=%d dispatch %s", algorithm.value, time, p.id)

        start_time = time
        end_time = start_time + p.burst_time

        timeline.append(GanttSlice(process_id=p.id, start=start_time, end=end_time))
        metrics[p.id] = _completed(p, end_time)

        pending.remove(p)
        time = end_time

    result = ScheduleResult(algorithm=algorithm, quantum=quantum, timeline=timeline, metrics=metrics)
    compute_system_metrics(result)
    return result


def schedule_sjf(processes: Sequence[Process], quantum: Optional[int] = None) -> ScheduleResult:
    """
    Shortest Job First (non-preemptive).

    Ties go to the earlier arrival, then the smaller id.
    """
    if not processes:
        return _empty_result(Algorithm.SJF, quantum, "No processes to schedule.")
    return _run_non_preemptive(
        processes,
        Algorithm.SJF,
        key=lambda p: (p.burst_time, p.arrival_time, p.id),
        quantum=quantum,
    )


def schedule_priority(processes: Sequence[Process], quantum: Optional[int] = None) -> ScheduleResult:
    """
    Static Priority scheduling (non-preemptive).

    Lower numeric priority value means higher priority. Among ready
    processes, choose the one with the smallest priority; break ties
    by earlier arrival time, then id.
    """
    if not processes:
        return _empty_result(Algorithm.PRIORITY, quantum, "No processes to schedule.")
    return _run_non_preemptive(
        processes,
        Algorithm.PRIORITY,
        key=lambda p: (p.priority, p.arrival_time, p.id),
        quantum=quantum,
    )


def schedule_rr(processes: Sequence[Process], quantum: Optional[int] = None) -> ScheduleResult:
    """
    Round Robin scheduling with a fixed time quantum.

    Processes that arrive while a quantum is running are queued ahead of the
    process that was just preempted.
    """
    if not processes:
        return _empty_result(Algorithm.ROUND_ROBIN, quantum, "No processes to schedule.")
    if quantum is None or quantum <= 0:
        return _empty_result(Algorithm.ROUND_ROBIN, quantum, "Round Robin requires a quantum of at least 1.")

    arrivals = sorted(processes, key=lambda p: (p.arrival_time, p.id))
    remaining = {p.id: p.burst_time for p in arrivals}

    time = 0
    timeline: List[GanttSlice] = []
    metrics: Dict[str, ProcessMetrics] = {}

    ready: Deque[Process] = deque()
    next_arrival = 0

    def enqueue_new_arrivals(current_time: int) -> None:
        nonlocal next_arrival
        while next_arrival < len(arrivals) and arrivals[next_arrival].arrival_time <= current_time:
            ready.append(arrivals[next_arrival])
            next_arrival += 1

    while len(metrics) < len(remaining):
        enqueue_new_arrivals(time)

        if not ready:
            # Jump to next arrival if CPU is idle
            if next_arrival >= len(arrivals):
                break
            time = arrivals[next_arrival].arrival_time
            continue

        p = ready.popleft()

        run_time = min(quantum, remaining[p.id])
        logger.debug("Round Robin: t=%d dispatch %s for %d", time, p.id, run_time)
        timeline.append(GanttSlice(process_id=p.id, start=time, end=time + run_time))

        time += run_time
        remaining[p.id] -= run_time

        # Arrivals during this quantum go ahead of the preempted process.
        enqueue_new_arrivals(time)

        if remaining[p.id] > 0:
            ready.append(p)
        else:
            metrics[p.id] = _completed(p, time)

    result = ScheduleResult(algorithm=Algorithm.ROUND_ROBIN, quantum=quantum, timeline=timeline, metrics=metrics)
    compute_system_metrics(result)
    return result


def _run_preemptive(
    processes: Sequence[Process],
    algorithm: Algorithm,
    key: PreemptiveKey,
    quantum: Optional[int],
) -> ScheduleResult:
    """
    Tick-by-tick simulation: every time unit the ready set is rebuilt and the
    process with the smallest ``key`` runs for one unit.
    """
    remaining = {p.id: p.burst_time for p in processes}

    time = 0
    timeline: List[GanttSlice] = []
    metrics: Dict[str, ProcessMetrics] = {}
    last_pid: Optional[str] = None

    while len(metrics) < len(remaining):
        ready = [p for p in processes if p.arrival_time <= time and remaining[p.id] > 0]
        if not ready:
            future = [p.arrival_time for p in processes if p.arrival_time > time and remaining[p.id] > 0]
            if not future:
                break
            time = min(future)
            continue

        current = min(ready, key=lambda p: key(p, remaining[p.id]))

        if current.id == last_pid:
            timeline[-1].end = time + 1
        else:
            logger.debug("%s: t=%d switch to %s", algorithm.value, time, current.id)
            timeline.append(GanttSlice(process_id=current.id, start=time, end=time + 1))

        remaining[current.id] -= 1
        last_pid = current.id
        time += 1

        if remaining[current.id] == 0:
            metrics[current.id] = _completed(current, time)

    result = ScheduleResult(algorithm=algorithm, quantum=quantum, timeline=timeline, metrics=metrics)
    compute_system_metrics(result)
    return result


def schedule_srtf(processes: Sequence[Process], quantum: Optional[int] = None) -> ScheduleResult:
    """
    Shortest Remaining Time First (preemptive SJF).
    """
    if not processes:
        return _empty_result(Algorithm.SRTF, quantum, "No processes to schedule.")
    return _run_preemptive(
        processes,
        Algorithm.SRTF,
        key=lambda p, left: (left, p.arrival_time, p.id),
        quantum=quantum,
    )


def schedule_priority_preemptive(processes: Sequence[Process], quantum: Optional[int] = None) -> ScheduleResult:
    """
    Preemptive priority: a newly arrived process with a lower priority number
    takes the CPU at the next time unit.
    """
    if not processes:
        return _empty_result(Algorithm.PRIORITY_PREEMPTIVE, quantum, "No processes to schedule.")
    return _run_preemptive(
        processes,
        Algorithm.PRIORITY_PREEMPTIVE,
        key=lambda p, left: (p.priority, p.arrival_time, p.id),
        quantum=quantum,
    )


ALGORITHMS: Dict[Algorithm, Callable[..., ScheduleResult]] = {
    Algorithm.FCFS: schedule_fcfs,
    Algorithm.ROUND_ROBIN: schedule_rr,
    Algorithm.SJF: schedule_sjf,
    Algorithm.SRTF: schedule_srtf,
    Algorithm.PRIORITY: schedule_priority,
    Algorithm.PRIORITY_PREEMPTIVE: schedule_priority_preemptive,
}


def coerce_quantum(quantum: Optional[int]) -> int:
    if quantum is None:
        return DEFAULT_QUANTUM
    return max(1, int(quantum))


def run_algorithm(
    name: str | Algorithm,
    processes: Sequence[Process],
    quantum: Optional[int] = None,
) -> ScheduleResult:
    """
    Dispatch to the requested algorithm. The quantum is only passed on to
    Round Robin, where it is coerced to at least 1.
    """
    algorithm = Algorithm.from_name(name)
    func = ALGORITHMS[algorithm]
    q = coerce_quantum(quantum) if algorithm.uses_quantum else None
    return func(list(processes), quantum=q)


def run(
    algorithm: str | Algorithm,
    processes: Sequence[Process],
    quantum: Optional[int] = None,
) -> Tuple[List[GanttSlice], Dict[str, ProcessMetrics]]:
    result = run_algorithm(algorithm, processes, quantum=quantum)
    return result.timeline, result.metrics
