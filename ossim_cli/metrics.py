from __future__ import annotations

from typing import Mapping

from .models import ProcessMetrics, ScheduleResult, SimulationMetrics, SystemMetrics


def calculate_averages(metrics: Mapping[str, ProcessMetrics]) -> SimulationMetrics:
    """
    Unweighted mean waiting and turnaround time over all processes.
    """
    if not metrics:
        return SimulationMetrics()

    n = len(metrics)
    return SimulationMetrics(
        average_waiting_time=sum(m.waiting_time for m in metrics.values()) / n,
        average_turnaround_time=sum(m.turnaround_time for m in metrics.values()) / n,
    )


def compute_system_metrics(result: ScheduleResult) -> SystemMetrics:
    """
    Compute throughput and CPU utilization given populated per-process metrics
    and timeline slices.
    """
    if not result.metrics:
        system = SystemMetrics(cpu_busy_time=0, makespan=0, throughput=0.0, cpu_utilization=0.0)
        result.system = system
        return system

    makespan = max(m.completion_time for m in result.metrics.values())
    cpu_busy_time = sum(slice_.duration for slice_ in result.timeline)

    throughput = len(result.metrics) / makespan if makespan > 0 else 0.0
    cpu_utilization = cpu_busy_time / makespan if makespan > 0 else 0.0

    system = SystemMetrics(
        cpu_busy_time=cpu_busy_time,
        makespan=makespan,
        throughput=throughput,
        cpu_utilization=cpu_utilization,
    )
    result.system = system
    return system
