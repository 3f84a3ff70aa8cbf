"""
OS simulator package.

Deterministic engines for CPU scheduling, deadlock safety checking and
dynamic memory partition allocation, plus a command-line interface to
experiment with them.
"""

from .algorithms import run, run_algorithm
from .deadlock import GraphState, check_safety
from .memory import MemoryAllocator
from .metrics import calculate_averages
from .session import SchedulingSession

__all__ = [
    "cli",
    "run",
    "run_algorithm",
    "calculate_averages",
    "check_safety",
    "GraphState",
    "MemoryAllocator",
    "SchedulingSession",
]
