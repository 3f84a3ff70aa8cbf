"""
Dynamic partition allocator.

The address space is a list of ``MemoryBlock`` records sorted by start
address that always covers ``[0, total)`` with no gaps and no overlaps.
Allocation carves an exact-size block out of a free one; deallocation frees
a block and merges adjacent free neighbours.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from .models import (
    FREE_BLOCK_ID,
    AllocationResult,
    FitStrategy,
    FragmentationStats,
    MemoryBlock,
)

logger = logging.getLogger(__name__)

INITIAL_PARTITIONS = (50, 100, 76, 30)
TOTAL_MEMORY = sum(INITIAL_PARTITIONS)


def build_partitions(sizes: Sequence[int]) -> List[MemoryBlock]:
    blocks: List[MemoryBlock] = []
    start = 0
    for size in sizes:
        if size < 1:
            raise ValueError(f"Partition size must be positive, got {size}")
        blocks.append(MemoryBlock(id=FREE_BLOCK_ID, start=start, size=size, is_free=True))
        start += size
    return blocks


def coalesce(blocks: Sequence[MemoryBlock]) -> List[MemoryBlock]:
    """
    Merge adjacent free blocks until no two free blocks touch.

    The merged block keeps the lower start address.
    """
    merged = sorted(blocks, key=lambda b: b.start)
    did_coalesce = True
    while did_coalesce:
        did_coalesce = False
        for i in range(len(merged) - 1):
            current, nxt = merged[i], merged[i + 1]
            if current.is_free and nxt.is_free:
                merged[i] = replace(current, size=current.size + nxt.size)
                del merged[i + 1]
                did_coalesce = True
                break
    return merged


def fragmentation_stats(blocks: Sequence[MemoryBlock]) -> FragmentationStats:
    free_sizes = [b.size for b in blocks if b.is_free]
    total_free = sum(free_sizes)
    largest = max(free_sizes, default=0)
    return FragmentationStats(
        total_free=total_free,
        internal=sum(b.internal_fragmentation for b in blocks if not b.is_free),
        external=max(0, total_free - largest),
    )


def is_valid_partition(blocks: Sequence[MemoryBlock], total: int) -> bool:
    """True when ``blocks`` are sorted, contiguous and span exactly ``total``."""
    position = 0
    for block in blocks:
        if block.start != position or block.size < 1:
            return False
        position = block.end
    return position == total


class MemoryAllocator:
    """
    Owns the block list and the counters that order allocations.

    Callers must serialize calls: the next-fit cursor, process ids and
    allocation sequence numbers all depend on call order.
    """

    def __init__(
        self,
        partitions: Sequence[int] = INITIAL_PARTITIONS,
        algorithm: FitStrategy | str = FitStrategy.FIRST_FIT,
    ) -> None:
        self._partitions = tuple(partitions)
        self.total_memory = sum(self._partitions)
        self.algorithm = FitStrategy.from_name(algorithm)
        self.blocks: List[MemoryBlock] = build_partitions(self._partitions)
        self._next_process_id = 1
        self._allocation_sequence = 0
        self._last_allocated_start = 0
        self.message = "Ready to allocate with partitioned memory."

    @property
    def stats(self) -> FragmentationStats:
        return fragmentation_stats(self.blocks)

    def allocated_blocks(self) -> List[MemoryBlock]:
        return [b for b in self.blocks if not b.is_free]

    def _report(self, success: bool, message: str, **kwargs) -> AllocationResult:
        self.message = message
        logger.log(logging.DEBUG if success else logging.INFO, message)
        return AllocationResult(success=success, message=message, **kwargs)

    def set_algorithm(self, algorithm: FitStrategy | str) -> AllocationResult:
        self.algorithm = FitStrategy.from_name(algorithm)
        return self._report(True, f"Algorithm set to {self.algorithm.value}. Ready to allocate.")

    def reset(self) -> AllocationResult:
        self.blocks = build_partitions(self._partitions)
        self._next_process_id = 1
        self._allocation_sequence = 0
        self._last_allocated_start = 0
        return self._report(True, "Memory reset to initial partitioned state.")

    def _find_block(self, size: int, strategy: FitStrategy) -> Optional[MemoryBlock]:
        candidates = [b for b in self.blocks if b.is_free and b.size >= size]
        if not candidates:
            return None

        if strategy is FitStrategy.FIRST_FIT:
            return candidates[0]
        if strategy is FitStrategy.BEST_FIT:
            # min/max keep the first of equal sizes, i.e. the lowest address.
            return min(candidates, key=lambda b: b.size)
        if strategy is FitStrategy.WORST_FIT:
            return max(candidates, key=lambda b: b.size)
        if strategy is FitStrategy.NEXT_FIT:
            for block in candidates:
                if block.start >= self._last_allocated_start:
                    return block
            return candidates[0]
        raise ValueError(f"Unhandled fit strategy {strategy!r}")

    def allocate(self, size: int, strategy: FitStrategy | str | None = None) -> AllocationResult:
        if size <= 0:
            return self._report(False, "Invalid request size. Must be > 0.")

        strategy = self.algorithm if strategy is None else FitStrategy.from_name(strategy)
        chosen = self._find_block(size, strategy)
        if chosen is None:
            return self._report(
                False,
                f"Allocation failed: no suitable free block for {size} KB (external fragmentation).",
            )

        process_id = f"P{self._next_process_id}"
        self._next_process_id += 1
        self._allocation_sequence += 1

        allocated = MemoryBlock(
            id=process_id,
            start=chosen.start,
            size=size,
            is_free=False,
            process_size=size,
            internal_fragmentation=0,
            allocation_sequence=self._allocation_sequence,
        )

        index = self.blocks.index(chosen)
        new_blocks = list(self.blocks)
        new_blocks[index] = allocated
        if chosen.size > size:
            new_blocks.insert(
                index + 1,
                MemoryBlock(id=FREE_BLOCK_ID, start=chosen.start + size, size=chosen.size - size, is_free=True),
            )

        self.blocks = sorted(new_blocks, key=lambda b: b.start)
        self._last_allocated_start = allocated.start

        return self._report(
            True,
            f"Allocated {size} KB to {process_id} using {strategy.value}.",
            process_id=process_id,
            block=allocated,
        )

    def deallocate(self, process_id: str) -> AllocationResult:
        index = next(
            (i for i, b in enumerate(self.blocks) if b.id == process_id and not b.is_free),
            None,
        )
        if index is None:
            return self._report(False, f"Deallocation failed: Process {process_id} not found.")

        freed = self.blocks[index]
        new_blocks = list(self.blocks)
        new_blocks[index] = replace(
            freed,
            id=FREE_BLOCK_ID,
            is_free=True,
            process_size=0,
            internal_fragmentation=0,
            allocation_sequence=0,
        )
        self.blocks = coalesce(new_blocks)

        return self._report(
            True,
            f"Deallocated process {process_id}. Free space coalesced.",
            process_id=process_id,
            block=freed,
        )
