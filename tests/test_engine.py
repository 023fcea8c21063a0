"""Tests for the paging kernel: allocator, page tables and the owner map.

The allocator hands out free frames in ascending order and, once the pool
is empty, always takes the frame allocated the longest ago. Every test
that mutates frames re-checks that the free pool, FIFO queue, owner map
and page tables still agree.
"""

import random

import pytest

from engine import (
    Fault,
    FrameAllocator,
    FrameOwnerMap,
    Hit,
    MemoryKernel,
    PageTable,
    PageTableEntry,
)
from errors import ConfigurationError, InvariantViolation


def single_process(frames, pages=16):
    kernel = MemoryKernel(total_frames=frames, max_virtual_pages=pages, process_count=1)
    return kernel, kernel.pcb(0).page_table


# -- Allocator ----------------------------------------------------------------


class TestFrameAllocator:
    """Free pool, FIFO queue and eviction."""

    def test_zero_frames_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            FrameAllocator(0)

    def test_owner_map_size_must_match(self) -> None:
        with pytest.raises(ConfigurationError):
            FrameAllocator(4, FrameOwnerMap(3))

    def test_free_frames_handed_out_in_order(self) -> None:
        allocator = FrameAllocator(3)
        for pid in range(3):
            PageTable(pid, 8, allocator)
        frames = [allocator.allocate(pid, 0)[0] for pid in range(3)]
        assert frames == [0, 1, 2]
        assert allocator.free_count == 0
        assert list(allocator.active_queue) == [0, 1, 2]

    def test_allocation_from_pool_reports_no_eviction(self) -> None:
        allocator = FrameAllocator(2)
        PageTable(0, 8, allocator)
        assert allocator.allocate(0, 3) == (0, None)
        assert allocator.owners[0] == (0, 3)
        assert allocator.last_victim is None

    def test_eviction_takes_front_and_appends_to_back(self) -> None:
        kernel, table = single_process(frames=2)
        table.access(0)
        table.access(1)
        frame, evicted = kernel.allocator.allocate(0, 2)
        assert frame == 0
        assert evicted == (0, 0)
        assert list(kernel.allocator.active_queue) == [1, 0]
        assert kernel.allocator.last_victim == 0

    def test_frame_views_are_read_only_copies(self) -> None:
        kernel, table = single_process(frames=3)
        table.access(4)
        assert kernel.allocator.free_frames == (1, 2)
        assert kernel.allocator.active_frames == (0,)
        with pytest.raises(AttributeError):
            kernel.allocator.free_frames.append(0)

    def test_duplicate_registration_rejected(self) -> None:
        allocator = FrameAllocator(2)
        PageTable(0, 8, allocator)
        with pytest.raises(ValueError):
            PageTable(0, 8, allocator)

    def test_ownerless_victim_is_tolerated(self) -> None:
        kernel, table = single_process(frames=1)
        table.access(0)
        # Break the owner map on purpose: the allocator must still proceed
        kernel.owners.release(0)
        frame, evicted = kernel.allocator.allocate(0, 1)
        assert frame == 0
        assert evicted is None
        assert kernel.owners[0] == (0, 1)


# -- Page table ---------------------------------------------------------------


class TestPageTable:
    """Hits, faults and address-space bounds."""

    def test_entry_defaults(self) -> None:
        pte = PageTableEntry()
        assert not pte.present
        assert not pte.swapped_out
        assert pte.frame is None

    def test_first_touch_is_fault(self) -> None:
        _, table = single_process(frames=4)
        result = table.access(5)
        assert result == Fault(0, None)
        assert not result.hit
        assert table.fault_count == 1

    def test_repeated_hits_are_idempotent(self) -> None:
        kernel, table = single_process(frames=2)
        table.access(3)
        queue_before = list(kernel.allocator.active_queue)
        owners_before = kernel.frame_ownership()

        for _ in range(5):
            result = table.access(3)
            assert result == Hit(0)
            assert result.hit

        assert list(kernel.allocator.active_queue) == queue_before
        assert kernel.frame_ownership() == owners_before
        assert table.fault_count == 1
        assert table.eviction_count == 0

    @pytest.mark.parametrize("page", [-1, 16, 100])
    def test_out_of_range_page_rejected(self, page) -> None:
        _, table = single_process(frames=2, pages=16)
        with pytest.raises(IndexError):
            table.access(page)
        assert table.fault_count == 0

    def test_entries_are_sparse(self) -> None:
        _, table = single_process(frames=4, pages=200)
        table.access(150)
        assert len(table) == 1
        assert table.resident_pages() == {150: 0}

    def test_refault_clears_swapped_flag(self) -> None:
        kernel, table = single_process(frames=1)
        table.access(0)
        table.access(1)
        assert table.entry(0).swapped_out
        table.access(0)
        assert table.entry(0).present
        assert not table.entry(0).swapped_out
        assert table.entry(1).swapped_out
        kernel.check_invariants()


# -- Scenarios ----------------------------------------------------------------


class TestScenarios:

    def test_single_process_three_pages_two_frames(self) -> None:
        """Pages 0,1,2 on two frames: page 0's frame is the one reused."""
        kernel, table = single_process(frames=2)
        results = [table.access(page) for page in (0, 1, 2)]

        assert results == [Fault(0, None), Fault(1, None), Fault(0, (0, 0))]
        assert not table.entry(0).present
        assert table.entry(0).swapped_out
        assert table.entry(1).present and table.entry(1).frame == 1
        assert table.entry(2).present and table.entry(2).frame == 0
        pcb = kernel.pcb(0)
        assert pcb.fault_count == 3
        assert pcb.eviction_count == 1
        kernel.check_invariants()

    @pytest.mark.parametrize("faulting_pid", [0, 1])
    def test_oldest_frame_evicted_regardless_of_owner(self, small_kernel, faulting_pid) -> None:
        """A holds frame 0 (page 5), B holds frame 1 (page 9); the next fault takes frame 0."""
        a, b = small_kernel.pcb(0), small_kernel.pcb(1)
        assert a.page_table.access(5) == Fault(0, None)
        assert b.page_table.access(9) == Fault(1, None)

        result = small_kernel.access(faulting_pid, 12)

        assert result == Fault(0, (0, 5))
        assert not a.page_table.entry(5).present
        assert b.page_table.entry(9).present
        assert a.eviction_count == 1
        assert b.eviction_count == 0
        small_kernel.check_invariants()


# -- FIFO order law -----------------------------------------------------------


class TestFifoOrder:

    def test_recency_does_not_protect_a_page(self) -> None:
        _, table = single_process(frames=3)
        for page in (0, 1, 2):
            table.access(page)
        # Page 0 is the most recently used, but it was allocated first
        for _ in range(10):
            table.access(0)
        assert table.access(3) == Fault(0, (0, 0))

    def test_eviction_order_matches_allocation_order(self) -> None:
        kernel = MemoryKernel(total_frames=4, max_virtual_pages=32, process_count=2)
        allocated = []
        for i in range(4):
            result = kernel.access(i % 2, i)
            allocated.append((i % 2, i))
            assert result.evicted is None

        evicted = [kernel.access(1, 10 + i).evicted for i in range(4)]
        assert evicted == allocated


# -- Invariants ---------------------------------------------------------------


class TestInvariants:

    def test_random_workload_keeps_tables_consistent(self) -> None:
        rng = random.Random(1234)
        kernel = MemoryKernel(total_frames=8, max_virtual_pages=20, process_count=4)
        for _ in range(500):
            pid = rng.randrange(4)
            kernel.access(pid, rng.randrange(20))
            kernel.check_invariants()

            alloc = kernel.allocator
            assert alloc.free_count + alloc.active_count == kernel.total_frames
            assert len(set(alloc.active_queue)) == alloc.active_count

        total_faults = sum(pcb.fault_count for pcb in kernel.processes.values())
        total_evictions = sum(pcb.eviction_count for pcb in kernel.processes.values())
        assert total_faults - total_evictions == kernel.allocator.active_count

    def test_stale_page_table_entry_detected(self) -> None:
        kernel, table = single_process(frames=2)
        table.access(0)
        table.entries[0].present = False
        with pytest.raises(InvariantViolation) as info:
            kernel.check_invariants()
        assert "frame 0" in info.value.reason
        assert info.value.diagnostic["active_queue"] == [0]

    def test_owner_on_free_frame_detected(self) -> None:
        kernel, _ = single_process(frames=2)
        kernel.owners.assign(1, 0, 4)
        with pytest.raises(InvariantViolation):
            kernel.check_invariants()

    def test_duplicate_in_fifo_queue_detected(self) -> None:
        kernel, table = single_process(frames=3)
        table.access(0)
        kernel.allocator.active_queue.append(0)
        kernel.allocator.free_pool.pop()
        with pytest.raises(InvariantViolation) as info:
            kernel.check_invariants()
        assert "duplicate" in info.value.reason


# -- Kernel aggregate ---------------------------------------------------------


class TestMemoryKernel:

    def test_zero_processes_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            MemoryKernel(total_frames=4, max_virtual_pages=8, process_count=0)

    def test_zero_pages_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            MemoryKernel(total_frames=4, max_virtual_pages=0, process_count=1)

    def test_ownership_and_share(self) -> None:
        kernel = MemoryKernel(total_frames=4, max_virtual_pages=8, process_count=3)
        kernel.access(0, 1)
        kernel.access(2, 1)
        kernel.access(2, 2)
        assert kernel.frame_ownership() == [0, 2, 2, None]
        assert kernel.frame_share() == {0: 1, 2: 2}
        assert kernel.memory_usage() == 0.75

    def test_from_config(self, small_config) -> None:
        kernel = MemoryKernel.from_config(small_config)
        assert kernel.total_frames == 4
        assert sorted(kernel.processes) == [0, 1, 2]
        assert kernel.pcb(1).page_table.size == 16
