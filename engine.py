# engine.py

"""
Paging kernel: frame allocator with FIFO replacement, per-process page
tables and the reverse frame -> (process, page) map that ties them together.

Everything that mutates frames goes through FrameAllocator.allocate, which
updates both sides of the mapping in a single call.
"""

import logging
from collections import Counter, deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterator, List, Optional, Tuple, Union

from errors import ConfigurationError, InvariantViolation

logger = logging.getLogger(__name__)

Owner = Tuple[int, int]  # (pid, virtual page)


@dataclass
class PageTableEntry:
    """
    Represents a single entry in a process's page table.

    Attributes:
        present (bool): True if the page is currently mapped to a frame
        swapped_out (bool): True if the page was evicted and not touched since
        frame (Optional[int]): Physical frame number, None if not present
    """
    present: bool = False
    swapped_out: bool = False
    frame: Optional[int] = None


@dataclass(frozen=True)
class Hit:
    frame: int

    hit = True


@dataclass(frozen=True)
class Fault:
    frame: int
    evicted: Optional[Owner] = None

    hit = False


AccessResult = Union[Hit, Fault]


class ProcessState:
    READY = "Ready"
    RUNNING = "Running"
    BLOCKED = "Blocked"
    TERMINATED = "Terminated"


# -----------------------------
# Frame ownership
# -----------------------------
class FrameOwnerMap:
    """Reverse index: frame number -> (pid, virtual page) or None when free."""

    def __init__(self, total_frames: int):
        self._owners: List[Optional[Owner]] = [None] * total_frames

    def __len__(self):
        return len(self._owners)

    def __getitem__(self, frame: int) -> Optional[Owner]:
        return self._owners[frame]

    def assign(self, frame: int, pid: int, page: int):
        self._owners[frame] = (pid, page)

    def release(self, frame: int) -> Optional[Owner]:
        previous = self._owners[frame]
        self._owners[frame] = None
        return previous

    def owned(self) -> Iterator[Tuple[int, Owner]]:
        for frame, owner in enumerate(self._owners):
            if owner is not None:
                yield frame, owner

    def ownership(self) -> List[Optional[int]]:
        """Owning pid per frame, None for free frames."""
        return [owner[0] if owner is not None else None for owner in self._owners]

    def share(self) -> Dict[int, int]:
        """Number of frames held by each pid."""
        return dict(Counter(owner[0] for _, owner in self.owned()))


# -----------------------------
# Frame allocator
# -----------------------------
class FrameAllocator:
    """
    Owns the free-frame pool and the FIFO queue of active frames.

    Frames leave the free pool in ascending order. Once the pool is empty
    the frame at the front of the active queue (the oldest allocation) is
    taken from its owner and handed to the requester, regardless of how
    recently either page was used.

    Attributes:
        owners (FrameOwnerMap): Reverse map kept in sync on every allocation
        free_pool (deque): Frames never handed out yet
        active_queue (deque): Allocated frames, oldest first
        last_victim (Optional[int]): Frame taken by the most recent eviction
    """

    def __init__(self, total_frames: int, owners: Optional[FrameOwnerMap] = None):
        if total_frames <= 0:
            raise ConfigurationError(f"total_frames must be positive, got {total_frames}")
        self.total_frames = total_frames
        self.owners = owners if owners is not None else FrameOwnerMap(total_frames)
        if len(self.owners) != total_frames:
            raise ConfigurationError("Frame owner map size does not match total_frames")

        self.free_pool: Deque[int] = deque(range(total_frames))
        self.active_queue: Deque[int] = deque()
        self.page_tables: Dict[int, "PageTable"] = {}
        self.last_victim: Optional[int] = None

    def register(self, page_table: "PageTable"):
        """Make a page table reachable for invalidation when its frames are evicted."""
        if page_table.owner in self.page_tables:
            raise ValueError(f"Page table for P{page_table.owner} already registered")
        self.page_tables[page_table.owner] = page_table

    @property
    def free_frames(self) -> Tuple[int, ...]:
        return tuple(self.free_pool)

    @property
    def active_frames(self) -> Tuple[int, ...]:
        """Allocated frames, next victim first."""
        return tuple(self.active_queue)

    @property
    def free_count(self) -> int:
        return len(self.free_pool)

    @property
    def active_count(self) -> int:
        return len(self.active_queue)

    def allocate(self, owner: int, page: int) -> Tuple[int, Optional[Owner]]:
        """
        Hand a frame to (owner, page).

        Args:
            owner (int): Requesting process
            page (int): Virtual page being faulted in

        Returns:
            Tuple[int, Optional[Owner]]:
                - int: The frame now mapped to (owner, page)
                - Owner: (pid, page) whose mapping was evicted, None if the
                  frame came from the free pool
        """
        if self.free_pool:
            frame = self.free_pool.popleft()
            evicted = None
        else:
            # FIFO: oldest allocation sits at the front
            frame = self.active_queue.popleft()
            evicted = self.owners.release(frame)
            self.last_victim = frame
            if evicted is None:
                logger.warning("Frame %d was active without an owner", frame)
            else:
                victim_pid, victim_page = evicted
                self.page_tables[victim_pid].invalidate(victim_page)

        self.owners.assign(frame, owner, page)
        self.active_queue.append(frame)
        return frame, evicted


# -----------------------------
# Page table
# -----------------------------
class PageTable:
    """
    Sparse page table of one process.

    Entries are created on first reference. The table is the only writer
    of its fault and eviction counters.
    """

    def __init__(self, owner: int, size: int, allocator: FrameAllocator):
        self.owner = owner
        self.size = size
        self.allocator = allocator
        self.entries: Dict[int, PageTableEntry] = {}
        self.fault_count = 0
        self.eviction_count = 0
        allocator.register(self)

    def __len__(self):
        return len(self.entries)

    def _check(self, page: int):
        if page < 0 or page >= self.size:
            raise IndexError(
                f"P{self.owner}: page {page} out of range (0 .. {self.size - 1})"
            )

    def entry(self, page: int) -> PageTableEntry:
        self._check(page)
        pte = self.entries.get(page)
        if pte is None:
            pte = PageTableEntry()
            self.entries[page] = pte
        return pte

    def access(self, page: int) -> AccessResult:
        """
        Resolve one access to a virtual page.

        A present page is a hit and leaves every table untouched. Anything
        else is a fault served by the allocator.

        Raises:
            IndexError: If the page is outside the address space
        """
        pte = self.entry(page)
        if pte.present:
            return Hit(pte.frame)

        frame, evicted = self.allocator.allocate(self.owner, page)
        pte.present = True
        pte.swapped_out = False
        pte.frame = frame
        self.fault_count += 1
        return Fault(frame, evicted)

    def invalidate(self, page: int):
        """Called by the allocator when the frame backing `page` is taken away."""
        pte = self.entries[page]
        pte.present = False
        pte.swapped_out = True
        pte.frame = None
        self.eviction_count += 1

    def resident_pages(self) -> Dict[int, int]:
        """page -> frame for every present entry."""
        return {page: pte.frame for page, pte in self.entries.items() if pte.present}


# -----------------------------
# Process control block
# -----------------------------
@dataclass
class ProcessControlBlock:
    pid: int
    page_table: PageTable
    cpu_burst: int = 0
    io_remaining: int = 0
    state: str = ProcessState.READY

    @property
    def fault_count(self) -> int:
        return self.page_table.fault_count

    @property
    def eviction_count(self) -> int:
        return self.page_table.eviction_count


# -----------------------------
# Kernel aggregate
# -----------------------------
class MemoryKernel:
    """
    Single owner of all paging state: the allocator, the frame owner map
    and one PCB per logical process.

    Attributes:
        allocator (FrameAllocator): Frame pool and FIFO queue
        owners (FrameOwnerMap): Shared with the allocator
        processes (Dict[int, ProcessControlBlock]): PCBs keyed by pid
    """

    def __init__(self, total_frames: int, max_virtual_pages: int, process_count: int):
        if process_count <= 0:
            raise ConfigurationError(f"process_count must be positive, got {process_count}")
        if max_virtual_pages <= 0:
            raise ConfigurationError(f"max_virtual_pages must be positive, got {max_virtual_pages}")

        self.allocator = FrameAllocator(total_frames)
        self.owners = self.allocator.owners
        self.max_virtual_pages = max_virtual_pages
        self.processes: Dict[int, ProcessControlBlock] = {}
        for pid in range(process_count):
            table = PageTable(pid, max_virtual_pages, self.allocator)
            self.processes[pid] = ProcessControlBlock(pid, table)

    @classmethod
    def from_config(cls, config) -> "MemoryKernel":
        return cls(config.total_frames, config.max_virtual_pages, config.process_count)

    @property
    def total_frames(self) -> int:
        return self.allocator.total_frames

    def pcb(self, pid: int) -> ProcessControlBlock:
        return self.processes[pid]

    def access(self, pid: int, page: int) -> AccessResult:
        return self.processes[pid].page_table.access(page)

    def frame_ownership(self) -> List[Optional[int]]:
        return self.owners.ownership()

    def frame_share(self) -> Dict[int, int]:
        return self.owners.share()

    def memory_usage(self) -> float:
        """Fraction of frames currently allocated."""
        return self.allocator.active_count / self.total_frames

    # -----------------------------
    # Consistency checks
    # -----------------------------
    def dump(self) -> dict:
        """Full kernel state, used as the diagnostic of an InvariantViolation."""
        return {
            "free_pool": list(self.allocator.free_pool),
            "active_queue": list(self.allocator.active_queue),
            "frame_owners": [self.owners[f] for f in range(len(self.owners))],
            "page_tables": {
                pid: pcb.page_table.resident_pages() for pid, pcb in self.processes.items()
            },
        }

    def check_invariants(self):
        """
        Verify that the free pool, the FIFO queue, the owner map and every
        page table agree with each other.

        Raises:
            InvariantViolation: Describing the first inconsistency found
        """
        alloc = self.allocator
        free = list(alloc.free_pool)
        active = list(alloc.active_queue)

        def fail(message):
            raise InvariantViolation(message, diagnostic=self.dump())

        if len(free) + len(active) != self.total_frames:
            fail(f"free({len(free)}) + active({len(active)}) != total({self.total_frames})")
        if len(set(active)) != len(active):
            fail("duplicate frame in FIFO queue")
        if set(free) & set(active):
            fail(f"frames both free and active: {sorted(set(free) & set(active))}")

        active_set = set(active)
        for frame in range(self.total_frames):
            owner = self.owners[frame]
            if frame not in active_set:
                if owner is not None:
                    fail(f"inactive frame {frame} still owned by P{owner[0]} page {owner[1]}")
                continue
            if owner is None:
                fail(f"active frame {frame} has no owner")
            pid, page = owner
            pcb = self.processes.get(pid)
            pte = pcb.page_table.entries.get(page) if pcb is not None else None
            if pte is None or not pte.present or pte.frame != frame:
                fail(f"frame {frame} owned by P{pid} page {page} but page table disagrees")

        for pid, pcb in self.processes.items():
            for page, frame in pcb.page_table.resident_pages().items():
                if self.owners[frame] != (pid, page):
                    fail(f"P{pid} page {page} maps to frame {frame} owned by {self.owners[frame]}")
