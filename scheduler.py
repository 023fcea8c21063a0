# scheduler.py

"""
Tick-driven round-robin dispatcher.

Each tick the scheduler drains IO countdowns, hands the front of the ready
queue one grant, resolves the returned burst through that process's page
table and puts the process back at the end of the queue.
"""

import logging
import time
from collections import deque
from typing import Callable, Deque, List, Optional, Set

from config import SimulationConfig
from engine import AccessResult, MemoryKernel, ProcessControlBlock, ProcessState
from errors import InvariantViolation, ProtocolError, WorkerTimeout
from handshake import HandshakeChannel
from stats import ProcessReport, Snapshot, StatsCollector

logger = logging.getLogger(__name__)


class TickScheduler:
    """
    Drives the simulation one tick at a time.

    Attributes:
        kernel (MemoryKernel): Paging state, mutated only from here
        channel (HandshakeChannel): Grant/reply transport to the workers
        stats (StatsCollector): Receives every access outcome
        tick (int): Number of ticks completed
        ready_queue (deque): Runnable pids, dispatch order
        blocked (set): Pids waiting for IO completion
        running (Optional[int]): Pid being dispatched, None between dispatches
        terminated (List[int]): Pids removed after a worker timeout
        event_log (deque): Most recent event lines
    """

    def __init__(self, kernel: MemoryKernel, channel: HandshakeChannel,
                 stats: Optional[StatsCollector] = None,
                 config: Optional[SimulationConfig] = None):
        self.kernel = kernel
        self.channel = channel
        self.stats = stats if stats is not None else StatsCollector()
        self.config = config or SimulationConfig()

        self.tick = 0
        self.ready_queue: Deque[int] = deque(kernel.processes)
        self.blocked: Set[int] = set()
        self.running: Optional[int] = None
        self.terminated: List[int] = []
        self.event_log: Deque[str] = deque(maxlen=self.config.event_log_limit)

    # =========================================================================
    # EVENT LOG
    # =========================================================================

    def log_event(self, pid: int, message: str):
        line = f"[Tick {self.tick}] [P{pid}] {message}"
        self.event_log.append(line)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(line)

    def _log_access(self, pid: int, page: int, result: AccessResult):
        if result.hit:
            self.log_event(pid, f"Hit: Page {page} in Frame {result.frame}")
        elif result.evicted is None:
            self.log_event(pid, f"Fault: Page {page} -> Frame {result.frame} (new alloc)")
        else:
            victim_pid, victim_page = result.evicted
            self.log_event(
                pid,
                f"Fault: Page {page} -> Frame {result.frame} "
                f"(evicted P{victim_pid} page {victim_page})",
            )

    # =========================================================================
    # PROCESS STATE TRANSITIONS
    # =========================================================================

    def block(self, pid: int, io_ticks: int):
        """
        Move a ready process to the blocked set for `io_ticks` ticks.

        Raises:
            ValueError: If the process is not in the ready queue or io_ticks < 1
        """
        if io_ticks < 1:
            raise ValueError(f"io_ticks must be at least 1, got {io_ticks}")
        if pid not in self.ready_queue:
            raise ValueError(f"P{pid} is not ready")
        self.ready_queue.remove(pid)
        pcb = self.kernel.pcb(pid)
        pcb.io_remaining = io_ticks
        pcb.state = ProcessState.BLOCKED
        self.blocked.add(pid)

    def _drain_blocked(self):
        for pid in sorted(self.blocked):
            pcb = self.kernel.pcb(pid)
            pcb.io_remaining -= 1
            if pcb.io_remaining <= 0:
                pcb.io_remaining = 0
                self.blocked.discard(pid)
                self._requeue(pcb)

    def _requeue(self, pcb: ProcessControlBlock):
        pcb.state = ProcessState.READY
        self.ready_queue.append(pcb.pid)
        if self.running == pcb.pid:
            self.running = None

    def _terminate(self, pcb: ProcessControlBlock, reason: Exception):
        pcb.state = ProcessState.TERMINATED
        self.running = None
        self.terminated.append(pcb.pid)
        self.channel.close(pcb.pid)
        self.stats.record_timeout(pcb.pid)
        self.log_event(pcb.pid, f"Removed from scheduling: {reason}")
        logger.warning("Removing P%d from scheduling at tick %d: %s", pcb.pid, self.tick, reason)

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def _dispatch(self, pid: int):
        pcb = self.kernel.pcb(pid)
        pcb.state = ProcessState.RUNNING
        self.running = pid

        try:
            reply = self.channel.request_burst(pid)
        except WorkerTimeout as exc:
            self._terminate(pcb, exc)
            return
        except ProtocolError as exc:
            self.stats.record_protocol_error(pid)
            self.log_event(pid, f"Dispatch rejected: {exc}")
            logger.warning("Rejected dispatch at tick %d: %s", self.tick, exc)
            self._requeue(pcb)
            return

        for page in reply.accesses:
            result = pcb.page_table.access(page)
            self.stats.record(pid, result)
            self._log_access(pid, page, result)

        pcb.cpu_burst = reply.cpu_burst
        self._requeue(pcb)

    def step(self) -> Optional[int]:
        """
        Run one tick.

        Returns:
            Optional[int]: The pid dispatched this tick, None if nobody was ready

        Raises:
            InvariantViolation: If the kernel state is found inconsistent
        """
        self._drain_blocked()

        pid = None
        if self.ready_queue:
            pid = self.ready_queue.popleft()
            self._dispatch(pid)

        if self.config.check_invariants:
            try:
                self.kernel.check_invariants()
            except InvariantViolation as exc:
                logger.critical("Halting at tick %d: %s", self.tick, exc.reason)
                raise InvariantViolation(exc.reason, tick=self.tick,
                                         diagnostic=exc.diagnostic) from exc

        self.tick += 1
        return pid

    def run(self, ticks: Optional[int] = None,
            on_tick: Optional[Callable[[Snapshot], None]] = None,
            every: int = 1) -> Snapshot:
        """
        Step until the tick limit (or `ticks` more ticks) is reached.

        Args:
            ticks (Optional[int]): Number of ticks to run, default: up to the limit
            on_tick (Optional[Callable]): Called with a snapshot every `every` ticks
            every (int): Reporting period in ticks

        Returns:
            Snapshot: State after the last tick
        """
        if ticks is None:
            ticks = max(0, self.config.tick_limit - self.tick)
        every = max(1, every)

        for _ in range(ticks):
            self.step()
            if on_tick is not None and self.tick % every == 0:
                on_tick(self.snapshot())
            if self.config.tick_interval > 0:
                time.sleep(self.config.tick_interval)

        return self.snapshot()

    # =========================================================================
    # REPORTING
    # =========================================================================

    def snapshot(self) -> Snapshot:
        share = self.kernel.frame_share()
        reports = [
            ProcessReport(
                pid=pcb.pid,
                state=pcb.state,
                cpu_burst=pcb.cpu_burst,
                fault_count=pcb.fault_count,
                eviction_count=pcb.eviction_count,
                frame_share=share.get(pcb.pid, 0),
            )
            for pcb in self.kernel.processes.values()
        ]
        return Snapshot(
            tick=self.tick,
            per_process=reports,
            totals=self.stats.totals(),
            frame_ownership=self.kernel.frame_ownership(),
            last_victim=self.kernel.allocator.last_victim,
            fifo_length=self.kernel.allocator.active_count,
            memory_usage=round(self.kernel.memory_usage(), 4),
            events=list(self.event_log),
        )
