# stats.py

from collections import defaultdict
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional

from engine import AccessResult


@dataclass(frozen=True)
class Totals:
    accesses: int = 0
    hits: int = 0
    faults: int = 0
    evictions: int = 0
    protocol_errors: int = 0
    timeouts: int = 0

    @property
    def hit_ratio(self) -> float:
        return round(self.hits / self.accesses, 4) if self.accesses else 0.0

    @property
    def fault_rate(self) -> float:
        return round(self.faults / self.accesses, 4) if self.accesses else 0.0


@dataclass(frozen=True)
class ProcessReport:
    pid: int
    state: str
    cpu_burst: int
    fault_count: int
    eviction_count: int
    frame_share: int


@dataclass(frozen=True)
class Snapshot:
    """
    Read-only view of the simulation after a tick.

    Attributes:
        tick (int): Number of ticks completed
        per_process (List[ProcessReport]): One report per pid, in pid order
        totals (Totals): Global counters
        frame_ownership (List[Optional[int]]): Owning pid of each frame
        last_victim (Optional[int]): Frame taken by the latest eviction
        fifo_length (int): Frames currently in the FIFO queue
        memory_usage (float): Fraction of frames allocated
        events (List[str]): Most recent event log lines, oldest first
    """
    tick: int
    per_process: List[ProcessReport]
    totals: Totals
    frame_ownership: List[Optional[int]]
    last_victim: Optional[int] = None
    fifo_length: int = 0
    memory_usage: float = 0.0
    events: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["totals"]["hit_ratio"] = self.totals.hit_ratio
        data["totals"]["fault_rate"] = self.totals.fault_rate
        return data


class StatsCollector:
    """
    Aggregates access outcomes. Pure bookkeeping: nothing here feeds back
    into scheduling or allocation.
    """

    def __init__(self):
        self.accesses = 0
        self.hits = 0
        self.faults = 0
        self.evictions = 0
        self.protocol_errors = 0
        self.timeouts = 0
        self._faults_by_pid: Dict[int, int] = defaultdict(int)
        self._evictions_by_pid: Dict[int, int] = defaultdict(int)
        self._errors_by_pid: Dict[int, int] = defaultdict(int)
        self.timed_out: List[int] = []

    def record(self, pid: int, result: AccessResult):
        self.accesses += 1
        if result.hit:
            self.hits += 1
            return
        self.faults += 1
        self._faults_by_pid[pid] += 1
        if result.evicted is not None:
            self.evictions += 1
            self._evictions_by_pid[result.evicted[0]] += 1

    def record_protocol_error(self, pid: int):
        self.protocol_errors += 1
        self._errors_by_pid[pid] += 1

    def record_timeout(self, pid: int):
        self.timeouts += 1
        self.timed_out.append(pid)

    def totals(self) -> Totals:
        return Totals(
            accesses=self.accesses,
            hits=self.hits,
            faults=self.faults,
            evictions=self.evictions,
            protocol_errors=self.protocol_errors,
            timeouts=self.timeouts,
        )

    def per_process(self, pid: int) -> Dict[str, int]:
        return {
            "faults": self._faults_by_pid.get(pid, 0),
            "evictions": self._evictions_by_pid.get(pid, 0),
            "protocol_errors": self._errors_by_pid.get(pid, 0),
        }
