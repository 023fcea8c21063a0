# config.py

"""
Simulation settings.

Defaults follow the classic term-project setup: ten processes sharing
512 frames (2 MB of 4 KB pages), 200 virtual pages each, ten accesses per
dispatch and 10000 ticks.
"""

from dataclasses import dataclass, asdict
from typing import Optional

from errors import ConfigurationError


PAGE_SIZE = 4096

DEFAULT_TOTAL_FRAMES = 512
DEFAULT_MAX_VIRTUAL_PAGES = 200
DEFAULT_ACCESS_PER_TICK = 10
DEFAULT_PROCESS_COUNT = 10
DEFAULT_TICK_LIMIT = 10000
DEFAULT_WORKER_TIMEOUT = 1.0  # seconds
DEFAULT_LOG_PATH = "vm_final_dump.txt"


class ReplacementPolicy:
    """
    Page replacement algorithms known to the simulator.

    FIFO: First-In-First-Out - replaces the frame allocated the longest ago.
    Only FIFO is implemented by the kernel.
    """
    FIFO = "FIFO"

    SUPPORTED = (FIFO,)


@dataclass
class SimulationConfig:
    """
    All tunable knobs of a simulation run.

    Attributes:
        total_frames (int): Number of physical frames shared by every process
        max_virtual_pages (int): Size of each process's virtual address space
        access_per_tick (int): Page accesses issued per dispatch
        process_count (int): Number of logical processes (and worker threads)
        tick_limit (int): Number of ticks to simulate
        policy (str): Replacement policy, must be ReplacementPolicy.FIFO
        log_path (Optional[str]): File receiving the fault/eviction event log
        worker_timeout (float): Seconds to wait for a worker's reply
        tick_interval (float): Seconds to sleep between ticks (0 = no pacing)
        seed (Optional[int]): Seed for the burst generators
        check_invariants (bool): Verify frame/page table consistency every tick
        event_log_limit (int): Number of recent events kept in memory
    """
    total_frames: int = DEFAULT_TOTAL_FRAMES
    max_virtual_pages: int = DEFAULT_MAX_VIRTUAL_PAGES
    access_per_tick: int = DEFAULT_ACCESS_PER_TICK
    process_count: int = DEFAULT_PROCESS_COUNT
    tick_limit: int = DEFAULT_TICK_LIMIT
    policy: str = ReplacementPolicy.FIFO
    log_path: Optional[str] = None
    worker_timeout: float = DEFAULT_WORKER_TIMEOUT
    tick_interval: float = 0.0
    seed: Optional[int] = None
    check_invariants: bool = True
    event_log_limit: int = 200

    def validate(self) -> "SimulationConfig":
        """
        Check the settings before anything is built.

        Returns:
            SimulationConfig: self, so calls can be chained

        Raises:
            ConfigurationError: On the first invalid setting found
        """
        positive = ("total_frames", "max_virtual_pages", "access_per_tick", "process_count")
        for name in positive:
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")

        if self.tick_limit < 0:
            raise ConfigurationError(f"tick_limit must not be negative, got {self.tick_limit}")
        if self.worker_timeout <= 0:
            raise ConfigurationError(f"worker_timeout must be positive, got {self.worker_timeout}")
        if self.tick_interval < 0:
            raise ConfigurationError(f"tick_interval must not be negative, got {self.tick_interval}")
        if self.event_log_limit <= 0:
            raise ConfigurationError(f"event_log_limit must be positive, got {self.event_log_limit}")
        if self.policy not in ReplacementPolicy.SUPPORTED:
            raise ConfigurationError(
                f"Unsupported replacement policy {self.policy!r}; only FIFO is implemented"
            )
        return self

    @property
    def physical_memory_bytes(self) -> int:
        return self.total_frames * PAGE_SIZE

    def to_dict(self) -> dict:
        return asdict(self)
