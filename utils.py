# utils.py

import random
from typing import Callable, Optional

from handshake import BurstReply, Grant

MIN_CPU_BURST = 5
MAX_CPU_BURST = 24
FREE_COLOR = "#d3d3d3"  # light grey


def process_color(pid):
    """Return a stable pastel color for a process, grey for free frames."""
    if pid is None:
        return FREE_COLOR
    return f"hsl({(pid * 37) % 360}, 70%, 65%)"


class BurstGenerator:
    """
    Synthesizes a worker's replies: uniformly random page accesses plus a
    CPU burst counter that counts down and restarts when it runs out.
    """

    def __init__(self, pid: int, access_per_tick: int, max_virtual_pages: int,
                 rng: Optional[random.Random] = None):
        self.pid = pid
        self.access_per_tick = access_per_tick
        self.max_virtual_pages = max_virtual_pages
        self.rng = rng or random.Random()
        self.cpu_burst = self._new_burst()

    def _new_burst(self) -> int:
        return self.rng.randint(MIN_CPU_BURST, MAX_CPU_BURST)

    def __call__(self, grant: Grant) -> BurstReply:
        accesses = tuple(
            self.rng.randrange(self.max_virtual_pages) for _ in range(self.access_per_tick)
        )
        reply = BurstReply(self.pid, grant.seq, accesses, self.cpu_burst)

        self.cpu_burst -= 1
        if self.cpu_burst <= 0:
            self.cpu_burst = self._new_burst()
        return reply


def burst_generator_factory(config) -> Callable[[int], BurstGenerator]:
    """Per-pid generator factory; a configured seed makes every worker reproducible."""

    def make(pid: int) -> BurstGenerator:
        seed = None if config.seed is None else config.seed + pid * 100
        return BurstGenerator(pid, config.access_per_tick, config.max_virtual_pages,
                              random.Random(seed))

    return make
