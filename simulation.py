# simulation.py

import logging
from typing import Callable, Optional

from config import SimulationConfig
from engine import MemoryKernel
from handshake import HandshakeChannel
from scheduler import TickScheduler
from stats import Snapshot, StatsCollector
from utils import burst_generator_factory
from workers import Handler, WorkerPool

logger = logging.getLogger(__name__)


class Simulation:
    """
    Wires a validated configuration into a kernel, a worker pool and a
    scheduler. Use as a context manager so the workers are always joined.

    Args:
        config (Optional[SimulationConfig]): Settings, defaults if omitted
        handler_factory (Optional[Callable]): pid -> worker handler; random
            burst generators by default
    """

    def __init__(self, config: Optional[SimulationConfig] = None,
                 handler_factory: Optional[Callable[[int], Handler]] = None):
        self.config = (config or SimulationConfig()).validate()
        self.kernel = MemoryKernel.from_config(self.config)
        self.stats = StatsCollector()
        self.channel = HandshakeChannel(
            self.config.access_per_tick,
            self.config.max_virtual_pages,
            self.config.worker_timeout,
        )
        self.pool = WorkerPool(self.channel)
        self.scheduler = TickScheduler(self.kernel, self.channel, self.stats, self.config)
        self.handler_factory = handler_factory or burst_generator_factory(self.config)
        self.started = False
        self.closed = False

    def start(self):
        if self.started:
            return
        if self.closed:
            raise RuntimeError("Simulation already closed")
        self.pool.start(self.kernel.processes, self.handler_factory)
        self.started = True
        logger.info(
            "Simulation started: %d processes, %d frames, %d pages each, %d ticks",
            self.config.process_count, self.config.total_frames,
            self.config.max_virtual_pages, self.config.tick_limit,
        )

    def step(self) -> Snapshot:
        self.start()
        self.scheduler.step()
        return self.scheduler.snapshot()

    def run(self, ticks: Optional[int] = None,
            on_tick: Optional[Callable[[Snapshot], None]] = None,
            every: int = 1) -> Snapshot:
        self.start()
        return self.scheduler.run(ticks, on_tick=on_tick, every=every)

    def snapshot(self) -> Snapshot:
        return self.scheduler.snapshot()

    @property
    def finished(self) -> bool:
        return self.scheduler.tick >= self.config.tick_limit

    def close(self):
        if self.closed:
            return
        self.closed = True
        if self.started:
            self.pool.stop()
        logger.info("Simulation closed at tick %d", self.scheduler.tick)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
