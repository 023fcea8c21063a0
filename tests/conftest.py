"""Shared fixtures: small kernels and scripted workers."""

import pytest

from config import SimulationConfig
from engine import MemoryKernel
from handshake import BurstReply


def scripted(bursts_by_pid, cpu_burst=5):
    """
    Handler factory replaying fixed bursts.

    bursts_by_pid maps pid -> list of page tuples; a pid missing from the
    mapping, or whose script ran out, stays silent.
    """

    def factory(pid):
        script = iter(bursts_by_pid.get(pid, []))

        def handler(grant):
            pages = next(script, None)
            if pages is None:
                return None
            return BurstReply(pid, grant.seq, tuple(pages), cpu_burst)

        return handler

    return factory


def cycling(pages_by_pid, cpu_burst=5):
    """Handler factory answering every grant with the same burst."""

    def factory(pid):
        pages = tuple(pages_by_pid[pid])

        def handler(grant):
            return BurstReply(pid, grant.seq, pages, cpu_burst)

        return handler

    return factory


@pytest.fixture
def small_kernel():
    return MemoryKernel(total_frames=2, max_virtual_pages=16, process_count=2)


@pytest.fixture
def small_config():
    return SimulationConfig(
        total_frames=4,
        max_virtual_pages=16,
        access_per_tick=2,
        process_count=3,
        tick_limit=30,
        worker_timeout=1.0,
        seed=7,
    )


@pytest.fixture
def scripted_workers():
    return scripted


@pytest.fixture
def cycling_workers():
    return cycling
