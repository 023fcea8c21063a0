# handshake.py

"""
Grant/reply rendezvous between the scheduler and the worker threads.

Every worker address owns two mailboxes: a grant box holding at most one
grant, and a reply box that only that worker posts into. The scheduler
issues a grant to one pid and then blocks on that pid's reply box, so a
reply can never be picked up from anyone but the addressed worker.
"""

import itertools
import logging
import queue
import time
from dataclasses import dataclass
from typing import Dict, Optional, Set, Tuple

from config import DEFAULT_WORKER_TIMEOUT
from errors import ProtocolError, WorkerTimeout

logger = logging.getLogger(__name__)

_STOP = None  # sentinel posted to a grant box on close


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class Grant:
    pid: int
    seq: int


@dataclass(frozen=True)
class BurstReply:
    """
    A worker's answer to a grant.

    Attributes:
        pid (int): Worker that produced the reply
        seq (int): Sequence number of the grant being answered
        accesses (Tuple[int, ...]): Virtual pages touched this tick, in order
        cpu_burst (int): Worker's own estimate of remaining CPU burst
    """
    pid: int
    seq: int
    accesses: Tuple[int, ...]
    cpu_burst: int


class HandshakeChannel:

    def __init__(self, access_per_tick: int, max_virtual_pages: int,
                 timeout: float = DEFAULT_WORKER_TIMEOUT):
        self.access_per_tick = access_per_tick
        self.max_virtual_pages = max_virtual_pages
        self.timeout = timeout

        self._grants: Dict[int, queue.Queue] = {}
        self._replies: Dict[int, queue.Queue] = {}
        self._pending: Dict[int, Grant] = {}
        self._closed: Set[int] = set()
        self._seq = itertools.count(1)

    # -----------------------------
    # Mailbox lifecycle
    # -----------------------------
    def open(self, pid: int):
        if pid in self._grants:
            raise ValueError(f"Mailbox for P{pid} already open")
        self._grants[pid] = queue.Queue(maxsize=1)
        self._replies[pid] = queue.Queue()

    def is_open(self, pid: int) -> bool:
        return pid in self._grants and pid not in self._closed

    def close(self, pid: int):
        """Cancel any pending grant for pid and tell its worker to stop."""
        if pid not in self._grants or pid in self._closed:
            return
        self._closed.add(pid)
        self._pending.pop(pid, None)
        box = self._grants[pid]
        while True:
            try:
                box.get_nowait()
            except queue.Empty:
                break
        box.put_nowait(_STOP)

    def close_all(self):
        for pid in list(self._grants):
            self.close(pid)

    # -----------------------------
    # Kernel side
    # -----------------------------
    def request_burst(self, pid: int) -> BurstReply:
        """
        Grant one tick to `pid` and wait for its burst.

        Late replies to earlier grants of the same worker are discarded while
        waiting; only an answer to this grant ends the wait.

        Args:
            pid (int): Address of the worker to run

        Returns:
            BurstReply: The validated reply of that worker

        Raises:
            WorkerTimeout: If no reply arrives within `timeout` seconds
            ProtocolError: If the mailbox is closed, a grant is already in
                flight, or the reply does not answer this grant
        """
        if not self.is_open(pid):
            raise ProtocolError(pid, "no open mailbox")
        if pid in self._pending:
            raise ProtocolError(pid, f"grant {self._pending[pid].seq} still in flight")

        grant = Grant(pid, next(self._seq))
        try:
            self._grants[pid].put_nowait(grant)
        except queue.Full:
            raise ProtocolError(pid, "grant mailbox full")
        self._pending[pid] = grant

        deadline = time.monotonic() + self.timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise WorkerTimeout(pid, self.timeout)
            try:
                reply = self._replies[pid].get(timeout=remaining)
            except queue.Empty:
                raise WorkerTimeout(pid, self.timeout)
            if not self._is_stale(grant, reply):
                break
            logger.debug("P%d: discarding reply to earlier grant %d", pid, reply.seq)

        del self._pending[pid]
        self._validate(grant, reply)
        return reply

    @staticmethod
    def _is_stale(grant: Grant, reply) -> bool:
        """A late answer from the addressed worker to one of its earlier grants."""
        return (
            isinstance(reply, BurstReply)
            and reply.pid == grant.pid
            and _is_int(reply.seq)
            and reply.seq < grant.seq
        )

    def _validate(self, grant: Grant, reply):
        pid = grant.pid
        if not isinstance(reply, BurstReply):
            raise ProtocolError(pid, f"malformed reply {reply!r}")
        if reply.pid != pid:
            raise ProtocolError(pid, f"reply from P{reply.pid} does not answer grant to P{pid}")
        if reply.seq != grant.seq:
            raise ProtocolError(pid, f"reply to grant {reply.seq!r}, expected {grant.seq}")
        if not isinstance(reply.accesses, (tuple, list)):
            raise ProtocolError(pid, f"malformed burst {reply.accesses!r}")
        if not _is_int(reply.cpu_burst):
            raise ProtocolError(pid, f"malformed cpu burst {reply.cpu_burst!r}")
        if len(reply.accesses) != self.access_per_tick:
            raise ProtocolError(
                pid, f"burst of {len(reply.accesses)} accesses, expected {self.access_per_tick}"
            )
        for page in reply.accesses:
            if not _is_int(page):
                raise ProtocolError(pid, f"malformed page {page!r}")
            if not 0 <= page < self.max_virtual_pages:
                raise ProtocolError(pid, f"page {page} outside address space")

    # -----------------------------
    # Worker side
    # -----------------------------
    def await_grant(self, pid: int) -> Optional[Grant]:
        """Block until a grant for pid arrives. None means stop."""
        return self._grants[pid].get()

    def send_reply(self, sender: int, reply: BurstReply):
        """Post a reply into the sender's own reply box."""
        if sender in self._closed:
            logger.debug("Dropping reply from closed worker P%d", sender)
            return
        self._replies[sender].put(reply)
