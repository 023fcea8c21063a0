# workers.py

import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional

from handshake import BurstReply, Grant, HandshakeChannel

logger = logging.getLogger(__name__)

Handler = Callable[[Grant], Optional[BurstReply]]


class Worker(threading.Thread):
    """
    One logical process. Waits for a grant, asks its handler for a burst
    and posts the reply. A handler returning None sends nothing.
    """

    def __init__(self, pid: int, channel: HandshakeChannel, handler: Handler):
        super().__init__(name=f"worker-P{pid}", daemon=True)
        self.pid = pid
        self.channel = channel
        self.handler = handler

    def run(self):
        while True:
            grant = self.channel.await_grant(self.pid)
            if grant is None:
                break
            try:
                reply = self.handler(grant)
            except Exception:
                logger.exception("Worker P%d crashed handling grant %d", self.pid, grant.seq)
                break
            if reply is not None:
                self.channel.send_reply(self.pid, reply)
        logger.debug("Worker P%d stopped", self.pid)


class WorkerPool:
    """Starts one worker thread per pid and tears them all down together."""

    def __init__(self, channel: HandshakeChannel):
        self.channel = channel
        self.workers: Dict[int, Worker] = {}

    def start(self, pids: Iterable[int], handler_factory: Callable[[int], Handler]):
        for pid in pids:
            self.channel.open(pid)
            worker = Worker(pid, self.channel, handler_factory(pid))
            self.workers[pid] = worker
            worker.start()
        logger.info("Started %d workers", len(self.workers))

    def alive(self) -> List[int]:
        return [pid for pid, worker in self.workers.items() if worker.is_alive()]

    def stop(self, join_timeout: float = 1.0):
        self.channel.close_all()
        for pid, worker in self.workers.items():
            worker.join(join_timeout)
            if worker.is_alive():
                logger.warning("Worker P%d did not stop within %.1fs", pid, join_timeout)
        logger.info("Worker pool stopped")
