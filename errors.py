# errors.py


class SimulationError(Exception):
    """Base class for every error raised by the paging simulator."""


class ConfigurationError(SimulationError):
    """Invalid simulation settings (zero frames, zero processes, ...). Fatal at startup."""


class ProtocolError(SimulationError):
    """
    A handshake went wrong: a reply from the wrong worker, a stale reply,
    a burst of the wrong length, or a grant issued while another is pending.

    The scheduler rejects the tick's dispatch, counts it and keeps going.
    """

    def __init__(self, pid, message):
        super().__init__(f"P{pid}: {message}")
        self.pid = pid


class WorkerTimeout(SimulationError):
    """A worker did not reply within the configured bound."""

    def __init__(self, pid, timeout):
        super().__init__(f"P{pid}: no reply within {timeout}s")
        self.pid = pid
        self.timeout = timeout


class InvariantViolation(SimulationError):
    """
    Frame table and page tables disagree.

    Never recoverable: the simulation halts and reports the tick at which
    the violation was detected together with a dump of the kernel state.
    """

    def __init__(self, message, tick=None, diagnostic=None):
        where = f" at tick {tick}" if tick is not None else ""
        super().__init__(f"Invariant violated{where}: {message}")
        self.reason = message
        self.tick = tick
        self.diagnostic = diagnostic or {}
