# cli.py

"""
Headless runner: simulate, write the fault/eviction log, print a report.

    python cli.py --frames 512 --processes 10 --ticks 10000 --log vm_final_dump.txt
"""

import argparse
import logging
import sys

from config import (
    DEFAULT_ACCESS_PER_TICK,
    DEFAULT_LOG_PATH,
    DEFAULT_MAX_VIRTUAL_PAGES,
    DEFAULT_PROCESS_COUNT,
    DEFAULT_TICK_LIMIT,
    DEFAULT_TOTAL_FRAMES,
    DEFAULT_WORKER_TIMEOUT,
    ReplacementPolicy,
    SimulationConfig,
)
from errors import ConfigurationError, InvariantViolation
from simulation import Simulation
from stats import Snapshot

LOG_FORMAT = "%(message)s"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="FIFO demand-paging simulator")
    parser.add_argument("-f", "--frames", type=int, default=DEFAULT_TOTAL_FRAMES,
                        help="Number of physical frames")
    parser.add_argument("-p", "--pages", type=int, default=DEFAULT_MAX_VIRTUAL_PAGES,
                        help="Virtual pages per process")
    parser.add_argument("-a", "--accesses", type=int, default=DEFAULT_ACCESS_PER_TICK,
                        help="Page accesses per tick")
    parser.add_argument("-n", "--processes", type=int, default=DEFAULT_PROCESS_COUNT,
                        help="Number of logical processes")
    parser.add_argument("-t", "--ticks", type=int, default=DEFAULT_TICK_LIMIT,
                        help="Ticks to simulate")
    parser.add_argument("--policy", default=ReplacementPolicy.FIFO,
                        help="Replacement policy (only FIFO is supported)")
    parser.add_argument("--timeout", type=float, default=DEFAULT_WORKER_TIMEOUT,
                        help="Seconds to wait for a worker reply")
    parser.add_argument("--interval", type=float, default=0.0,
                        help="Seconds to sleep between ticks")
    parser.add_argument("--seed", type=int, help="Seed for the access generators")
    parser.add_argument("--log", default=DEFAULT_LOG_PATH,
                        help="Event log file ('-' disables it)")
    parser.add_argument("--status-every", type=int, default=0,
                        help="Print a status line every N ticks (0 = never)")
    parser.add_argument("--no-checks", action="store_true",
                        help="Skip per-tick invariant verification")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log to stderr too")
    return parser.parse_args(argv)


def config_from_args(args) -> SimulationConfig:
    return SimulationConfig(
        total_frames=args.frames,
        max_virtual_pages=args.pages,
        access_per_tick=args.accesses,
        process_count=args.processes,
        tick_limit=args.ticks,
        policy=args.policy,
        log_path=None if args.log == "-" else args.log,
        worker_timeout=args.timeout,
        tick_interval=args.interval,
        seed=args.seed,
        check_invariants=not args.no_checks,
    )


def configure_logging(log_path=None, verbose=False):
    """
    Send every event to log_path (the dump file) and warnings to stderr.

    Raises:
        OSError: If log_path cannot be opened; no handler is installed then
    """
    handlers = []
    if log_path:
        dump = logging.FileHandler(log_path, mode="w", encoding="utf-8")
        dump.setLevel(logging.DEBUG)
        dump.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(dump)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    handlers.append(console)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in handlers:
        root.addHandler(handler)
    return handlers


def format_status(snapshot: Snapshot, total_frames: int) -> str:
    totals = snapshot.totals
    used = total_frames - snapshot.frame_ownership.count(None)
    return (
        f"Tick: {snapshot.tick:<6} | Mem: {used}/{total_frames} "
        f"({snapshot.memory_usage * 100:4.1f}%) | P.Faults: {totals.faults:<7} "
        f"| Swap Outs: {totals.evictions:<6} | FIFO Queue: {snapshot.fifo_length:<5} "
        f"| Access: {totals.accesses}"
    )


def format_report(snapshot: Snapshot) -> str:
    totals = snapshot.totals
    lines = [
        f"==== Final Report (tick {snapshot.tick}) ====",
        f"Accesses: {totals.accesses}  Hits: {totals.hits}  Faults: {totals.faults}  "
        f"Evictions: {totals.evictions}",
        f"Hit ratio: {totals.hit_ratio}  Fault rate: {totals.fault_rate}  "
        f"Protocol errors: {totals.protocol_errors}  Timeouts: {totals.timeouts}",
        "",
        f"{'PID':<5} {'State':<11} {'CPU-Burst':<10} {'Faults':<8} {'Swaps':<8} {'Frames':<6}",
        "-" * 52,
    ]
    for r in snapshot.per_process:
        lines.append(
            f"P{r.pid:<4} {r.state:<11} {r.cpu_burst:<10} {r.fault_count:<8} "
            f"{r.eviction_count:<8} {r.frame_share:<6}"
        )
    return "\n".join(lines)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = config_from_args(args)
    previous_level = logging.getLogger().level
    try:
        handlers = configure_logging(config.log_path, args.verbose)
    except OSError as exc:
        print(f"Configuration error: cannot open log file: {exc}", file=sys.stderr)
        return 2

    try:
        with Simulation(config) as sim:
            on_tick = None
            if args.status_every > 0:
                def on_tick(snapshot):
                    print(format_status(snapshot, config.total_frames))
            snapshot = sim.run(on_tick=on_tick, every=max(1, args.status_every))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    except InvariantViolation as exc:
        print(f"Simulation halted: {exc}", file=sys.stderr)
        for key, value in exc.diagnostic.items():
            print(f"  {key}: {value}", file=sys.stderr)
        return 1
    finally:
        root = logging.getLogger()
        for handler in handlers:
            root.removeHandler(handler)
            handler.close()
        root.setLevel(previous_level)

    print(format_report(snapshot))
    if config.log_path:
        print(f"\nSimulation completed. Log saved to '{config.log_path}'")
    return 0


if __name__ == "__main__":
    sys.exit(main())
