"""Counter reader: structured per-process and system-wide counters.

The sampler only depends on the ``CounterReader`` protocol. The production
implementation is backed by psutil; busy times are converted back to
scheduler ticks so every delta is an integer count.
"""

import os
import time
from dataclasses import dataclass
from typing import Protocol

import psutil

from pysentinel.errors import (
    EnumerationUnavailable,
    ProcessGone,
    SystemCounterUnavailable,
)

DEFAULT_CLOCK_TICKS = 100

# Kernel priority of a normal (non real-time) task is 20 + nice
_PRIORITY_BASE = 20

_STATE_SYMBOLS = {
    # Keyed by status value; some STATUS_* constants are platform or version specific
    "running": "R",
    "sleeping": "S",
    "disk-sleep": "D",
    "stopped": "T",
    "suspended": "T",
    "tracing-stop": "t",
    "zombie": "Z",
    "dead": "X",
    "wake-kill": "K",
    "waking": "W",
    "idle": "I",
    "locked": "L",
    "waiting": "W",
    "parked": "P",
}


def detect_clock_ticks() -> int:
    """Return the scheduler clock rate (CLK_TCK), falling back to 100."""
    try:
        hz = os.sysconf("SC_CLK_TCK")
    except (ValueError, OSError, AttributeError):
        return DEFAULT_CLOCK_TICKS
    return hz if hz > 0 else DEFAULT_CLOCK_TICKS


def state_symbol(status: str) -> str:
    """Map a psutil status string to its one-letter kernel symbol."""
    return _STATE_SYMBOLS.get(status, "?")


@dataclass(slots=True, frozen=True)
class ProcessCounters:
    """Raw counters of one process at one point in time."""

    busy_time: int  # user + kernel, scheduler ticks
    run_state: str
    priority: int
    niceness: int
    virtual_kb: int
    resident_kb: int
    display_name: str


class CounterReader(Protocol):
    """Capabilities the sampler consumes from its environment."""

    clock_ticks: int

    def enumerate_process_ids(self) -> set[int]:
        """Raises EnumerationUnavailable."""
        ...

    def read_process_counters(self, pid: int) -> ProcessCounters:
        """Raises ProcessGone."""
        ...

    def read_process_owner(self, pid: int) -> str: ...

    def read_process_command(self, pid: int, display_name: str) -> str: ...

    def read_system_busy_time(self) -> int:
        """Raises SystemCounterUnavailable."""
        ...

    def read_system_memory_total_kb(self) -> int:
        """Raises SystemCounterUnavailable."""
        ...

    def read_load_averages(self) -> tuple[float, float, float]: ...

    def read_uptime_seconds(self) -> float: ...


class PsutilCounterReader:
    """CounterReader backed by psutil.

    Handles NoSuchProcess, ZombieProcess and AccessDenied by reporting the
    process as gone; owner and command lookups never raise.
    """

    def __init__(self, clock_ticks: int | None = None) -> None:
        self.clock_ticks = clock_ticks or detect_clock_ticks()

    def _to_ticks(self, seconds: float) -> int:
        return round(seconds * self.clock_ticks)

    def enumerate_process_ids(self) -> set[int]:
        try:
            return set(psutil.pids())
        except OSError as e:
            raise EnumerationUnavailable(f"Cannot list processes: {e}") from e

    def read_process_counters(self, pid: int) -> ProcessCounters:
        try:
            proc = psutil.Process(pid)
            # oneshot() reads the underlying stat files once for all attributes
            with proc.oneshot():
                cpu_times = proc.cpu_times()
                mem_info = proc.memory_info()
                nice = proc.nice()
                status = proc.status()
                name = proc.name()
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            # NoSuchProcess covers ZombieProcess as well
            raise ProcessGone(pid) from e

        return ProcessCounters(
            busy_time=self._to_ticks(cpu_times.user + cpu_times.system),
            run_state=state_symbol(status),
            priority=_PRIORITY_BASE + nice,
            niceness=nice,
            virtual_kb=mem_info.vms // 1024,
            resident_kb=mem_info.rss // 1024,
            display_name=name or "",
        )

    def read_process_owner(self, pid: int) -> str:
        try:
            proc = psutil.Process(pid)
        except psutil.Error:
            return "?"
        try:
            return proc.username()
        except (psutil.Error, KeyError):
            pass
        try:
            return str(proc.uids().real)
        except psutil.Error:
            return "?"

    def read_process_command(self, pid: int, display_name: str) -> str:
        try:
            cmdline = psutil.Process(pid).cmdline()
        except psutil.Error:
            return display_name
        command = " ".join(cmdline).strip()
        return command or display_name

    def read_system_busy_time(self) -> int:
        try:
            times = psutil.cpu_times()
        except (OSError, psutil.Error) as e:
            raise SystemCounterUnavailable(f"Cannot read CPU times: {e}") from e
        # Every field, idle included, across all CPUs
        return self._to_ticks(sum(times))

    def read_system_memory_total_kb(self) -> int:
        try:
            return psutil.virtual_memory().total // 1024
        except (OSError, psutil.Error) as e:
            raise SystemCounterUnavailable(f"Cannot read memory total: {e}") from e

    def read_load_averages(self) -> tuple[float, float, float]:
        try:
            return tuple(psutil.getloadavg())
        except OSError:
            return (0.0, 0.0, 0.0)

    def read_uptime_seconds(self) -> float:
        try:
            return max(time.time() - psutil.boot_time(), 0.0)
        except (OSError, psutil.Error):
            return 0.0
