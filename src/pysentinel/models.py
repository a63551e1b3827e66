"""Data models for pysentinel."""

from dataclasses import dataclass

from pysentinel.metrics import system_delta


@dataclass(slots=True, frozen=True)
class ProcessIdentity:
    """Latest-sample identity of a process (not historical)."""

    display_name: str
    user: str
    priority: int
    niceness: int
    run_state: str  # 'R', 'S', 'Z', 'D', etc.
    command: str


UNKNOWN_IDENTITY = ProcessIdentity(
    display_name="",
    user="?",
    priority=0,
    niceness=0,
    run_state="?",
    command="",
)


@dataclass(slots=True, frozen=True)
class ProcessRow:
    """Immutable row handed to a renderer."""

    pid: int
    user: str
    priority: int
    niceness: int
    run_state: str
    cpu_percent: float  # Share of the whole machine, never clamped
    memory_percent: float
    virtual_kb: int
    resident_kb: int
    cumulative_time: int  # Scheduler ticks
    command: str


@dataclass(slots=True, frozen=True)
class SystemCounters:
    """System-wide counters shared by every entry within one tick.

    ``previous_busy_time`` is the "after" read of the previous tick and
    ``busy_time`` the "after" read of this one. Either being ``None`` means
    the source was unreadable, which yields a zero delta.
    """

    previous_busy_time: int | None
    busy_time: int | None
    memory_total_kb: int

    @property
    def busy_delta(self) -> int:
        """Ticks elapsed system-wide, floored at 1; 0 when unreadable."""
        if self.previous_busy_time is None or self.busy_time is None:
            return 0
        return system_delta(self.previous_busy_time, self.busy_time)


@dataclass(slots=True, frozen=True)
class TickSummary:
    """Aggregate metadata for one tick."""

    tick: int
    total_task_count: int
    running_task_count: int
    load_averages: tuple[float, float, float]
    uptime_seconds: float
    memory_total_kb: int
    clock_ticks: int


@dataclass(slots=True, frozen=True)
class MemorySample:
    """Instantaneous memory footprint of a process, in kb."""

    resident_kb: int
    virtual_kb: int
