"""CPU and memory derivation from cumulative counters.

All busy-time values are scheduler ticks. The system delta spans every CPU,
idle time included, so CPU% is a share of the whole machine. It is never
clamped.
"""


def system_delta(previous: int, current: int) -> int:
    """Return the system-wide busy-time delta, floored at 1.

    The floor avoids a division by zero when ticks arrive faster than the
    counter resolution. It slightly underestimates CPU% for extremely short
    intervals.
    """
    return max(current - previous, 1)


def process_delta(previous: int, current: int) -> int:
    """Return a process busy-time delta, never negative.

    A counter that went backwards means the pid was reused by a fresh
    process, so no time is attributed for this tick.
    """
    return max(current - previous, 0)


def cpu_percent(previous: int, current: int, busy_delta: int) -> float:
    """Compute CPU% for one process over one tick.

    Args:
        previous: Busy time frozen at the end of the previous tick. Zero
            marks a first observation, which always yields 0.0.
        current: Busy time ingested this tick.
        busy_delta: System-wide delta for the tick; 0 when the system
            counter was unreadable, which freezes attribution at 0.0.
    """
    if previous == 0 or busy_delta <= 0:
        return 0.0
    return 100.0 * process_delta(previous, current) / busy_delta


def memory_percent(resident_kb: int, memory_total_kb: int) -> float:
    """Compute MEM% with the system total clamped to at least 1 kb."""
    return 100.0 * resident_kb / max(memory_total_kb, 1)
