"""Process control: signals and scheduling priority."""

import signal

import psutil
import structlog

from pysentinel.errors import ProcessControlError, ProcessGone

log = structlog.get_logger()

MIN_NICE = -20
MAX_NICE = 19


def _process(pid: int) -> psutil.Process:
    if pid <= 0:
        raise ValueError(f"Invalid PID: {pid}")
    try:
        return psutil.Process(pid)
    except psutil.NoSuchProcess as e:
        raise ProcessGone(pid) from e


def send_signal(pid: int, sig: signal.Signals) -> None:
    """Send a signal to a process.

    Raises:
        ValueError: pid is not positive.
        ProcessGone: The process no longer exists.
        ProcessControlError: The OS refused the signal.
    """
    proc = _process(pid)
    try:
        proc.send_signal(sig)
    except psutil.NoSuchProcess as e:
        raise ProcessGone(pid) from e
    except psutil.AccessDenied as e:
        raise ProcessControlError(
            pid, f"Failed to send {sig.name} to PID {pid}: access denied"
        ) from e
    log.info("signal_sent", pid=pid, signal=sig.name)


def terminate(pid: int) -> None:
    """Send SIGTERM (graceful shutdown)."""
    send_signal(pid, signal.SIGTERM)


def force_kill(pid: int) -> None:
    """Send SIGKILL (immediate termination)."""
    send_signal(pid, signal.SIGKILL)


def get_niceness(pid: int) -> int:
    """Return the current nice value of a process."""
    proc = _process(pid)
    try:
        return proc.nice()
    except psutil.NoSuchProcess as e:
        raise ProcessGone(pid) from e
    except psutil.AccessDenied as e:
        raise ProcessControlError(
            pid, f"Failed to get priority for PID {pid}: access denied"
        ) from e


def set_niceness(pid: int, nice: int) -> None:
    """Set the nice value of a process.

    Negative values, or other users' processes, require privileges.
    """
    if not MIN_NICE <= nice <= MAX_NICE:
        raise ValueError(f"Nice value must be between {MIN_NICE} and {MAX_NICE}, got {nice}")
    proc = _process(pid)
    try:
        proc.nice(nice)
    except psutil.NoSuchProcess as e:
        raise ProcessGone(pid) from e
    except psutil.AccessDenied as e:
        raise ProcessControlError(
            pid, f"Failed to set priority for PID {pid}: access denied"
        ) from e
    log.info("niceness_changed", pid=pid, nice=nice)


def adjust_niceness(pid: int, step: int) -> int:
    """Shift a process's nice value by ``step``, clamped to the valid range.

    Returns the new nice value.
    """
    new_nice = min(max(get_niceness(pid) + step, MIN_NICE), MAX_NICE)
    set_niceness(pid, new_nice)
    return new_nice
