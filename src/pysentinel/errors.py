"""Exception hierarchy for pysentinel."""


class SentinelError(Exception):
    """Base class for pysentinel errors."""


class ProcessGone(SentinelError):
    """A process exited between enumeration and a later read."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"Process {pid} is gone")
        self.pid = pid


class NotAlive(SentinelError):
    """A sample was ingested for a pid not marked alive this tick."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"Process {pid} was not observed this tick")
        self.pid = pid


class SystemCounterUnavailable(SentinelError):
    """A system-wide counter source could not be read."""


class EnumerationUnavailable(SentinelError):
    """The process listing itself could not be read. Fatal."""


class ProcessControlError(SentinelError):
    """The OS refused a signal or priority change."""

    def __init__(self, pid: int, message: str) -> None:
        super().__init__(message)
        self.pid = pid
