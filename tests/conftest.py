"""Shared fixtures for pysentinel tests."""

import pytest

from pysentinel.errors import EnumerationUnavailable, ProcessGone, SystemCounterUnavailable
from pysentinel.models import MemorySample, ProcessIdentity
from pysentinel.reader import ProcessCounters


class FakeReader:
    """Scripted CounterReader.

    Mutate ``processes``, ``system_busy_time`` and friends between ticks.
    A ``None`` system value makes the matching read fail.
    """

    def __init__(self, clock_ticks: int = 100) -> None:
        self.clock_ticks = clock_ticks
        self.processes: dict[int, ProcessCounters] = {}
        self.owners: dict[int, str] = {}
        self.commands: dict[int, str] = {}
        self.vanished: set[int] = set()  # enumerated but unreadable
        self.system_busy_time: int | None = 0
        self.memory_total_kb: int | None = 1_000_000
        self.load_averages = (0.5, 0.25, 0.1)
        self.uptime_seconds = 3600.0
        self.enumeration_fails = False

    def set_process(
        self,
        pid: int,
        busy_time: int,
        resident_kb: int = 1000,
        virtual_kb: int = 5000,
        run_state: str = "S",
        niceness: int = 0,
        name: str | None = None,
    ) -> None:
        self.processes[pid] = ProcessCounters(
            busy_time=busy_time,
            run_state=run_state,
            priority=20 + niceness,
            niceness=niceness,
            virtual_kb=virtual_kb,
            resident_kb=resident_kb,
            display_name=name or f"proc{pid}",
        )

    def remove_process(self, pid: int) -> None:
        self.processes.pop(pid, None)

    def enumerate_process_ids(self) -> set[int]:
        if self.enumeration_fails:
            raise EnumerationUnavailable("no process source")
        return set(self.processes) | self.vanished

    def read_process_counters(self, pid: int) -> ProcessCounters:
        if pid in self.vanished or pid not in self.processes:
            raise ProcessGone(pid)
        return self.processes[pid]

    def read_process_owner(self, pid: int) -> str:
        return self.owners.get(pid, "root")

    def read_process_command(self, pid: int, display_name: str) -> str:
        return self.commands.get(pid, display_name)

    def read_system_busy_time(self) -> int:
        if self.system_busy_time is None:
            raise SystemCounterUnavailable("stat unreadable")
        return self.system_busy_time

    def read_system_memory_total_kb(self) -> int:
        if self.memory_total_kb is None:
            raise SystemCounterUnavailable("meminfo unreadable")
        return self.memory_total_kb

    def read_load_averages(self) -> tuple[float, float, float]:
        return self.load_averages

    def read_uptime_seconds(self) -> float:
        return self.uptime_seconds


def make_identity(
    name: str = "proc",
    user: str = "root",
    run_state: str = "S",
    niceness: int = 0,
    command: str = "",
) -> ProcessIdentity:
    """Create a ProcessIdentity for testing."""
    return ProcessIdentity(
        display_name=name,
        user=user,
        priority=20 + niceness,
        niceness=niceness,
        run_state=run_state,
        command=command,
    )


def make_memory(resident_kb: int = 1000, virtual_kb: int = 5000) -> MemorySample:
    return MemorySample(resident_kb=resident_kb, virtual_kb=virtual_kb)


@pytest.fixture
def fake_reader() -> FakeReader:
    """A scripted reader with no processes and a zero system counter."""
    return FakeReader()
