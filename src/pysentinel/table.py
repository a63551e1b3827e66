"""Process table: per-process tracking state and its lifecycle."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

import structlog

from pysentinel.errors import NotAlive
from pysentinel.metrics import cpu_percent, memory_percent
from pysentinel.models import (
    UNKNOWN_IDENTITY,
    MemorySample,
    ProcessIdentity,
    ProcessRow,
    SystemCounters,
)

log = structlog.get_logger()


@dataclass(slots=True)
class ProcessEntry:
    """One tracked process.

    ``previous_busy_time == 0`` means the process has not completed a tick
    yet, so there is no valid delta for it.
    """

    pid: int
    previous_busy_time: int = 0
    current_busy_time: int = 0
    cpu_percent: float = 0.0
    memory_resident_kb: int = 0
    memory_virtual_kb: int = 0
    memory_percent: float = 0.0
    identity: ProcessIdentity = UNKNOWN_IDENTITY
    alive: bool = True

    def to_row(self) -> ProcessRow:
        """Freeze this entry into a renderer row."""
        return ProcessRow(
            pid=self.pid,
            user=self.identity.user,
            priority=self.identity.priority,
            niceness=self.identity.niceness,
            run_state=self.identity.run_state,
            cpu_percent=self.cpu_percent,
            memory_percent=self.memory_percent,
            virtual_kb=self.memory_virtual_kb,
            resident_kb=self.memory_resident_kb,
            cumulative_time=self.current_busy_time,
            command=self.identity.command or self.identity.display_name,
        )


class ProcessTable:
    """Key-indexed store of tracked processes.

    Owned and written by a single sampler. Iteration order is unspecified;
    use a Ranker to get ordered output.
    """

    def __init__(self) -> None:
        self._entries: dict[int, ProcessEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ProcessEntry]:
        return iter(list(self._entries.values()))

    def __contains__(self, pid: object) -> bool:
        return pid in self._entries

    def contains(self, pid: int) -> bool:
        """Return True if the pid is currently tracked."""
        return pid in self._entries

    def get(self, pid: int) -> ProcessEntry | None:
        """Return the entry for a pid, or None."""
        return self._entries.get(pid)

    def reconcile(self, observed_pids: Iterable[int]) -> None:
        """Mark liveness from this tick's enumeration.

        Every existing entry is first marked not alive, then each observed
        pid is either created or marked alive again. Nothing is removed here.
        """
        for entry in self._entries.values():
            entry.alive = False

        for pid in observed_pids:
            entry = self._entries.get(pid)
            if entry is None:
                self._entries[pid] = ProcessEntry(pid=pid)
            else:
                entry.alive = True

    def ingest_sample(
        self,
        pid: int,
        busy_time: int,
        identity: ProcessIdentity,
        memory: MemorySample,
    ) -> None:
        """Store the fresh counters and snapshot fields of an alive pid.

        Raises:
            NotAlive: The pid was not marked alive by this tick's reconcile.
        """
        entry = self._entries.get(pid)
        if entry is None or not entry.alive:
            raise NotAlive(pid)

        entry.current_busy_time = busy_time
        entry.identity = identity
        entry.memory_resident_kb = memory.resident_kb
        entry.memory_virtual_kb = memory.virtual_kb

    def mark_gone(self, pid: int) -> None:
        """Mark a pid as not alive so the next finalize deletes it."""
        entry = self._entries.get(pid)
        if entry is not None:
            entry.alive = False

    def finalize_tick(self, counters: SystemCounters) -> None:
        """Derive metrics for alive entries and delete the rest.

        Alive entries get ``cpu_percent``/``memory_percent`` computed, then
        their current busy time is rotated into the previous one. Entries
        not alive are deleted immediately; there is no grace period.
        """
        busy_delta = counters.busy_delta
        dead: list[int] = []

        for pid, entry in self._entries.items():
            if not entry.alive:
                dead.append(pid)
                continue

            entry.cpu_percent = cpu_percent(
                entry.previous_busy_time, entry.current_busy_time, busy_delta
            )
            entry.memory_percent = memory_percent(
                entry.memory_resident_kb, counters.memory_total_kb
            )
            entry.previous_busy_time = entry.current_busy_time

        for pid in dead:
            del self._entries[pid]

        if dead:
            log.debug("processes_removed", count=len(dead))
