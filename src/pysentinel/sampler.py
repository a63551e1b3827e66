"""Sampling engine: one tick of enumerate, ingest, finalize and rank."""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

import structlog

from pysentinel.alerts import Alert, ThresholdWatcher
from pysentinel.errors import EnumerationUnavailable, ProcessGone, SystemCounterUnavailable
from pysentinel.models import (
    MemorySample,
    ProcessIdentity,
    ProcessRow,
    SystemCounters,
    TickSummary,
)
from pysentinel.ranker import DEFAULT_DISPLAY_BUDGET, Ranker
from pysentinel.reader import CounterReader
from pysentinel.table import ProcessTable

log = structlog.get_logger()

DEFAULT_INTERVAL = 1.5


class SamplerState(Enum):
    """Phases of one tick; the cycle repeats until cancelled."""

    IDLE = "idle"
    ENUMERATING = "enumerating"
    INGESTING = "ingesting"
    FINALIZING = "finalizing"
    RENDERED = "rendered"


@dataclass(slots=True, frozen=True)
class TickResult:
    """Ranked, truncated rows plus aggregate metadata for one tick."""

    rows: list[ProcessRow]
    summary: TickSummary
    alerts: list[Alert] = field(default_factory=list)


class Sampler:
    """Drives sampling ticks against a single-writer ProcessTable.

    The system busy-time window is chained: each tick's read taken after
    the per-process scan becomes the next tick's "before" value, and the
    very first "before" value is read on construction. The window
    therefore straddles the scan rather than matching it exactly.
    """

    def __init__(
        self,
        reader: CounterReader,
        ranker: Ranker | None = None,
        interval: float = DEFAULT_INTERVAL,
        table: ProcessTable | None = None,
        alerts: ThresholdWatcher | None = None,
    ) -> None:
        self._reader = reader
        self.alerts = alerts
        self.ranker = ranker or Ranker(DEFAULT_DISPLAY_BUDGET)
        self.interval = interval
        self.table = table if table is not None else ProcessTable()
        self.state = SamplerState.IDLE
        self._tick_count = 0
        self._previous_busy_time = self._read_system_busy_time()

    @property
    def tick_count(self) -> int:
        """Number of completed ticks."""
        return self._tick_count

    def _read_system_busy_time(self) -> int | None:
        try:
            return self._reader.read_system_busy_time()
        except SystemCounterUnavailable as e:
            log.warning("system_counter_unavailable", error=str(e))
            return None

    def _read_memory_total_kb(self) -> int:
        try:
            return self._reader.read_system_memory_total_kb()
        except SystemCounterUnavailable as e:
            log.warning("memory_total_unavailable", error=str(e))
            return 1

    def _ingest(self, pid: int) -> None:
        """Read one process and store it; drop the pid if it vanished."""
        try:
            counters = self._reader.read_process_counters(pid)
        except ProcessGone:
            log.debug("process_gone", pid=pid)
            self.table.mark_gone(pid)
            return

        identity = ProcessIdentity(
            display_name=counters.display_name,
            user=self._reader.read_process_owner(pid),
            priority=counters.priority,
            niceness=counters.niceness,
            run_state=counters.run_state,
            command=self._reader.read_process_command(pid, counters.display_name),
        )
        memory = MemorySample(
            resident_kb=counters.resident_kb,
            virtual_kb=counters.virtual_kb,
        )
        self.table.ingest_sample(pid, counters.busy_time, identity, memory)

    def tick(self) -> TickResult:
        """Run one full sampling iteration.

        Raises:
            EnumerationUnavailable: The process list could not be read.
        """
        self.state = SamplerState.ENUMERATING
        try:
            pids = self._reader.enumerate_process_ids()
        except EnumerationUnavailable as e:
            log.error("enumeration_unavailable", error=str(e))
            self.state = SamplerState.IDLE
            raise
        self.table.reconcile(pids)

        self.state = SamplerState.INGESTING
        for pid in pids:
            self._ingest(pid)

        self.state = SamplerState.FINALIZING
        busy_time = self._read_system_busy_time()
        counters = SystemCounters(
            previous_busy_time=self._previous_busy_time,
            busy_time=busy_time,
            memory_total_kb=self._read_memory_total_kb(),
        )
        self.table.finalize_tick(counters)
        if busy_time is not None:
            self._previous_busy_time = busy_time
        alerts = self.alerts.check(self.table) if self.alerts is not None else []

        self._tick_count += 1
        rows = self.ranker.rank(self.table)
        running = sum(1 for entry in self.table if entry.identity.run_state == "R")
        summary = TickSummary(
            tick=self._tick_count,
            total_task_count=len(self.table),
            running_task_count=running,
            load_averages=self._reader.read_load_averages(),
            uptime_seconds=self._reader.read_uptime_seconds(),
            memory_total_kb=counters.memory_total_kb,
            clock_ticks=self._reader.clock_ticks,
        )
        log.debug(
            "tick_complete",
            tick=summary.tick,
            tasks=summary.total_task_count,
            running=summary.running_task_count,
        )
        return TickResult(rows=rows, summary=summary, alerts=alerts)

    def run(
        self,
        render: Callable[[TickResult], object],
        stop: threading.Event,
        max_ticks: int = 0,
    ) -> None:
        """Tick, render and sleep until ``stop`` is set.

        ``stop`` is only checked at tick boundaries, so a sample is never
        left half-built. ``max_ticks`` bounds the loop when positive.
        EnumerationUnavailable propagates to the caller.
        """
        ticks = 0
        while not stop.is_set():
            result = self.tick()
            self.state = SamplerState.RENDERED
            render(result)
            self.state = SamplerState.IDLE
            ticks += 1
            if max_ticks and ticks >= max_ticks:
                break
            stop.wait(timeout=self.interval)
