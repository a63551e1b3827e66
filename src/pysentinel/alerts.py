"""Threshold alerts on finalized per-process metrics."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from pysentinel.table import ProcessEntry

if TYPE_CHECKING:
    from pysentinel.config import AlertsConfig

log = structlog.get_logger()

DEFAULT_CPU_THRESHOLD = 80.0
DEFAULT_MEM_THRESHOLD = 80.0
DEFAULT_COOLDOWN = 60.0

_LABELS = {"cpu": "High CPU", "mem": "High Memory"}


@dataclass(slots=True, frozen=True)
class Alert:
    """One process crossing one threshold in one tick."""

    pid: int
    metric: str  # "cpu" or "mem"
    value: float
    threshold: float
    command: str

    @property
    def message(self) -> str:
        return f"{_LABELS[self.metric]}: PID {self.pid} ({self.command}) {self.value:.1f}%"


class ThresholdWatcher:
    """Flags processes whose CPU% or MEM% reaches a threshold.

    A pid that fired stays silent for ``cooldown`` seconds, whichever metric
    fired. A threshold of 0 or less disables that metric.
    """

    def __init__(
        self,
        cpu_threshold: float = DEFAULT_CPU_THRESHOLD,
        mem_threshold: float = DEFAULT_MEM_THRESHOLD,
        cooldown: float = DEFAULT_COOLDOWN,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cpu_threshold = cpu_threshold
        self.mem_threshold = mem_threshold
        self.cooldown = cooldown
        self._clock = clock
        # Last time each pid fired
        self._last_fired: dict[int, float] = {}

    @classmethod
    def from_config(cls, config: AlertsConfig) -> ThresholdWatcher:
        return cls(
            cpu_threshold=config.cpu_threshold,
            mem_threshold=config.mem_threshold,
            cooldown=config.cooldown,
        )

    def _can_fire(self, pid: int, now: float) -> bool:
        last = self._last_fired.get(pid)
        return last is None or now - last >= self.cooldown

    def _exceeded(self, entry: ProcessEntry) -> list[Alert]:
        command = entry.identity.command or entry.identity.display_name
        alerts = []
        if 0 < self.cpu_threshold <= entry.cpu_percent:
            alerts.append(
                Alert(entry.pid, "cpu", entry.cpu_percent, self.cpu_threshold, command)
            )
        if 0 < self.mem_threshold <= entry.memory_percent:
            alerts.append(
                Alert(entry.pid, "mem", entry.memory_percent, self.mem_threshold, command)
            )
        return alerts

    def check(self, entries: Iterable[ProcessEntry]) -> list[Alert]:
        """Return the alerts raised by this tick's alive entries."""
        now = self._clock()
        fired: list[Alert] = []

        for entry in entries:
            if not entry.alive or not self._can_fire(entry.pid, now):
                continue
            alerts = self._exceeded(entry)
            if alerts:
                self._last_fired[entry.pid] = now
                fired.extend(alerts)

        # Expired cooldowns no longer block anything
        self._last_fired = {
            pid: fired_at
            for pid, fired_at in self._last_fired.items()
            if now - fired_at < self.cooldown
        }

        for alert in fired:
            log.warning(
                "threshold_exceeded",
                pid=alert.pid,
                metric=alert.metric,
                value=round(alert.value, 1),
                threshold=alert.threshold,
                command=alert.command,
            )
        return fired
