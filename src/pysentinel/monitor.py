"""Background sampling thread for the TUI."""

import threading
from queue import Queue

import structlog

from pysentinel.alerts import ThresholdWatcher
from pysentinel.errors import EnumerationUnavailable
from pysentinel.ranker import Ranker
from pysentinel.reader import CounterReader, PsutilCounterReader
from pysentinel.sampler import DEFAULT_INTERVAL, Sampler, TickResult

log = structlog.get_logger()

MIN_POLL_RATE = 0.1


class SystemMonitor:
    """
    Runs a Sampler in a separate daemon thread and pushes each TickResult
    to a thread-safe Queue.

    The sampler's ProcessTable is only ever written by this thread. A fatal
    enumeration failure stops the thread and is exposed via ``fatal_error``.
    """

    def __init__(
        self,
        update_queue: Queue[TickResult],
        poll_rate: float = DEFAULT_INTERVAL,
        reader: CounterReader | None = None,
        ranker: Ranker | None = None,
        alerts: ThresholdWatcher | None = None,
    ) -> None:
        """
        Initialize the SystemMonitor.

        Args:
            update_queue: Thread-safe queue to push results to.
            poll_rate: Seconds between ticks. Default 1.5s.
            reader: Counter source; psutil-backed when omitted.
            ranker: Ordering and display budget for published rows.
            alerts: Threshold checks run on every tick, if any.
        """
        self._queue = update_queue
        self._sampler = Sampler(
            reader or PsutilCounterReader(), ranker=ranker, alerts=alerts
        )
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.fatal_error: EnumerationUnavailable | None = None
        self.poll_rate = poll_rate

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._sampler.interval

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate; takes effect from the next wait."""
        self._sampler.interval = max(MIN_POLL_RATE, value)

    @property
    def queue(self) -> Queue[TickResult]:
        """Queue receiving one TickResult per tick."""
        return self._queue

    @property
    def sampler(self) -> Sampler:
        """The Sampler driven by the monitor thread."""
        return self._sampler

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="SystemMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        try:
            self._sampler.run(self._queue.put, self._stop_event)
        except EnumerationUnavailable as e:
            self.fatal_error = e
            self._stop_event.set()
