"""pysentinel - Main Textual application."""

from queue import Empty, Queue

from rich.markup import escape
from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import DataTable, Footer, Input, Static

from pysentinel import control
from pysentinel.alerts import ThresholdWatcher
from pysentinel.config import Config
from pysentinel.errors import ProcessControlError, ProcessGone
from pysentinel.formatting import clip, format_kb, format_ticks, format_uptime
from pysentinel.models import ProcessRow, TickSummary
from pysentinel.monitor import SystemMonitor
from pysentinel.ranker import Ranker, SortKey, sort_rows
from pysentinel.sampler import TickResult


def filter_rows(rows: list[ProcessRow], text: str) -> list[ProcessRow]:
    """Keep rows whose command, user or pid contains ``text``."""
    needle = text.strip().lower()
    if not needle:
        return rows
    return [
        row
        for row in rows
        if needle in row.command.lower() or needle in row.user.lower() or needle in str(row.pid)
    ]


class HeaderStats(Static):
    """Header widget showing task counts, load and uptime."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 4;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._summary: TickSummary | None = None

    def update_stats(self, summary: TickSummary) -> None:
        """Update the statistics from a tick summary."""
        self._summary = summary
        self.update(self._get_info())

    def on_mount(self) -> None:
        self.update(self._get_info())

    def _get_info(self) -> str:
        """Get header display."""
        summary = self._summary
        if summary is None:
            return "Sampling processes..."
        l1, l5, l15 = summary.load_averages
        return (
            f"Tasks: [bold]{summary.total_task_count}[/bold], "
            f"running: [green]{summary.running_task_count}[/green]\n"
            f"Load average: {l1:.2f} {l5:.2f} {l15:.2f}\n"
            f"Uptime: {format_uptime(summary.uptime_seconds)}   "
            f"Mem total: {format_kb(summary.memory_total_kb)}"
        )


class ProcessList(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessList {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, command_width: int = 30, user_width: int = 15, **kwargs) -> None:
        """Initialize ProcessList."""
        super().__init__(*args, **kwargs)
        self._command_width = command_width
        self._user_width = user_width
        self._current_pids: set[int] = set()
        self._rows: list[ProcessRow] = []
        self._displayed: list[ProcessRow] = []
        self._clock_ticks = 100
        self._sorter = Ranker()
        self.filter_text = ""

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sorter.sort_key

    @property
    def descending(self) -> bool:
        return self._sorter.descending

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        next_index = (keys.index(self._sorter.sort_key) + 1) % len(keys)
        self._sorter.sort_key = keys[next_index]
        self._sorter.descending = self._sorter.sort_key != SortKey.USER
        self._redraw()
        return self._sorter.sort_key

    def set_sort(self, key: SortKey, descending: bool = True) -> None:
        """Select a sort column and direction."""
        self._sorter.sort_key = key
        self._sorter.descending = descending
        self._redraw()

    def toggle_sort(self, key: SortKey) -> None:
        """Select a sort column, flipping direction when already selected."""
        self._sorter.toggle(key)
        self._redraw()

    def set_filter(self, text: str) -> None:
        self.filter_text = text
        self._redraw()

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=7)
        table.add_column("USER", key="user", width=self._user_width)
        table.add_column("PR", key="priority", width=4)
        table.add_column("NI", key="nice", width=4)
        table.add_column("S", key="state", width=2)
        table.add_column("%CPU", key="cpu", width=7)
        table.add_column("%MEM", key="mem", width=6)
        table.add_column("VIRT", key="virt", width=8)
        table.add_column("RES", key="res", width=8)
        table.add_column("TIME+", key="time", width=10)
        table.add_column("Command", key="command")

    @property
    def selected_pid(self) -> int | None:
        """PID of the row under the cursor, if any."""
        table = self.query_one("#process-table", DataTable)
        if not self._displayed or table.cursor_row < 0:
            return None
        if table.cursor_row >= len(self._displayed):
            return None
        return self._displayed[table.cursor_row].pid

    def update_processes(self, rows: list[ProcessRow], clock_ticks: int = 100) -> None:
        """Replace the table contents with new ranked rows."""
        self._rows = rows
        self._clock_ticks = clock_ticks
        self._current_pids = {row.pid for row in rows}
        self._redraw()

    def _redraw(self) -> None:
        """Re-sort, filter and redraw, keeping the cursor on the same pid."""
        if not self.is_mounted:
            return
        table = self.query_one("#process-table", DataTable)
        selected = self.selected_pid

        ordered = sort_rows(self._rows, self._sorter.sort_key, self._sorter.descending)
        self._displayed = filter_rows(ordered, self.filter_text)

        table.clear()
        for row in self._displayed:
            table.add_row(*self._cells(row), key=str(row.pid))

        if selected is not None:
            for index, row in enumerate(self._displayed):
                if row.pid == selected:
                    table.move_cursor(row=index)
                    break

    def _cells(self, row: ProcessRow) -> tuple[str | Text, ...]:
        # Process text is shown literally, never parsed as markup
        return (
            str(row.pid),
            Text(clip(row.user, self._user_width)),
            str(row.priority),
            str(row.niceness),
            row.run_state,
            f"{row.cpu_percent:5.1f}",
            f"{row.memory_percent:5.1f}",
            format_kb(row.virtual_kb),
            format_kb(row.resident_kb),
            format_ticks(row.cumulative_time, self._clock_ticks),
            Text(clip(row.command, self._command_width)),
        )


class SentinelApp(App):
    """Main pysentinel application."""

    TITLE = "pysentinel"
    SUB_TITLE = "Process Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
    }

    #filter-input {
        display: none;
    }

    #filter-input.visible {
        display: block;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
        ("slash", "search", "Filter"),
        Binding("c", "sort_by('cpu')", "CPU", show=False),
        Binding("m", "sort_by('mem')", "MEM", show=False),
        Binding("p", "sort_by('pid')", "PID", show=False),
        Binding("u", "sort_by('user')", "USER", show=False),
        Binding("v", "sort_by('virt')", "VIRT", show=False),
        Binding("r", "sort_by('res')", "RES", show=False),
        Binding("t", "sort_by('time')", "TIME", show=False),
        ("k", "terminate", "Term"),
        ("K", "kill", "Kill"),
        Binding("n", "renice(-5)", "Nice-", show=False),
        Binding("N", "renice(5)", "Nice+", show=False),
    ]

    def __init__(self, config: Config | None = None, monitor: SystemMonitor | None = None) -> None:
        """Initialize the SentinelApp."""
        super().__init__()
        self._config = config or Config()
        if monitor is None:
            monitor = SystemMonitor(
                Queue(),
                poll_rate=self._config.sampling.interval,
                ranker=Ranker(
                    self._config.sampling.display_budget,
                    self._config.display.sort,
                    self._config.display.descending,
                ),
                alerts=ThresholdWatcher.from_config(self._config.alerts),
            )
        self._monitor = monitor
        self._update_queue: Queue[TickResult] = monitor.queue

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield Input(placeholder="Filter by command, user or PID", id="filter-input")
        yield ProcessList(
            command_width=self._config.display.command_width,
            user_width=self._config.display.user_width,
        )
        yield Footer()

    def on_mount(self) -> None:
        """Start the system monitor when the app is mounted."""
        self.query_one(ProcessList).set_sort(
            self._config.display.sort, self._config.display.descending
        )
        self.query_one("#process-table", DataTable).focus()
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Check the queue for results and refresh the UI."""
        if self._monitor.fatal_error is not None:
            self._monitor.stop()
            self.exit(return_code=1, message=str(self._monitor.fatal_error))
            return

        # Drain the queue to get the most recent result
        result = None
        while True:
            try:
                result = self._update_queue.get_nowait()
            except Empty:
                break

        if result is not None:
            self._update_ui(result)

    def _update_ui(self, result: TickResult) -> None:
        """Update the UI with a new tick result."""
        self.query_one("#header-stats", HeaderStats).update_stats(result.summary)
        self.query_one(ProcessList).update_processes(result.rows, result.summary.clock_ticks)
        for alert in result.alerts:
            self.notify(escape(alert.message), severity="warning")

    def action_sort(self) -> None:
        """Cycle through sort keys."""
        new_sort_key = self.query_one(ProcessList).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_sort_by(self, key: str) -> None:
        """Sort by a specific column."""
        process_list = self.query_one(ProcessList)
        process_list.toggle_sort(SortKey.parse(key))
        direction = "desc" if process_list.descending else "asc"
        self.notify(f"Sort: {process_list.sort_key.value.upper()} ({direction})")

    def action_search(self) -> None:
        """Show the filter input."""
        filter_input = self.query_one("#filter-input", Input)
        filter_input.add_class("visible")
        filter_input.focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Apply the filter and hide the input."""
        self.query_one(ProcessList).set_filter(event.value)
        event.input.remove_class("visible")
        self.query_one("#process-table", DataTable).focus()

    def on_input_changed(self, event: Input.Changed) -> None:
        self.query_one(ProcessList).set_filter(event.value)

    def _control(self, action, describe: str) -> None:
        pid = self.query_one(ProcessList).selected_pid
        if pid is None:
            return
        try:
            outcome = action(pid)
        except (ProcessControlError, ProcessGone, ValueError) as e:
            self.notify(f"Error: {escape(str(e))}", severity="error")
            return
        self.notify(describe.format(pid=pid, outcome=outcome))

    def action_terminate(self) -> None:
        """Send SIGTERM to the selected process."""
        self._control(control.terminate, "Sent SIGTERM to PID {pid}")

    def action_kill(self) -> None:
        """Send SIGKILL to the selected process."""
        self._control(control.force_kill, "Sent SIGKILL to PID {pid}")

    def action_renice(self, step: int) -> None:
        """Shift the nice value of the selected process."""
        self._control(
            lambda pid: control.adjust_niceness(pid, step),
            "Changed nice of PID {pid} to {outcome}",
        )

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def run_tui(config: Config | None = None) -> int:
    """Run the dashboard and return its exit status."""
    app = SentinelApp(config)
    app.run()
    return app.return_code or 0
