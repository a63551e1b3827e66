"""Plain terminal renderer."""

import time

from rich.console import Console
from rich.table import Table
from rich.text import Text

from pysentinel.formatting import clip, format_ticks, format_uptime
from pysentinel.sampler import TickResult

COLUMNS = (
    "PID",
    "USER",
    "PR",
    "NI",
    "S",
    "%CPU",
    "%MEM",
    "VIRT(KB)",
    "RES(KB)",
    "TIME+",
    "COMMAND",
)


class PlainRenderer:
    """Redraws a header and the ranked rows on every tick."""

    def __init__(
        self,
        console: Console | None = None,
        command_width: int = 30,
        user_width: int = 15,
        clear: bool = True,
    ) -> None:
        self._console = console or Console(highlight=False)
        self._command_width = command_width
        self._user_width = user_width
        self._clear = clear

    def build_table(self, result: TickResult) -> Table:
        """Build the rich table for one tick."""
        hz = result.summary.clock_ticks
        table = Table(box=None, pad_edge=False, header_style="bold")
        for name in COLUMNS:
            justify = "left" if name in ("USER", "S", "COMMAND") else "right"
            table.add_column(name, justify=justify, no_wrap=True)

        for row in result.rows:
            table.add_row(
                str(row.pid),
                Text(clip(row.user, self._user_width)),
                str(row.priority),
                str(row.niceness),
                row.run_state,
                f"{row.cpu_percent:6.2f}",
                f"{row.memory_percent:6.2f}",
                str(row.virtual_kb),
                str(row.resident_kb),
                format_ticks(row.cumulative_time, hz),
                Text(clip(row.command, self._command_width)),
            )
        return table

    def header_lines(self, result: TickResult) -> list[str]:
        """Header text for one tick."""
        summary = result.summary
        l1, l5, l15 = summary.load_averages
        return [
            f"pysentinel - {time.strftime('%a, %d %b %Y %H:%M:%S')}",
            f"Tasks: {summary.total_task_count}, running: {summary.running_task_count}",
            f"Load average: {l1:.2f} {l5:.2f} {l15:.2f}  | "
            f"Uptime: {format_uptime(summary.uptime_seconds)}",
        ]

    def __call__(self, result: TickResult) -> None:
        if self._clear:
            self._console.clear()
        for line in self.header_lines(result):
            self._console.print(line, markup=False)
        for alert in result.alerts:
            self._console.print(alert.message, markup=False, style="bold")
        self._console.print(self.build_table(result))
