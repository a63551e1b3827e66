"""Ordering and truncation of the process table."""

from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any

from pysentinel.models import ProcessRow
from pysentinel.table import ProcessEntry

DEFAULT_DISPLAY_BUDGET = 100


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEM = "mem"
    PID = "pid"
    USER = "user"
    VIRT = "virt"
    RES = "res"
    TIME = "time"

    @classmethod
    def parse(cls, value: str) -> "SortKey":
        """Look up a key by its value, case-insensitively."""
        try:
            return cls(value.lower())
        except ValueError:
            valid = [key.value for key in cls]
            raise ValueError(f"Unknown sort key: {value!r}. Valid keys: {valid}") from None


# Descending keys; pid is always the final ascending tie-break
_ROW_KEYS: dict[SortKey, Callable[[ProcessRow], tuple[Any, ...]]] = {
    SortKey.CPU: lambda r: (r.cpu_percent, r.resident_kb),
    SortKey.MEM: lambda r: (r.memory_percent, r.cpu_percent),
    SortKey.PID: lambda r: (r.pid,),
    SortKey.USER: lambda r: (r.user.lower(),),
    SortKey.VIRT: lambda r: (r.virtual_kb,),
    SortKey.RES: lambda r: (r.resident_kb,),
    SortKey.TIME: lambda r: (r.cumulative_time,),
}


def sort_rows(
    rows: Iterable[ProcessRow],
    key: SortKey = SortKey.CPU,
    descending: bool = True,
) -> list[ProcessRow]:
    """Sort rows by a key, breaking remaining ties by pid ascending."""
    # Two stable passes: pid first, then the primary key
    ordered = sorted(rows, key=lambda r: r.pid)
    return sorted(ordered, key=_ROW_KEYS[key], reverse=descending)


class Ranker:
    """Orders the reconciled table and truncates it to the display budget.

    The default policy is CPU% descending with resident memory descending
    as the tie-break. Truncation never touches the table itself.
    """

    def __init__(
        self,
        display_budget: int = DEFAULT_DISPLAY_BUDGET,
        sort_key: SortKey = SortKey.CPU,
        descending: bool = True,
    ) -> None:
        self.display_budget = max(0, display_budget)
        self.sort_key = sort_key
        self.descending = descending

    def toggle(self, key: SortKey) -> None:
        """Select a sort key, flipping direction if it is already selected."""
        if key == self.sort_key:
            self.descending = not self.descending
        else:
            self.sort_key = key
            self.descending = True

    def rank(self, entries: Iterable[ProcessEntry]) -> list[ProcessRow]:
        """Return at most ``display_budget`` rows in ranked order."""
        rows = [entry.to_row() for entry in entries if entry.alive]
        return sort_rows(rows, self.sort_key, self.descending)[: self.display_budget]
