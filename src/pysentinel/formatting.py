"""Formatting helpers shared by the renderers."""


def clip(text: str, width: int) -> str:
    """Return at most ``width`` characters of ``text``."""
    if width <= 0:
        return ""
    return text[:width]


def format_ticks(ticks: int, clock_ticks: int) -> str:
    """Format cumulative scheduler ticks like top's TIME+ column.

    ``MM:SS.cc`` below one hour, ``HhMMmSSs`` from one hour on.
    """
    if clock_ticks <= 0:
        return "00:00.00"
    centiseconds = ticks * 100 // clock_ticks
    hours = centiseconds // 360000
    minutes = (centiseconds % 360000) // 6000
    seconds = (centiseconds % 6000) // 100
    if hours > 0:
        return f"{hours}h{minutes:02d}m{seconds:02d}s"
    return f"{minutes:02d}:{seconds:02d}.{centiseconds % 100:02d}"


def format_kb(size_kb: int) -> str:
    """Format a kb quantity as a human-readable string."""
    size: float = size_kb
    for unit in ["K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "K" else f"{int(size):5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_uptime(uptime_seconds: float) -> str:
    """Format uptime as ``[N days, ]HH:MM:SS``."""
    uptime = max(uptime_seconds, 0.0)
    days = int(uptime // 86400)
    hours = int((uptime % 86400) // 3600)
    minutes = int((uptime % 3600) // 60)
    seconds = int(uptime % 60)
    if days > 0:
        return f"{days} days, {hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
