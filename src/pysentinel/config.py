"""Configuration system for pysentinel."""

from dataclasses import dataclass, field, fields
from pathlib import Path

import tomlkit

from pysentinel.alerts import DEFAULT_COOLDOWN, DEFAULT_CPU_THRESHOLD, DEFAULT_MEM_THRESHOLD
from pysentinel.ranker import DEFAULT_DISPLAY_BUDGET, SortKey
from pysentinel.sampler import DEFAULT_INTERVAL


@dataclass
class SamplingConfig:
    """Sampling loop configuration."""

    interval: float = DEFAULT_INTERVAL  # Seconds between ticks
    display_budget: int = DEFAULT_DISPLAY_BUDGET  # Max rows forwarded per tick


@dataclass
class DisplayConfig:
    """Row ordering and text bounds."""

    sort_key: str = SortKey.CPU.value
    descending: bool = True
    command_width: int = 30  # Max characters of command shown
    user_width: int = 15  # Max characters of user name shown

    def __post_init__(self) -> None:
        SortKey.parse(self.sort_key)

    @property
    def sort(self) -> SortKey:
        """The configured sort key."""
        return SortKey.parse(self.sort_key)


@dataclass
class AlertsConfig:
    """Per-process threshold alerts. A threshold of 0 disables it."""

    cpu_threshold: float = DEFAULT_CPU_THRESHOLD  # CPU% share of the machine
    mem_threshold: float = DEFAULT_MEM_THRESHOLD  # MEM% of total memory
    cooldown: float = DEFAULT_COOLDOWN  # Seconds a pid stays silent after firing

    def __post_init__(self) -> None:
        if self.cooldown < 0:
            raise ValueError(f"Alert cooldown must not be negative, got {self.cooldown}")


@dataclass
class LoggingConfig:
    """Logging configuration.

    An empty ``file`` logs to stderr. Set a file when running the TUI,
    which owns the terminal.
    """

    level: str = "WARNING"
    file: str = ""


SECTIONS = ("sampling", "display", "alerts", "logging")


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    table = tomlkit.table()
    for f in fields(obj):
        table.add(f.name, getattr(obj, f.name))
    return table


def _load_section(cls: type, data: dict) -> object:
    """Build a config section, using dataclass defaults for missing keys."""
    defaults = cls()
    values = {f.name: data.get(f.name, getattr(defaults, f.name)) for f in fields(cls)}
    # tomlkit items wrap plain values; unwrap so dataclasses hold builtins
    values = {k: v.unwrap() if hasattr(v, "unwrap") else v for k, v in values.items()}
    return cls(**values)


@dataclass
class Config:
    """Main configuration container."""

    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    alerts: AlertsConfig = field(default_factory=AlertsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "pysentinel"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in SECTIONS:
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values."""
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            sampling=_load_section(SamplingConfig, data.get("sampling", {})),
            display=_load_section(DisplayConfig, data.get("display", {})),
            alerts=_load_section(AlertsConfig, data.get("alerts", {})),
            logging=_load_section(LoggingConfig, data.get("logging", {})),
        )
