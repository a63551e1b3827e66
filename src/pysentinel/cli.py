"""CLI commands for pysentinel."""

import signal
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click
import structlog

from pysentinel.alerts import ThresholdWatcher
from pysentinel.config import SECTIONS, Config
from pysentinel.errors import EnumerationUnavailable
from pysentinel.logging import configure
from pysentinel.ranker import Ranker, SortKey
from pysentinel.reader import PsutilCounterReader
from pysentinel.render import PlainRenderer
from pysentinel.sampler import Sampler

log = structlog.get_logger()

SORT_CHOICES = [key.value for key in SortKey]


def _load_config(path: Path | None) -> Config:
    try:
        return Config.load(path)
    except ValueError as e:
        raise click.ClickException(str(e)) from e


def _start(path: Path | None) -> Config:
    """Load the config and set up logging from it."""
    config = _load_config(path)
    try:
        configure(config.logging)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    return config


def _build_sampler(
    config: Config,
    interval: float | None,
    limit: int | None,
    sort: str | None,
) -> Sampler:
    ranker = Ranker(
        display_budget=limit if limit is not None else config.sampling.display_budget,
        sort_key=SortKey.parse(sort) if sort else config.display.sort,
        descending=config.display.descending,
    )
    return Sampler(
        PsutilCounterReader(),
        ranker=ranker,
        interval=interval if interval is not None else config.sampling.interval,
        alerts=ThresholdWatcher.from_config(config.alerts),
    )


@contextmanager
def _stop_on_signals() -> Iterator[threading.Event]:
    """Yield an Event that SIGINT and SIGTERM set instead of raising."""
    stop = threading.Event()

    def request_stop(signum: int, frame: object) -> None:
        log.info("signal_received", signal=signal.Signals(signum).name)
        stop.set()

    previous_handlers = {
        sig: signal.signal(sig, request_stop) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        yield stop
    finally:
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler)


def _fail_enumeration(error: EnumerationUnavailable) -> None:
    click.echo(f"pysentinel: {error}", err=True)
    sys.exit(1)


config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.toml",
)


@click.group()
@click.version_option(package_name="pysentinel")
def main() -> None:
    """Live process monitor ranked by CPU usage."""
    pass


@main.command()
@config_option
def tui(config_path: Path | None) -> None:
    """Launch interactive dashboard."""
    from pysentinel.app import run_tui

    config = _start(config_path)
    sys.exit(run_tui(config))


@main.command()
@config_option
@click.option("--interval", "-i", type=float, default=None, help="Seconds between ticks")
@click.option("--limit", "-n", type=int, default=None, help="Maximum rows to show")
@click.option("--sort", "-s", type=click.Choice(SORT_CHOICES), default=None, help="Sort column")
@click.option("--iterations", type=int, default=0, help="Stop after N ticks (0 = forever)")
@click.option("--no-clear", is_flag=True, help="Do not clear the screen between ticks")
def watch(
    config_path: Path | None,
    interval: float | None,
    limit: int | None,
    sort: str | None,
    iterations: int,
    no_clear: bool,
) -> None:
    """Print a ranked process table every interval."""
    config = _start(config_path)

    renderer = PlainRenderer(
        command_width=config.display.command_width,
        user_width=config.display.user_width,
        clear=not no_clear,
    )
    with _stop_on_signals() as stop:
        try:
            sampler = _build_sampler(config, interval, limit, sort)
            sampler.run(renderer, stop, max_ticks=iterations)
        except EnumerationUnavailable as e:
            _fail_enumeration(e)


@main.command()
@config_option
@click.option("--limit", "-n", type=int, default=None, help="Maximum rows to show")
@click.option("--sort", "-s", type=click.Choice(SORT_CHOICES), default=None, help="Sort column")
def snapshot(config_path: Path | None, limit: int | None, sort: str | None) -> None:
    """Print one ranked table.

    Two ticks are taken one interval apart; only the second is printed
    because a first observation has no CPU delta yet.
    """
    config = _start(config_path)

    renderer = PlainRenderer(
        command_width=config.display.command_width,
        user_width=config.display.user_width,
        clear=False,
    )
    with _stop_on_signals() as stop:
        try:
            sampler = _build_sampler(config, None, limit, sort)
            sampler.tick()
            if stop.wait(timeout=sampler.interval):
                return
            renderer(sampler.tick())
        except EnumerationUnavailable as e:
            _fail_enumeration(e)


@main.group(name="config")
def config_group() -> None:
    """Manage the configuration file."""
    pass


@config_group.command("path")
def config_path_cmd() -> None:
    """Print the default config file path."""
    click.echo(Config().config_path)


@config_group.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
@click.option(
    "--path",
    "path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Where to write (defaults to the standard location)",
)
def config_init(force: bool, path: Path | None) -> None:
    """Write a config file with default values."""
    config = Config()
    path = path or config.config_path
    if path.exists() and not force:
        click.echo(f"Config already exists: {path} (use --force to overwrite)")
        return
    config.save(path)
    click.echo(f"Wrote {path}")


@config_group.command("show")
@config_option
def config_show(config_path: Path | None) -> None:
    """Print the effective configuration."""
    config = _load_config(config_path)
    for section in SECTIONS:
        click.echo(f"[{section}]")
        values = getattr(config, section)
        for name, value in vars(values).items():
            click.echo(f"{name} = {value!r}")
        click.echo()


if __name__ == "__main__":
    main()
