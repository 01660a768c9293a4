#!/usr/bin/env python3
"""
Command line entry point for varzcollector.

- ``run``: start the collector daemon.
- ``check-config``: validate a configuration file and show what it enables.
"""

import asyncio
import contextlib
import signal
import sys

import click
from loguru import logger
from nats.errors import NoServersError
from rich.console import Console
from rich.table import Table

from .bus import NatsMessageBus
from .collector import Collector
from .config import CollectorSettings, load_settings
from .exceptions import BackendConnectionError, ConfigurationError
from .historian import build_historian
from .logging import configure_logging

console = Console()


async def run_collector(settings: CollectorSettings) -> None:
    historian = build_historian(settings)
    await historian.start()

    bus = NatsMessageBus(settings.nats_uri)
    await bus.connect()

    collector = Collector(settings, bus, historian)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, collector.request_shutdown)

    try:
        await collector.start()
        await collector.run_forever()
    finally:
        await collector.stop()
        await bus.close()
        await historian.close()


@click.group()
def cli() -> None:
    """Collect varz/healthz metrics from announced components."""
    pass


@cli.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    required=True,
    help="JSON configuration file",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def run(config_path: str, verbose: bool) -> None:
    """Run the collector until interrupted."""
    try:
        settings = load_settings(config_path)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(2)

    configure_logging(settings, verbose=verbose, colorize=sys.stderr.isatty())

    try:
        asyncio.run(run_collector(settings))
    except BackendConnectionError as e:
        logger.error(f"collector.backend.unavailable error={e}")
        sys.exit(1)
    except NoServersError as e:
        logger.error(f"collector.nats.unavailable servers={settings.nats_uri} error={e!r}")
        sys.exit(1)
    except KeyboardInterrupt:
        pass


@cli.command("check-config")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    required=True,
    help="JSON configuration file",
)
def check_config(config_path: str) -> None:
    """Validate a configuration file and print a summary."""
    try:
        settings = load_settings(config_path)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(2)

    table = Table(title=f"Collector settings ({settings.deployment_name})")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("nats_uri", ", ".join(settings.nats_uri))
    table.add_row("index", str(settings.index))
    table.add_row("status_path", settings.status_path)
    table.add_row("health_path", settings.health_path)
    for name in settings.intervals.__slots__:
        table.add_row(f"intervals.{name}", f"{getattr(settings.intervals, name)}s")
    table.add_row("backends", ", ".join(settings.active_backends()) or "(none)")

    console.print(table)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
