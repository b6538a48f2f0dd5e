"""CLI tools: ddlrelay run, check, poll-once, stuck, init-config."""

from __future__ import annotations

import asyncio
import logging
import sys

import typer
from pydantic import ValidationError
from rich.console import Console

from ddlrelay.app import DDLRelayApp
from ddlrelay.cli.init_config import init_config_command
from ddlrelay.cli.report import print_cycle_report, print_store_checks, print_stuck_events
from ddlrelay.config import ConfigLoadError, RelayConfig, load_config
from ddlrelay.db import ConnectionPoolManager, DatabaseError
from ddlrelay.relay.fetch import fetch_exhausted
from ddlrelay.validation import validate_stores

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

app = typer.Typer(
    name="ddlrelay",
    help="Relay captured DDL events from source databases into a central audit store.",
    no_args_is_help=True,
)
_CONFIG_OPTION = typer.Option("", "--config", "-c", help="Config file path (default: DDLRELAY_CONFIG or ./ddlrelay.yaml)")


def _print_error(message: str) -> None:
    Console(stderr=True).print(message)


@app.callback()
def _configure(
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)."),
) -> None:
    level = logging.getLevelName(log_level.strip().upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"unknown log level: {log_level}", param_hint="--log-level")
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _load(config: str) -> RelayConfig:
    try:
        return load_config(config or None)
    except (ConfigLoadError, ValidationError) as exc:
        _print_error(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(1) from exc


@app.command("run")
def run_command(config: str = _CONFIG_OPTION) -> None:
    """Validate stores and poll until SIGINT/SIGTERM."""
    relay = DDLRelayApp(_load(config))
    code = asyncio.run(relay.run())
    if code:
        raise typer.Exit(code)


@app.command("check")
def check_command(config: str = _CONFIG_OPTION) -> None:
    """Connect to every store, create missing tables, print the result."""
    settings = _load(config)

    async def _check():
        async with ConnectionPoolManager() as pools:
            return await validate_stores(settings, pools)

    checks = asyncio.run(_check())
    print_store_checks(checks)
    if not all(check.ok for check in checks):
        raise typer.Exit(1)


@app.command("poll-once")
def poll_once_command(config: str = _CONFIG_OPTION) -> None:
    """Run a single poll cycle across all sources and exit."""
    relay = DDLRelayApp(_load(config))
    try:
        report = asyncio.run(relay.poll_once())
    except Exception as exc:
        _print_error(f"[red]Poll failed:[/red] {exc}")
        raise typer.Exit(1) from exc
    print_cycle_report(report)
    if report.skipped_stores:
        raise typer.Exit(1)


@app.command("stuck")
def stuck_command(
    config: str = _CONFIG_OPTION,
    store: str = typer.Option("", "--store", help="Only inspect this source store."),
    limit: int = typer.Option(100, "--limit", min=1, help="Maximum events listed per store."),
) -> None:
    """List events that exhausted their retry budget and are no longer fetched."""
    settings = _load(config)
    sources = settings.sources
    if store:
        selected = settings.get_source(store)
        if selected is None:
            _print_error(f"[red]Unknown source store:[/red] {store}")
            raise typer.Exit(1)
        sources = [selected]

    console = Console()

    async def _stuck() -> bool:
        failed = False
        async with ConnectionPoolManager() as pools:
            for source in sources:
                try:
                    pool = await pools.acquire(source)
                    events = await fetch_exhausted(pool, settings.audit.max_retries, limit)
                except DatabaseError as exc:
                    _print_error(f"[red]{source.name}:[/red] {exc}")
                    failed = True
                    continue
                print_stuck_events(source.name, events, console)
        return failed

    if asyncio.run(_stuck()):
        raise typer.Exit(1)


@app.command("init-config")
def init_config(
    path: str = typer.Option(".", "--path", help="Output directory"),
    force: bool = typer.Option(False, "--force", help="Overwrite existing ddlrelay.yaml"),
) -> None:
    """Generate a ddlrelay.yaml template in the target directory."""
    try:
        init_config_command(path=path, force=force)
    except FileExistsError as exc:
        _print_error(f"[red]{exc}[/red] (use --force to overwrite)")
        raise typer.Exit(1) from exc


def main() -> None:
    """CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        sys.exit(130)
