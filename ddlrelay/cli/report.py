"""Rich tables for store checks, cycle reports and stuck events."""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console
from rich.table import Table

from ddlrelay.relay.events import ChangeEvent
from ddlrelay.relay.scheduler import CycleReport
from ddlrelay.validation import StoreCheck

_STATUS_STYLE = {"OK": "green", "ERROR": "red"}


def print_store_checks(checks: Sequence[StoreCheck], console: Console | None = None) -> None:
    console = console or Console()
    table = Table(title="DDL Relay Store Check", show_header=True, header_style="bold")
    table.add_column("Store")
    table.add_column("Role", style="dim")
    table.add_column("Location")
    table.add_column("Status")
    table.add_column("Message")
    for check in checks:
        style = _STATUS_STYLE.get(check.status, "")
        table.add_row(check.name, check.role, check.location, f"[{style}]{check.status}[/{style}]", check.message)
    console.print(table)


def print_cycle_report(report: CycleReport, console: Console | None = None) -> None:
    console = console or Console()
    table = Table(title="Poll Cycle", show_header=True, header_style="bold")
    table.add_column("Item", style="dim")
    table.add_column("Value")
    table.add_row("Stores polled", str(report.stores_polled))
    table.add_row("Fetched", str(report.fetched))
    table.add_row("Relayed", str(report.relayed))
    table.add_row("Failed", str(report.failed))
    table.add_row("Skipped stores", ", ".join(report.skipped_stores) if report.skipped_stores else "-")
    console.print(table)


def print_stuck_events(store: str, events: Sequence[ChangeEvent], console: Console | None = None) -> None:
    console = console or Console()
    if not events:
        console.print(f"[green]{store}: no stuck events[/green]")
        return
    table = Table(title=f"Stuck events on {store}", show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Event")
    table.add_column("Object")
    table.add_column("Retries", justify="right")
    table.add_column("Created")
    table.add_column("Last error")
    for event in events:
        name = f"{event.schema_name}.{event.object_name}" if event.schema_name else event.object_name
        table.add_row(
            str(event.id),
            event.event_type,
            name,
            str(event.retry_count),
            event.created_at.strftime("%Y-%m-%d %H:%M:%S") if event.created_at else "-",
            (event.error_message or "-")[:120],
        )
    console.print(table)
