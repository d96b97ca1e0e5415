"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Any, Dict, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.memory_store import InMemoryStore
from ..adapters.rest_store import RestStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import AvailabilityError
from ..domain.normalize import format_minutes, parse_date, parse_timestamp
from ..domain.recurrence import DAY_NAMES, from_rule
from ..services.availability_service import AvailabilityService

app = typer.Typer(
    name="availability-engine",
    help="Resolve provider availability and guard against overlapping rules",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


def _load_config(config_file: Optional[Path]) -> AppConfig:
    """Load the config; without an explicit file a missing default is fine."""
    config_path = config_file or get_default_config_path()
    if config_file is None and not config_path.exists():
        return AppConfig()
    return AppConfig.load_from_yaml(config_path)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _build_store(config: AppConfig):
    if config.store.backend == "rest":
        return RestStore(
            base_url=config.store.base_url,
            api_key=config.store.api_key,
            timeout_seconds=config.store.timeout_seconds,
        )

    data_file = config.store.data_file
    if data_file is not None and data_file.exists():
        store = InMemoryStore.load(data_file)
    else:
        store = InMemoryStore(providers=config.providers or None)
    for provider_id in config.providers:
        store.add_provider(provider_id)
    return store


def _run(config_file: Optional[Path], action, persist: bool = False):
    """
    Build the service from config, run one async action and map errors.

    Args:
        config_file: Optional config path from the command line
        action: Coroutine function taking the AvailabilityService
        persist: Save the memory store back to its data file afterwards
    """
    try:
        config = _load_config(config_file)
        _configure_logging(config.log_level)

        store = _build_store(config)
        service = AvailabilityService(
            store=store,
            timeout_seconds=config.store.timeout_seconds,
            slot_minutes=config.defaults.slot_minutes,
        )
        result = asyncio.run(action(service))

        if persist and isinstance(store, InMemoryStore) and config.store.data_file is not None:
            store.save(config.store.data_file)

        return result

    except AvailabilityError as e:
        console.print(f"[bold red]Error ({e.status_code}):[/bold red] {e.message}")
        raise typer.Exit(1)

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _window(interval) -> str:
    return f"{format_minutes(interval.start_minute)} - {format_minutes(interval.end_minute)}"


def _scope(entity) -> str:
    if entity.recurrence is not None:
        return from_rule(entity.recurrence)
    return str(entity.interval.anchor)


def _parse_days(days: str) -> str:
    """Turn 'Mon,Wed' into a recurrence token, rejecting unknown names."""
    names = [name.strip() for name in days.split(",") if name.strip()]
    known = {name.lower() for name in DAY_NAMES}
    unknown = [name for name in names if name.lower() not in known]
    if unknown or not names:
        console.print(f"[bold red]Error:[/bold red] Unknown weekday(s): {', '.join(unknown) or days}")
        raise typer.Exit(1)
    return "weekly:" + ",".join(names)


@app.command()
def check(
    provider: Annotated[str, typer.Argument(help="Provider id")],
    instant: Annotated[str, typer.Argument(help="ISO-8601 timestamp, e.g. 2025-03-10T11:30")],
    config_file: ConfigOption = None,
):
    """
    Check whether a provider is available at an instant.
    """
    try:
        moment = parse_timestamp(instant)
    except AvailabilityError as e:
        console.print(f"[bold red]Error:[/bold red] {e.message}")
        raise typer.Exit(1)

    available = _run(config_file, lambda service: service.is_available(provider, moment))

    if available:
        console.print(f"[green]✓ {provider} is available at {moment.format('YYYY-MM-DD HH:mm')}[/green]")
    else:
        console.print(f"[yellow]✗ {provider} is not available at {moment.format('YYYY-MM-DD HH:mm')}[/yellow]")


@app.command()
def day(
    provider: Annotated[str, typer.Argument(help="Provider id")],
    date: Annotated[str, typer.Argument(help="Calendar date (YYYY-MM-DD)")],
    slots: Annotated[bool, typer.Option("--slots", help="Split the open intervals into bookable slots")] = False,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Slot length in minutes")] = None,
    config_file: ConfigOption = None,
):
    """
    Show the merged open intervals of a provider for one day.
    """
    try:
        target = parse_date(date)
    except AvailabilityError as e:
        console.print(f"[bold red]Error:[/bold red] {e.message}")
        raise typer.Exit(1)

    if slots:
        intervals = _run(config_file, lambda service: service.list_slots(provider, target, duration))
    else:
        intervals = _run(config_file, lambda service: service.list_availability(provider, target))

    if not intervals:
        console.print(f"[yellow]⚠ No availability for {provider} on {target.isoformat()}.[/yellow]")
        return

    label = "Slots" if slots else "Open intervals"
    console.print(f"[bold green]✓ {len(intervals)} {label.lower()} on {target.isoformat()}:[/bold green]\n")
    for interval in intervals:
        console.print(f"  {_window(interval)}")
    console.print()


@app.command()
def show(
    provider: Annotated[str, typer.Argument(help="Provider id")],
    config_file: ConfigOption = None,
):
    """
    Show base availability with its exceptions.
    """
    view = _run(config_file, lambda service: service.hierarchical_view(provider))

    if not view:
        console.print(f"[yellow]No base availability defined for {provider}.[/yellow]")
        return

    table = Table(
        title=f"Availability of {provider}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Id", style="dim")
    table.add_column("Scope", style="bold yellow")
    table.add_column("Window")
    table.add_column("Exceptions")

    for entry in view:
        exceptions = ", ".join(
            f"{_window(exception.interval)}" + (f" ({exception.reason})" if exception.reason else "")
            for exception in entry.exceptions
        )
        table.add_row(entry.base.id, _scope(entry.base), _window(entry.base.interval), exceptions or "-")

    console.print()
    console.print(table)
    console.print()


@app.command()
def add_base(
    provider: Annotated[str, typer.Argument(help="Provider id")],
    start: Annotated[str, typer.Option("--start", help="Start time (HH:MM)")],
    end: Annotated[str, typer.Option("--end", help="End time (HH:MM)")],
    days: Annotated[Optional[str], typer.Option("--days", help="Weekly days, e.g. Mon,Wed,Fri")] = None,
    date: Annotated[Optional[str], typer.Option("--date", help="One-time date (YYYY-MM-DD)")] = None,
    config_file: ConfigOption = None,
):
    """
    Add base availability, refusing it if it overlaps an existing base.
    """
    raw = _rule_input(start, end, days=days, date=date)
    created = _run(config_file, lambda service: service.add_base(provider, raw), persist=True)
    console.print(f"[green]✓ Base availability {created.id} added: {_scope(created)} {_window(created.interval)}[/green]")


@app.command()
def add_exception(
    provider: Annotated[str, typer.Argument(help="Provider id")],
    base_id: Annotated[str, typer.Argument(help="Id of the base availability")],
    start: Annotated[str, typer.Option("--start", help="Start time (HH:MM)")],
    end: Annotated[str, typer.Option("--end", help="End time (HH:MM)")],
    reason: Annotated[str, typer.Option("--reason", help="Why this time is carved out")] = "",
    config_file: ConfigOption = None,
):
    """
    Carve an exception out of a base availability.
    """
    raw = {"start_time": start, "end_time": end, "reason": reason}
    created = _run(config_file, lambda service: service.add_exception(provider, base_id, raw), persist=True)
    console.print(f"[green]✓ Exception {created.id} added: {_window(created.interval)}[/green]")


@app.command()
def add_time_off(
    provider: Annotated[str, typer.Argument(help="Provider id")],
    start: Annotated[Optional[str], typer.Option("--start", help="Start time (HH:MM)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End time (HH:MM)")] = None,
    all_day: Annotated[bool, typer.Option("--all-day", help="Block the whole day")] = False,
    days: Annotated[Optional[str], typer.Option("--days", help="Weekly days, e.g. Fri")] = None,
    from_date: Annotated[Optional[str], typer.Option("--from", help="First date (YYYY-MM-DD)")] = None,
    to_date: Annotated[Optional[str], typer.Option("--to", help="Last date (YYYY-MM-DD)")] = None,
    reason: Annotated[str, typer.Option("--reason", help="Reason for the time off")] = "",
    config_file: ConfigOption = None,
):
    """
    Add a time-off block, refusing it if it overlaps existing time-off.
    """
    if not all_day and (start is None or end is None):
        console.print("[bold red]Error:[/bold red] Use --start and --end, or --all-day.")
        raise typer.Exit(1)

    raw = _rule_input(start, end, days=days, date=from_date, end_date=to_date)
    raw["is_all_day"] = all_day
    raw["reason"] = reason

    created = _run(config_file, lambda service: service.add_time_off(provider, raw), persist=True)
    console.print(f"[green]✓ Time-off {created.id} added: {_scope(created)} {_window(created.interval)}[/green]")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]availability-engine[/bold cyan] version [bold]{__version__}[/bold]\n")


def _rule_input(
    start: Optional[str],
    end: Optional[str],
    *,
    days: Optional[str],
    date: Optional[str],
    end_date: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a wall-clock row from command line options."""
    if bool(days) == bool(date):
        console.print("[bold red]Error:[/bold red] Use exactly one of --days or a date.")
        raise typer.Exit(1)

    raw: Dict[str, Any] = {"start_time": start, "end_time": end}
    if days:
        raw["recurrence"] = _parse_days(days)
        raw["is_recurring"] = True
    else:
        raw["is_recurring"] = False
        raw["start_date"] = date
        raw["end_date"] = end_date or date
    return raw


if __name__ == "__main__":
    app()
