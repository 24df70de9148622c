"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, List, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from ..adapters.google_calendar import GoogleCalendarSource
from ..adapters.graph_authenticator import GraphAuthenticator
from ..adapters.graph_client import GraphCalendarSource
from ..adapters.memory_source import InMemoryCalendarSource
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BookingSlotsError, ConfigurationError
from ..domain.models import WEEKDAY_NAMES, BookingDetails
from ..services.availability import AvailabilityService, BusyIntervalSource

app = typer.Typer(
    name="bookingslots",
    help="Availability and bookings for a business calendar",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use the in-memory calendar instead of the configured provider.")]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    Find free periods, booked-out days and bookable times.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    return AppConfig.load_from_yaml(config_file or get_default_config_path())


def _build_source(config: AppConfig, mock: bool) -> BusyIntervalSource:
    """Pick the calendar source for the configured provider."""
    if mock or config.provider == "memory":
        if config.memory.events_file:
            return InMemoryCalendarSource.from_json_file(config.memory.events_file, timezone=config.timezone)
        return InMemoryCalendarSource(timezone=config.timezone)

    if config.provider == "google":
        return GoogleCalendarSource.from_service_account_file(
            config.google.credentials_file,
            timezone=config.timezone
        )

    authenticator = GraphAuthenticator(
        client_id=config.microsoft.client_id,
        tenant_id=config.microsoft.tenant_id,
        authority_url=config.microsoft.get_authority_url()
    )
    return GraphCalendarSource(authenticator.get_access_token(), timezone=config.timezone)


def _parse_date(value: str, tz: str, label: str) -> pendulum.DateTime:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz)
    except ValueError as e:
        raise ConfigurationError(f"Could not parse {label} '{value}' (expected YYYY-MM-DD): {e}") from e


def _determine_time_range(
    *,
    tz: str,
    this_week: bool,
    next_week: bool,
    start_option: Optional[str],
    end_option: Optional[str]
):
    """
    Resolve the time window from shortcut flags or explicit dates.
    Returns (start, end); without a start date the range begins now.
    """
    if this_week and next_week:
        raise ConfigurationError("--this-week and --next-week cannot be combined.")

    now = pendulum.now(tz)

    if this_week:
        return now, now.end_of("week")

    if next_week:
        next_monday = now.next(pendulum.MONDAY).start_of("day")
        return next_monday, next_monday.add(days=6).end_of("day")

    start = _parse_date(start_option, tz, "start date").start_of("day") if start_option else now
    end = _parse_date(end_option, tz, "end date").end_of("day") if end_option else start.add(days=7).end_of("day")

    return start, end


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    raise typer.Exit(1)


@app.command()
def free(
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD)")] = None,
    this_week: Annotated[bool, typer.Option("--this-week", help="From now until the end of this week.")] = False,
    next_week: Annotated[bool, typer.Option("--next-week", help="Next week, Monday to Sunday.")] = False,
    mock: MockOption = False,
):
    """
    List free periods inside working hours.

    Examples:

        bookingslots free --this-week
        bookingslots free --start 2024-11-25 --end 2024-11-29
    """
    try:
        config = _load_config(config_file)
        time_min, time_max = _determine_time_range(
            tz=config.timezone,
            this_week=this_week,
            next_week=next_week,
            start_option=start,
            end_option=end
        )
        service = AvailabilityService.from_config(_build_source(config, mock), config)
        periods = service.free_time_slots(config.to_schedule(), time_min, time_max)
    except BookingSlotsError as e:
        _fail(e)

    if not periods:
        console.print("[yellow]No free periods in this range.[/yellow]")
        return

    table = Table(title="Free periods", show_header=True, header_style="bold cyan")
    table.add_column("Day", style="bold")
    table.add_column("Date")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Minutes", justify="right")

    for period in periods:
        table.add_row(
            WEEKDAY_NAMES[period.start.weekday()],
            period.start.format("YYYY-MM-DD"),
            period.start.format("HH:mm"),
            period.end.format("HH:mm"),
            str(period.duration_minutes())
        )

    console.print(table)


@app.command("booked-out")
def booked_out(
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD)")] = None,
    min_duration: Annotated[Optional[int], typer.Option("--min-duration", "-d", help="Shortest bookable period in minutes")] = None,
    mock: MockOption = False,
):
    """
    List days without a bookable period.
    """
    try:
        config = _load_config(config_file)
        time_min, time_max = _determine_time_range(
            tz=config.timezone,
            this_week=False,
            next_week=False,
            start_option=start,
            end_option=end
        )
        service = AvailabilityService.from_config(_build_source(config, mock), config)
        days = service.booked_out_days(
            config.to_schedule(),
            time_min,
            time_max,
            min_duration or config.min_booking_minutes
        )
    except BookingSlotsError as e:
        _fail(e)

    if not days:
        console.print("[green]Every day in this range still has bookable time.[/green]")
        return

    for day in days:
        console.print(f"  {WEEKDAY_NAMES[day.weekday()]}, {day.format('YYYY-MM-DD')}")


@app.command()
def times(
    day: Annotated[str, typer.Argument(help="Day to look at (YYYY-MM-DD)")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="Service duration in minutes")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    List start times on a day that can hold a service of the given duration.
    """
    try:
        config = _load_config(config_file)
        service = AvailabilityService.from_config(_build_source(config, mock), config)
        grid = service.build_day_calendar(config.to_schedule(), _parse_date(day, config.timezone, "day").date())
        starts = service.available_times(grid, duration)
    except BookingSlotsError as e:
        _fail(e)

    if not starts:
        console.print(f"[yellow]No start time on {day} fits {duration} minutes.[/yellow]")
        return

    console.print(f"[bold green]{len(starts)} start time(s) on {day} for {duration} minutes:[/bold green]")
    for slot in starts:
        console.print(f"  {slot.start.format('HH:mm')}")


@app.command()
def book(
    start: Annotated[str, typer.Option("--start", help="Start (YYYY-MM-DD HH:mm)")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="Duration in minutes")],
    first_name: Annotated[str, typer.Option("--first-name")],
    last_name: Annotated[str, typer.Option("--last-name")],
    email: Annotated[str, typer.Option("--email")],
    phone: Annotated[str, typer.Option("--phone")],
    services: Annotated[Optional[List[str]], typer.Option("--service", "-s", help="Booked service (repeatable)")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Write a booking to the calendar.
    """
    try:
        config = _load_config(config_file)
        if duration <= 0:
            raise ConfigurationError(f"--duration must be greater than zero, got {duration}")
        try:
            booking_start = pendulum.from_format(start, "YYYY-MM-DD HH:mm", tz=config.timezone)
        except ValueError as e:
            raise ConfigurationError(f"Could not parse start '{start}' (expected YYYY-MM-DD HH:mm): {e}") from e

        details = BookingDetails(
            start=booking_start,
            end=booking_start.add(minutes=duration),
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
            services=list(services or [])
        )
        service = AvailabilityService.from_config(_build_source(config, mock), config)
        event_id = service.create_booking(details)
    except BookingSlotsError as e:
        _fail(e)

    console.print(f"[green]✓ Booked[/green] {details.summary()} [dim]({event_id})[/dim]")


@app.command()
def cancel(
    event_id: Annotated[str, typer.Argument(help="Calendar event id")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Delete a booking from the calendar.
    """
    try:
        config = _load_config(config_file)
        service = AvailabilityService.from_config(_build_source(config, mock), config)
        service.cancel_booking(event_id)
    except BookingSlotsError as e:
        _fail(e)

    console.print(f"[green]✓ Deleted event {event_id}[/green]")


@app.command()
def test_auth(
    config_file: ConfigOption = None,
):
    """
    Check that the calendar provider accepts our credentials.
    """
    try:
        config = _load_config(config_file)
        service = AvailabilityService.from_config(_build_source(config, mock=False), config)
        now = pendulum.now(config.timezone)
        intervals = service.get_busy_intervals(now.start_of("day"), now.end_of("day"))
    except BookingSlotsError as e:
        _fail(e)

    console.print(
        f"[bold green]✓ Connected to {config.provider}[/bold green] "
        f"calendar '{config.calendar_id}': {len(intervals)} busy interval(s) today"
    )


@app.command()
def clear_cache(
    config_file: ConfigOption = None,
):
    """
    Clear the Microsoft authentication token cache.
    """
    try:
        config = _load_config(config_file)
    except BookingSlotsError as e:
        _fail(e)

    if config.microsoft is None:
        console.print("[yellow]No Microsoft settings configured; nothing to clear.[/yellow]")
        return

    try:
        authenticator = GraphAuthenticator(
            client_id=config.microsoft.client_id,
            tenant_id=config.microsoft.tenant_id,
            authority_url=config.microsoft.get_authority_url()
        )
    except BookingSlotsError as e:
        _fail(e)

    authenticator.clear_cache()
    console.print("[green]✓ Token cache cleared.[/green]")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"[bold cyan]bookingslots[/bold cyan] version [bold]{__version__}[/bold]")


if __name__ == "__main__":
    app()
