"""
Main CLI entry point for Billtrack.

This module provides the primary command-line interface using typer.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, NoReturn, Optional, Tuple, Union

import typer
from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from ..core.errors import AmbiguousReference, TimeTrackingError
from ..core.money import billable_amount
from ..core.ranges import RangeLike, RangePreset
from ..core.time_tracker import TimeTracker
from ..db.models import Project
from ..utils.config import get_config_manager
from ..utils.formatting import (
    format_amounts,
    format_datetime,
    format_elapsed,
    format_hours,
    format_minutes,
    format_money,
    pluralize,
)

app = typer.Typer(
    name="billtrack",
    help="Billtrack: local time tracking and timesheets for freelancers",
    add_completion=False,
)

console = Console()

# Global tracker instance
tracker: Optional[TimeTracker] = None


def get_tracker() -> TimeTracker:
    """Get or initialize the global time tracker instance."""
    global tracker
    if tracker is None:
        tracker = TimeTracker.from_config(get_config_manager())
    return tracker


def _fail(error: TimeTrackingError) -> NoReturn:
    """Print a domain error and exit with status 1."""
    console.print(f"[red]Error: {error}[/red]")
    if isinstance(error, AmbiguousReference):
        for candidate in error.candidates:
            console.print(f"[dim]  #{candidate.id} {candidate.name}[/dim]")
    raise typer.Exit(1)


def _color(element: str) -> str:
    """Rich style configured for a UI element."""
    return get_config_manager().get_color(element)


def _range_arg(
    preset: Optional[str], start_date: Optional[str], end_date: Optional[str]
) -> RangeLike:
    """Turn CLI range options into a form the core accepts."""
    if start_date or end_date:
        if not (start_date and end_date):
            raise typer.BadParameter("Both --from and --to are required for an explicit range")
        return (start_date, end_date)
    return preset or RangePreset.THIS_WEEK.value


def _parse_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value.strip().replace("T", " "))
    except ValueError:
        raise typer.BadParameter(
            f"Invalid datetime: {value}. Use 'YYYY-MM-DD HH:MM'"
        ) from None


def _project_table(projects: List[Project]) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Client", style="magenta")
    table.add_column("Rate", justify="right", style=_color("money"))
    table.add_column("Status", justify="center")
    table.add_column("Description", style="dim")

    for project in projects:
        rate = (
            f"{format_money(project.hourly_rate, project.currency)}/h"
            if project.hourly_rate is not None
            else ""
        )
        status = "[red]Archived[/red]" if project.archived else "[green]Active[/green]"
        table.add_row(
            str(project.id),
            project.name,
            project.client or "",
            rate,
            status,
            project.description or "",
        )
    return table


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Billtrack: local time tracking and timesheets for freelancers."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def project(
    action: str = typer.Argument(..., help="Action: create, list, update"),
    name: Optional[str] = typer.Argument(None, help="Project name, or name/ID for update"),
    client: Optional[str] = typer.Option(None, "--client", "-c", help="Client name"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Project description"),
    rate: Optional[float] = typer.Option(None, "--rate", "-r", help="Hourly rate"),
    currency: Optional[str] = typer.Option(None, "--currency", help="Three-letter currency code"),
    color: Optional[str] = typer.Option(None, "--color", help="Display color"),
    rename: Optional[str] = typer.Option(None, "--rename", help="New name (update only)"),
    archived: Optional[bool] = typer.Option(None, "--archive/--unarchive", help="Archive status (update only)"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Filter list by text"),
    show_archived: bool = typer.Option(False, "--all", "-a", help="Include archived projects in list"),
) -> None:
    """Manage projects and their billing rates."""
    try:
        time_tracker = get_tracker()

        if action == "create":
            if not name:
                console.print("[red]Project name is required for create action[/red]")
                raise typer.Exit(1)

            created = time_tracker.create_project(
                name=name,
                client=client,
                description=description,
                hourly_rate=rate,
                currency=currency,
                color=color,
            )
            console.print(f"[green]✓[/green] Created project: [bold]{created.name}[/bold]")
            if created.client:
                console.print(f"[dim]Client: {created.client}[/dim]")
            if created.hourly_rate is not None:
                console.print(
                    f"[dim]Rate: {format_money(created.hourly_rate, created.currency)}/h[/dim]"
                )
            console.print(f"[dim]Project ID: {created.id}[/dim]")

        elif action == "list":
            projects = time_tracker.list_projects(search=search, include_archived=show_archived)
            if not projects:
                console.print("[dim]No projects found[/dim]")
                return

            console.print(f"[bold]Projects ({len(projects)} total)[/bold]")
            console.print(_project_table(projects))

        elif action == "update":
            if not name:
                console.print("[red]Project name or ID is required for update action[/red]")
                raise typer.Exit(1)

            existing = time_tracker.get_project(name)
            fields = {
                key: value
                for key, value in {
                    "name": rename,
                    "client": client,
                    "description": description,
                    "hourly_rate": rate,
                    "currency": currency,
                    "color": color,
                    "archived": archived,
                }.items()
                if value is not None
            }
            if not fields:
                console.print("[yellow]Nothing to update[/yellow]")
                return

            updated = time_tracker.update_project(existing.id, **fields)
            console.print(f"[green]✓[/green] Updated project: [bold]{updated.name}[/bold]")
            if updated.archived:
                console.print("[dim]Status: archived[/dim]")

        else:
            console.print(f"[red]Unknown action: {action}[/red]")
            console.print("Available actions: create, list, update")
            raise typer.Exit(1)

    except TimeTrackingError as e:
        _fail(e)


@app.command()
def start(
    project_ref: str = typer.Argument(..., metavar="PROJECT", help="Project name or ID"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="What you are working on"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="Add tags to the entry"),
) -> None:
    """Start the timer on a project."""
    try:
        time_tracker = get_tracker()
        timer = time_tracker.start_timer(project_ref, description=description, tags=tag or [])
        started_on = time_tracker.get_project(timer.project_id)

        console.print(f"[green]✓[/green] Started timer on: [bold]{started_on.name}[/bold]")
        if timer.description:
            console.print(f"[dim]Description: {timer.description}[/dim]")
        if timer.tags:
            console.print(f"[dim]Tags: {', '.join(timer.tags)}[/dim]")
        console.print(f"[dim]Started at {format_datetime(timer.start_time)}[/dim]")

    except TimeTrackingError as e:
        _fail(e)


@app.command()
def stop() -> None:
    """Stop the running timer and record a time entry."""
    try:
        time_tracker = get_tracker()
        entry = time_tracker.stop_timer()
        stopped_on = time_tracker.get_project(entry.project_id)

        console.print(f"[green]✓[/green] Stopped: [bold]{stopped_on.name}[/bold]")
        console.print(f"[dim]Duration: {format_minutes(entry.duration_minutes)}[/dim]")
        if stopped_on.hourly_rate is not None:
            amount = billable_amount(entry.duration_minutes, stopped_on.hourly_rate)
            console.print(f"[dim]Amount: {format_money(amount, stopped_on.currency)}[/dim]")
        console.print(f"[dim]Entry ID: {entry.id}[/dim]")

    except TimeTrackingError as e:
        _fail(e)


@app.command()
def discard() -> None:
    """Throw away the running timer without recording it."""
    try:
        time_tracker = get_tracker()
        timer = time_tracker.discard_timer()
        console.print(
            f"[yellow]Discarded timer started at {format_datetime(timer.start_time)}[/yellow]"
        )
    except TimeTrackingError as e:
        _fail(e)


@app.command()
def status() -> None:
    """Show whether a timer is running."""
    try:
        time_tracker = get_tracker()
        current = time_tracker.get_timer_status()

        if not current.running:
            console.print(f"[{_color('idle')}]No timer running[/]")
            return

        table = Table(show_header=False, show_edge=False, pad_edge=False)
        table.add_column("Key", style="dim")
        table.add_column("Value")

        project_name = current.project.name if current.project else "Unknown"
        table.add_row("Project", f"[{_color('project')}]{project_name}[/]")
        if current.start_time:
            table.add_row("Started", format_datetime(current.start_time))
        if current.elapsed is not None:
            table.add_row("Elapsed", f"[{_color('duration')}]{format_elapsed(current.elapsed)}[/]")
        if current.description:
            table.add_row("Description", current.description)
        if current.tags:
            table.add_row("Tags", f"[{_color('tags')}]{', '.join(current.tags)}[/]")

        console.print(f"[{_color('running')}]● Timer running[/]")
        console.print(table)

    except TimeTrackingError as e:
        _fail(e)


@app.command()
def add(
    project_ref: str = typer.Argument(..., metavar="PROJECT", help="Project name or ID"),
    start_time: str = typer.Argument(..., metavar="START", help="Start, 'YYYY-MM-DD HH:MM'"),
    end_time: str = typer.Argument(..., metavar="END", help="End, 'YYYY-MM-DD HH:MM'"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Entry description"),
    billable: bool = typer.Option(True, "--billable/--non-billable", help="Count toward earnings"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="Add tags to the entry"),
) -> None:
    """Add a time entry manually. Times without an offset are local."""
    try:
        entry = get_tracker().add_entry(
            project_ref,
            _parse_datetime(start_time),
            _parse_datetime(end_time),
            description=description,
            billable=billable,
            tags=tag or [],
        )
        console.print(
            f"[green]✓[/green] Added entry #{entry.id}: {format_minutes(entry.duration_minutes)}"
        )
    except TimeTrackingError as e:
        _fail(e)


@app.command()
def log(
    preset: Optional[str] = typer.Argument(None, metavar="RANGE", help="today, this_week, last_week, this_month, last_month"),
    start_date: Optional[str] = typer.Option(None, "--from", help="Start date (YYYY-MM-DD)"),
    end_date: Optional[str] = typer.Option(None, "--to", help="End date (YYYY-MM-DD)"),
    project_ref: Optional[str] = typer.Option(None, "--project", "-p", help="Project name or ID"),
    billable_only: bool = typer.Option(False, "--billable-only", help="Only billable entries"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Number of entries to show"),
) -> None:
    """List time entries, most recent first."""
    try:
        time_tracker = get_tracker()
        date_range = None
        if preset or start_date or end_date:
            date_range = _range_arg(preset, start_date, end_date)

        entries = time_tracker.list_entries(
            project_ref=project_ref,
            date_range=date_range,
            billable_only=billable_only,
            limit=limit or get_config_manager().get_list_limit(),
        )
        if not entries:
            console.print("[dim]No entries found[/dim]")
            return

        names = {p.id: p.name for p in time_tracker.list_projects(include_archived=True)}

        table = Table()
        table.add_column("ID", style="dim", justify="right")
        table.add_column("Project", style=_color("project"))
        table.add_column("Start", style="dim")
        table.add_column("End", style="dim")
        table.add_column("Duration", justify="right", style=_color("duration"))
        table.add_column("Billable", justify="center")
        table.add_column("Description")
        table.add_column("Tags", style=_color("tags"))

        for entry in entries:
            table.add_row(
                str(entry.id),
                names.get(entry.project_id, f"#{entry.project_id}"),
                format_datetime(entry.start_time),
                format_datetime(entry.end_time),
                format_minutes(entry.duration_minutes),
                "✔" if entry.billable else "✘",
                entry.description or "",
                ", ".join(entry.tags),
            )

        console.print(table)
        total = sum(e.duration_minutes for e in entries)
        console.print(
            f"\n[bold]Total: {format_minutes(total)}[/bold] "
            f"[dim]({len(entries)} {pluralize(len(entries), 'entry', 'entries')})[/dim]"
        )

    except TimeTrackingError as e:
        _fail(e)


@app.command()
def delete(
    entry_id: int = typer.Argument(..., help="ID of the entry to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a time entry."""
    try:
        time_tracker = get_tracker()
        entry = time_tracker.get_entry(entry_id)
        if not yes and not Confirm.ask(
            f"Delete entry #{entry.id} ({format_minutes(entry.duration_minutes)} "
            f"on {format_datetime(entry.start_time)})?"
        ):
            console.print("[dim]Cancelled[/dim]")
            return

        time_tracker.delete_entry(entry_id)
        console.print(f"[green]✓[/green] Deleted entry #{entry_id}")

    except TimeTrackingError as e:
        _fail(e)


@app.command()
def timesheet(
    preset: Optional[str] = typer.Argument(None, metavar="RANGE", help="today, this_week, last_week, this_month, last_month"),
    start_date: Optional[str] = typer.Option(None, "--from", help="Start date (YYYY-MM-DD)"),
    end_date: Optional[str] = typer.Option(None, "--to", help="End date (YYYY-MM-DD)"),
    project_ref: Optional[str] = typer.Option(None, "--project", "-p", help="Project name or ID"),
    billable_only: bool = typer.Option(False, "--billable-only", help="Only billable entries"),
) -> None:
    """Show a day-by-day timesheet with billable amounts."""
    try:
        sheet = get_tracker().generate_timesheet(
            _range_arg(preset, start_date, end_date),
            project_filter=project_ref,
            billable_only=billable_only,
        )

        title = f"Timesheet: {sheet.start_date} to {sheet.end_date}"
        if sheet.project:
            title += f" ({sheet.project.name})"
        console.print(f"[bold]{title}[/bold]")

        if not sheet.days:
            console.print("[dim]No time entries found[/dim]")
            return

        table = Table(show_header=True, header_style="bold")
        table.add_column("Date", style="cyan")
        table.add_column("Project", style=_color("project"))
        table.add_column("Description")
        table.add_column("Duration", justify="right", style=_color("duration"))
        table.add_column("Billable", justify="center")
        table.add_column("Amount", justify="right", style=_color("money"))

        for day in sheet.days:
            for line in day.lines:
                table.add_row(
                    day.day.isoformat(),
                    line.project_name,
                    line.entry.description or "",
                    format_minutes(line.entry.duration_minutes),
                    "✔" if line.entry.billable else "✘",
                    format_money(line.amount, line.currency) if line.entry.billable else "",
                )
            table.add_row(
                "",
                "[dim]Day total[/dim]",
                "",
                f"[bold]{format_hours(day.total_minutes)}[/bold]",
                format_hours(day.billable_minutes),
                format_amounts(day.amounts),
                end_section=True,
            )

        console.print(table)
        console.print(
            f"\n[bold]Total: {format_hours(sheet.total_minutes)}[/bold] "
            f"({format_hours(sheet.billable_minutes)} billable)"
        )
        console.print(f"[bold]Billable amount: {format_amounts(sheet.amounts)}[/bold]")
        console.print(f"[dim]Entries: {sheet.entry_count}[/dim]")

    except TimeTrackingError as e:
        _fail(e)


@app.command()
def report(
    preset: Optional[str] = typer.Argument(None, metavar="RANGE", help="today, this_week, last_week, this_month, last_month"),
    start_date: Optional[str] = typer.Option(None, "--from", help="Start date (YYYY-MM-DD)"),
    end_date: Optional[str] = typer.Option(None, "--to", help="End date (YYYY-MM-DD)"),
) -> None:
    """Summarize time per project and per ISO week."""
    try:
        summary = get_tracker().generate_report(_range_arg(preset, start_date, end_date))

        console.print(f"[bold]Report: {summary.start_date} to {summary.end_date}[/bold]")
        if summary.is_empty:
            console.print("[dim]No time entries found[/dim]")
            return

        table = Table(show_header=True, header_style="bold", title="Projects")
        table.add_column("Project", style=_color("project"))
        table.add_column("Client", style="magenta")
        table.add_column("Hours", justify="right", style=_color("duration"))
        table.add_column("Billable", justify="right")
        table.add_column("Earnings", justify="right", style=_color("money"))
        table.add_column("Entries", justify="right", style="dim")

        for item in summary.projects:
            table.add_row(
                item.project_name,
                item.client or "",
                format_hours(item.total_minutes),
                format_hours(item.billable_minutes),
                format_money(item.earnings, item.currency),
                str(item.entry_count),
            )
        console.print(table)

        weeks = Table(show_header=True, header_style="bold", title="Weekly trend")
        weeks.add_column("Week", style="cyan")
        weeks.add_column("Dates", style="dim")
        weeks.add_column("Hours", justify="right")
        weeks.add_column("Billable", justify="right")
        weeks.add_column("Projects", justify="right", style="dim")
        weeks.add_column("Entries", justify="right", style="dim")

        for bucket in summary.weeks:
            weeks.add_row(
                bucket.label,
                f"{bucket.week_start} to {bucket.week_end}",
                format_hours(bucket.total_minutes),
                format_hours(bucket.billable_minutes),
                str(bucket.project_count),
                str(bucket.entry_count),
            )
        console.print(weeks)

        console.print(
            f"\n[bold]Total: {format_hours(summary.total_minutes)} tracked, "
            f"{format_hours(summary.billable_minutes)} billable, "
            f"{format_amounts(summary.earnings)} earned[/bold]"
        )

    except TimeTrackingError as e:
        _fail(e)


@app.command()
def config(
    key: Optional[str] = typer.Argument(None, help="Configuration key to get/set"),
    value: Optional[str] = typer.Argument(None, help="Value to set (omit to get current value)"),
    list_all: bool = typer.Option(False, "--list", "-l", help="List all configuration"),
    reset: bool = typer.Option(False, "--reset", help="Reset to default configuration"),
    export_file: Optional[str] = typer.Option(None, "--export", help="Export config to file"),
    import_file: Optional[str] = typer.Option(None, "--import", help="Import config from file"),
) -> None:
    """Manage Billtrack configuration."""
    config_manager = get_config_manager()

    if reset:
        if Confirm.ask("Reset all configuration to defaults?"):
            config_manager.reset_to_defaults()
            console.print("[green]✓[/green] Configuration reset to defaults")
        return

    if export_file:
        config_manager.export_config(Path(export_file))
        console.print(f"[green]✓[/green] Configuration exported to {export_file}")
        return

    if import_file:
        if not Path(import_file).exists():
            console.print(f"[red]File not found: {import_file}[/red]")
            raise typer.Exit(1)
        config_manager.import_config(Path(import_file))
        console.print(f"[green]✓[/green] Configuration imported from {import_file}")
        return

    if list_all:
        console.print("[bold]Current Configuration:[/bold]")

        table = Table(show_header=True, header_style="bold")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="white")

        settings: List[Tuple[str, Union[str, int, Path]]] = [
            ("data_directory", config_manager.get_data_dir()),
            ("timezone", config_manager.get_timezone_name()),
            ("default_currency", config_manager.get_default_currency()),
            ("date_format", config_manager.get_date_format()),
            ("time_format", config_manager.get_time_format()),
            ("display.hours_decimals", config_manager.get_hours_decimals()),
            ("display.list_limit", config_manager.get_list_limit()),
        ]
        for setting, val in settings:
            table.add_row(setting, str(val))

        console.print(table)
        return

    if key is None:
        console.print("Use --list to see all configuration or provide a key to get/set")
        return

    if value is None:
        current_value = config_manager.get(key)
        if current_value is None:
            console.print(f"[red]Configuration key '{key}' not found[/red]")
            raise typer.Exit(1)
        console.print(f"[cyan]{key}[/cyan] = [white]{current_value}[/white]")
    else:
        # Try to parse as JSON first, then as string
        try:
            parsed_value = json.loads(value)
        except json.JSONDecodeError:
            parsed_value = value

        config_manager.set(key, parsed_value)
        console.print(f"[green]✓[/green] Set [cyan]{key}[/cyan] = [white]{parsed_value}[/white]")


@app.command()
def version() -> None:
    """Show Billtrack version information."""
    from .. import __version__

    console.print(f"Billtrack version {__version__}")
