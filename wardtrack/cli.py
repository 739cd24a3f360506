"""Command Line Interface for Ward Tracker.

This module provides a Typer CLI for running the ward API, initializing the
stores and producing the daily report, discharge listing and patient extract.
Report commands talk to a running API (WT_API_URL or --api-url).
"""

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from wardtrack.client import ApiError, WardApiClient, WardSession
from wardtrack.domain import reports
from wardtrack.domain.ports import RecordError
from wardtrack.infrastructure.settings import APP_NAME, APP_VERSION, settings

app = typer.Typer(
    name="wardtrack",
    help="Ward Tracker: hospital ward patient tracking",
    add_completion=False
)
console = Console()

DATE_FORMATS = ["%Y-%m-%d"]


def _day(value: Optional[datetime]) -> date:
    return value.date() if value else date.today()


def _open_session(api_url: Optional[str]) -> WardSession:
    session = WardSession(WardApiClient(base_url=api_url or settings.api_url))
    try:
        session.refresh()
    except ApiError as e:
        console.print(f"[red]✗[/red] Failed to load patients: {str(e)}")
        raise typer.Exit(code=1)
    return session


def _patient_table(title: str, patients, when: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("MRN", style="cyan")
    table.add_column("Name")
    table.add_column("Age", justify="right")
    table.add_column("Specialty")
    table.add_column("Admitted" if when == reports.ADMISSION else "Discharged")
    for p in patients:
        table.add_row(p.mrn, p.name, str(p.age), p.specialty.value, reports.format_timestamp(getattr(p, when)))
    return table


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the ward API with uvicorn."""
    import uvicorn

    console.print(f"[bold blue]{APP_NAME} API[/bold blue] on http://{host}:{port} (docs at /api/docs)")
    uvicorn.run("wardtrack.api.main:app", host=host, port=port, reload=reload, log_level="info")


@app.command("init-db")
def init_db() -> None:
    """Create the primary store tables and the mirror collections."""
    from wardtrack.api.dependencies import create_mirror, create_record_store

    try:
        store = create_record_store(settings.db_config)
        mirror = create_mirror(settings.mirror_config)
    except (RecordError, ValueError) as e:
        console.print(f"[red]✗[/red] Invalid configuration: {str(e)}")
        raise typer.Exit(code=1)

    try:
        for label, target in (("Primary store", store), ("Document mirror", mirror)):
            result = target.initialize_schema()
            if result.is_failure():
                console.print(f"[red]✗[/red] {label}: {result.error}")
                raise typer.Exit(code=1)
            console.print(f"[green]✓[/green] {label} initialized")
    finally:
        store.close()
        mirror.close()


def _save_report(output: Optional[Path], text: str) -> None:
    if output is None:
        return
    output.write_text(text, encoding="utf-8")
    console.print(f"[green]✓[/green] Report saved: {output}")


@app.command("daily-report")
def daily_report(
    report_date: Optional[datetime] = typer.Option(None, "--date", "-d", formats=DATE_FORMATS, help="Report day (default today)"),
    view: str = typer.Option("specialty", "--view", help="specialty or day"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Also write the report as text to this file"),
    api_url: Optional[str] = typer.Option(None, "--api-url", help="Ward API base URL"),
) -> None:
    """Active admissions and discharges of one day."""
    if view not in ("specialty", "day"):
        console.print(f"[red]✗[/red] Unknown view '{view}' (use specialty or day)")
        raise typer.Exit(code=1)

    day = _day(report_date)
    session = _open_session(api_url)
    console.print(f"[bold blue]Daily Report - {day.isoformat()}[/bold blue]\n")

    if view == "day":
        overview = session.day_overview(day)
        console.print(_patient_table("Active Patients", overview.active_patients, reports.ADMISSION))
        console.print(_patient_table("Discharged Patients", overview.discharged_patients, reports.DISCHARGE))
        _save_report(output, reports.render_day_overview(overview))
        return

    try:
        report = session.daily_report(day)
    except ApiError as e:
        console.print(f"[red]✗[/red] Failed to load specialties: {str(e)}")
        raise typer.Exit(code=1)

    for specialty, section in report.specialties.items():
        console.print(f"[bold]{specialty}[/bold]")
        console.print(_patient_table("Active Patients", section.active_patients, reports.ADMISSION))
        console.print(_patient_table("Discharged Patients", section.discharged_patients, reports.DISCHARGE))
        console.print()
    _save_report(output, reports.render_daily_report(report))


@app.command()
def discharges(
    report_date: Optional[datetime] = typer.Option(None, "--date", "-d", formats=DATE_FORMATS, help="Discharge day (default today)"),
    api_url: Optional[str] = typer.Option(None, "--api-url", help="Ward API base URL"),
) -> None:
    """Patients discharged on a day."""
    day = _day(report_date)
    session = _open_session(api_url)
    discharged = session.discharges(day)
    console.print(_patient_table(f"Discharges - {day.isoformat()}", discharged, reports.DISCHARGE))
    console.print(f"[dim]{len(discharged)} patient(s)[/dim]")


@app.command()
def extract(
    start: datetime = typer.Option(..., "--start", formats=DATE_FORMATS, help="First admission day"),
    end: datetime = typer.Option(..., "--end", formats=DATE_FORMATS, help="Last admission day (inclusive)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the extract to this CSV file"),
    api_url: Optional[str] = typer.Option(None, "--api-url", help="Ward API base URL"),
) -> None:
    """Patients admitted in a day range, with all their notes."""
    session = _open_session(api_url)
    try:
        extracted = session.extract(start.date(), end.date())
    except RecordError as e:
        console.print(f"[red]✗[/red] {str(e)}")
        raise typer.Exit(code=1)
    except ApiError as e:
        console.print(f"[red]✗[/red] Failed to load notes: {str(e)}")
        raise typer.Exit(code=1)

    table = Table(show_header=True, header_style="bold")
    table.add_column("MRN", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Admitted")
    table.add_column("Notes", justify="right")
    for p in extracted:
        table.add_row(p.mrn, p.name, p.status.value, reports.format_timestamp(p.admission_date), str(len(p.notes)))
    console.print(table)

    if output:
        reports.extract_to_dataframe(extracted).to_csv(output, index=False)
        console.print(f"[green]✓[/green] Extract saved: {output}")


@app.command()
def info() -> None:
    """Display configuration information."""
    console.print("[bold blue]System Information[/bold blue]\n")

    info_table = Table(show_header=False, box=None, padding=(0, 2))
    info_table.add_row("Version:", APP_VERSION)
    info_table.add_row("Database Type:", settings.db_config.db_type)
    if settings.db_config.db_type == "duckdb":
        info_table.add_row("Database Path:", settings.db_config.db_path or ":memory:")
    else:
        info_table.add_row("Database Host:", str(settings.db_config.host))
    info_table.add_row("Mirror:", "Enabled" if settings.mirror_config.enabled else "Disabled")
    info_table.add_row("System Actor:", settings.system_actor)
    info_table.add_row("API URL:", settings.api_url)
    info_table.add_row("Log Level:", settings.log_level)

    console.print(info_table)


@app.callback()
def main_callback(
    version: bool = typer.Option(False, "--version", help="Show version information"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Ward Tracker: hospital ward patient tracking."""
    logging.basicConfig(level=logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO))
    if version:
        console.print(f"{APP_NAME} v{APP_VERSION}")
        raise typer.Exit()


if __name__ == "__main__":
    app()
