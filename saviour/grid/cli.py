"""CLI commands for the emergency grid.

These commands act as a headless portal: they read the shared case list and
issue the same mutations the patient, police and hospital screens do.
"""

import logging
import time
from datetime import datetime
from enum import Enum
from typing import Annotated, Optional, TypeVar

import cyclopts
from rich.console import Console
from rich.table import Table

from saviour.grid.dispatch import DispatchDesk
from saviour.grid.exceptions import InvalidTransition
from saviour.grid.models import (
    Case,
    CaseStatus,
    EmergencyType,
    HospitalPreference,
    Location,
)
from saviour.grid.sync import SyncEngine, SyncStatus
from saviour.grid.sync_config import GridConfig

logger = logging.getLogger(__name__)

grid_app = cyclopts.App(name="grid", help="Read and update the shared case grid")

E = TypeVar("E", bound=Enum)

STATUS_STYLES = {
    SyncStatus.ONLINE: "green",
    SyncStatus.SYNCING: "blue",
    SyncStatus.ERROR: "red",
}


def _get_console() -> Console:
    """Get a Rich console for output."""
    return Console()


def _parse_enum(enum_cls: type[E], value: str) -> E:
    """Accept either a member name or a member value, case-insensitively."""
    wanted = value.strip().lower()
    for member in enum_cls:
        if member.name.lower() == wanted or str(member.value).lower() == wanted:
            return member
    choices = ", ".join(member.name.lower() for member in enum_cls)
    raise ValueError(f"Invalid value {value!r}, expected one of: {choices}")


def _build_engine() -> SyncEngine:
    return SyncEngine.from_config(GridConfig.from_env())


def _cases_table(cases: list[Case], title: str = "Grid Cases") -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Patient")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Hospital")
    table.add_column("Officer")
    table.add_column("Updated", style="dim")

    for case in cases:
        updated = datetime.fromtimestamp(case.timestamp / 1000).strftime(
            "%Y-%m-%d %H:%M:%S"
        )
        table.add_row(
            case.id,
            case.patient_name,
            case.emergency_type.value,
            case.status.value,
            case.hospital_name or "-",
            case.officer_name or "-",
            updated,
        )
    return table


def _print_status(console: Console, engine: SyncEngine) -> None:
    style = STATUS_STYLES[engine.status]
    console.print(f"[{style}]Grid {engine.status.value}[/{style}]")


@grid_app.command
def pull():
    """Fetch the global snapshot once and print it.

    Example:
        saviour grid pull
    """
    console = _get_console()
    engine = _build_engine()
    try:
        engine.tick()
        _print_status(console, engine)
        console.print(_cases_table(engine.cases))
    finally:
        engine.client.close()


@grid_app.command
def watch(
    *,
    interval: Annotated[
        Optional[float], cyclopts.Parameter(help="Seconds between pulls")
    ] = None,
):
    """Poll the grid and print the case list whenever it changes.

    Example:
        saviour grid watch --interval 7
    """
    console = _get_console()
    engine = _build_engine()
    if interval is not None:
        engine.poll_interval = interval

    engine.on_change(lambda cases: console.print(_cases_table(cases)))

    last_status = None
    try:
        with engine:
            while True:
                if engine.status != last_status:
                    _print_status(console, engine)
                    last_status = engine.status
                time.sleep(0.5)
    except KeyboardInterrupt:
        console.print("[dim]Stopped watching[/dim]")
    finally:
        engine.client.close()


@grid_app.command
def create(
    name: Annotated[str, cyclopts.Parameter(help="Patient name")],
    phone: Annotated[str, cyclopts.Parameter(help="Contact number")],
    *,
    emergency: Annotated[
        str, cyclopts.Parameter(help="Emergency type (heart, accident, ...)")
    ] = "emergency",
    preference: Annotated[
        str, cyclopts.Parameter(help="government, private or both")
    ] = "both",
    lat: Annotated[float, cyclopts.Parameter(help="Latitude")] = 0.0,
    lng: Annotated[float, cyclopts.Parameter(help="Longitude")] = 0.0,
):
    """Raise a new emergency case.

    Example:
        saviour grid create "Jane Doe" 5550100 --emergency heart --lat 12.97 --lng 77.59
    """
    console = _get_console()
    try:
        emergency_type = _parse_enum(EmergencyType, emergency)
        hospital_preference = _parse_enum(HospitalPreference, preference)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    engine = _build_engine()
    try:
        desk = DispatchDesk(engine)
        case = desk.create_case(
            patient_name=name,
            phone_number=phone,
            emergency_type=emergency_type,
            preference=hospital_preference,
            location=Location(lat=lat, lng=lng),
        )
        console.print(f"[green]✓ Case {case.id} raised[/green]")
        _print_status(console, engine)
        return 0
    finally:
        engine.client.close()


def _run_mutation(console: Console, action, case_id: str) -> int:
    engine = _build_engine()
    try:
        engine.tick()
        desk = DispatchDesk(engine)
        try:
            case = action(desk)
        except InvalidTransition as e:
            console.print(f"[red]Error: {e}[/red]")
            return 1
        if case is None:
            console.print(f"[yellow]Case {case_id} not found on the grid[/yellow]")
            return 1
        console.print(f"[green]✓ Case {case.id} is now {case.status.value}[/green]")
        _print_status(console, engine)
        return 0
    finally:
        engine.client.close()


@grid_app.command
def cancel(case_id: Annotated[str, cyclopts.Parameter(help="Case id")]):
    """Cancel a case.

    Example:
        saviour grid cancel SAV-LZ3K9Q2A-7HX2B
    """
    return _run_mutation(
        _get_console(), lambda desk: desk.cancel_case(case_id), case_id
    )


@grid_app.command
def update(
    case_id: Annotated[str, cyclopts.Parameter(help="Case id")],
    status: Annotated[str, cyclopts.Parameter(help="New status")],
    *,
    hospital: Annotated[Optional[str], cyclopts.Parameter(help="Hospital name")] = None,
    driver: Annotated[Optional[str], cyclopts.Parameter(help="Ambulance driver")] = None,
    driver_number: Annotated[
        Optional[str], cyclopts.Parameter(help="Ambulance driver number")
    ] = None,
):
    """Move a case forward from the hospital side.

    Example:
        saviour grid update SAV-LZ3K9Q2A-7HX2B dispatched --hospital "City General"
    """
    console = _get_console()
    try:
        new_status = _parse_enum(CaseStatus, status)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    return _run_mutation(
        console,
        lambda desk: desk.update_case(
            case_id,
            new_status,
            hospital_name=hospital,
            driver=driver,
            driver_number=driver_number,
        ),
        case_id,
    )


@grid_app.command
def assign(
    case_id: Annotated[str, cyclopts.Parameter(help="Case id")],
    officer: Annotated[str, cyclopts.Parameter(help="Officer name")],
):
    """Assign a police officer to a case.

    Example:
        saviour grid assign SAV-LZ3K9Q2A-7HX2B "Officer Rao"
    """
    return _run_mutation(
        _get_console(), lambda desk: desk.assign_officer(case_id, officer), case_id
    )


@grid_app.command
def status():
    """Show grid configuration and relay reachability.

    Example:
        saviour grid status
    """
    console = _get_console()
    config = GridConfig.from_env()

    table = Table(title="Grid Status", show_header=False, box=None)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("Relay URL", config.base_url)
    table.add_row("Node", config.node)
    table.add_row("Poll Interval", f"{config.poll_interval}s")
    table.add_row("Timeout", f"{config.timeout}s")
    table.add_row(
        "Secondary Transport", "✓ Enabled" if config.secondary_transport else "✗ Off"
    )

    engine = SyncEngine.from_config(config)
    try:
        reachable = engine.client.health_check()
    finally:
        engine.client.close()
    table.add_row("Relay", "✓ Reachable" if reachable else "[red]✗ Unreachable[/red]")

    console.print(table)
