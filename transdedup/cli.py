"""
Command-line interface for transdedup.

Provides commands for:
- Scanning a DHIS2 server for duplicate translations
- Fixing duplicates (chosen winners are written back)
- Managing the server credentials
- Showing the effective configuration

Usage:
    transdedup scan --server https://dhis.example.org --output report.json
    transdedup fix --report report.json --all --choose fbfJHSPpUQD:fr:NAME=2
    transdedup fix --interactive
    transdedup keys set password
    transdedup demo
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from transdedup import __version__
from transdedup.api import Dhis2Client, InMemoryApi, demo_api
from transdedup.config import SETTINGS_FILE, ServerSettings
from transdedup.errors import DedupError, InvalidSelectionError
from transdedup.keys import SERVICES, KeyManager
from transdedup.models import GroupId
from transdedup.pipeline import ScanConfig, ScanResult
from transdedup.render import ConsolePresenter
from transdedup.session import DedupSession

app = typer.Typer(
    name="transdedup",
    help="Find and fix duplicate translations on DHIS2 metadata objects",
    add_completion=False,
)
console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"transdedup v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log progress and failures",
    ),
):
    """transdedup: remove duplicate (locale, property) translations."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _make_client(
    server: Optional[str],
    username: Optional[str],
    timeout: Optional[float],
) -> Dhis2Client:
    settings = ServerSettings.resolve(base_url=server, username=username, timeout=timeout)
    km = KeyManager()
    token = km.get_key("token")
    password = None if token else km.get_key("password")
    if not token and password is None:
        console.print("[yellow]No credentials stored; requests will be anonymous.[/]")
        console.print("Set one with: [cyan]transdedup keys set password[/]")
    return Dhis2Client(settings, password=password, token=token)


def _parse_choice(spec: str) -> tuple[GroupId, int]:
    """Parse OBJECT:LOCALE:PROPERTY=N (N is 1-based, 0 drops the key)."""
    target, sep, number = spec.rpartition("=")
    parts = target.split(":")
    if not sep or len(parts) != 3 or not all(parts):
        raise typer.BadParameter(f"Expected OBJECT:LOCALE:PROPERTY=N, got '{spec}'")
    try:
        position = int(number)
    except ValueError:
        raise typer.BadParameter(f"Candidate number must be an integer in '{spec}'") from None
    return GroupId(*parts), position


def _run_scan(session: DedupSession, presenter: ConsolePresenter) -> ScanResult:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Listing translatable types...", total=100)

        def update_progress(fraction: float, msg: str):
            progress.update(task, description=msg, completed=int(fraction * 100))

        presenter.on_progress = update_progress
        try:
            with presenter.muted():
                result = session.scan()
        finally:
            presenter.on_progress = None
    return result


def _print_stats(result: ScanResult) -> None:
    table = Table(title="Scan Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    for key, value in result.stats.items():
        table.add_row(key.replace("_", " ").title(), str(value))
    console.print(table)
    if result.failed_types:
        console.print(f"[yellow]Could not fetch:[/] {', '.join(result.failed_types)}")


@app.command()
def scan(
    server: Optional[str] = typer.Option(None, "--server", "-s", help="DHIS2 base URL"),
    username: Optional[str] = typer.Option(None, "--username", "-u", help="DHIS2 username"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="HTTP timeout in seconds"),
    types: Optional[List[str]] = typer.Option(None, "--type", "-t", help="Only scan this type (repeatable)"),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-x", help="Skip this type (repeatable)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Save the report as JSON"),
):
    """Scan every translatable object type for duplicate translations."""
    client = _make_client(server, username, timeout)
    presenter = ConsolePresenter(console)
    config = ScanConfig(object_types=types or None, exclude_types=exclude or [])
    session = DedupSession(client, client, presenter, config)

    try:
        result = _run_scan(session, presenter)
    except DedupError as e:
        console.print(f"[red]Error:[/] {e}", style="bold")
        raise typer.Exit(1)

    presenter.render_state(session.store)
    _print_stats(result)

    if output:
        result.save(output)
        console.print(f"\n[green]Saved report to:[/] {output}")


def _choose_interactively(session: DedupSession) -> None:
    store = session.store
    for object_id in store.object_ids:
        groups = store.groups_for_object(object_id)
        head = groups[0]
        if not typer.confirm(f"Fix {head.object_type}/{object_id} ({head.object_name})?", default=True):
            continue
        if not store.is_included(object_id):
            store.toggle_inclusion(object_id)
        for group in groups:
            console.print(f"\n[bold]{group.locale} / {group.property}[/]")
            for i, member in enumerate(group.members, start=1):
                console.print(f"  {i}. {member.value}")
            current = group.selected.key.position + 1 if group.selected else 0
            number = typer.prompt("Keep which value (0 = none)", default=current, type=int)
            if number == 0:
                store.clear_selection(group.group_id)
            else:
                store.select_position(group.group_id, number - 1)


@app.command()
def fix(
    report: Optional[Path] = typer.Option(
        None, "--report", "-r",
        help="Saved scan report to fix (rewritten with the remaining groups)",
    ),
    server: Optional[str] = typer.Option(None, "--server", "-s", help="DHIS2 base URL"),
    username: Optional[str] = typer.Option(None, "--username", "-u", help="DHIS2 username"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="HTTP timeout in seconds"),
    fix_all: bool = typer.Option(False, "--all", "-a", help="Fix every object with duplicates"),
    objects: Optional[List[str]] = typer.Option(None, "--object", "-O", help="Fix this object id (repeatable)"),
    choices: Optional[List[str]] = typer.Option(
        None, "--choose", "-c",
        help="Winner as OBJECT:LOCALE:PROPERTY=N (1-based, 0 drops the key; repeatable)",
    ),
    interactive: bool = typer.Option(False, "--interactive", "-i", help="Pick objects and winners one by one"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would change without writing"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Don't ask for confirmation"),
):
    """Write back the chosen winner of every duplicate group.

    By default the first translation of each group wins.
    """
    client = _make_client(server, username, timeout)
    presenter = ConsolePresenter(console)
    session = DedupSession(client, client, presenter)

    try:
        if report:
            session.load(ScanResult.load(report))
        else:
            _run_scan(session, presenter)
    except DedupError as e:
        console.print(f"[red]Error:[/] {e}", style="bold")
        raise typer.Exit(1)

    _fix_session(session, presenter, fix_all, objects or [], choices or [], interactive, dry_run, yes)

    if report and not dry_run:
        remaining = ScanResult(groups=session.store.groups)
        if session.last_scan:
            remaining.types_scanned = session.last_scan.types_scanned
            remaining.failed_types = session.last_scan.failed_types
        remaining.save(report)
        console.print(f"[dim]{len(remaining.groups)} groups left in {report}[/]")

    if session.store.selected_groups() and not dry_run:
        raise typer.Exit(1)


def _fix_session(
    session: DedupSession,
    presenter: ConsolePresenter,
    fix_all: bool,
    objects: list[str],
    choices: list[str],
    interactive: bool,
    dry_run: bool,
    yes: bool,
) -> None:
    store = session.store
    if len(store) == 0:
        presenter.render_state(store)
        return

    try:
        with presenter.muted():
            if fix_all:
                store.select_all()
            for object_id in objects:
                if not store.is_included(object_id):
                    store.toggle_inclusion(object_id)
            for spec in choices:
                group_id, number = _parse_choice(spec)
                if number == 0:
                    store.clear_selection(group_id)
                else:
                    store.select_position(group_id, number - 1)
            if interactive:
                _choose_interactively(session)
    except InvalidSelectionError as e:
        console.print(f"[red]Invalid selection:[/] {e}")
        raise typer.Exit(1)

    if not store.included:
        presenter.render_state(store)
        console.print("[yellow]Nothing selected.[/] Use --all, --object or --interactive.")
        raise typer.Exit(1)

    presenter.render_state(store)
    if not (yes or dry_run):
        count = len(store.included)
        if not typer.confirm(f"Update {count} object(s)?"):
            raise typer.Exit(0)

    with presenter.muted():
        result = session.fix_selected(dry_run=dry_run)
    presenter.render_updates(result)


@app.command()
def demo(
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would change without writing"),
):
    """Scan and fix a built-in sample server (no network needed)."""
    api: InMemoryApi = demo_api()
    presenter = ConsolePresenter(console)
    session = DedupSession(api, api, presenter)

    console.print("[bold cyan]Scanning sample metadata...[/]\n")
    result = session.scan()
    _print_stats(result)

    with presenter.muted():
        session.store.select_all()
    fixed = session.fix_selected(dry_run=dry_run)
    presenter.render_updates(fixed)

    for update in fixed.updates:
        console.print(f"\n[bold]{update.object_type}/{update.object_id}[/]")
        for t in update.after:
            console.print(f"  {escape(t.locale):<4} {escape(t.property):<12} {escape(t.value)}")


@app.command()
def keys(
    action: str = typer.Argument(..., help="Action: list, set, status, delete"),
    service: Optional[str] = typer.Argument(None, help="Credential: password or token"),
):
    """Manage the DHIS2 password or personal access token.

    Examples:
        transdedup keys list
        transdedup keys set password
        transdedup keys status token
        transdedup keys delete password
    """
    km = KeyManager()

    if action == "list":
        table = Table(title="Credentials")
        table.add_column("Credential", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Source", style="yellow")
        table.add_column("Value", style="dim")
        for key_info in km.list_keys():
            status = "[green]✓ Set[/]" if key_info.is_set else "[red]✗ Not set[/]"
            table.add_row(key_info.service, status, key_info.source, key_info.masked_value or "-")
        console.print(table)
        console.print("\n[dim]Priority: env > keychain > config file. A token wins over a password.[/]")
        return

    if action not in ("set", "status", "delete"):
        console.print(f"[red]Error:[/] Unknown action '{action}'")
        console.print("Available actions: list, set, status, delete")
        raise typer.Exit(1)

    if service not in SERVICES:
        console.print("[red]Error:[/] Credential required")
        console.print(f"Available: {', '.join(SERVICES)}")
        raise typer.Exit(1)

    if action == "set":
        value = typer.prompt(f"Enter {service}", hide_input=True)
        if not value:
            console.print("[red]Error:[/] Value cannot be empty")
            raise typer.Exit(1)
        storage = km.set_key(service, value)
        console.print(f"[green]✓[/] {service} saved to {storage}")
        if storage == "config":
            console.print(f"[yellow]Note:[/] Stored in local file ({km.config_file})")
            console.print(f"       For better security, use {SERVICES[service]}")

    elif action == "status":
        key_info = km.get_key_info(service)
        if key_info.is_set:
            console.print(f"[green]✓[/] {service} is set")
            console.print(f"    Source: {key_info.source}")
            console.print(f"    Value: {key_info.masked_value}")
        else:
            console.print(f"[red]✗[/] No {service} found")
            console.print(f"  Option 1: [cyan]transdedup keys set {service}[/]")
            console.print(f"  Option 2: [cyan]export {SERVICES[service]}='...'[/]")

    else:
        if km.delete_key(service):
            console.print(f"[green]✓[/] {service} deleted")
        else:
            console.print(f"[yellow]⚠[/] No stored {service} to delete")


@app.command()
def info(
    server: Optional[str] = typer.Option(None, "--server", "-s", help="DHIS2 base URL"),
    username: Optional[str] = typer.Option(None, "--username", "-u", help="DHIS2 username"),
    save: bool = typer.Option(False, "--save", help="Store server and username in the settings file"),
):
    """Show the effective server settings and credential sources."""
    settings = ServerSettings.resolve(base_url=server, username=username)
    console.print(f"[bold]transdedup v{__version__}[/]\n")

    table = Table(title="Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Base URL", settings.base_url)
    table.add_row("Username", settings.username)
    table.add_row("Timeout", f"{settings.timeout:g}s")
    table.add_row("Settings file", str(SETTINGS_FILE))
    for key_info in KeyManager().list_keys():
        table.add_row(key_info.service.title(), key_info.source if key_info.is_set else "not set")
    console.print(table)

    if save:
        path = settings.save()
        console.print(f"\n[green]Saved settings to:[/] {path}")


if __name__ == "__main__":
    app()
