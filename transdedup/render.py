"""Console presentation of duplicate groups and batch results (rich)."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from transdedup.api.base import Presenter
from transdedup.batch import BatchResult
from transdedup.models import DuplicateGroup
from transdedup.selection import SelectionStore


def format_candidates(group: DuplicateGroup) -> Text:
    """Numbered candidate values, the selected one highlighted."""
    text = Text()
    for i, member in enumerate(group.members):
        if i:
            text.append("\n")
        if member.is_selected:
            text.append(f"(•) {i + 1}. {member.value}", style="bold green")
        else:
            text.append(f"( ) {i + 1}. {member.value}", style="dim")
    return text


def build_table(store: SelectionStore) -> Table:
    """Duplicate table, one row per group, objects shown once."""
    all_mark = "✓" if store.all_included else "·"
    table = Table(title=f"Duplicate translations ({len(store)} groups)", show_lines=True)
    table.add_column(all_mark, justify="center")
    table.add_column("Object Type", style="cyan")
    table.add_column("ID", style="magenta")
    table.add_column("Name")
    table.add_column("Locale", style="yellow")
    table.add_column("Property", style="yellow")
    table.add_column("Translations")

    for object_id in store.object_ids:
        for i, group in enumerate(store.groups_for_object(object_id)):
            first = i == 0
            mark = ("✓" if store.is_included(object_id) else "·") if first else ""
            table.add_row(
                mark,
                group.object_type if first else "",
                group.object_id if first else "",
                escape(group.object_name) if first else "",
                escape(group.locale),
                escape(group.property),
                format_candidates(group),
            )
    return table


class ConsolePresenter(Presenter):
    """Prints state and summaries to a rich console."""

    def __init__(self, console: Console | None = None, show_progress: bool = False):
        self.console = console or Console()
        self.show_progress = show_progress
        self._muted = False
        self.on_progress: Optional[Callable[[float, str], None]] = None

    @contextmanager
    def muted(self) -> Iterator[None]:
        """Suppress re-renders while applying several changes at once."""
        self._muted = True
        try:
            yield
        finally:
            self._muted = False

    def notify_progress(self, fraction: float, message: str = "") -> None:
        if self.on_progress is not None:
            self.on_progress(fraction, message)
        elif self.show_progress:
            self.console.print(f"[dim]{fraction:>4.0%} {message}[/]")

    def notify_summary(self, succeeded: int, failed: int, dry_run: bool = False) -> None:
        if dry_run:
            if succeeded > 0:
                self.console.print(f"[cyan]Dry run: {succeeded} translation strings would be updated.[/]")
        elif succeeded > 0:
            self.console.print(f"[green]{succeeded} translation strings updated successfully.[/]")
        if failed > 0:
            self.console.print(f"[red]{failed} updates failed.[/]")

    def render_state(self, store: SelectionStore) -> None:
        if self._muted:
            return
        if len(store) == 0:
            self.console.print("[yellow]No duplicate translations found.[/]")
            return
        self.console.print(build_table(store))

    def render_updates(self, result: BatchResult) -> None:
        """Per-object table of what a batch wrote (or would write)."""
        title = "Planned updates (dry run)" if result.dry_run else "Updates"
        table = Table(title=title)
        table.add_column("Object", style="cyan")
        table.add_column("Before", justify="right")
        table.add_column("After", justify="right")
        table.add_column("Status")
        for update in result.updates:
            if update.error:
                status = f"[red]failed: {escape(update.error)}[/]"
            elif update.written:
                status = "[green]written[/]"
            else:
                status = "[yellow]not written[/]"
            table.add_row(
                f"{update.object_type}/{update.object_id}",
                str(len(update.before)),
                str(len(update.after)),
                status,
            )
        self.console.print(table)
