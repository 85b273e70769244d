"""
A duplicate-fixing session: scan, choose, write back, retry.

DedupSession is the state container a front end constructs at startup
and passes to its event handlers. It owns the SelectionStore for the
current detection pass and keeps it in sync with batch results: groups
whose object was written are dropped, failed groups stay for a retry.
"""

from __future__ import annotations

from typing import Optional

from transdedup.api.base import NullPresenter, ObjectSource, ObjectWriter, Presenter
from transdedup.batch import BatchReconciler, BatchResult
from transdedup.pipeline import DuplicateScanner, ScanConfig, ScanResult
from transdedup.selection import SelectionStore


class DedupSession:
    """Ties a source, a writer and a presenter to one working set.

    Usage:
        session = DedupSession(client, client, ConsolePresenter())
        session.scan()
        session.store.select_all()
        result = session.fix_selected()
    """

    def __init__(
        self,
        source: ObjectSource,
        writer: ObjectWriter,
        presenter: Presenter | None = None,
        config: ScanConfig | None = None,
    ):
        self.source = source
        self.writer = writer
        self.presenter = presenter or NullPresenter()
        self.config = config or ScanConfig()
        self.store = SelectionStore()
        self.last_scan: Optional[ScanResult] = None

    def _progress(self, message: str, fraction: float) -> None:
        self.presenter.notify_progress(fraction, message)

    def load(self, result: ScanResult) -> SelectionStore:
        """Replace the working set with the groups of ``result``."""
        self.last_scan = result
        self.store = SelectionStore(result.groups, listeners=[self.presenter.render_state])
        return self.store

    def scan(self) -> ScanResult:
        """Run a detection pass and render the new working set."""
        scanner = DuplicateScanner(self.source, self.config, progress_callback=self._progress)
        result = scanner.scan()
        self.load(result)
        self.presenter.render_state(self.store)
        return result

    def fix_selected(self, dry_run: bool = False) -> BatchResult:
        """Write back every included object and update the working set.

        Succeeded groups are discarded; failed groups are left untouched
        so they can be retried. A dry run changes nothing.
        """
        selected = self.store.selected_groups()
        batch = BatchReconciler(self.writer, progress_callback=self._progress)
        result = batch.apply(selected, dry_run=dry_run)

        self.presenter.notify_summary(len(result.succeeded), len(result.failed), dry_run=dry_run)
        removed = 0 if dry_run else self.store.discard(result.succeeded)
        # discard() already re-rendered through the store listener
        if not removed:
            self.presenter.render_state(self.store)
        return result
