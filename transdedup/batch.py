"""
Batch write-back of reconciled translations.

The batch is split by owning object: all groups of one object are fixed
in a single update, so fixing two keys on the same object can't lose
either change. Objects are processed one at a time, in input order, and
a failure on one object never stops the others.

For every object:
1. Fetch a fresh, ownership-complete copy through the ObjectWriter
2. Reconcile its current translations against the object's groups
3. Write the updated object back

The fresh fetch narrows, but does not close, the window in which someone
else may edit the object between the scan and the write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from transdedup.api.base import ObjectWriter
from transdedup.detect import index_by_object
from transdedup.errors import WriteBackError
from transdedup.models import DuplicateGroup, Translation, translations_from_dicts
from transdedup.reconcile import reconcile

logger = logging.getLogger(__name__)

# Type alias for progress callbacks
ProgressCallback = Callable[[str, float], None]


@dataclass
class ObjectUpdate:
    """What was (or, for a dry run, would be) written for one object."""
    object_type: str
    object_id: str
    before: list[Translation]
    after: list[Translation]
    written: bool = False
    error: Optional[str] = None

    @property
    def removed(self) -> int:
        return len(self.before) - len(self.after)


@dataclass
class BatchResult:
    """Success/failure partition of a batch.

    Attributes:
        succeeded: Groups whose object was written (or reconciled, in a dry run)
        failed: Groups whose object could not be fetched or written
        updates: One entry per processed object, in processing order
    """
    succeeded: list[DuplicateGroup] = field(default_factory=list)
    failed: list[DuplicateGroup] = field(default_factory=list)
    updates: list[ObjectUpdate] = field(default_factory=list)
    dry_run: bool = False

    @property
    def succeeded_objects(self) -> list[str]:
        return list(dict.fromkeys(g.object_id for g in self.succeeded))

    @property
    def failed_objects(self) -> list[str]:
        return list(dict.fromkeys(g.object_id for g in self.failed))

    @property
    def success(self) -> bool:
        return not self.failed


class BatchReconciler:
    """Apply the chosen winners of many duplicate groups.

    Usage:
        batch = BatchReconciler(Dhis2Client(settings, password=...))
        result = batch.apply(store.selected_groups())
        store.discard(result.succeeded)
    """

    def __init__(
        self,
        writer: ObjectWriter,
        progress_callback: ProgressCallback | None = None,
        should_stop: Callable[[], bool] | None = None,
    ):
        self.writer = writer
        self.progress_callback = progress_callback or (lambda msg, pct: None)
        self.should_stop = should_stop or (lambda: False)

    def apply(self, selected_groups: Sequence[DuplicateGroup], dry_run: bool = False) -> BatchResult:
        """Reconcile and write back every object owning one of ``selected_groups``.

        Args:
            selected_groups: Groups to fix; may span many objects
            dry_run: Fetch and reconcile, but never write

        Returns:
            BatchResult partitioning the groups into succeeded and failed
        """
        result = BatchResult(dry_run=dry_run)
        by_object = index_by_object(selected_groups)
        total = len(by_object)

        for done, (object_id, groups) in enumerate(by_object.items()):
            if self.should_stop():
                # Unprocessed objects stay retry-eligible
                logger.info("Batch stopped before %s; %d objects skipped", object_id, total - done)
                for remaining in list(by_object.values())[done:]:
                    result.failed.extend(remaining)
                break

            object_type = groups[0].object_type
            self.progress_callback(f"Updating {object_type}/{object_id}", done / total)
            try:
                update = self._apply_object(object_type, object_id, groups, dry_run)
            except WriteBackError as e:
                logger.warning("Update of %s/%s failed: %s", object_type, object_id, e)
                result.failed.extend(groups)
                result.updates.append(ObjectUpdate(object_type, object_id, [], [], error=str(e)))
                continue

            result.succeeded.extend(groups)
            result.updates.append(update)

        self.progress_callback("Done", 1.0)
        logger.info(
            "Batch complete: %d groups succeeded, %d failed",
            len(result.succeeded), len(result.failed),
        )
        return result

    def _apply_object(
        self,
        object_type: str,
        object_id: str,
        groups: list[DuplicateGroup],
        dry_run: bool,
    ) -> ObjectUpdate:
        fresh = self.writer.fetch_fresh(object_type, object_id)
        try:
            before = translations_from_dicts(fresh.get("translations") or [])
        except (KeyError, TypeError, AttributeError) as e:
            raise WriteBackError(object_id, f"Malformed translations on {object_type}/{object_id}: {e}") from e

        after = reconcile(before, groups)
        update = ObjectUpdate(object_type, object_id, before, after)
        if dry_run:
            return update

        fresh["translations"] = [t.to_dict() for t in after]
        self.writer.write_back(object_type, object_id, fresh)
        update.written = True
        logger.debug(
            "Wrote %s/%s: %d -> %d translations",
            object_type, object_id, len(before), len(after),
        )
        return update
