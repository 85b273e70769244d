"""
Selection state for a detection pass.

SelectionStore is the explicit state container the presenter owns. It
holds the working set of duplicate groups, the winner chosen in each
group, and the set of objects marked for the next write-back. Inclusion
is tracked per object: marking an object includes all of its groups.

Every mutation notifies the registered listeners so a presenter can
re-render.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from transdedup.detect import index_by_object
from transdedup.errors import InvalidSelectionError
from transdedup.models import CandidateKey, DuplicateGroup, GroupId

logger = logging.getLogger(__name__)

Listener = Callable[["SelectionStore"], None]


class SelectionStore:
    """Working set of duplicate groups plus the user's choices.

    Usage:
        store = SelectionStore(groups)
        store.select_candidate(group.group_id, group.members[1].key)
        store.toggle_inclusion(group.object_id)
        batch = store.selected_groups()
    """

    def __init__(self, groups: Iterable[DuplicateGroup] = (), listeners: Iterable[Listener] = ()):
        self._groups: dict[GroupId, DuplicateGroup] = {}
        for group in groups:
            if group.group_id in self._groups:
                raise ValueError(f"Duplicate group id {group.group_id}")
            self._groups[group.group_id] = group
        self._by_object: dict[str, list[GroupId]] = {
            object_id: [g.group_id for g in object_groups]
            for object_id, object_groups in index_by_object(self._groups.values()).items()
        }
        # dict keeps the order objects were marked in
        self._included: dict[str, None] = {}
        self._listeners: list[Listener] = list(listeners)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._groups)

    @property
    def groups(self) -> list[DuplicateGroup]:
        return list(self._groups.values())

    @property
    def object_ids(self) -> list[str]:
        return list(self._by_object)

    @property
    def included(self) -> list[str]:
        return [oid for oid in self._by_object if oid in self._included]

    @property
    def all_included(self) -> bool:
        return bool(self._by_object) and len(self._included) == len(self._by_object)

    def get(self, group_id: GroupId) -> DuplicateGroup:
        try:
            return self._groups[group_id]
        except KeyError:
            raise InvalidSelectionError(f"Unknown duplicate group {group_id}") from None

    def groups_for_object(self, object_id: str) -> list[DuplicateGroup]:
        return [self._groups[gid] for gid in self._by_object.get(object_id, [])]

    def is_included(self, object_id: str) -> bool:
        return object_id in self._included

    def selected_groups(self) -> list[DuplicateGroup]:
        """Groups belonging to included objects, in working-set order."""
        return [g for g in self._groups.values() if g.object_id in self._included]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def select_candidate(self, group_id: GroupId, candidate_key: CandidateKey) -> DuplicateGroup:
        """Make ``candidate_key`` the only selected member of its group.

        Raises:
            InvalidSelectionError: if the group is unknown or the candidate
                is not one of its members
        """
        group = self.get(group_id)
        if group.candidate(candidate_key) is None:
            raise InvalidSelectionError(
                f"Candidate {candidate_key} does not belong to group {group_id}"
            )
        updated = group.with_selection(candidate_key)
        self._groups[group_id] = updated
        self._notify()
        return updated

    def select_position(self, group_id: GroupId, position: int) -> DuplicateGroup:
        """Select the member at ``position`` (0-based) in a group."""
        group = self.get(group_id)
        if not 0 <= position < len(group.members):
            raise InvalidSelectionError(
                f"Group {group_id} has {len(group.members)} candidates, no position {position}"
            )
        return self.select_candidate(group_id, group.members[position].key)

    def clear_selection(self, group_id: GroupId) -> DuplicateGroup:
        """Unselect every member; the key will be dropped on write-back."""
        updated = self.get(group_id).with_selection(None)
        self._groups[group_id] = updated
        self._notify()
        return updated

    def toggle_inclusion(self, object_id: str) -> bool:
        """Flip whether ``object_id`` is part of the next write-back.

        Returns:
            True if the object is now included
        """
        if object_id not in self._by_object:
            raise InvalidSelectionError(f"No duplicate groups for object {object_id}")
        if object_id in self._included:
            del self._included[object_id]
            included = False
        else:
            self._included[object_id] = None
            included = True
        self._notify()
        return included

    def select_all(self) -> None:
        self._included = dict.fromkeys(self._by_object)
        self._notify()

    def select_none(self) -> None:
        self._included = {}
        self._notify()

    def discard(self, groups: Iterable[DuplicateGroup]) -> int:
        """Remove groups from the working set, typically after a successful write.

        Objects left without groups are also dropped from the inclusion set.

        Returns:
            Number of groups removed
        """
        removed = 0
        for group in groups:
            if self._groups.pop(group.group_id, None) is None:
                continue
            removed += 1
            remaining = self._by_object.get(group.object_id, [])
            if group.group_id in remaining:
                remaining.remove(group.group_id)
            if not remaining:
                self._by_object.pop(group.object_id, None)
                self._included.pop(group.object_id, None)
        if removed:
            logger.debug("Discarded %d groups, %d remain", removed, len(self._groups))
            self._notify()
        return removed

    def _notify(self) -> None:
        for listener in self._listeners:
            listener(self)
