"""
Collaborator interfaces for the remote metadata API and the display layer.

This module defines:
- ObjectSource: enumerate translatable types and list their objects
- ObjectWriter: fetch a fresh copy of one object and save it back
- Presenter: observe progress, state and batch summaries

Design Philosophy:
- The detection and reconciliation core only ever talks to these
  interfaces, never to HTTP or a UI toolkit directly
- Failures are reported with the transdedup.errors taxonomy so callers
  can recover at the right granularity
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from transdedup.models import ObjectType, TranslatableObject

if TYPE_CHECKING:
    from transdedup.selection import SelectionStore


class ObjectSource(ABC):
    """Where translatable objects are read from during a scan."""

    @abstractmethod
    def list_translatable_types(self) -> list[ObjectType]:
        """Return every object type that carries translations.

        Raises:
            FetchTypeError: if the type list can't be retrieved
        """
        pass

    @abstractmethod
    def fetch_objects(self, object_type: ObjectType) -> list[TranslatableObject]:
        """Return all objects of ``object_type`` with id, name and translations.

        Raises:
            FetchObjectsError: if this type's objects can't be retrieved
        """
        pass


class ObjectWriter(ABC):
    """Where reconciled objects are written to."""

    @abstractmethod
    def fetch_fresh(self, object_type: str, object_id: str) -> dict:
        """Return the complete current representation of one object.

        The payload must contain every owned field so that writing it
        back does not drop data. Translations live under ``translations``.

        Raises:
            WriteBackError: if the object can't be fetched
        """
        pass

    @abstractmethod
    def write_back(self, object_type: str, object_id: str, payload: dict) -> None:
        """Persist ``payload`` as the new state of the object.

        Raises:
            WriteBackError: if the object can't be saved
        """
        pass


class Presenter(ABC):
    """Receives notifications from the session; return values are ignored."""

    def notify_progress(self, fraction: float, message: str = "") -> None:
        pass

    def notify_summary(self, succeeded: int, failed: int, dry_run: bool = False) -> None:
        pass

    @abstractmethod
    def render_state(self, store: SelectionStore) -> None:
        pass


class NullPresenter(Presenter):
    """A presenter that ignores everything (library use, tests)."""

    def render_state(self, store: SelectionStore) -> None:
        pass
