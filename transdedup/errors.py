"""
Error taxonomy for transdedup.

- FetchTypeError: listing translatable types failed (fatal to a scan)
- FetchObjectsError: listing one type's objects failed (scan continues)
- WriteBackError: fresh fetch or save failed for one object (batch continues)
- InvalidSelectionError: a selection does not match the working set
"""

from __future__ import annotations

from typing import Optional


class DedupError(Exception):
    """Base class for all transdedup errors."""


class FetchTypeError(DedupError):
    """The list of translatable object types could not be retrieved."""


class FetchObjectsError(DedupError):
    """The objects of one type could not be retrieved."""

    def __init__(self, object_type: str, message: str = ""):
        self.object_type = object_type
        super().__init__(message or f"Failed to fetch {object_type}")


class WriteBackError(DedupError):
    """Fetching a fresh copy of an object, or saving it, failed."""

    def __init__(self, object_id: str, message: str = "", status_code: Optional[int] = None):
        self.object_id = object_id
        self.status_code = status_code
        super().__init__(message or f"Failed to update {object_id}")


class InvalidSelectionError(DedupError):
    """A selection references a group, candidate or object that isn't known."""
