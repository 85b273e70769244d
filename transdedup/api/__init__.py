"""
Remote API and presentation collaborators.

This module provides:
- Abstract ObjectSource / ObjectWriter / Presenter interfaces
- Dhis2Client for a live DHIS2 server (requests)
- InMemoryApi for tests and the demo command
"""

from transdedup.api.base import (
    ObjectSource,
    ObjectWriter,
    Presenter,
    NullPresenter,
)
from transdedup.api.dhis2 import Dhis2Client
from transdedup.api.memory import InMemoryApi, demo_api

__all__ = [
    "ObjectSource",
    "ObjectWriter",
    "Presenter",
    "NullPresenter",
    "Dhis2Client",
    "InMemoryApi",
    "demo_api",
]
