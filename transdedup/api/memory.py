"""
In-memory implementation of the API collaborators.

Useful for testing the scan/fix workflow without a server, and backs the
``transdedup demo`` command. Objects are stored as plain dicts in the same
shape the DHIS2 API returns them.
"""

from __future__ import annotations

import copy
from typing import Iterable, Optional

from transdedup.api.base import ObjectSource, ObjectWriter
from transdedup.errors import FetchObjectsError, FetchTypeError, WriteBackError
from transdedup.models import ObjectType, TranslatableObject


class InMemoryApi(ObjectSource, ObjectWriter):
    """A fake metadata server holding objects per type.

    Args:
        objects: Mapping of type plural to a list of object dicts
            (``{"id", "name", "translations", ...}``)
        failing_writes: Object ids whose write-back always fails
        failing_types: Type plurals whose listing always fails
        fail_type_listing: Make ``list_translatable_types`` fail
    """

    def __init__(
        self,
        objects: dict[str, list[dict]] | None = None,
        failing_writes: Iterable[str] = (),
        failing_types: Iterable[str] = (),
        fail_type_listing: bool = False,
    ):
        self.objects: dict[str, dict[str, dict]] = {}
        for plural, items in (objects or {}).items():
            self.objects[plural] = {item["id"]: copy.deepcopy(item) for item in items}
        self.failing_writes = set(failing_writes)
        self.failing_types = set(failing_types)
        self.fail_type_listing = fail_type_listing
        self.writes: list[tuple[str, str]] = []

    def list_translatable_types(self) -> list[ObjectType]:
        if self.fail_type_listing:
            raise FetchTypeError("Schema listing unavailable")
        return [ObjectType(plural=plural, relative_api_endpoint=f"/{plural}") for plural in self.objects]

    def fetch_objects(self, object_type: ObjectType) -> list[TranslatableObject]:
        if object_type.plural in self.failing_types:
            raise FetchObjectsError(object_type.plural)
        return [
            TranslatableObject.from_dict(item)
            for item in self.objects.get(object_type.plural, {}).values()
        ]

    def get(self, object_type: str, object_id: str) -> Optional[dict]:
        return self.objects.get(object_type, {}).get(object_id)

    def fetch_fresh(self, object_type: str, object_id: str) -> dict:
        item = self.get(object_type, object_id)
        if item is None:
            raise WriteBackError(object_id, f"{object_type}/{object_id} not found", status_code=404)
        return copy.deepcopy(item)

    def write_back(self, object_type: str, object_id: str, payload: dict) -> None:
        if object_id in self.failing_writes:
            raise WriteBackError(object_id, f"Simulated failure writing {object_type}/{object_id}", status_code=409)
        if self.get(object_type, object_id) is None:
            raise WriteBackError(object_id, f"{object_type}/{object_id} not found", status_code=404)
        self.objects[object_type][object_id] = copy.deepcopy(payload)
        self.writes.append((object_type, object_id))


def demo_api() -> InMemoryApi:
    """A small sample server with a few duplicated translations."""
    return InMemoryApi({
        "dataElements": [
            {
                "id": "fbfJHSPpUQD",
                "name": "ANC 1st visit",
                "code": "DE_359596",
                "translations": [
                    {"locale": "fr", "property": "NAME", "value": "CPN 1ère visite"},
                    {"locale": "fr", "property": "NAME", "value": "CPN 1re visite"},
                    {"locale": "es", "property": "NAME", "value": "APN 1a visita"},
                    {"locale": "fr", "property": "SHORT_NAME", "value": "CPN1"},
                    {"locale": "fr", "property": "SHORT_NAME", "value": "CPN 1"},
                ],
            },
            {
                "id": "cYeuwXTCPkU",
                "name": "ANC 2nd visit",
                "translations": [
                    {"locale": "fr", "property": "NAME", "value": "CPN 2e visite"},
                ],
            },
        ],
        "indicators": [
            {
                "id": "Uvn6LCg7dVU",
                "name": "ANC 1 Coverage",
                "translations": [
                    {"locale": "pt", "property": "NAME", "value": "Cobertura CPN 1"},
                    {"locale": "pt", "property": "NAME", "value": "Cobertura CPN1"},
                    {"locale": "pt", "property": "NAME", "value": "Cobertura de CPN 1"},
                ],
            },
        ],
        "organisationUnits": [],
    })
