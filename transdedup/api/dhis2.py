"""DHIS2 Web API client - reads translatable metadata and writes fixes back."""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from transdedup.api.base import ObjectSource, ObjectWriter
from transdedup.config import ServerSettings
from transdedup.errors import FetchObjectsError, FetchTypeError, WriteBackError
from transdedup.models import ObjectType, TranslatableObject

logger = logging.getLogger(__name__)


class Dhis2Client(ObjectSource, ObjectWriter):
    """Talks to a DHIS2 server over its Web API.

    Endpoints used:
    - GET api/schemas.json (translatable types)
    - GET api/{plural}?fields=name,id,translations (objects of one type)
    - GET api/{plural}/{id}?fields=:owner (fresh copy before a write)
    - PUT api/{plural}/{id} (write back)

    Credentials are either a personal access token (sent as
    ``Authorization: ApiToken ...``) or a username and password (basic auth).
    """

    SCHEMA_FIELDS = "plural,translatable,relativeApiEndpoint"
    OBJECT_FIELDS = "name,id,translations"

    def __init__(
        self,
        settings: ServerSettings | None = None,
        password: Optional[str] = None,
        token: Optional[str] = None,
        session: requests.Session | None = None,
    ):
        self.settings = settings or ServerSettings()
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if token:
            self.session.headers["Authorization"] = f"ApiToken {token}"
        elif password is not None:
            self.session.auth = (self.settings.username, password)

    def _get_json(self, path: str, params: dict | None = None) -> Any:
        response = self.session.get(
            self.settings.api_url(path),
            params=params,
            timeout=self.settings.timeout,
        )
        response.raise_for_status()
        return response.json()

    def list_translatable_types(self) -> list[ObjectType]:
        params = {
            "fields": self.SCHEMA_FIELDS,
            "filter": "translatable:eq:true",
        }
        try:
            data = self._get_json("schemas.json", params)
        except (requests.exceptions.RequestException, ValueError) as e:
            raise FetchTypeError(f"Could not list translatable schemas: {e}") from e

        schemas = data.get("schemas", []) if isinstance(data, dict) else []
        # Older servers ignore the filter parameter
        types = [ObjectType.from_dict(s) for s in schemas if s.get("translatable") and s.get("plural")]
        logger.info("Found %d translatable object types", len(types))
        return types

    def fetch_objects(self, object_type: ObjectType) -> list[TranslatableObject]:
        plural = object_type.plural
        params = {"fields": self.OBJECT_FIELDS, "paging": "false"}
        try:
            data = self._get_json(plural, params)
        except (requests.exceptions.RequestException, ValueError) as e:
            raise FetchObjectsError(plural, f"Failed to fetch {plural}: {e}") from e

        if not isinstance(data, dict):
            raise FetchObjectsError(plural, f"Unexpected response for {plural}")
        try:
            return [TranslatableObject.from_dict(o) for o in data.get(plural, []) if "id" in o]
        except (KeyError, TypeError, AttributeError) as e:
            raise FetchObjectsError(plural, f"Malformed {plural} payload: {e!r}") from e

    def fetch_fresh(self, object_type: str, object_id: str) -> dict:
        try:
            data = self._get_json(f"{object_type}/{object_id}", {"fields": ":owner"})
        except requests.exceptions.HTTPError as e:
            raise WriteBackError(
                object_id,
                f"Could not fetch {object_type}/{object_id}: {e}",
                status_code=e.response.status_code if e.response is not None else None,
            ) from e
        except (requests.exceptions.RequestException, ValueError) as e:
            raise WriteBackError(object_id, f"Could not fetch {object_type}/{object_id}: {e}") from e

        if not isinstance(data, dict):
            raise WriteBackError(object_id, f"Unexpected payload for {object_type}/{object_id}")
        return data

    def write_back(self, object_type: str, object_id: str, payload: dict) -> None:
        try:
            response = self.session.put(
                self.settings.api_url(f"{object_type}/{object_id}"),
                json=payload,
                timeout=self.settings.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise WriteBackError(
                object_id,
                f"Server rejected update of {object_type}/{object_id}: {e}",
                status_code=e.response.status_code if e.response is not None else None,
            ) from e
        except requests.exceptions.RequestException as e:
            raise WriteBackError(object_id, f"Could not update {object_type}/{object_id}: {e}") from e
