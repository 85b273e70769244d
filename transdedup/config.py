"""
Project-wide configuration and directory structure.

This module defines the paths used by transdedup and how the target
server is resolved.

Module Contents:
    CONFIG_DIR: Per-user configuration directory (~/.transdedup)
    SETTINGS_FILE: Optional JSON file with server settings
    ServerSettings: Base URL, username and timeout of the DHIS2 server

Resolution order for every server setting:
    1. Explicit value (CLI option)
    2. Environment variable (DHIS2_BASE_URL, DHIS2_USERNAME, DHIS2_TIMEOUT)
    3. SETTINGS_FILE
    4. Built-in default

Example:
    >>> from transdedup.config import ServerSettings
    >>> settings = ServerSettings.resolve(base_url="https://play.dhis2.org/dev")
    >>> print(settings.api_url("schemas.json"))
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Per-user configuration (settings, stored credentials)
CONFIG_DIR = Path.home() / ".transdedup"

# Optional server settings
SETTINGS_FILE = CONFIG_DIR / "settings.json"

DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_USERNAME = "admin"
DEFAULT_TIMEOUT = 30.0

ENV_BASE_URL = "DHIS2_BASE_URL"
ENV_USERNAME = "DHIS2_USERNAME"
ENV_TIMEOUT = "DHIS2_TIMEOUT"


def _load_settings_file(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable settings file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring settings file %s: expected a JSON object", path)
        return {}
    return data


@dataclass
class ServerSettings:
    """Connection settings for the DHIS2 server."""
    base_url: str = DEFAULT_BASE_URL
    username: str = DEFAULT_USERNAME
    timeout: float = DEFAULT_TIMEOUT

    def api_url(self, path: str) -> str:
        """Join ``path`` onto the server's ``/api/`` root."""
        return f"{self.base_url.rstrip('/')}/api/{path.lstrip('/')}"

    def to_dict(self) -> dict:
        return asdict(self)

    def save(self, path: Path = SETTINGS_FILE) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        return path

    @classmethod
    def resolve(
        cls,
        base_url: Optional[str] = None,
        username: Optional[str] = None,
        timeout: Optional[float] = None,
        settings_file: Path = SETTINGS_FILE,
    ) -> ServerSettings:
        """Build settings from explicit values, environment, file and defaults."""
        stored = _load_settings_file(settings_file)

        env_timeout = os.getenv(ENV_TIMEOUT)
        if timeout is None and env_timeout:
            try:
                timeout = float(env_timeout)
            except ValueError:
                logger.warning("Ignoring invalid %s=%r", ENV_TIMEOUT, env_timeout)

        return cls(
            base_url=base_url or os.getenv(ENV_BASE_URL) or stored.get("base_url") or DEFAULT_BASE_URL,
            username=username or os.getenv(ENV_USERNAME) or stored.get("username") or DEFAULT_USERNAME,
            timeout=float(timeout if timeout is not None else stored.get("timeout", DEFAULT_TIMEOUT)),
        )
