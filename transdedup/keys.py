"""
Credential management for the DHIS2 server.

Provides storage and retrieval of the server password or personal access
token using:
1. Environment variables (preferred for CI/production)
2. OS keychain via keyring (secure local storage)
3. Local config file (fallback)

Usage:
    from transdedup.keys import KeyManager

    km = KeyManager()
    km.set_key("password", "district")
    password = km.get_key("password")
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from transdedup.config import CONFIG_DIR

logger = logging.getLogger(__name__)

# Supported credentials and their env var names
SERVICES = {
    "password": "DHIS2_PASSWORD",
    "token": "DHIS2_TOKEN",
}


@dataclass
class KeyInfo:
    """Information about a stored credential."""
    service: str
    is_set: bool
    source: str  # 'env', 'keyring', 'config', 'none'
    masked_value: str  # e.g., "d2p_...abc1"


class KeyManager:
    """Manage server credentials.

    Priority order for retrieval:
    1. Environment variable
    2. OS keychain (via keyring)
    3. Local config file (~/.transdedup/keys.json)
    """

    SERVICE_NAME = "transdedup"

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = config_dir or CONFIG_DIR
        self.config_file = self.config_dir / "keys.json"
        self._keyring_available = self._check_keyring()

    def _check_keyring(self) -> bool:
        """Check if a usable keyring backend is installed."""
        try:
            backend = keyring.get_keyring()
        except KeyringError as e:
            logger.debug("Keyring unavailable: %s", e)
            return False
        # The fail backend has priority 0 and raises on every call
        return getattr(backend, "priority", 0) > 0

    def _read_config(self) -> dict:
        if not self.config_file.exists():
            return {}
        try:
            return json.loads(self.config_file.read_text())
        except (OSError, ValueError) as e:
            logger.warning("Cannot read %s: %s", self.config_file, e)
            return {}

    def _keyring_get(self, service: str) -> Optional[str]:
        if not self._keyring_available:
            return None
        try:
            return keyring.get_password(self.SERVICE_NAME, service)
        except KeyringError as e:
            logger.debug("Keyring lookup failed for %s: %s", service, e)
            return None

    def _lookup(self, service: str) -> tuple[Optional[str], str]:
        service = service.lower()

        # 1. Environment variable
        env_var = SERVICES.get(service, f"DHIS2_{service.upper()}")
        if env_val := os.getenv(env_var):
            return env_val, "env"

        # 2. Keyring
        if key := self._keyring_get(service):
            return key, "keyring"

        # 3. Config file
        if key := self._read_config().get(service):
            return key, "config"

        return None, "none"

    def get_key(self, service: str) -> Optional[str]:
        """Get a credential ('password' or 'token'), or None if not found."""
        return self._lookup(service)[0]

    def set_key(self, service: str, key: str, use_keyring: bool = True) -> str:
        """Store a credential.

        Returns:
            Storage location used ('keyring' or 'config')
        """
        service = service.lower()

        if use_keyring and self._keyring_available:
            try:
                keyring.set_password(self.SERVICE_NAME, service, key)
                return "keyring"
            except KeyringError as e:
                logger.warning("Keyring write failed, using config file: %s", e)

        # Fallback to config file
        self.config_dir.mkdir(parents=True, exist_ok=True)
        config = self._read_config()
        config[service] = key
        self.config_file.write_text(json.dumps(config, indent=2))
        self.config_file.chmod(0o600)  # Restrict permissions

        return "config"

    def delete_key(self, service: str) -> bool:
        """Delete a stored credential from keyring and config file."""
        service = service.lower()
        deleted = False

        if self._keyring_available:
            try:
                keyring.delete_password(self.SERVICE_NAME, service)
                deleted = True
            except PasswordDeleteError:
                logger.debug("No keyring entry for %s", service)

        config = self._read_config()
        if service in config:
            del config[service]
            self.config_file.write_text(json.dumps(config, indent=2))
            deleted = True

        return deleted

    def get_key_info(self, service: str) -> KeyInfo:
        """Get information about a stored credential."""
        key, source = self._lookup(service)
        return KeyInfo(
            service=service.lower(),
            is_set=key is not None,
            source=source,
            masked_value=self._mask_key(key) if key else "",
        )

    def list_keys(self) -> list[KeyInfo]:
        """List all supported credentials and their status."""
        return [self.get_key_info(service) for service in SERVICES]

    def _mask_key(self, key: str) -> str:
        """Mask a key for display (show first 4 and last 4 chars)."""
        if len(key) <= 12:
            return "*" * len(key)
        return f"{key[:4]}...{key[-4:]}"
