from __future__ import annotations
"""Per-site access key secrets stored in the OS keychain."""
import logging
from dataclasses import replace
from typing import Iterable, Optional, Protocol

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .models import AccessKey

LOGGER = logging.getLogger(__name__)


class CredentialStoreError(RuntimeError):
    """Raised when the keychain refuses to store or delete a secret."""


class CredentialCache(Protocol):
    """Secret repository keyed by (site, access key)."""

    def has_secret(self, site_id: str, access_key_id: str) -> bool:
        ...

    def get_secret(self, site_id: str, access_key_id: str) -> str:
        ...

    def save_secret(self, site_id: str, access_key_id: str, value: str) -> None:
        ...

    def delete_secret(self, site_id: str, access_key_id: str) -> None:
        ...


def account_name(site_id: str, access_key_id: str) -> str:
    return f"objectstorage/{site_id}/{access_key_id}"


class KeyringCredentialCache:
    """Encapsulates OS keychain access for access key secrets."""

    def __init__(self, service_name: str = "objstore-browser"):
        self._service_name = service_name

    def has_secret(self, site_id: str, access_key_id: str) -> bool:
        return bool(self.get_secret(site_id, access_key_id))

    def get_secret(self, site_id: str, access_key_id: str) -> str:
        if not site_id or not access_key_id:
            return ""
        try:
            return keyring.get_password(self._service_name, account_name(site_id, access_key_id)) or ""
        except KeyringError:
            LOGGER.warning("Keychain lookup failed for %s/%s", site_id, access_key_id, exc_info=True)
            return ""

    def save_secret(self, site_id: str, access_key_id: str, value: str) -> None:
        if not value:
            raise ValueError("Secret cannot be empty")
        try:
            keyring.set_password(self._service_name, account_name(site_id, access_key_id), value)
        except KeyringError as exc:
            raise CredentialStoreError(f"Unable to save secret: {exc}") from exc

    def delete_secret(self, site_id: str, access_key_id: str) -> None:
        try:
            keyring.delete_password(self._service_name, account_name(site_id, access_key_id))
        except PasswordDeleteError:
            # Nothing stored for this key.
            return
        except KeyringError as exc:
            raise CredentialStoreError(f"Unable to delete secret: {exc}") from exc


def flag_saved_secrets(cache: CredentialCache, site_id: str, keys: Iterable[AccessKey]) -> list[AccessKey]:
    """Return ``keys`` with ``has_saved_secret`` refreshed from the cache."""

    return [replace(key, has_saved_secret=cache.has_secret(site_id, key.id)) for key in keys]


def select_saved_access_key(
    cache: CredentialCache,
    site_id: str,
    keys: Iterable[AccessKey],
) -> Optional[tuple[AccessKey, str]]:
    """Pick the first flagged key whose stored secret can be read.

    Stops at the first match; later keys are never read.
    """

    for key in keys:
        if not key.has_saved_secret:
            continue
        secret = cache.get_secret(site_id, key.id)
        if secret:
            return key, secret
    return None
