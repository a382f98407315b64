from __future__ import annotations
"""Site and access key directory for the object storage account."""
import json
import logging
from pathlib import Path
from typing import Protocol

from .models import AccessKey, Site

LOGGER = logging.getLogger(__name__)


class AccountDirectory(Protocol):
    """Source of the sites and access keys available to the operator."""

    def list_sites(self) -> list[Site]:
        ...

    def list_access_keys(self, site_id: str) -> list[AccessKey]:
        ...


class SiteDirectory:
    """Simple JSON-backed directory of sites and their access keys.

    The file holds a list of site entries::

        [{"id": "is1a", "display_name": "Ishikari 1",
          "endpoint": "https://s3.isk01.example.jp",
          "access_keys": ["AK1", {"id": "AK2", "created_at": "2024-01-01T00:00:00Z"}]}]
    """

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".objstore_browser_sites.json"
        self._path = Path(storage_path)

    def list_sites(self) -> list[Site]:
        sites: list[Site] = []
        for entry in self._load_entries():
            try:
                sites.append(
                    Site(
                        id=entry["id"],
                        display_name=entry.get("display_name") or entry["id"],
                        endpoint=entry["endpoint"],
                    )
                )
            except (KeyError, TypeError, AttributeError):
                continue
        return sites

    def list_access_keys(self, site_id: str) -> list[AccessKey]:
        for entry in self._load_entries():
            if not isinstance(entry, dict) or entry.get("id") != site_id:
                continue
            keys: list[AccessKey] = []
            for raw in entry.get("access_keys") or []:
                if isinstance(raw, str) and raw:
                    keys.append(AccessKey(id=raw, site_id=site_id))
                elif isinstance(raw, dict) and isinstance(raw.get("id"), str) and raw["id"]:
                    keys.append(
                        AccessKey(
                            id=raw["id"],
                            site_id=site_id,
                            created_at=str(raw.get("created_at") or ""),
                        )
                    )
            return keys
        return []

    def _load_entries(self) -> list:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            LOGGER.warning("Unable to read site directory %s", self._path)
            return []
        return data if isinstance(data, list) else []
