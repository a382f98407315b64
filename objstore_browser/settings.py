from __future__ import annotations
"""Application settings persistence helpers."""

from dataclasses import asdict, dataclass
import json
from pathlib import Path


@dataclass
class AppSettings:
    """Simple container for persistent app settings."""

    page_size: int = 100
    search_prefetch_delay: float = 0.3
    preview_max_bytes: int = 1024 * 1024
    preview_max_lines: int = 100
    region_name: str = "jp-north-1"
    keyring_service: str = "objstore-browser"


def _positive_int(value: object, default: int) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _non_negative_float(value: object, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return number if number >= 0 else default


def _non_empty_str(value: object, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


class SettingsStorage:
    """JSON-backed persistence for :class:`AppSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".objstore_browser_settings.json"
        self._path = Path(storage_path)

    def load(self) -> AppSettings:
        if not self._path.exists():
            return AppSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return AppSettings()
        if not isinstance(data, dict):
            return AppSettings()
        defaults = AppSettings()
        return AppSettings(
            page_size=_positive_int(data.get("page_size"), defaults.page_size),
            search_prefetch_delay=_non_negative_float(
                data.get("search_prefetch_delay"), defaults.search_prefetch_delay
            ),
            preview_max_bytes=_positive_int(data.get("preview_max_bytes"), defaults.preview_max_bytes),
            preview_max_lines=_positive_int(data.get("preview_max_lines"), defaults.preview_max_lines),
            region_name=_non_empty_str(data.get("region_name"), defaults.region_name),
            keyring_service=_non_empty_str(data.get("keyring_service"), defaults.keyring_service),
        )

    def save(self, settings: AppSettings) -> None:
        payload = asdict(settings)
        payload["page_size"] = max(int(settings.page_size), 1)
        payload["search_prefetch_delay"] = max(float(settings.search_prefetch_delay), 0.0)
        payload["preview_max_bytes"] = max(int(settings.preview_max_bytes), 1)
        payload["preview_max_lines"] = max(int(settings.preview_max_lines), 1)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return
