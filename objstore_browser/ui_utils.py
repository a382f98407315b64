from __future__ import annotations
"""UI-agnostic helpers for formatting and preview classification."""
from datetime import datetime
from typing import Optional

TEXT_EXTENSIONS = (
    ".ini", ".md", ".json", ".pem", ".txt", ".tfstate", ".yaml", ".yml",
    ".xml", ".html", ".css", ".js", ".ts", ".py", ".go", ".sh", ".bash",
    ".log", ".conf", ".cfg", ".env", ".sql",
)
JSONL_SUFFIXES = (".json.gz", ".jsonl.gz")


def format_size(size: int | None) -> str:
    if size is None:
        return "-"
    suffixes = ["B", "KB", "MB", "GB", "TB"]
    value = float(max(size, 0))
    for suffix in suffixes:
        if value < 1024 or suffix == suffixes[-1]:
            return f"{value:.1f} {suffix}" if suffix != "B" else f"{int(value)} {suffix}"
        value /= 1024
    return f"{size} B"


def format_last_modified(last_modified: object) -> str:
    if not last_modified:
        return "-"
    if isinstance(last_modified, datetime):
        return last_modified.strftime("%Y/%m/%d %H:%M:%S")
    return str(last_modified)


def suggest_download_filename(key: str) -> str:
    cleaned = key.strip().rstrip("/")
    if not cleaned:
        return "download"
    return cleaned.rsplit("/", 1)[-1] or "download"


def preview_kind(key: str) -> Optional[str]:
    """Return ``"jsonl"``, ``"text"`` or ``None`` for an object key."""

    lowered = key.lower()
    if lowered.endswith(JSONL_SUFFIXES):
        return "jsonl"
    file_name = key.rsplit("/", 1)[-1].upper()
    if file_name == "README" or file_name.startswith("README."):
        return "text"
    if lowered.endswith(TEXT_EXTENSIONS):
        return "text"
    return None


def ask_save_path(initial_name: str) -> Optional[str]:
    """Ask for a destination with the native save dialog; ``None`` when cancelled."""

    from tkinter import filedialog

    destination = filedialog.asksaveasfilename(title="Save Object As", initialfile=initial_name)
    return destination or None
