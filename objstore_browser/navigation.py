from __future__ import annotations
"""Prefix arithmetic for folder-style navigation inside a bucket."""


def validate_prefix(prefix: str) -> str:
    if prefix and not prefix.endswith("/"):
        raise ValueError(f"Prefix must be empty or end with '/': {prefix!r}")
    return prefix


def prefix_segments(prefix: str) -> list[str]:
    return [part for part in prefix.split("/") if part]


def parent_prefix(prefix: str) -> str:
    """Drop the last non-empty segment: ``a/b/c/`` becomes ``a/b/``."""

    parts = prefix_segments(prefix)
    if not parts:
        return ""
    parts.pop()
    return "/".join(parts) + "/" if parts else ""


def breadcrumbs(prefix: str) -> list[tuple[str, str]]:
    """Return ``(label, prefix)`` pairs from the bucket root down to ``prefix``."""

    crumbs = [("/", "")]
    parts = prefix_segments(prefix)
    for index, part in enumerate(parts):
        crumbs.append((part, "/".join(parts[: index + 1]) + "/"))
    return crumbs


def relative_name(key: str, prefix: str) -> str:
    if prefix and key.startswith(prefix):
        return key[len(prefix):]
    return key


def folder_label(common_prefix: str, prefix: str) -> str:
    return relative_name(common_prefix, prefix).rstrip("/")
