from __future__ import annotations
"""Data models representing object storage sites, buckets and listings."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union


@dataclass(frozen=True)
class Site:
    """An object storage site (region) of the cloud account."""

    id: str
    display_name: str
    endpoint: str


@dataclass(frozen=True)
class AccessKey:
    """An access key issued for a single site."""

    id: str
    site_id: str
    created_at: str = ""
    has_saved_secret: bool = False


@dataclass(frozen=True)
class Credential:
    """The access key / secret pair authorizing calls against a site."""

    site_id: str
    access_key_id: str
    secret: str = field(repr=False)


@dataclass(frozen=True)
class Bucket:
    name: str
    site_id: str = ""
    creation_date: Optional[datetime] = None


@dataclass(frozen=True)
class ObjectEntry:
    """A single object returned by a listing call."""

    key: str
    size: int = 0
    last_modified: Optional[datetime] = None
    storage_class: Optional[str] = None


@dataclass(frozen=True)
class ListingPage:
    """One page of a delimited object listing."""

    objects: tuple[ObjectEntry, ...] = ()
    prefixes: tuple[str, ...] = ()
    continuation_token: str = ""
    is_truncated: bool = False


@dataclass(frozen=True)
class SitesScreen:
    pass


@dataclass(frozen=True)
class BucketsScreen:
    site: Site


@dataclass(frozen=True)
class ObjectsScreen:
    site: Site
    bucket: Bucket
    prefix: str = ""


Screen = Union[SitesScreen, BucketsScreen, ObjectsScreen]


@dataclass(frozen=True)
class BucketRow:
    bucket: Bucket
    created: str = "-"


@dataclass(frozen=True)
class FolderRow:
    """A common prefix shown as a folder, labelled relative to the current prefix."""

    prefix: str
    name: str


@dataclass(frozen=True)
class ObjectRow:
    """An object formatted for a table row."""

    entry: ObjectEntry
    name: str
    size: str = "-"
    last_modified: str = "-"


@dataclass(frozen=True)
class BrowserView:
    """Read-only snapshot of the browser state handed to a view."""

    screen: Screen
    breadcrumbs: tuple[tuple[str, str], ...] = ()
    sites: tuple[Site, ...] = ()
    access_keys: tuple[AccessKey, ...] = ()
    selected_access_key_id: str = ""
    credential_active: bool = False
    buckets: tuple[Bucket, ...] = ()
    filtered_buckets: tuple[Bucket, ...] = ()
    bucket_rows: tuple[BucketRow, ...] = ()
    bucket_search_query: str = ""
    objects: tuple[ObjectEntry, ...] = ()
    filtered_objects: tuple[ObjectEntry, ...] = ()
    prefixes: tuple[str, ...] = ()
    folder_rows: tuple[FolderRow, ...] = ()
    object_rows: tuple[ObjectRow, ...] = ()
    has_more: bool = False
    search_query: str = ""
    loading: bool = False
    loading_access_keys: bool = False
    search_loading: bool = False
    downloading: Optional[str] = None
    sites_error: Optional[str] = None
    credential_error: Optional[str] = None
    buckets_error: Optional[str] = None
    objects_error: Optional[str] = None
    download_error: Optional[str] = None


@dataclass
class TextPreview:
    """Leading portion of a text object."""

    key: str
    content: str = ""
    truncated: bool = False
    total_size: int = 0
    read_size: int = 0


@dataclass
class JsonlPreview:
    """Leading records of a gzip-compressed JSON Lines object."""

    key: str
    lines: list[object] = field(default_factory=list)
    truncated: bool = False
    total_read: int = 0
    error: Optional[str] = None
