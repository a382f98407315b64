from __future__ import annotations
"""View-agnostic presenter driving the sites / buckets / objects navigator."""
from dataclasses import replace
import logging
import threading
from typing import Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .credentials import (
    CredentialCache,
    KeyringCredentialCache,
    flag_saved_secrets,
    select_saved_access_key,
)
from .directory import AccountDirectory, SiteDirectory
from .listing import ListingEngine, ListingError, ListingSession
from .models import (
    AccessKey,
    Bucket,
    BrowserView,
    BucketRow,
    BucketsScreen,
    Credential,
    FolderRow,
    JsonlPreview,
    ListingPage,
    ObjectEntry,
    ObjectRow,
    ObjectsScreen,
    Screen,
    Site,
    SitesScreen,
    TextPreview,
)
from .navigation import breadcrumbs, folder_label, parent_prefix, relative_name, validate_prefix
from .search import PrefetchController, Scheduler, SearchState, filter_buckets, filter_objects
from .services import ObjectStorageService, TransferCancelledError
from .settings import AppSettings, SettingsStorage
from .ui_utils import (
    ask_save_path,
    format_last_modified,
    format_size,
    preview_kind,
    suggest_download_filename,
)


DispatchFn = Callable[[Callable[[], None]], None]
RunnerFn = Callable[[Callable[[], None]], None]
ErrorFn = Callable[[str], None]
DestinationFn = Callable[[str], Optional[str]]
Listener = Callable[[], None]

LOGGER = logging.getLogger(__name__)


def _format_error(exc: Exception) -> str:
    return str(exc)


def _run_in_thread(task: Callable[[], None]) -> None:
    threading.Thread(target=task, daemon=True).start()


def _timer_scheduler(dispatch: DispatchFn) -> Scheduler:
    def schedule(delay: float, callback: Callable[[], None]) -> Callable[[], None]:
        timer = threading.Timer(delay, lambda: dispatch(callback))
        timer.daemon = True
        timer.start()
        return timer.cancel

    return schedule


class ObjectStorageBrowser:
    """Owns the browse state and runs collaborator calls in the background.

    Every collaborator call runs through ``run_in_background``; its result is
    applied through ``dispatch``. Requests are tagged with a generation counter
    and results for an abandoned site or listing context are dropped.

    State is only safe to touch from one thread. The default ``dispatch`` calls
    handlers immediately, on the worker or timer thread that produced them, so
    a UI must pass one that marshals onto its own event loop, for example
    ``lambda func: root.after(0, func)`` with Tk.
    """

    def __init__(
        self,
        *,
        directory: AccountDirectory | None = None,
        credentials: CredentialCache | None = None,
        service: ObjectStorageService | None = None,
        settings_storage: SettingsStorage | None = None,
        dispatch: DispatchFn | None = None,
        run_in_background: RunnerFn | None = None,
        schedule: Scheduler | None = None,
        choose_destination: DestinationFn | None = None,
    ) -> None:
        self._settings_storage = settings_storage or SettingsStorage()
        self._settings = self._settings_storage.load()
        self._directory = directory or SiteDirectory()
        self._credentials = credentials or KeyringCredentialCache(self._settings.keyring_service)
        self._service = service or ObjectStorageService(region_name=self._settings.region_name)
        self._engine = ListingEngine(self._service, page_size=self._settings.page_size)
        self._dispatch = dispatch or (lambda func: func())
        self._run = run_in_background or _run_in_thread
        self._choose_destination = choose_destination or ask_save_path
        self._prefetch = PrefetchController(
            read_state=self._search_state,
            fetch_more=lambda: self._start_listing(append=True),
            schedule=schedule or _timer_scheduler(self._dispatch),
            delay=self._settings.search_prefetch_delay,
        )
        self._listeners: list[Listener] = []

        self._screen: Screen = SitesScreen()
        self._sites: list[Site] = []
        self._access_keys: list[AccessKey] = []
        self._selected_access_key_id = ""
        self._credential: Credential | None = None
        self._buckets: list[Bucket] = []
        self._bucket_search_query = ""
        self._session = ListingSession()
        self._search_query = ""
        self._downloading: str | None = None

        self._loading_sites = False
        self._loading_access_keys = False
        self._loading_buckets = False
        self._loading_objects = False

        self._sites_error: str | None = None
        self._credential_error: str | None = None
        self._buckets_error: str | None = None
        self._objects_error: str | None = None
        self._download_error: str | None = None

        self._site_generation = 0
        self._key_generation = 0
        self._listing_generation = 0

    # -- read-only projection -------------------------------------------------

    @property
    def screen(self) -> Screen:
        return self._screen

    @property
    def settings(self) -> AppSettings:
        return replace(self._settings)

    def save_settings(self, settings: AppSettings) -> None:
        """Persist ``settings``.

        Page size, search delay and preview limits apply from the next request;
        the region and keychain service are read once at start-up.
        """

        self._settings = replace(settings)
        self._settings_storage.save(settings)
        self._prefetch.delay = settings.search_prefetch_delay

    @property
    def view(self) -> BrowserView:
        screen = self._screen
        prefix = screen.prefix if isinstance(screen, ObjectsScreen) else ""
        crumbs = tuple(breadcrumbs(prefix)) if isinstance(screen, ObjectsScreen) else ()
        filtered_buckets = filter_buckets(self._buckets, self._bucket_search_query)
        filtered_objects = filter_objects(self._session.objects, self._search_query)
        # Folders are hidden while a search is active.
        folders = () if self._search_query else self._session.prefixes
        return BrowserView(
            screen=screen,
            breadcrumbs=crumbs,
            sites=tuple(self._sites),
            access_keys=tuple(self._access_keys),
            selected_access_key_id=self._selected_access_key_id,
            credential_active=self._credential is not None,
            buckets=tuple(self._buckets),
            filtered_buckets=tuple(filtered_buckets),
            bucket_rows=tuple(
                BucketRow(bucket=bucket, created=format_last_modified(bucket.creation_date))
                for bucket in filtered_buckets
            ),
            bucket_search_query=self._bucket_search_query,
            objects=tuple(self._session.objects),
            filtered_objects=tuple(filtered_objects),
            prefixes=tuple(self._session.prefixes),
            folder_rows=tuple(
                FolderRow(prefix=common, name=folder_label(common, prefix)) for common in folders
            ),
            object_rows=tuple(
                ObjectRow(
                    entry=entry,
                    name=relative_name(entry.key, prefix),
                    size=format_size(entry.size),
                    last_modified=format_last_modified(entry.last_modified),
                )
                for entry in filtered_objects
            ),
            has_more=self._session.has_more,
            search_query=self._search_query,
            loading=self._loading_sites or self._loading_buckets or self._loading_objects,
            loading_access_keys=self._loading_access_keys,
            search_loading=self._prefetch.search_loading,
            downloading=self._downloading,
            sites_error=self._sites_error,
            credential_error=self._credential_error,
            buckets_error=self._buckets_error,
            objects_error=self._objects_error,
            download_error=self._download_error,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback run after every state change."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # -- sites ---------------------------------------------------------------

    def load_sites(self) -> bool:
        if self._loading_sites:
            return False
        self._loading_sites = True
        self._sites_error = None
        self._notify()
        LOGGER.debug("Loading sites")

        def task() -> None:
            try:
                sites = self._directory.list_sites()
            except Exception as exc:
                LOGGER.exception("Unable to load sites")
                message = _format_error(exc)
                self._dispatch(lambda: self._handle_sites_error(message))
            else:
                LOGGER.debug("Loaded %d site(s)", len(sites))
                self._dispatch(lambda: self._handle_sites(sites))

        self._run(task)
        return True

    def _handle_sites(self, sites: list[Site]) -> None:
        self._loading_sites = False
        self._sites = list(sites)
        self._notify()

    def _handle_sites_error(self, message: str) -> None:
        self._loading_sites = False
        self._sites_error = message
        self._notify()

    def select_site(self, site: Site) -> None:
        self._leave_listing()
        self._clear_site_state()
        self._screen = BucketsScreen(site)
        self._loading_access_keys = True
        self._notify()
        generation = self._site_generation
        LOGGER.debug("Loading access keys for site '%s'", site.id)

        def task() -> None:
            try:
                keys = flag_saved_secrets(
                    self._credentials, site.id, self._directory.list_access_keys(site.id)
                )
                selection = select_saved_access_key(self._credentials, site.id, keys)
            except Exception as exc:
                LOGGER.exception("Unable to load access keys for site '%s'", site.id)
                message = _format_error(exc)
                self._dispatch(lambda: self._handle_access_keys_error(generation, message))
            else:
                self._dispatch(lambda: self._handle_access_keys(generation, site, keys, selection))

        self._run(task)

    def _handle_access_keys(
        self,
        generation: int,
        site: Site,
        keys: list[AccessKey],
        selection: tuple[AccessKey, str] | None,
    ) -> None:
        if generation != self._site_generation:
            return
        self._loading_access_keys = False
        self._access_keys = list(keys)
        if selection is None or self._selected_access_key_id:
            # A key picked while the list was loading wins over auto-selection.
            self._notify()
            return
        key, secret = selection
        LOGGER.debug("Auto-selected access key '%s' for site '%s'", key.id, site.id)
        self._selected_access_key_id = key.id
        self._credential = Credential(site_id=site.id, access_key_id=key.id, secret=secret)
        self._notify()
        self.list_buckets()

    def _handle_access_keys_error(self, generation: int, message: str) -> None:
        if generation != self._site_generation:
            return
        self._loading_access_keys = False
        self._access_keys = []
        self._credential_error = message
        self._notify()

    def back_to_sites(self) -> None:
        self._leave_listing()
        self._clear_site_state()
        self._access_keys = []
        self._screen = SitesScreen()
        self._notify()

    # -- credentials ---------------------------------------------------------

    def select_access_key(self, access_key_id: str) -> None:
        screen = self._screen
        if not isinstance(screen, BucketsScreen):
            return
        self._key_generation += 1
        self._selected_access_key_id = access_key_id
        self._credential = None
        self._buckets = []
        self._loading_buckets = False
        self._buckets_error = None
        self._credential_error = None
        self._notify()
        if not access_key_id:
            return
        site = screen.site
        generation = self._key_generation

        def task() -> None:
            try:
                secret = self._credentials.get_secret(site.id, access_key_id)
            except Exception:
                # A missing secret only means the operator has to type it in.
                LOGGER.warning("Secret lookup failed for '%s'", access_key_id, exc_info=True)
                secret = ""
            self._dispatch(lambda: self._handle_secret_lookup(generation, site, access_key_id, secret))

        self._run(task)

    def _handle_secret_lookup(self, generation: int, site: Site, access_key_id: str, secret: str) -> None:
        if generation != self._key_generation or not secret:
            return
        self._credential = Credential(site_id=site.id, access_key_id=access_key_id, secret=secret)
        self._notify()
        self.list_buckets()

    def save_secret(self, secret: str) -> bool:
        screen = self._screen
        if not isinstance(screen, BucketsScreen) or not self._selected_access_key_id:
            return False
        if not secret:
            self._credential_error = "A secret key is required"
            self._notify()
            return False
        site = screen.site
        access_key_id = self._selected_access_key_id
        generation = self._key_generation
        self._credential_error = None
        self._notify()

        def task() -> None:
            try:
                self._credentials.save_secret(site.id, access_key_id, secret)
            except Exception as exc:
                LOGGER.exception("Unable to save secret for '%s'", access_key_id)
                message = f"Failed to save secret key: {_format_error(exc)}"
                self._dispatch(lambda: self._handle_secret_store_error(generation, message))
            else:
                self._dispatch(lambda: self._handle_secret_saved(generation, site, access_key_id, secret))

        self._run(task)
        return True

    def _handle_secret_saved(self, generation: int, site: Site, access_key_id: str, secret: str) -> None:
        if generation != self._key_generation:
            return
        self._credential = Credential(site_id=site.id, access_key_id=access_key_id, secret=secret)
        self._set_saved_flag(access_key_id, True)
        self._notify()
        self.list_buckets()

    def delete_secret(self) -> bool:
        screen = self._screen
        if not isinstance(screen, BucketsScreen) or not self._selected_access_key_id:
            return False
        site = screen.site
        access_key_id = self._selected_access_key_id
        generation = self._key_generation
        self._credential_error = None
        self._notify()

        def task() -> None:
            try:
                self._credentials.delete_secret(site.id, access_key_id)
            except Exception as exc:
                LOGGER.exception("Unable to delete secret for '%s'", access_key_id)
                message = f"Failed to delete secret key: {_format_error(exc)}"
                self._dispatch(lambda: self._handle_secret_store_error(generation, message))
            else:
                self._dispatch(lambda: self._handle_secret_deleted(generation, access_key_id))

        self._run(task)
        return True

    def _handle_secret_deleted(self, generation: int, access_key_id: str) -> None:
        if generation != self._key_generation:
            return
        # Drops any bucket listing still in flight for the deleted secret.
        self._key_generation += 1
        self._credential = None
        self._buckets = []
        self._loading_buckets = False
        self._buckets_error = None
        self._set_saved_flag(access_key_id, False)
        self._notify()

    def _handle_secret_store_error(self, generation: int, message: str) -> None:
        if generation != self._key_generation:
            return
        self._credential_error = message
        self._notify()

    def _set_saved_flag(self, access_key_id: str, saved: bool) -> None:
        self._access_keys = [
            replace(key, has_saved_secret=saved) if key.id == access_key_id else key
            for key in self._access_keys
        ]

    # -- buckets -------------------------------------------------------------

    def list_buckets(self) -> bool:
        screen = self._screen
        if not isinstance(screen, BucketsScreen):
            return False
        credential = self._credential
        if credential is None:
            self._credential_error = "Enter the secret key for the selected access key"
            self._notify()
            return False
        if self._loading_buckets:
            return False
        site = screen.site
        generation = self._key_generation
        self._loading_buckets = True
        self._buckets_error = None
        self._credential_error = None
        self._notify()
        LOGGER.debug("Listing buckets for site '%s' with key '%s'", site.id, credential.access_key_id)

        def task() -> None:
            try:
                buckets = self._service.list_buckets(
                    endpoint_url=site.endpoint,
                    access_key=credential.access_key_id,
                    secret_key=credential.secret,
                    site_id=site.id,
                )
            except (BotoCoreError, ClientError) as exc:
                LOGGER.exception("Bucket listing error for site '%s'", site.id)
                message = _format_error(exc)
                self._dispatch(lambda: self._handle_buckets_error(generation, message))
            except Exception as exc:
                LOGGER.exception("Unexpected bucket listing error for site '%s'", site.id)
                message = _format_error(exc)
                self._dispatch(lambda: self._handle_buckets_error(generation, message))
            else:
                LOGGER.debug("Listed %d bucket(s) for site '%s'", len(buckets), site.id)
                self._dispatch(lambda: self._handle_buckets(generation, buckets))

        self._run(task)
        return True

    def _handle_buckets(self, generation: int, buckets: list[Bucket]) -> None:
        if generation != self._key_generation:
            return
        self._loading_buckets = False
        self._buckets = list(buckets)
        self._notify()

    def _handle_buckets_error(self, generation: int, message: str) -> None:
        if generation != self._key_generation:
            return
        self._loading_buckets = False
        self._buckets_error = message
        self._notify()

    def set_bucket_search_query(self, query: str) -> None:
        if query == self._bucket_search_query:
            return
        self._bucket_search_query = query
        self._notify()

    def select_bucket(self, bucket: Bucket) -> bool:
        screen = self._screen
        if not isinstance(screen, BucketsScreen):
            return False
        if self._credential is None:
            self._credential_error = "Enter the secret key for the selected access key"
            self._notify()
            return False
        self._screen = ObjectsScreen(site=screen.site, bucket=bucket, prefix="")
        self._search_query = ""
        self._reset_listing(bucket.name, "")
        return self._start_listing(append=False)

    def back_to_buckets(self) -> None:
        screen = self._screen
        if not isinstance(screen, ObjectsScreen):
            return
        self._leave_listing()
        self._screen = BucketsScreen(screen.site)
        self._notify()

    # -- objects -------------------------------------------------------------

    def open_prefix(self, prefix: str) -> bool:
        screen = self._screen
        if not isinstance(screen, ObjectsScreen):
            return False
        validate_prefix(prefix)
        self._screen = replace(screen, prefix=prefix)
        self._reset_listing(screen.bucket.name, prefix)
        return self._start_listing(append=False)

    def navigate_up(self) -> bool:
        screen = self._screen
        if not isinstance(screen, ObjectsScreen) or not screen.prefix:
            return False
        return self.open_prefix(parent_prefix(screen.prefix))

    def load_more(self) -> bool:
        return self._start_listing(append=True)

    def set_search_query(self, query: str) -> None:
        if query == self._search_query:
            return
        self._search_query = query
        if not query:
            if self._prefetch.cancel():
                # The outstanding page was requested for the cleared search;
                # its token stays in the session for the next load-more.
                self._listing_generation += 1
                self._loading_objects = False
        else:
            self._prefetch.evaluate()
        self._notify()

    def refresh(self) -> bool:
        screen = self._screen
        if isinstance(screen, SitesScreen):
            return self.load_sites()
        if isinstance(screen, BucketsScreen):
            return self.list_buckets()
        self._listing_generation += 1
        self._prefetch.cancel()
        self._loading_objects = False
        return self._start_listing(append=False)

    def dismiss_error(self) -> None:
        self._objects_error = None
        self._download_error = None
        self._notify()

    def _search_state(self) -> SearchState:
        return SearchState(
            query=self._search_query,
            has_more=self._session.has_more,
            loading=self._loading_objects,
            generation=self._listing_generation,
        )

    def _reset_listing(self, bucket_name: str, prefix: str) -> None:
        self._listing_generation += 1
        self._prefetch.cancel()
        self._loading_objects = False
        self._objects_error = None
        self._session.reset(bucket_name, prefix)

    def _leave_listing(self) -> None:
        self._search_query = ""
        self._download_error = None
        self._reset_listing("", "")

    def _clear_site_state(self) -> None:
        self._site_generation += 1
        self._key_generation += 1
        self._bucket_search_query = ""
        self._selected_access_key_id = ""
        self._credential = None
        self._buckets = []
        self._loading_access_keys = False
        self._loading_buckets = False
        self._credential_error = None
        self._buckets_error = None

    def _start_listing(self, *, append: bool) -> bool:
        screen = self._screen
        credential = self._credential
        if not isinstance(screen, ObjectsScreen) or credential is None:
            return False
        if self._loading_objects:
            return False
        if append and not self._session.has_more:
            return False
        generation = self._listing_generation
        token = self._session.continuation_token if append else ""
        page_size = self._settings.page_size
        self._loading_objects = True
        self._objects_error = None
        self._notify()
        LOGGER.debug(
            "Listing '%s' prefix '%s' (%s)",
            screen.bucket.name,
            screen.prefix,
            "more" if append else "first page",
        )

        def task() -> None:
            try:
                page = self._engine.list_page(
                    credential,
                    endpoint_url=screen.site.endpoint,
                    bucket_name=screen.bucket.name,
                    prefix=screen.prefix,
                    continuation_token=token,
                    page_size=page_size,
                )
            except ListingError as exc:
                LOGGER.exception("List objects error for bucket '%s'", screen.bucket.name)
                message = _format_error(exc)
                self._dispatch(lambda: self._handle_listing_error(generation, message))
            except Exception as exc:
                LOGGER.exception("Unexpected list objects error for bucket '%s'", screen.bucket.name)
                message = _format_error(exc)
                self._dispatch(lambda: self._handle_listing_error(generation, message))
            else:
                self._dispatch(lambda: self._handle_listing(generation, page, append))

        self._run(task)
        return True

    def _handle_listing(self, generation: int, page: ListingPage, append: bool) -> None:
        if generation != self._listing_generation:
            LOGGER.debug("Discarding page for an abandoned listing")
            return
        self._loading_objects = False
        self._session.apply(page, append=append)
        self._prefetch.listing_finished(True)
        self._notify()

    def _handle_listing_error(self, generation: int, message: str) -> None:
        if generation != self._listing_generation:
            return
        self._loading_objects = False
        self._objects_error = message
        self._prefetch.listing_finished(False)
        self._notify()

    # -- transfers -----------------------------------------------------------

    def download(
        self,
        entry: ObjectEntry,
        *,
        on_progress: Callable[[int], None] | None = None,
        cancel_requested: Callable[[], bool] | None = None,
    ) -> bool:
        screen = self._screen
        credential = self._credential
        if not isinstance(screen, ObjectsScreen) or credential is None or self._downloading:
            return False
        destination = self._choose_destination(suggest_download_filename(entry.key))
        if not destination:
            LOGGER.debug("Download of '%s' cancelled before start", entry.key)
            return False
        self._downloading = entry.key
        self._download_error = None
        self._notify()
        progress_callback = None
        if on_progress:
            progress_callback = lambda total: self._dispatch(lambda: on_progress(total))

        def task() -> None:
            try:
                self._service.download_object(
                    endpoint_url=screen.site.endpoint,
                    access_key=credential.access_key_id,
                    secret_key=credential.secret,
                    bucket_name=screen.bucket.name,
                    key=entry.key,
                    destination=destination,
                    progress_callback=progress_callback,
                    cancel_requested=cancel_requested,
                )
            except TransferCancelledError:
                LOGGER.debug("Download of '%s' cancelled", entry.key)
                self._dispatch(lambda: self._handle_download_finished(None))
            except (BotoCoreError, ClientError) as exc:
                LOGGER.exception("Download error for '%s'", entry.key)
                message = f"Download failed: {_format_error(exc)}"
                self._dispatch(lambda: self._handle_download_finished(message))
            except Exception as exc:
                LOGGER.exception("Unexpected download error for '%s'", entry.key)
                message = f"Download failed: {_format_error(exc)}"
                self._dispatch(lambda: self._handle_download_finished(message))
            else:
                LOGGER.debug("Downloaded '%s' to '%s'", entry.key, destination)
                self._dispatch(lambda: self._handle_download_finished(None))

        self._run(task)
        return True

    def _handle_download_finished(self, message: str | None) -> None:
        self._downloading = None
        self._download_error = message
        self._notify()

    def preview(
        self,
        entry: ObjectEntry,
        *,
        on_success: Callable[[TextPreview | JsonlPreview], None],
        on_error: ErrorFn,
    ) -> bool:
        screen = self._screen
        credential = self._credential
        kind = preview_kind(entry.key)
        if not isinstance(screen, ObjectsScreen) or credential is None or kind is None:
            return False
        params = {
            "endpoint_url": screen.site.endpoint,
            "access_key": credential.access_key_id,
            "secret_key": credential.secret,
            "bucket_name": screen.bucket.name,
            "key": entry.key,
        }

        def task() -> None:
            try:
                if kind == "jsonl":
                    result = self._service.preview_gzip_jsonl(
                        max_lines=self._settings.preview_max_lines, **params
                    )
                else:
                    result = self._service.preview_text(
                        max_bytes=self._settings.preview_max_bytes, **params
                    )
            except (BotoCoreError, ClientError) as exc:
                message = _format_error(exc)
                self._dispatch(lambda: on_error(message))
            except Exception as exc:
                LOGGER.exception("Unexpected preview error for '%s'", entry.key)
                message = _format_error(exc)
                self._dispatch(lambda: on_error(message))
            else:
                self._dispatch(lambda: on_success(result))

        self._run(task)
        return True
