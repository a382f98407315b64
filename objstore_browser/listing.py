from __future__ import annotations
"""Paginated object listing and page accumulation."""
from dataclasses import dataclass, field

from botocore.exceptions import BotoCoreError, ClientError

from .models import Credential, ListingPage, ObjectEntry
from .navigation import validate_prefix
from .services import ObjectStorageService

DEFAULT_PAGE_SIZE = 100

AUTHORIZATION_CODES = {
    "AccessDenied",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "ExpiredToken",
    "InvalidToken",
}
NOT_FOUND_CODES = {"NoSuchBucket", "NotFound"}


class ListingError(RuntimeError):
    """A listing call failed; ``kind`` tells the caller why."""

    def __init__(self, message: str, kind: str = "error"):
        super().__init__(message)
        self.kind = kind


def _classify(exc: ClientError) -> str:
    error = exc.response.get("Error", {})
    code = str(error.get("Code", ""))
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    if code in AUTHORIZATION_CODES or status in (401, 403):
        return "authorization"
    if code in NOT_FOUND_CODES or status == 404:
        return "not_found"
    return "error"


class ListingEngine:
    """Issues one delimited listing request per call."""

    def __init__(self, service: ObjectStorageService, page_size: int = DEFAULT_PAGE_SIZE):
        self._service = service
        self._page_size = page_size

    @property
    def page_size(self) -> int:
        return self._page_size

    def list_page(
        self,
        credential: Credential,
        *,
        endpoint_url: str,
        bucket_name: str,
        prefix: str = "",
        continuation_token: str = "",
        page_size: int | None = None,
    ) -> ListingPage:
        """Fetch a single page; never follows the continuation token itself.

        Raises:
            ListingError: for authorization, not-found and transport failures.
        """

        validate_prefix(prefix)
        try:
            return self._service.list_objects(
                endpoint_url=endpoint_url,
                access_key=credential.access_key_id,
                secret_key=credential.secret,
                bucket_name=bucket_name,
                prefix=prefix,
                continuation_token=continuation_token,
                max_keys=page_size or self._page_size,
            )
        except ClientError as exc:
            raise ListingError(str(exc), _classify(exc)) from exc
        except BotoCoreError as exc:
            raise ListingError(str(exc), "transport") from exc


@dataclass
class ListingSession:
    """Pages accumulated for one (bucket, prefix) browsing session."""

    bucket: str = ""
    prefix: str = ""
    objects: list[ObjectEntry] = field(default_factory=list)
    prefixes: list[str] = field(default_factory=list)
    continuation_token: str = ""
    has_more: bool = False
    pages_loaded: int = 0

    def reset(self, bucket: str, prefix: str = "") -> None:
        validate_prefix(prefix)
        self.bucket = bucket
        self.prefix = prefix
        self.objects = []
        self.prefixes = []
        self.continuation_token = ""
        self.has_more = False
        self.pages_loaded = 0

    def apply(self, page: ListingPage, *, append: bool) -> None:
        if append:
            self.objects.extend(page.objects)
        else:
            self.objects = list(page.objects)
            self.pages_loaded = 0
        # Folders only reflect the latest page, also on load-more.
        self.prefixes = list(page.prefixes)
        # A truncated page without a token cannot be continued.
        self.has_more = page.is_truncated and bool(page.continuation_token)
        self.continuation_token = page.continuation_token if self.has_more else ""
        self.pages_loaded += 1
