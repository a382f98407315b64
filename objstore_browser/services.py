from __future__ import annotations
"""Calls against S3-compatible object storage endpoints."""
import gzip
import json
import logging
from typing import Callable, Optional

import boto3
from botocore.client import Config
from botocore.exceptions import ClientError

from .models import Bucket, JsonlPreview, ListingPage, ObjectEntry, TextPreview


class TransferCancelledError(RuntimeError):
    """Raised when a download is cancelled by the caller."""


DELIMITER = "/"
DEFAULT_REGION = "jp-north-1"

LOGGER = logging.getLogger(__name__)


class ObjectStorageService:
    """Encapsulates S3 calls independent of any UI technology."""

    def __init__(
        self,
        client_factory: Callable[..., object] | None = None,
        *,
        region_name: str = DEFAULT_REGION,
    ):
        self._client_factory = client_factory or boto3.client
        self._region_name = region_name

    def list_buckets(
        self,
        *,
        endpoint_url: str,
        access_key: str,
        secret_key: str,
        site_id: str = "",
    ) -> list[Bucket]:
        """Return the buckets visible to the access key."""

        client = self._create_client(endpoint_url, access_key, secret_key)
        response = client.list_buckets()
        return [
            Bucket(
                name=bucket["Name"],
                site_id=site_id,
                creation_date=bucket.get("CreationDate"),
            )
            for bucket in response.get("Buckets", [])
        ]

    def list_objects(
        self,
        *,
        endpoint_url: str,
        access_key: str,
        secret_key: str,
        bucket_name: str,
        prefix: str = "",
        continuation_token: str = "",
        max_keys: int = 0,
    ) -> ListingPage:
        """Return exactly one page of a '/'-delimited listing.

        Raises:
            BotoCoreError | ClientError: when the request fails.
        """

        client = self._create_client(endpoint_url, access_key, secret_key)
        params: dict[str, object] = {"Bucket": bucket_name, "Delimiter": DELIMITER}
        if prefix:
            params["Prefix"] = prefix
        if continuation_token:
            params["ContinuationToken"] = continuation_token
        if max_keys > 0:
            params["MaxKeys"] = max_keys

        LOGGER.debug("ListObjectsV2 %s prefix=%r token=%s", bucket_name, prefix, bool(continuation_token))
        response = client.list_objects_v2(**params)
        objects = tuple(
            ObjectEntry(
                key=obj["Key"],
                size=int(obj.get("Size") or 0),
                last_modified=obj.get("LastModified"),
                storage_class=obj.get("StorageClass"),
            )
            for obj in response.get("Contents", [])
        )
        prefixes = tuple(common["Prefix"] for common in response.get("CommonPrefixes", []))
        return ListingPage(
            objects=objects,
            prefixes=prefixes,
            continuation_token=response.get("NextContinuationToken") or "",
            is_truncated=bool(response.get("IsTruncated", False)),
        )

    def download_object(
        self,
        *,
        endpoint_url: str,
        access_key: str,
        secret_key: str,
        bucket_name: str,
        key: str,
        destination: str,
        progress_callback: Optional[Callable[[int], None]] = None,
        cancel_requested: Optional[Callable[[], bool]] = None,
    ) -> None:
        """Download an object to the provided destination path."""

        client = self._create_client(endpoint_url, access_key, secret_key)
        callback = self._build_transfer_callback(progress_callback, cancel_requested)
        client.download_file(bucket_name, key, destination, Callback=callback)

    def preview_text(
        self,
        *,
        endpoint_url: str,
        access_key: str,
        secret_key: str,
        bucket_name: str,
        key: str,
        max_bytes: int,
    ) -> TextPreview:
        """Fetch at most ``max_bytes`` from the start of an object."""

        if max_bytes <= 0:
            raise ValueError("max_bytes must be greater than zero")
        client = self._create_client(endpoint_url, access_key, secret_key)
        try:
            response = client.get_object(Bucket=bucket_name, Key=key, Range=f"bytes=0-{max_bytes - 1}")
        except ClientError as exc:
            # Ranged GET on an empty object.
            if exc.response.get("Error", {}).get("Code") == "InvalidRange":
                return TextPreview(key=key)
            raise
        body = response["Body"]
        try:
            data = body.read()
        finally:
            body.close()
        total_size = _parse_total_size(response.get("ContentRange"), len(data))
        return TextPreview(
            key=key,
            content=data.decode("utf-8", errors="replace"),
            truncated=total_size > len(data),
            total_size=total_size,
            read_size=len(data),
        )

    def preview_gzip_jsonl(
        self,
        *,
        endpoint_url: str,
        access_key: str,
        secret_key: str,
        bucket_name: str,
        key: str,
        max_lines: int,
    ) -> JsonlPreview:
        """Decode the first ``max_lines`` records of a gzip JSON Lines object."""

        if max_lines <= 0:
            raise ValueError("max_lines must be greater than zero")
        client = self._create_client(endpoint_url, access_key, secret_key)
        response = client.get_object(Bucket=bucket_name, Key=key)
        body = response["Body"]
        preview = JsonlPreview(key=key)
        try:
            with gzip.GzipFile(fileobj=body) as stream:
                for raw_line in stream:
                    line = raw_line.decode("utf-8", errors="replace").strip()
                    if not line:
                        continue
                    if preview.total_read >= max_lines:
                        preview.truncated = True
                        break
                    try:
                        preview.lines.append(json.loads(line))
                    except json.JSONDecodeError:
                        preview.lines.append(line)
                    preview.total_read += 1
        except (OSError, EOFError) as exc:
            preview.error = str(exc)
        finally:
            body.close()
        return preview

    def _create_client(self, endpoint_url: str, access_key: str, secret_key: str):
        config = Config(signature_version="s3v4", s3={"addressing_style": "path"})
        return self._client_factory(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=self._region_name,
            config=config,
        )

    def _build_transfer_callback(
        self,
        progress_callback: Optional[Callable[[int], None]],
        cancel_requested: Optional[Callable[[], bool]],
    ):
        if not progress_callback and not cancel_requested:
            return None

        transferred = 0

        def _callback(bytes_amount: int) -> None:
            nonlocal transferred
            if cancel_requested and cancel_requested():
                raise TransferCancelledError("Transfer cancelled by user")
            transferred += bytes_amount
            if progress_callback:
                progress_callback(transferred)

        return _callback


def _parse_total_size(content_range: str | None, fallback: int) -> int:
    # "bytes 0-1023/4096"
    if not content_range:
        return fallback
    _, _, total = content_range.rpartition("/")
    try:
        return int(total)
    except ValueError:
        return fallback
