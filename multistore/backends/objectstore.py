"""Flat object store semantics shared by the OSS and MinIO backends.

Object stores have no directories, no atomic rename and paginated listings.
This module emulates directories with zero-length placeholder objects whose
key ends in ``/``, merges listing pages into one result and implements
rename as copy-then-delete.
"""

import asyncio
import io
from abc import abstractmethod
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, TypeVar

import structlog
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from multistore.backends.base import StorageBackend
from multistore.exceptions import (
    MetadataParseError,
    NotFoundError,
    RemoteError,
    UnsupportedOperationError,
)
from multistore.models import DEFAULT_MIME_TYPE, FileMetadata
from multistore.paths import ensure_trailing_separator, is_placeholder, resolve, strip_base
from multistore.stream import ByteSource, ByteStream, SyncReader, bridge_blocking

logger = structlog.get_logger()

PAGE_SIZE = 1000
LAST_MODIFIED_FALLBACK_FORMAT = "%Y-%m-%d %H:%M:%S"

_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}

T = TypeVar("T")


@dataclass
class ObjectPage:
    """One page of a prefix listing."""

    objects: list[dict[str, Any]] = field(default_factory=list)
    next_marker: str | None = None
    truncated: bool = False


def translate_error(error: Exception, action: str, target: str) -> Exception:
    """Map a boto3/botocore exception onto a storage error."""
    if isinstance(error, ClientError):
        code = str(error.response.get("Error", {}).get("Code", ""))
        if code in _NOT_FOUND_CODES:
            return NotFoundError(f"Object not found: {target}")
    return RemoteError(f"Failed to {action} {target}: {error}")


def endpoint_url(endpoint: str, secure: bool) -> str:
    """Prefix a bare ``host[:port]`` endpoint with the matching scheme."""
    if "://" in endpoint:
        return endpoint
    scheme = "https" if secure else "http"
    return f"{scheme}://{endpoint}"


def parse_last_modified(value: str) -> datetime:
    """Parse a ``Last-Modified`` header.

    RFC 1123 is tried first, then ``LAST_MODIFIED_FALLBACK_FORMAT`` (UTC).

    Raises:
        MetadataParseError: If neither format matches
    """
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        try:
            parsed = datetime.strptime(value, LAST_MODIFIED_FALLBACK_FORMAT)
        except ValueError as e:
            raise MetadataParseError(f"Unparseable Last-Modified header: {value!r}") from e
        return parsed.replace(tzinfo=timezone.utc)


class ObjectStoreBackend(StorageBackend):
    """Storage backend over an S3-compatible object store.

    Subclasses build the boto3 client and implement ``_list_page`` for the
    listing flavor their service speaks. All blocking client calls run in
    worker threads.

    ``rename``/``move`` copy the object and then delete the source. They
    are not atomic: a failure between the two calls leaves both keys in
    place, and a failed copy leaves only the old key.
    """

    service_name = "object store"

    def __init__(self, client: Any, bucket: str, base_dir: str):
        self.client = client
        self.bucket = bucket
        self.base_dir = base_dir

    @property
    def base(self) -> str:
        return self.base_dir

    @abstractmethod
    def _list_page(self, prefix: str, marker: str | None) -> ObjectPage:
        """Fetch one listing page of at most ``PAGE_SIZE`` keys (blocking)."""

    def _key(self, path: str) -> str:
        return resolve(self.base_dir, path)

    def _dir_key(self, path: str) -> str:
        return ensure_trailing_separator(resolve(self.base_dir, path))

    async def _call(
        self, action: str, target: str, func: Callable[..., T], *args: Any, **kwargs: Any
    ) -> T:
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except (BotoCoreError, ClientError, S3UploadFailedError) as e:
            logger.error(
                f"{self.service_name} request failed",
                action=action,
                target=target,
                error=str(e),
            )
            raise translate_error(e, action, target) from e

    def _reader(self, body: Any, path: str) -> Callable[[int], bytes]:
        def read(size: int) -> bytes:
            try:
                return body.read(size)
            except (BotoCoreError, ClientError, OSError) as e:
                raise RemoteError(f"Failed to read {path}: {e}") from e

        return read

    async def upload(self, path: str, source: ByteSource) -> None:
        """Stream ``source`` into a single transfer call.

        The transfer manager decides whether the body is sent in one request
        or in parts. No retries are layered on top.
        """
        logger.info(f"Uploading file to {self.service_name}", path=path)

        if isinstance(source, (bytes, bytearray, memoryview)):
            body: Any = io.BytesIO(bytes(source))
        elif hasattr(source, "read") and not hasattr(source, "__aiter__"):
            body = source
        else:
            body = SyncReader(source, asyncio.get_running_loop())

        await self._call(
            "upload", path, self.client.upload_fileobj, body, self.bucket, self._key(path)
        )

        logger.info(f"{self.service_name} file uploaded", path=path)

    async def download(self, path: str) -> ByteStream:
        logger.info(f"Downloading file from {self.service_name}", path=path)
        return await self._open(path)

    async def download_range(self, path: str, offset: int, size: int) -> ByteStream:
        """Open bytes ``[offset, offset + size)`` with an inclusive Range request."""
        logger.info(
            f"Downloading file range from {self.service_name}",
            path=path,
            offset=offset,
            size=size,
        )
        if offset < 0 or size < 0:
            raise ValueError(f"Invalid range: offset={offset}, size={size}")
        if size == 0:
            await self._head(path)
            return ByteStream(_empty())
        return await self._open(path, Range=f"bytes={offset}-{offset + size - 1}")

    async def _open(self, path: str, **extra: Any) -> ByteStream:
        response = await self._call(
            "download",
            path,
            self.client.get_object,
            Bucket=self.bucket,
            Key=self._key(path),
            **extra,
        )
        body = response["Body"]
        return bridge_blocking(self._reader(body, path), body.close)

    async def delete(self, path: str) -> None:
        logger.info(f"Deleting file from {self.service_name}", path=path)
        await self._delete_key(self._key(path), path)
        logger.info(f"{self.service_name} file deleted", path=path)

    async def _delete_key(self, key: str, target: str) -> None:
        await self._call(
            "delete", target, self.client.delete_object, Bucket=self.bucket, Key=key
        )

    async def rename(self, old_path: str, new_path: str) -> None:
        logger.info(
            f"Renaming file in {self.service_name}", old_path=old_path, new_path=new_path
        )

        await self._copy_key(self._key(old_path), self._key(new_path), old_path)
        await self._delete_key(self._key(old_path), old_path)

        logger.info(
            f"{self.service_name} file renamed", old_path=old_path, new_path=new_path
        )

    async def copy(self, src_path: str, dst_path: str) -> None:
        logger.info(
            f"Copying file in {self.service_name}", src_path=src_path, dst_path=dst_path
        )
        await self._copy_key(self._key(src_path), self._key(dst_path), src_path)
        logger.info(
            f"{self.service_name} file copied", src_path=src_path, dst_path=dst_path
        )

    async def _copy_key(self, src_key: str, dst_key: str, target: str) -> None:
        await self._call(
            "copy",
            target,
            self.client.copy_object,
            Bucket=self.bucket,
            Key=dst_key,
            CopySource={"Bucket": self.bucket, "Key": src_key},
        )

    async def _head(self, path: str) -> dict[str, Any]:
        return await self._call(
            "stat", path, self.client.head_object, Bucket=self.bucket, Key=self._key(path)
        )

    async def _exists(self, key: str) -> bool:
        try:
            await self._call(
                "stat", key, self.client.head_object, Bucket=self.bucket, Key=key
            )
        except NotFoundError:
            return False
        return True

    async def create_dir(self, path: str) -> None:
        """Create the directory placeholder object unless it already exists."""
        logger.info(f"Creating directory in {self.service_name}", path=path)

        key = self._dir_key(path)
        if await self._exists(key):
            logger.debug(f"{self.service_name} directory already exists", key=key)
            return

        await self._call(
            "create directory",
            path,
            self.client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=b"",
        )

        logger.info(f"{self.service_name} directory created", key=key)

    async def _iter_pages(self, prefix: str) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield raw listing pages for ``prefix``.

        Stops on the first page shorter than ``PAGE_SIZE``; otherwise the
        page's marker is carried into the next request.
        """
        marker: str | None = None
        while True:
            page = await self._call("list", prefix, self._list_page, prefix, marker)
            yield page.objects

            if len(page.objects) < PAGE_SIZE:
                return
            if not page.next_marker:
                if page.truncated:
                    raise RemoteError(
                        f"Listing of {prefix} is truncated but returned no marker"
                    )
                return
            marker = page.next_marker

    async def delete_dir(self, path: str) -> None:
        """Delete every object below the directory prefix.

        Objects are deleted one at a time; the directory's own placeholder
        is kept, so the directory lists as empty afterwards.
        """
        logger.info(f"Deleting directory from {self.service_name}", path=path)

        prefix = self._dir_key(path)
        deleted = 0
        async for objects in self._iter_pages(prefix):
            for obj in objects:
                key = obj["Key"]
                if key.startswith(prefix) and not is_placeholder(key, prefix):
                    await self._delete_key(key, key)
                    deleted += 1

        logger.info(
            f"{self.service_name} directory deleted", prefix=prefix, deleted=deleted
        )

    async def list_dir(self, path: str) -> list[FileMetadata]:
        """List every object below the directory prefix across all pages.

        Placeholders of the listed directory are skipped; nested
        placeholders are reported as directories.
        """
        logger.info(f"Listing {self.service_name} directory", path=path)

        prefix = self._dir_key(path)
        seen: set[str] = set()
        entries: list[FileMetadata] = []
        async for objects in self._iter_pages(prefix):
            for obj in objects:
                key = obj["Key"]
                if not key.startswith(prefix) or is_placeholder(key, prefix):
                    continue
                if key in seen:
                    continue
                seen.add(key)
                entries.append(
                    FileMetadata(
                        name=strip_base(key, self.base_dir).rstrip("/"),
                        size=obj.get("Size", 0),
                        mod_time=obj.get("LastModified"),
                        is_dir=key.endswith("/"),
                    )
                )

        logger.info(
            f"{self.service_name} directory listed", path=path, count=len(entries)
        )
        return entries

    async def get_metadata(self, path: str) -> FileMetadata:
        """Build metadata from the object's response headers."""
        logger.info(f"Getting {self.service_name} file metadata", path=path)

        response = await self._head(path)
        headers = response.get("ResponseMetadata", {}).get("HTTPHeaders", {})

        try:
            size = int(headers.get("content-length", ""))
        except ValueError:
            size = int(response.get("ContentLength", 0))

        try:
            mod_time = parse_last_modified(headers.get("last-modified", ""))
        except MetadataParseError as e:
            logger.error(
                f"Failed to parse {self.service_name} last modified time",
                path=path,
                error=str(e),
            )
            raise

        return FileMetadata(
            name=path,
            size=size,
            mod_time=mod_time,
            is_dir=self._key(path).endswith("/"),
            mime_type=headers.get("content-type") or DEFAULT_MIME_TYPE,
        )

    async def update_metadata(self, path: str, metadata: FileMetadata) -> None:
        logger.error(
            f"{self.service_name} does not support updating metadata in place", path=path
        )
        raise UnsupportedOperationError(
            f"{self.service_name} does not support updating metadata in place"
        )


async def _empty() -> AsyncIterator[bytes]:
    return
    yield
