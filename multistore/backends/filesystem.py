"""Filesystem storage backend."""

import asyncio
import os
import shutil
import stat
from collections.abc import AsyncIterator, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

import aiofiles
import aiofiles.os
import structlog

from multistore.backends.base import StorageBackend
from multistore.exceptions import ConfigInvalidError, NotFoundError, StorageIOError
from multistore.models import FileMetadata, LocalStorageConfig, StorageMode
from multistore.paths import resolve
from multistore.stream import DEFAULT_CHUNK_SIZE, ByteSource, ByteStream, iter_source

logger = structlog.get_logger()


@contextmanager
def _os_errors(path: str, action: str) -> Iterator[None]:
    """Translate ``OSError`` into storage errors for ``path``."""
    try:
        yield
    except FileNotFoundError as e:
        logger.error("Local path not found", path=path, action=action, error=str(e))
        raise NotFoundError(f"File not found: {path}") from e
    except OSError as e:
        logger.error("Local storage operation failed", path=path, action=action, error=str(e))
        raise StorageIOError(f"Failed to {action} {path}: {e}") from e


def _raise(error: OSError) -> None:
    raise error


def _same_file(src: Path, dst: Path) -> bool:
    return os.path.exists(dst) and os.path.samefile(src, dst)


async def _read_chunks(file, path: str, remaining: int | None) -> AsyncIterator[bytes]:
    """Yield chunks from an open aiofiles handle, at most ``remaining`` bytes."""
    try:
        while remaining is None or remaining > 0:
            want = DEFAULT_CHUNK_SIZE if remaining is None else min(DEFAULT_CHUNK_SIZE, remaining)
            with _os_errors(path, "read"):
                chunk = await file.read(want)
            if not chunk:
                return
            if remaining is not None:
                remaining -= len(chunk)
            yield chunk
    finally:
        await file.close()


class FilesystemBackend(StorageBackend):
    """Storage on a local (or mounted) directory tree.

    Every operation maps onto one filesystem primitive. ``rename`` uses the
    filesystem's atomic replace, which makes this the only backend with
    atomic renames. Writes are not rolled back on failure: a failed
    ``upload`` or ``copy`` can leave a truncated target behind.
    """

    def __init__(self, config: LocalStorageConfig):
        """Initialize with the base directory.

        Args:
            config: Local storage configuration

        Raises:
            ConfigInvalidError: If no base path is configured
        """
        missing = config.missing_fields()
        if missing:
            raise ConfigInvalidError(StorageMode.LOCAL.value, missing)

        self.config = config
        self._root = Path(resolve(config.base_path.replace("\\", "/"), ""))

    @property
    def base(self) -> str:
        return self.config.base_path

    def _abs(self, path: str) -> Path:
        return Path(resolve(self._root.as_posix(), path.replace("\\", "/")))

    async def upload(self, path: str, source: ByteSource) -> None:
        """Write ``source`` to ``path``, creating parent directories."""
        logger.info("Uploading file to local storage", path=path)

        dest = self._abs(path)
        with _os_errors(path, "write"):
            await aiofiles.os.makedirs(dest.parent, exist_ok=True)
            async with aiofiles.open(dest, "wb") as f:
                async for chunk in iter_source(source):
                    await f.write(chunk)

        logger.info("File uploaded", path=path)

    async def download(self, path: str) -> ByteStream:
        logger.info("Downloading local file", path=path)
        return await self._open_stream(path, 0, None)

    async def download_range(self, path: str, offset: int, size: int) -> ByteStream:
        logger.info("Downloading local file range", path=path, offset=offset, size=size)
        if offset < 0 or size < 0:
            raise ValueError(f"Invalid range: offset={offset}, size={size}")
        return await self._open_stream(path, offset, size)

    async def _open_stream(self, path: str, offset: int, size: int | None) -> ByteStream:
        full = self._abs(path)
        with _os_errors(path, "open"):
            f = await aiofiles.open(full, "rb")

        if offset:
            try:
                with _os_errors(path, "seek"):
                    await f.seek(offset)
            except Exception:
                await f.close()
                raise

        return ByteStream(_read_chunks(f, path, size), on_close=f.close)

    async def delete(self, path: str) -> None:
        logger.info("Deleting local file", path=path)

        with _os_errors(path, "delete"):
            await aiofiles.os.remove(self._abs(path))

        logger.info("File deleted", path=path)

    async def rename(self, old_path: str, new_path: str) -> None:
        logger.info("Renaming local file", old_path=old_path, new_path=new_path)

        src = self._abs(old_path)
        dst = self._abs(new_path)
        with _os_errors(old_path, "rename"):
            try:
                await aiofiles.os.replace(src, dst)
            except FileNotFoundError:
                # Only create destination parents for a source that exists.
                if not await asyncio.to_thread(os.path.lexists, src):
                    raise
                await aiofiles.os.makedirs(dst.parent, exist_ok=True)
                await aiofiles.os.replace(src, dst)

        logger.info("File renamed", old_path=old_path, new_path=new_path)

    async def copy(self, src_path: str, dst_path: str) -> None:
        logger.info("Copying local file", src_path=src_path, dst_path=dst_path)

        src = self._abs(src_path)
        dst = self._abs(dst_path)
        with _os_errors(src_path, "open"):
            source = await aiofiles.open(src, "rb")

        try:
            with _os_errors(dst_path, "stat"):
                same = await asyncio.to_thread(_same_file, src, dst)
            if same:
                # Opening dst for writing would truncate the source.
                logger.info("Source and destination are the same file", path=src_path)
                return

            with _os_errors(dst_path, "write"):
                await aiofiles.os.makedirs(dst.parent, exist_ok=True)
                async with aiofiles.open(dst, "wb") as target:
                    while True:
                        chunk = await source.read(DEFAULT_CHUNK_SIZE)
                        if not chunk:
                            break
                        await target.write(chunk)
        finally:
            await source.close()

        logger.info("File copied", src_path=src_path, dst_path=dst_path)

    async def create_dir(self, path: str) -> None:
        logger.info("Creating local directory", path=path)

        with _os_errors(path, "create directory"):
            await aiofiles.os.makedirs(self._abs(path), exist_ok=True)

        logger.info("Directory created", path=path)

    async def delete_dir(self, path: str) -> None:
        logger.info("Deleting local directory", path=path)

        with _os_errors(path, "delete directory"):
            await asyncio.to_thread(shutil.rmtree, self._abs(path))

        logger.info("Directory deleted", path=path)

    async def list_dir(self, path: str) -> list[FileMetadata]:
        """Walk the subtree below ``path``.

        The listed directory itself is not part of the result. A missing
        directory lists as empty.
        """
        logger.info("Listing local directory", path=path)

        with _os_errors(path, "list"):
            entries = await asyncio.to_thread(self._walk, self._abs(path))

        logger.info("Local directory listed", path=path, count=len(entries))
        return entries

    def _walk(self, root: Path) -> list[FileMetadata]:
        if not os.path.lexists(root):
            return []
        if not root.is_dir():
            return [self._describe(root, follow_symlinks=False)]

        entries: list[FileMetadata] = []
        for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
            dirnames.sort()
            parent = Path(dirpath)
            for name in dirnames + sorted(filenames):
                entries.append(self._describe(parent / name, follow_symlinks=False))
        return entries

    def _describe(self, full: Path, follow_symlinks: bool = True) -> FileMetadata:
        st = full.stat() if follow_symlinks else full.lstat()
        is_dir = stat.S_ISDIR(st.st_mode)
        return FileMetadata(
            name=full.relative_to(self._root).as_posix(),
            size=0 if is_dir else st.st_size,
            mod_time=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            is_dir=is_dir,
        )

    async def get_metadata(self, path: str) -> FileMetadata:
        logger.info("Getting local file metadata", path=path)

        with _os_errors(path, "stat"):
            st = await aiofiles.os.stat(self._abs(path))

        is_dir = stat.S_ISDIR(st.st_mode)
        return FileMetadata(
            name=path,
            size=0 if is_dir else st.st_size,
            mod_time=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            is_dir=is_dir,
        )

    async def update_metadata(self, path: str, metadata: FileMetadata) -> None:
        """Apply ``metadata.mod_time`` to the file when it is set.

        Only the modification time is mutable on a filesystem; other fields
        are ignored.
        """
        logger.info("Updating local file metadata", path=path)

        if metadata.mod_time is None:
            logger.debug("No modification time given, file left untouched", path=path)
            return

        timestamp = metadata.mod_time.timestamp()
        with _os_errors(path, "update metadata"):
            await asyncio.to_thread(os.utime, self._abs(path), (timestamp, timestamp))

        logger.info("File metadata updated", path=path)
