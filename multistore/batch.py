"""Batch operations over single-item backend calls.

Items are processed sequentially in input order. The first failure stops the
batch and is re-raised; items already processed are not rolled back.
"""

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

import structlog

from multistore.stream import ByteSource, ByteStream

if TYPE_CHECKING:
    from multistore.backends.base import StorageBackend

logger = structlog.get_logger()


async def batch_upload(backend: "StorageBackend", files: Mapping[str, ByteSource]) -> None:
    """Upload every ``path -> source`` entry of ``files``.

    Args:
        backend: Target backend
        files: Sources keyed by logical path
    """
    logger.info("Starting batch upload", count=len(files))

    for path, source in files.items():
        try:
            await backend.upload(path, source)
        except Exception as e:
            logger.error("Batch upload failed", path=path, error=str(e))
            raise

    logger.info("Batch upload completed", count=len(files))


async def batch_download(
    backend: "StorageBackend", paths: Iterable[str]
) -> dict[str, ByteStream]:
    """Open a stream for every path.

    On failure every stream opened earlier in this call is closed before the
    error is re-raised.

    Args:
        backend: Source backend
        paths: Logical paths to open

    Returns:
        Open streams keyed by path; the caller must close them
    """
    paths = list(paths)
    logger.info("Starting batch download", count=len(paths))

    results: dict[str, ByteStream] = {}
    for path in paths:
        try:
            results[path] = await backend.download(path)
        except Exception as e:
            logger.error("Batch download failed", path=path, error=str(e))
            for stream in results.values():
                await stream.aclose()
            raise

    logger.info("Batch download completed", count=len(paths))
    return results


async def batch_delete(backend: "StorageBackend", paths: Iterable[str]) -> None:
    """Delete every path."""
    paths = list(paths)
    logger.info("Starting batch delete", count=len(paths))

    for path in paths:
        try:
            await backend.delete(path)
        except Exception as e:
            logger.error("Batch delete failed", path=path, error=str(e))
            raise

    logger.info("Batch delete completed", count=len(paths))
