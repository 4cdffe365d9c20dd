"""Storage backend interface."""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping

from multistore import batch
from multistore.models import FileMetadata
from multistore.stream import ByteSource, ByteStream


class StorageBackend(ABC):
    """Abstract storage backend interface.

    This interface defines the contract for all storage backends, whether
    filesystem-based or object-store based (OSS/MinIO). Every path argument
    is a logical path relative to the backend base.
    """

    @property
    @abstractmethod
    def base(self) -> str:
        """Configured base path or base directory scoping all operations."""

    @abstractmethod
    async def upload(self, path: str, source: ByteSource) -> None:
        """Write the bytes of ``source`` to ``path``, replacing any content.

        Args:
            path: Logical file path
            source: Bytes, binary file object or async iterable of bytes

        Raises:
            StorageIOError: If a local write fails
            RemoteError: If the object store rejects the upload
        """

    @abstractmethod
    async def download(self, path: str) -> ByteStream:
        """Open ``path`` for streaming reads.

        The caller owns the returned stream and must close it.

        Raises:
            NotFoundError: If the file doesn't exist
        """

    @abstractmethod
    async def download_range(self, path: str, offset: int, size: int) -> ByteStream:
        """Open bytes ``[offset, offset + size)`` of ``path`` for streaming reads.

        Raises:
            NotFoundError: If the file doesn't exist
        """

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Delete a single file."""

    @abstractmethod
    async def rename(self, old_path: str, new_path: str) -> None:
        """Rename a file. Atomic only on the filesystem backend."""

    async def move(self, src_path: str, dst_path: str) -> None:
        """Move a file; same semantics as ``rename``."""
        await self.rename(src_path, dst_path)

    @abstractmethod
    async def copy(self, src_path: str, dst_path: str) -> None:
        """Copy a file. Not atomic."""

    @abstractmethod
    async def create_dir(self, path: str) -> None:
        """Create a directory. Idempotent."""

    @abstractmethod
    async def delete_dir(self, path: str) -> None:
        """Delete a directory and everything below it."""

    @abstractmethod
    async def list_dir(self, path: str) -> list[FileMetadata]:
        """List every entry below ``path``, names relative to the base."""

    @abstractmethod
    async def get_metadata(self, path: str) -> FileMetadata:
        """Get metadata for a single file.

        Raises:
            NotFoundError: If the file doesn't exist
        """

    @abstractmethod
    async def update_metadata(self, path: str, metadata: FileMetadata) -> None:
        """Update mutable metadata of a file.

        Raises:
            UnsupportedOperationError: If the backend can't mutate metadata
        """

    async def batch_upload(self, files: Mapping[str, ByteSource]) -> None:
        """Upload several files, stopping at the first failure."""
        await batch.batch_upload(self, files)

    async def batch_download(self, paths: Iterable[str]) -> dict[str, ByteStream]:
        """Open several files, closing opened streams on failure."""
        return await batch.batch_download(self, paths)

    async def batch_delete(self, paths: Iterable[str]) -> None:
        """Delete several files, stopping at the first failure."""
        await batch.batch_delete(self, paths)
