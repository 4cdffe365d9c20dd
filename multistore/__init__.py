"""Unified file storage over local disk, Alibaba Cloud OSS and MinIO."""

from multistore.backends import (
    FilesystemBackend,
    MinIOBackend,
    ObjectStoreBackend,
    OSSBackend,
    StorageBackend,
)
from multistore.exceptions import (
    ConfigInvalidError,
    MetadataParseError,
    NotFoundError,
    RemoteError,
    StorageError,
    StorageIOError,
    UnsupportedOperationError,
)
from multistore.factory import create_storage, default_drivers, get_storage, resolve_mode
from multistore.models import (
    FileMetadata,
    LocalStorageConfig,
    MinIOStorageConfig,
    OSSStorageConfig,
    StorageConfig,
    StorageMode,
)
from multistore.stream import ByteStream

__version__ = "0.1.0"

__all__ = [
    "ByteStream",
    "ConfigInvalidError",
    "FileMetadata",
    "FilesystemBackend",
    "LocalStorageConfig",
    "MetadataParseError",
    "MinIOBackend",
    "MinIOStorageConfig",
    "NotFoundError",
    "OSSBackend",
    "OSSStorageConfig",
    "ObjectStoreBackend",
    "RemoteError",
    "StorageBackend",
    "StorageConfig",
    "StorageError",
    "StorageIOError",
    "StorageMode",
    "UnsupportedOperationError",
    "create_storage",
    "default_drivers",
    "get_storage",
    "resolve_mode",
]
