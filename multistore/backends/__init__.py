"""Storage backends."""

from .base import StorageBackend
from .filesystem import FilesystemBackend
from .minio import MinIOBackend
from .objectstore import ObjectStoreBackend
from .oss import OSSBackend

__all__ = [
    "StorageBackend",
    "FilesystemBackend",
    "ObjectStoreBackend",
    "OSSBackend",
    "MinIOBackend",
]
