"""Pydantic models for file metadata and storage configuration."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MIME_TYPE = "application/octet-stream"


class StorageMode(str, Enum):
    """Supported storage backends."""

    LOCAL = "local"
    OSS = "oss"
    MINIO = "minio"


class FileMetadata(BaseModel):
    """Descriptor returned by every backend.

    ``name`` is the logical path relative to the backend base, never the
    backend-native key.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    size: int = Field(default=0, ge=0)
    mod_time: datetime | None = None
    is_dir: bool = False
    mime_type: str = DEFAULT_MIME_TYPE


class LocalStorageConfig(BaseModel):
    """Filesystem backend configuration."""

    model_config = ConfigDict(frozen=True)

    base_path: str = ""

    def missing_fields(self) -> list[str]:
        return [] if self.base_path else ["base_path"]


class OSSStorageConfig(BaseModel):
    """Alibaba Cloud OSS backend configuration."""

    model_config = ConfigDict(frozen=True)

    endpoint: str = ""
    access_key_id: str = ""
    access_key_secret: str = ""
    bucket: str = ""
    base_dir: str = ""
    region: str | None = None

    def missing_fields(self) -> list[str]:
        required = ("base_dir", "endpoint", "access_key_id", "access_key_secret", "bucket")
        return [name for name in required if not getattr(self, name)]


class MinIOStorageConfig(BaseModel):
    """MinIO backend configuration."""

    model_config = ConfigDict(frozen=True)

    endpoint: str = ""
    access_key_id: str = ""
    access_key_secret: str = ""
    use_ssl: bool = False
    bucket: str = ""
    base_dir: str = ""
    region: str = "us-east-1"

    def missing_fields(self) -> list[str]:
        required = ("base_dir", "endpoint", "access_key_id", "access_key_secret", "bucket")
        return [name for name in required if not getattr(self, name)]


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    format: str = "console"


class StorageConfig(BaseModel):
    """Full storage configuration.

    ``mode`` is the configured backend; ``assign_mode`` is the backend that
    is actually constructed. See ``factory.resolve_mode``.
    """

    model_config = ConfigDict(frozen=True)

    mode: StorageMode | None = None
    assign_mode: StorageMode | None = None
    local: LocalStorageConfig = Field(default_factory=LocalStorageConfig)
    oss: OSSStorageConfig = Field(default_factory=OSSStorageConfig)
    minio: MinIOStorageConfig = Field(default_factory=MinIOStorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
