"""Pytest fixtures for testing."""

import os
from pathlib import Path

import boto3
import pytest
from moto import mock_aws

from multistore.backends import FilesystemBackend, MinIOBackend, OSSBackend
from multistore.models import LocalStorageConfig, MinIOStorageConfig, OSSStorageConfig
from tests.consts import TEST_BUCKET_NAME

# Fake AWS credentials for moto
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    """Get an empty base directory for the filesystem backend."""
    root = tmp_path / "storage"
    root.mkdir()
    return root


@pytest.fixture
def local_config(storage_root: Path) -> LocalStorageConfig:
    """Create a local storage config rooted in a temp directory."""
    return LocalStorageConfig(base_path=str(storage_root))


@pytest.fixture
def local_backend(local_config: LocalStorageConfig) -> FilesystemBackend:
    """Create a filesystem backend."""
    return FilesystemBackend(local_config)


@pytest.fixture
def mocked_aws():
    """Run the test against moto's in-process S3."""
    with mock_aws():
        yield


@pytest.fixture
def s3_client(mocked_aws):
    """Create an S3 client served by moto."""
    return boto3.client("s3", region_name="us-east-1")


@pytest.fixture
def minio_config() -> MinIOStorageConfig:
    """Create a MinIO config."""
    return MinIOStorageConfig(
        endpoint="localhost:9000",
        access_key_id="minioadmin",
        access_key_secret="minioadmin",
        bucket=TEST_BUCKET_NAME,
        base_dir="files",
    )


@pytest.fixture
def oss_config() -> OSSStorageConfig:
    """Create an OSS config."""
    return OSSStorageConfig(
        endpoint="oss-cn-hangzhou.aliyuncs.com",
        access_key_id="test-key-id",
        access_key_secret="test-key-secret",
        bucket=TEST_BUCKET_NAME,
        base_dir="files",
    )


@pytest.fixture
def minio_backend(minio_config: MinIOStorageConfig, s3_client) -> MinIOBackend:
    """Create a MinIO backend over moto; the bucket is created on construction."""
    return MinIOBackend(minio_config, client=s3_client)


@pytest.fixture
def oss_backend(oss_config: OSSStorageConfig, s3_client) -> OSSBackend:
    """Create an OSS backend over moto."""
    s3_client.create_bucket(Bucket=TEST_BUCKET_NAME)
    return OSSBackend(oss_config, client=s3_client)
