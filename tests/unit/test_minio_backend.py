"""Unit tests for the MinIO backend against moto's in-process S3."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from multistore.backends import MinIOBackend
from multistore.exceptions import (
    ConfigInvalidError,
    NotFoundError,
    RemoteError,
    UnsupportedOperationError,
)
from multistore.models import FileMetadata, MinIOStorageConfig
from tests.consts import TEST_BUCKET_NAME


async def _read(backend: MinIOBackend, path: str) -> bytes:
    async with await backend.download(path) as stream:
        return await stream.read()


def _keys(s3_client) -> list[str]:
    response = s3_client.list_objects_v2(Bucket=TEST_BUCKET_NAME)
    return [obj["Key"] for obj in response.get("Contents", [])]


class TestBucket:
    """Tests for bucket handling on construction."""

    def test_creates_missing_bucket(self, minio_backend: MinIOBackend, s3_client):
        """Test that the bucket is created when it doesn't exist."""
        buckets = [b["Name"] for b in s3_client.list_buckets()["Buckets"]]
        assert TEST_BUCKET_NAME in buckets

    def test_existing_bucket(self, minio_config: MinIOStorageConfig, s3_client):
        """Test constructing over an existing bucket."""
        s3_client.create_bucket(Bucket=TEST_BUCKET_NAME)

        backend = MinIOBackend(minio_config, client=s3_client)

        assert backend.base == "files"

    def test_bucket_check_failure(self, minio_config: MinIOStorageConfig):
        """Test that a failing bucket check is reported."""
        client = MagicMock()
        client.head_bucket.side_effect = ClientError(
            {"Error": {"Code": "403", "Message": "Forbidden"}}, "HeadBucket"
        )

        with pytest.raises(RemoteError):
            MinIOBackend(minio_config, client=client)

        client.create_bucket.assert_not_called()

    def test_missing_fields(self, minio_config: MinIOStorageConfig):
        """Test that an incomplete config fails before any bucket call."""
        client = MagicMock()
        config = minio_config.model_copy(update={"bucket": "", "base_dir": ""})

        with pytest.raises(ConfigInvalidError) as exc_info:
            MinIOBackend(config, client=client)

        assert exc_info.value.missing == ["base_dir", "bucket"]
        client.head_bucket.assert_not_called()


class TestFiles:
    """Tests for single-file operations."""

    @pytest.mark.asyncio
    async def test_round_trip(self, minio_backend: MinIOBackend, s3_client):
        """Test that downloaded bytes equal uploaded bytes."""
        await minio_backend.upload("doc.txt", b"hello minio")

        assert await _read(minio_backend, "doc.txt") == b"hello minio"
        assert _keys(s3_client) == ["files/doc.txt"]

    @pytest.mark.asyncio
    async def test_stream_large_object(self, minio_backend: MinIOBackend):
        """Test a body spanning many bridge chunks."""

        async def chunks():
            for i in range(10):
                yield bytes([i]) * 50_000

        await minio_backend.upload("big.bin", chunks())

        data = await _read(minio_backend, "big.bin")
        assert data == b"".join(bytes([i]) * 50_000 for i in range(10))

    @pytest.mark.asyncio
    async def test_download_missing(self, minio_backend: MinIOBackend):
        """Test downloading a key that doesn't exist."""
        with pytest.raises(NotFoundError):
            await minio_backend.download("missing.txt")

    @pytest.mark.asyncio
    async def test_download_range(self, minio_backend: MinIOBackend):
        """Test reading a slice of an object."""
        await minio_backend.upload("digits.txt", b"0123456789")

        async with await minio_backend.download_range("digits.txt", 2, 3) as stream:
            assert await stream.read() == b"234"

    @pytest.mark.asyncio
    async def test_delete(self, minio_backend: MinIOBackend):
        """Test that a deleted object is gone."""
        await minio_backend.upload("doc.txt", b"x")
        await minio_backend.delete("doc.txt")

        with pytest.raises(NotFoundError):
            await minio_backend.get_metadata("doc.txt")

    @pytest.mark.asyncio
    async def test_rename(self, minio_backend: MinIOBackend):
        """Test copy-then-delete rename."""
        await minio_backend.upload("old.txt", b"content")
        await minio_backend.rename("old.txt", "new.txt")

        assert await _read(minio_backend, "new.txt") == b"content"
        with pytest.raises(NotFoundError):
            await minio_backend.download("old.txt")

    @pytest.mark.asyncio
    async def test_rename_interrupted(self, minio_backend: MinIOBackend, s3_client):
        """Test that a failed delete leaves both keys in place."""
        await minio_backend.upload("old.txt", b"content")
        error = ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, "DeleteObject")

        with patch.object(s3_client, "delete_object", side_effect=error):
            with pytest.raises(RemoteError):
                await minio_backend.rename("old.txt", "new.txt")

        assert sorted(_keys(s3_client)) == ["files/new.txt", "files/old.txt"]

    @pytest.mark.asyncio
    async def test_rename_missing(self, minio_backend: MinIOBackend, s3_client):
        """Test renaming a key that doesn't exist."""
        with pytest.raises(NotFoundError):
            await minio_backend.rename("missing.txt", "new.txt")

        assert _keys(s3_client) == []

    @pytest.mark.asyncio
    async def test_move_and_copy(self, minio_backend: MinIOBackend):
        """Test move and copy."""
        await minio_backend.upload("a.txt", b"content")

        await minio_backend.copy("a.txt", "b.txt")
        await minio_backend.move("b.txt", "c.txt")

        assert await _read(minio_backend, "a.txt") == b"content"
        assert await _read(minio_backend, "c.txt") == b"content"
        with pytest.raises(NotFoundError):
            await minio_backend.get_metadata("b.txt")

    @pytest.mark.asyncio
    async def test_get_metadata(self, minio_backend: MinIOBackend):
        """Test metadata built from response headers."""
        await minio_backend.upload("docs/a.txt", b"12345")

        metadata = await minio_backend.get_metadata("docs/a.txt")

        assert metadata.name == "docs/a.txt"
        assert metadata.size == 5
        assert metadata.mod_time is not None
        assert metadata.mod_time.tzinfo is not None
        assert not metadata.is_dir

    @pytest.mark.asyncio
    async def test_update_metadata_unsupported(self, minio_backend: MinIOBackend):
        """Test that metadata can't be updated in place."""
        await minio_backend.upload("a.txt", b"x")

        with pytest.raises(UnsupportedOperationError):
            await minio_backend.update_metadata("a.txt", FileMetadata(name="a.txt"))


class TestDirectories:
    """Tests for emulated directories."""

    @pytest.mark.asyncio
    async def test_create_dir_idempotent(self, minio_backend: MinIOBackend, s3_client):
        """Test that one placeholder object is written."""
        await minio_backend.create_dir("reports")
        await minio_backend.create_dir("reports")

        assert _keys(s3_client) == ["files/reports/"]
        assert await minio_backend.list_dir("reports") == []

    @pytest.mark.asyncio
    async def test_list_upload_scenario(self, minio_backend: MinIOBackend):
        """Test that listing a directory reports names relative to the base."""
        await minio_backend.upload("a/b.txt", b"hi")

        entries = await minio_backend.list_dir("a")

        assert len(entries) == 1
        assert entries[0].name == "a/b.txt"
        assert entries[0].size == 2
        assert not entries[0].is_dir

    @pytest.mark.asyncio
    async def test_list_nested(self, minio_backend: MinIOBackend):
        """Test listing files and nested directories."""
        await minio_backend.create_dir("d")
        await minio_backend.create_dir("d/sub")
        await minio_backend.upload("d/sub/y.txt", b"yy")
        await minio_backend.upload("d/x.txt", b"x")

        entries = {entry.name: entry for entry in await minio_backend.list_dir("d")}

        assert set(entries) == {"d/sub", "d/sub/y.txt", "d/x.txt"}
        assert entries["d/sub"].is_dir

    @pytest.mark.asyncio
    async def test_delete_dir(self, minio_backend: MinIOBackend, s3_client):
        """Test that contents are deleted and the placeholder is kept."""
        await minio_backend.create_dir("d")
        await minio_backend.upload("d/x.txt", b"x")
        await minio_backend.upload("d/sub/y.txt", b"y")
        await minio_backend.upload("other.txt", b"o")

        await minio_backend.delete_dir("d")

        assert sorted(_keys(s3_client)) == ["files/d/", "files/other.txt"]
        assert await minio_backend.list_dir("d") == []
