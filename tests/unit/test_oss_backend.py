"""Unit tests for the OSS backend against moto's in-process S3."""

import pytest

from multistore.backends import OSSBackend
from multistore.backends.oss import _region_from_endpoint
from multistore.exceptions import ConfigInvalidError, NotFoundError
from multistore.models import OSSStorageConfig


async def _read(backend: OSSBackend, path: str) -> bytes:
    async with await backend.download(path) as stream:
        return await stream.read()


class TestClient:
    """Tests for client construction."""

    def test_builds_client_from_config(self, oss_config: OSSStorageConfig):
        """Test endpoint scheme and region derivation."""
        backend = OSSBackend(oss_config)

        assert backend.client.meta.endpoint_url == "https://oss-cn-hangzhou.aliyuncs.com"
        assert backend.client.meta.region_name == "oss-cn-hangzhou"
        assert backend.base == "files"

    def test_explicit_region(self, oss_config: OSSStorageConfig):
        """Test that a configured region wins over the endpoint."""
        config = oss_config.model_copy(update={"region": "oss-cn-shanghai"})

        backend = OSSBackend(config)

        assert backend.client.meta.region_name == "oss-cn-shanghai"

    def test_missing_base_dir(self, oss_config: OSSStorageConfig):
        """Test that an empty base directory is rejected."""
        config = oss_config.model_copy(update={"base_dir": ""})

        with pytest.raises(ConfigInvalidError) as exc_info:
            OSSBackend(config)

        assert exc_info.value.mode == "oss"
        assert exc_info.value.missing == ["base_dir"]

    def test_region_from_endpoint(self):
        """Test deriving regions from public and internal endpoints."""
        assert _region_from_endpoint("oss-cn-beijing.aliyuncs.com") == "oss-cn-beijing"
        assert _region_from_endpoint("https://oss-cn-beijing-internal.aliyuncs.com") == (
            "oss-cn-beijing"
        )


class TestOperations:
    """Tests for OSS operations over the S3-compatible API."""

    @pytest.mark.asyncio
    async def test_round_trip(self, oss_backend: OSSBackend):
        """Test that downloaded bytes equal uploaded bytes."""
        await oss_backend.upload("doc.txt", b"hello oss")

        assert await _read(oss_backend, "doc.txt") == b"hello oss"

    @pytest.mark.asyncio
    async def test_list_upload_scenario(self, oss_backend: OSSBackend):
        """Test that listing a directory reports names relative to the base."""
        await oss_backend.upload("a/b.txt", b"hi")

        entries = await oss_backend.list_dir("a")

        assert [(e.name, e.size, e.is_dir) for e in entries] == [("a/b.txt", 2, False)]

    @pytest.mark.asyncio
    async def test_list_base(self, oss_backend: OSSBackend):
        """Test listing everything below the base directory."""
        await oss_backend.create_dir("d")
        await oss_backend.upload("d/x.txt", b"x")
        await oss_backend.upload("top.txt", b"t")

        names = sorted(entry.name for entry in await oss_backend.list_dir(""))

        assert names == ["d", "d/x.txt", "top.txt"]

    @pytest.mark.asyncio
    async def test_rename_and_delete(self, oss_backend: OSSBackend):
        """Test rename followed by delete."""
        await oss_backend.upload("old.txt", b"content")
        await oss_backend.rename("old.txt", "new.txt")

        assert (await oss_backend.get_metadata("new.txt")).size == 7
        with pytest.raises(NotFoundError):
            await oss_backend.get_metadata("old.txt")

        await oss_backend.delete("new.txt")
        assert await oss_backend.list_dir("") == []

    @pytest.mark.asyncio
    async def test_delete_dir(self, oss_backend: OSSBackend):
        """Test deleting a directory's contents."""
        await oss_backend.upload("d/x.txt", b"x")
        await oss_backend.upload("d/sub/y.txt", b"y")

        await oss_backend.delete_dir("d")

        assert await oss_backend.list_dir("d") == []
