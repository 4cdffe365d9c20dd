"""Alibaba Cloud OSS storage backend.

OSS is reached through its S3-compatible API with virtual-hosted bucket
addressing. Listings use the marker-based (v1) protocol.
"""

from typing import Any
from urllib.parse import urlparse

import boto3
import structlog
from botocore.config import Config

from multistore.backends.objectstore import PAGE_SIZE, ObjectPage, ObjectStoreBackend, endpoint_url
from multistore.exceptions import ConfigInvalidError
from multistore.models import OSSStorageConfig, StorageMode

logger = structlog.get_logger()


def _region_from_endpoint(endpoint: str) -> str:
    """Derive ``oss-cn-hangzhou`` from ``oss-cn-hangzhou.aliyuncs.com``."""
    host = urlparse(endpoint_url(endpoint, secure=True)).hostname or ""
    return host.split(".")[0].removesuffix("-internal")


class OSSBackend(ObjectStoreBackend):
    """Storage on an OSS bucket below ``base_dir``."""

    service_name = "OSS"

    def __init__(self, config: OSSStorageConfig, client: Any = None):
        """Initialize the OSS client.

        Args:
            config: OSS configuration
            client: Pre-built S3 client, used instead of building one

        Raises:
            ConfigInvalidError: If required fields are empty
        """
        missing = config.missing_fields()
        if missing:
            raise ConfigInvalidError(StorageMode.OSS.value, missing)

        self.config = config
        if client is None:
            client = boto3.client(
                "s3",
                endpoint_url=endpoint_url(config.endpoint, secure=True),
                aws_access_key_id=config.access_key_id,
                aws_secret_access_key=config.access_key_secret,
                region_name=config.region or _region_from_endpoint(config.endpoint),
                config=Config(
                    signature_version="s3v4",
                    s3={"addressing_style": "virtual"},
                ),
            )
        super().__init__(client, config.bucket, config.base_dir)

        logger.info(
            "OSS storage initialized",
            endpoint=config.endpoint,
            bucket=config.bucket,
            base_dir=config.base_dir,
        )

    def _list_page(self, prefix: str, marker: str | None) -> ObjectPage:
        kwargs: dict[str, Any] = {"Bucket": self.bucket, "Prefix": prefix, "MaxKeys": PAGE_SIZE}
        if marker:
            kwargs["Marker"] = marker

        response = self.client.list_objects(**kwargs)
        objects = response.get("Contents", [])

        # NextMarker is only guaranteed with a delimiter; the last key works too.
        next_marker = response.get("NextMarker") or (objects[-1]["Key"] if objects else None)
        return ObjectPage(
            objects=objects,
            next_marker=next_marker,
            truncated=bool(response.get("IsTruncated")),
        )
