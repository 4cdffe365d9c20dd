"""MinIO storage backend."""

from typing import Any

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from multistore.backends.objectstore import (
    PAGE_SIZE,
    ObjectPage,
    ObjectStoreBackend,
    endpoint_url,
    translate_error,
)
from multistore.exceptions import ConfigInvalidError, RemoteError
from multistore.models import MinIOStorageConfig, StorageMode

logger = structlog.get_logger()

_MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}


class MinIOBackend(ObjectStoreBackend):
    """Storage on a MinIO bucket below ``base_dir``.

    The bucket is created on construction when it does not exist yet.
    """

    service_name = "MinIO"

    def __init__(self, config: MinIOStorageConfig, client: Any = None):
        """Initialize the MinIO client and ensure the bucket exists.

        Args:
            config: MinIO configuration
            client: Pre-built S3 client, used instead of building one

        Raises:
            ConfigInvalidError: If required fields are empty
            RemoteError: If the bucket can't be checked or created
        """
        missing = config.missing_fields()
        if missing:
            raise ConfigInvalidError(StorageMode.MINIO.value, missing)

        self.config = config
        if client is None:
            client = boto3.client(
                "s3",
                endpoint_url=endpoint_url(config.endpoint, secure=config.use_ssl),
                aws_access_key_id=config.access_key_id,
                aws_secret_access_key=config.access_key_secret,
                region_name=config.region,
                config=Config(
                    signature_version="s3v4",
                    s3={"addressing_style": "path"},
                ),
            )
        super().__init__(client, config.bucket, config.base_dir)
        self._ensure_bucket()

        logger.info(
            "MinIO storage initialized",
            endpoint=config.endpoint,
            bucket=config.bucket,
            base_dir=config.base_dir,
            use_ssl=config.use_ssl,
        )

    def _ensure_bucket(self) -> None:
        try:
            self.client.head_bucket(Bucket=self.bucket)
            return
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code not in _MISSING_BUCKET_CODES:
                logger.error("Failed to check MinIO bucket", bucket=self.bucket, error=str(e))
                raise translate_error(e, "check bucket", self.bucket) from e
        except BotoCoreError as e:
            logger.error("Failed to check MinIO bucket", bucket=self.bucket, error=str(e))
            raise RemoteError(f"Failed to check bucket {self.bucket}: {e}") from e

        logger.info("Creating MinIO bucket", bucket=self.bucket)
        kwargs: dict[str, Any] = {"Bucket": self.bucket}
        if self.config.region and self.config.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.config.region}
        try:
            self.client.create_bucket(**kwargs)
        except (BotoCoreError, ClientError) as e:
            logger.error("Failed to create MinIO bucket", bucket=self.bucket, error=str(e))
            raise RemoteError(f"Failed to create bucket {self.bucket}: {e}") from e

    def _list_page(self, prefix: str, marker: str | None) -> ObjectPage:
        kwargs: dict[str, Any] = {"Bucket": self.bucket, "Prefix": prefix, "MaxKeys": PAGE_SIZE}
        if marker:
            kwargs["ContinuationToken"] = marker

        response = self.client.list_objects_v2(**kwargs)
        return ObjectPage(
            objects=response.get("Contents", []),
            next_marker=response.get("NextContinuationToken"),
            truncated=bool(response.get("IsTruncated")),
        )
