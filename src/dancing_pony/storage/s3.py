"""Async S3 client for dish image storage."""

from __future__ import annotations

import uuid
from pathlib import PurePath
from types import TracebackType
from typing import Any

import structlog
from aiobotocore.session import get_session as get_aio_session
from botocore.exceptions import BotoCoreError, ClientError

from dancing_pony.errors import InternalError

logger = structlog.get_logger()

IMAGE_KEY_PREFIX = "dishes"


class S3Client:
    """Async S3 client wrapping aiobotocore.

    ``endpoint_url`` is only needed for S3-compatible stores (MinIO);
    leave it unset for AWS, where the region selects the endpoint.

    Usage::

        async with S3Client(None, "eu-west-1", key, secret, bucket) as s3:
            url = await s3.upload_image("pie.png", data, "image/png")
    """

    def __init__(
        self,
        endpoint_url: str | None,
        region: str,
        access_key: str,
        secret_key: str,
        bucket: str,
    ) -> None:
        self._endpoint_url = endpoint_url.rstrip("/") if endpoint_url else None
        self._region = region
        self._access_key = access_key
        self._secret_key = secret_key
        self._bucket = bucket
        self._session = get_aio_session()
        self._client_ctx: Any = None
        self._client: Any = None

    async def open(self) -> None:
        """Create the underlying aiobotocore client (idempotent)."""
        if self._client is not None:
            return
        self._client_ctx = self._session.create_client(
            "s3",
            endpoint_url=self._endpoint_url,
            region_name=self._region,
            aws_access_key_id=self._access_key,
            aws_secret_access_key=self._secret_key,
        )
        self._client = await self._client_ctx.__aenter__()

    async def close(self) -> None:
        """Close the underlying aiobotocore client."""
        if self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)
            self._client_ctx = None
            self._client = None

    async def __aenter__(self) -> S3Client:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    def _require_client(self) -> Any:
        if self._client is None:
            msg = "S3Client not initialized. Use 'async with S3Client(...)'"
            raise RuntimeError(msg)
        return self._client

    def object_url(self, key: str) -> str:
        """Public URL of ``key`` in the bucket."""
        if self._endpoint_url:
            return f"{self._endpoint_url}/{self._bucket}/{key}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    async def upload_file(
        self,
        key: str,
        data: bytes,
        content_type: str,
    ) -> str:
        """Upload bytes to the bucket.

        Args:
            key: Object key (path) in the bucket.
            data: File content as bytes.
            content_type: MIME type of the file.

        Returns:
            The S3 object URL.

        Raises:
            InternalError: if the object store rejects the upload.
        """
        client = self._require_client()
        try:
            await client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("s3_upload_failed", key=key, error=str(e))
            msg = "Failed to upload image"
            raise InternalError(msg) from e
        logger.info("s3_upload", key=key, content_type=content_type, size=len(data))
        return self.object_url(key)

    async def upload_image(
        self,
        filename: str | None,
        data: bytes,
        content_type: str,
    ) -> str:
        """Upload a dish image under a unique key, keeping its extension."""
        suffix = PurePath(filename).suffix.lower() if filename else ""
        key = f"{IMAGE_KEY_PREFIX}/{uuid.uuid4().hex}{suffix}"
        return await self.upload_file(key, data, content_type)

    async def check_connectivity(self) -> None:
        """Verify S3 bucket is accessible."""
        await self._require_client().head_bucket(Bucket=self._bucket)

    async def ensure_bucket(self) -> None:
        """Verify that the bucket exists. It must be pre-created."""
        client = self._require_client()
        try:
            await client.head_bucket(Bucket=self._bucket)
            logger.info("s3_bucket_verified", bucket=self._bucket)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code in ("404", "NoSuchBucket"):
                logger.error("s3_bucket_not_found", bucket=self._bucket)
            raise
