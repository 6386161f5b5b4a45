"""Amazon S3 and S3-compatible multipart store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from multipart_stream.base import BaseMultipartClient
from multipart_stream.exceptions import (
    ConfigurationError,
    StoreConnectionError,
    StoreError,
)
from multipart_stream.retry import RetryConfig, with_retry

__all__ = ("S3Config", "S3MultipartClient")

logger = logging.getLogger(__name__)


@dataclass
class S3Config:
    """Configuration for S3-compatible storage.

    Supports AWS S3 and S3-compatible services like:
    - Cloudflare R2
    - DigitalOcean Spaces
    - MinIO
    - Backblaze B2

    Attributes:
        region: AWS region (e.g., "us-east-1")
        endpoint_url: Custom endpoint for S3-compatible services
        access_key_id: AWS access key ID (falls back to environment/IAM)
        secret_access_key: AWS secret access key
        session_token: AWS session token for temporary credentials
        prefix: Key prefix for all operations (e.g., "uploads/")
        use_ssl: Use SSL/TLS for connections
        verify_ssl: Verify SSL certificates
        max_pool_connections: Maximum connection pool size; keep it at or
            above the parallelism of the streams sharing this client
        retry: Retry policy for part uploads (None disables retries)
    """

    region: str | None = None
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    session_token: str | None = None
    prefix: str = ""
    use_ssl: bool = True
    verify_ssl: bool = True
    max_pool_connections: int = 10
    retry: RetryConfig | None = None


def _wrap_error(message: str, error: Exception) -> StoreError:
    """Map a botocore/aiobotocore failure to the store error hierarchy."""
    from botocore.exceptions import ConnectionError as BotoConnectionError
    from botocore.exceptions import HTTPClientError

    if isinstance(error, (BotoConnectionError, HTTPClientError)):
        return StoreConnectionError(f"{message}: {error}")
    return StoreError(f"{message}: {error}")


class S3MultipartClient(BaseMultipartClient):
    """Amazon S3 and S3-compatible multipart store.

    Uses aioboto3 for async S3 operations. One client is opened on first use
    and shared by every concurrent part upload; call :meth:`close` to release
    its connection pool.

    Example:
        >>> # AWS S3
        >>> client = S3MultipartClient(config=S3Config(region="us-east-1"))

        >>> # Cloudflare R2
        >>> client = S3MultipartClient(
        ...     config=S3Config(
        ...         endpoint_url="https://account.r2.cloudflarestorage.com",
        ...         access_key_id="...",
        ...         secret_access_key="...",
        ...     )
        ... )

    Note:
        Credentials can come from:
        1. Explicit configuration (access_key_id, secret_access_key)
        2. Environment variables (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY)
        3. IAM roles (when running on EC2/ECS/Lambda)
    """

    def __init__(self, config: S3Config | None = None) -> None:
        """Initialize S3MultipartClient.

        Args:
            config: Configuration for the S3 backend
        """
        self.config = config or S3Config()
        self._session: Any = None
        self._client: Any = None
        self._client_ctx: Any = None
        self._client_lock = asyncio.Lock()

    def _get_key(self, key: str) -> str:
        """Apply prefix to a key."""
        if self.config.prefix:
            # Ensure prefix ends with / and key doesn't start with /
            prefix = self.config.prefix.rstrip("/") + "/"
            return f"{prefix}{key.lstrip('/')}"
        return key

    async def _get_client(self) -> Any:  # noqa: ANN401
        """Get or create the shared S3 client.

        Returns:
            aioboto3 S3 client

        Raises:
            ConfigurationError: If aioboto3 is not installed
            StoreConnectionError: If unable to create client
        """
        if self._client is not None:
            return self._client

        try:
            import aioboto3
            from botocore.config import Config
        except ImportError as e:
            raise ConfigurationError(
                "aioboto3 is required for S3MultipartClient. Install it with: pip install aioboto3"
            ) from e

        async with self._client_lock:
            if self._client is not None:
                return self._client

            try:
                if self._session is None:
                    self._session = aioboto3.Session(
                        aws_access_key_id=self.config.access_key_id,
                        aws_secret_access_key=self.config.secret_access_key,
                        aws_session_token=self.config.session_token,
                        region_name=self.config.region,
                    )

                client_ctx = self._session.client(
                    "s3",
                    endpoint_url=self.config.endpoint_url,
                    use_ssl=self.config.use_ssl,
                    verify=self.config.verify_ssl,
                    config=Config(max_pool_connections=self.config.max_pool_connections),
                )
                self._client = await client_ctx.__aenter__()
                self._client_ctx = client_ctx
            except Exception as e:
                raise StoreConnectionError(f"Failed to create S3 client: {e}") from e

            logger.debug("Opened S3 client (endpoint=%s, region=%s)", self.config.endpoint_url, self.config.region)
            return self._client

    async def begin_multipart(self, bucket: str, key: str) -> str:
        """Start a multipart upload with ``CreateMultipartUpload``.

        Raises:
            StoreError: If S3 refuses to start the upload
        """
        s3 = await self._get_client()
        try:
            response = await s3.create_multipart_upload(Bucket=bucket, Key=self._get_key(key))
        except Exception as e:
            raise _wrap_error(f"Failed to start multipart upload for {key}", e) from e
        return response["UploadId"]

    async def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> str:
        """Upload one part with ``UploadPart``, retrying per ``config.retry``.

        Returns:
            The ETag S3 assigned to the part

        Raises:
            StoreConnectionError: If S3 could not be reached (after retries)
            StoreError: If the part upload fails
        """
        s3 = await self._get_client()
        s3_key = self._get_key(key)

        async def _upload() -> str:
            try:
                response = await s3.upload_part(
                    Bucket=bucket,
                    Key=s3_key,
                    UploadId=upload_id,
                    PartNumber=part_number,
                    Body=data,
                )
            except Exception as e:
                raise _wrap_error(f"Failed to upload part {part_number} for {key}", e) from e
            return response["ETag"]

        if self.config.retry is None:
            return await _upload()
        return await with_retry(_upload, self.config.retry, operation=f"upload part {part_number} of {key}")

    async def complete_multipart(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[tuple[int, str]],
    ) -> None:
        """Complete the upload with ``CompleteMultipartUpload``.

        Raises:
            StoreError: If S3 refuses the part list
        """
        s3 = await self._get_client()
        try:
            await s3.complete_multipart_upload(
                Bucket=bucket,
                Key=self._get_key(key),
                UploadId=upload_id,
                MultipartUpload={"Parts": [{"PartNumber": number, "ETag": etag} for number, etag in parts]},
            )
        except Exception as e:
            raise _wrap_error(f"Failed to complete multipart upload for {key}", e) from e

    async def abort_multipart(self, bucket: str, key: str, upload_id: str) -> None:
        """Abort the upload with ``AbortMultipartUpload`` so S3 frees stored parts.

        Raises:
            StoreError: If aborting the upload fails
        """
        s3 = await self._get_client()
        try:
            await s3.abort_multipart_upload(Bucket=bucket, Key=self._get_key(key), UploadId=upload_id)
        except Exception as e:
            raise _wrap_error(f"Failed to abort multipart upload for {key}", e) from e

    async def close(self) -> None:
        """Close the shared S3 client and its connection pool."""
        if self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)
            self._client = None
            self._client_ctx = None
