"""Azure Blob Storage multipart store."""

from __future__ import annotations

import base64
import uuid
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

__all__ = ("AzureConfig", "AzureMultipartClient")


def _block_id(upload_id: str, part_number: int) -> str:
    """Build the block id of a part.

    Block ids must be base64 encoded and have the same length for every block
    of a blob; the upload id keeps concurrent uploads to one blob apart.
    """
    return base64.b64encode(f"{upload_id}-{part_number:010d}".encode()).decode()


@dataclass
class AzureConfig:
    """Configuration for Azure Blob Storage.

    Supports authentication via:
    - Connection string (connection_string)
    - Account URL + credential (account_url + account_key or DefaultAzureCredential)
    - SAS token (account_url with SAS token embedded)

    The ``bucket`` passed to the multipart calls is used as the container name.

    Attributes:
        account_url: Azure storage account URL (e.g., https://<account>.blob.core.windows.net)
        account_key: Storage account access key (optional if using connection string or DefaultAzureCredential)
        connection_string: Full connection string (alternative to account_url + account_key)
        prefix: Key prefix for all operations (e.g., "uploads/")
        retry: Retry policy for staging blocks (None disables retries)
    """

    account_url: str | None = None
    account_key: str | None = None
    connection_string: str | None = None
    prefix: str = ""
    retry: RetryConfig | None = None


class AzureMultipartClient(BaseMultipartClient):
    """Azure Blob Storage multipart store built on staged block blobs.

    Uses the azure-storage-blob async API. Azure has no explicit "start
    multipart upload" call: :meth:`begin_multipart` only generates a local
    upload id, parts are staged with ``stage_block`` and
    :meth:`complete_multipart` commits the block list in part order.

    Example:
        >>> client = AzureMultipartClient(
        ...     config=AzureConfig(connection_string="DefaultEndpointsProtocol=https;...")
        ... )
        >>> async with client.open_stream("archive", "logs/app.log.gz", chunk_size=4 * 1024 * 1024) as stream:
        ...     await stream.write(compressed)
    """

    def __init__(self, config: AzureConfig) -> None:
        """Initialize AzureMultipartClient.

        Args:
            config: Configuration for the Azure Blob backend

        Raises:
            ConfigurationError: If no way to reach the account is configured
        """
        self.config = config
        self._service_client: Any = None

        if not config.connection_string and not config.account_url:
            raise ConfigurationError("Either connection_string or account_url is required")

    def _get_key(self, key: str) -> str:
        """Apply prefix to a key."""
        if self.config.prefix:
            prefix = self.config.prefix.rstrip("/") + "/"
            return f"{prefix}{key.lstrip('/')}"
        return key

    def _get_service_client(self) -> Any:  # noqa: ANN401
        """Get or create the Azure BlobServiceClient.

        Raises:
            ConfigurationError: If azure-storage-blob is not installed
            StoreConnectionError: If unable to create client
        """
        if self._service_client is not None:
            return self._service_client

        try:
            from azure.storage.blob.aio import BlobServiceClient
        except ImportError as e:
            raise ConfigurationError(
                "azure-storage-blob is required for AzureMultipartClient. "
                "Install it with: pip install azure-storage-blob"
            ) from e

        try:
            if self.config.connection_string:
                self._service_client = BlobServiceClient.from_connection_string(self.config.connection_string)
            elif self.config.account_key:
                self._service_client = BlobServiceClient(
                    account_url=self.config.account_url,
                    credential=self.config.account_key,
                )
            else:
                try:
                    from azure.identity.aio import DefaultAzureCredential  # pragma: no cover
                except ImportError as e:  # pragma: no cover
                    raise ConfigurationError(
                        "azure-identity is required when using account_url without account_key. "
                        "Install it with: pip install azure-identity"
                    ) from e
                self._service_client = BlobServiceClient(  # pragma: no cover
                    account_url=self.config.account_url,
                    credential=DefaultAzureCredential(),
                )
        except ConfigurationError:
            raise
        except Exception as e:  # pragma: no cover
            raise StoreConnectionError(f"Failed to create Azure client: {e}") from e

        return self._service_client

    def _blob_client(self, container: str, key: str) -> Any:  # noqa: ANN401
        return self._get_service_client().get_blob_client(container=container, blob=self._get_key(key))

    async def begin_multipart(self, bucket: str, key: str) -> str:
        # Resolve the client now so configuration problems surface before any part is staged.
        self._get_service_client()
        return uuid.uuid4().hex

    async def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> str:
        """Stage one block of the blob.

        Returns:
            The block id of the staged block

        Raises:
            StoreError: If staging the block fails
        """
        block_id = _block_id(upload_id, part_number)
        blob_client = self._blob_client(bucket, key)

        async def _stage() -> str:
            try:
                await blob_client.stage_block(block_id=block_id, data=data, length=len(data))
            except Exception as e:
                raise StoreError(f"Failed to upload part {part_number} for {key}: {e}") from e
            return block_id

        if self.config.retry is None:
            return await _stage()
        return await with_retry(_stage, self.config.retry, operation=f"stage block {part_number} of {key}")

    async def complete_multipart(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[tuple[int, str]],
    ) -> None:
        """Commit the staged blocks in part order.

        Raises:
            StoreError: If committing the block list fails
        """
        from azure.storage.blob import BlobBlock

        blob_client = self._blob_client(bucket, key)
        try:
            await blob_client.commit_block_list([BlobBlock(block_id=block_id) for _, block_id in parts])
        except Exception as e:
            raise StoreError(f"Failed to complete multipart upload for {key}: {e}") from e

    async def abort_multipart(self, bucket: str, key: str, upload_id: str) -> None:
        """Abort a multipart upload.

        Note:
            Azure garbage-collects uncommitted blocks after 7 days. There is
            no explicit abort operation; the blocks are simply never committed.
        """

    async def close(self) -> None:
        """Close the Azure service client and its HTTP session."""
        if self._service_client is not None:
            await self._service_client.close()
            self._service_client = None
