"""Store client protocols and abstract implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from multipart_stream.types import DEFAULT_CHUNK_SIZE

if TYPE_CHECKING:
    from multipart_stream.stream import MultipartUploadStream
    from multipart_stream.types import ProgressCallback

__all__ = ["AbortableMultipartClient", "BaseMultipartClient", "MultipartClient"]


@runtime_checkable
class MultipartClient(Protocol):
    """Async multipart upload protocol.

    This is the complete surface the upload stream needs from an object
    store. Any object with these three coroutine methods can back a
    :class:`~multipart_stream.stream.MultipartUploadStream`.

    Implementations may retry internally; the stream never retries a call
    on its own.
    """

    async def begin_multipart(self, bucket: str, key: str) -> str:
        """Start a multipart upload.

        Args:
            bucket: Destination bucket (or container) name
            key: Destination object key

        Returns:
            Upload identifier to pass to every later call for this object

        Raises:
            StoreError: If the store refuses to start the upload
        """
        ...

    async def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> str:
        """Upload one numbered part.

        Called concurrently for different part numbers of the same upload.

        Args:
            bucket: Destination bucket (or container) name
            key: Destination object key
            upload_id: Identifier returned by :meth:`begin_multipart`
            part_number: Part number (1-indexed)
            data: The part bytes

        Returns:
            Part identifier (ETag, block id, ...) needed to complete the upload

        Raises:
            StoreError: If the part upload fails
        """
        ...

    async def complete_multipart(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[tuple[int, str]],
    ) -> None:
        """Assemble the uploaded parts into the destination object.

        Args:
            bucket: Destination bucket (or container) name
            key: Destination object key
            upload_id: Identifier returned by :meth:`begin_multipart`
            parts: (part_number, part identifier) pairs in part number order

        Raises:
            StoreError: If the store refuses to complete the upload
        """
        ...


@runtime_checkable
class AbortableMultipartClient(MultipartClient, Protocol):
    """Multipart client that can discard an unfinished upload."""

    async def abort_multipart(self, bucket: str, key: str, upload_id: str) -> None:
        """Abort a multipart upload and free its uploaded parts.

        Args:
            bucket: Destination bucket (or container) name
            key: Destination object key
            upload_id: Identifier returned by :meth:`begin_multipart`

        Raises:
            StoreError: If aborting the upload fails
        """
        ...


class BaseMultipartClient(ABC):
    """Abstract base class providing common functionality for store clients.

    Subclasses must implement:
    - begin_multipart()
    - upload_part()
    - complete_multipart()

    This class provides default implementations for:
    - abort_multipart() - no-op
    - close() - no-op
    - open_stream() - builds an upload stream bound to this client
    """

    @abstractmethod
    async def begin_multipart(self, bucket: str, key: str) -> str:
        """Start a multipart upload. Must be implemented by subclasses."""

    @abstractmethod
    async def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> str:
        """Upload one part. Must be implemented by subclasses."""

    @abstractmethod
    async def complete_multipart(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[tuple[int, str]],
    ) -> None:
        """Complete a multipart upload. Must be implemented by subclasses."""

    async def abort_multipart(self, bucket: str, key: str, upload_id: str) -> None:  # noqa: B027
        """Default implementation: no-op.

        Stores that keep uploaded parts around until explicitly discarded
        should override this method.
        """

    async def close(self) -> None:  # noqa: B027
        """Default implementation: no-op.

        Subclasses that manage resources (HTTP sessions, connection pools, etc.)
        should override this method to properly release them.
        """

    def open_stream(
        self,
        bucket: str,
        key: str,
        *,
        parallelism: int = 4,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        abort_on_failure: bool = True,
        progress_callback: ProgressCallback | None = None,
    ) -> MultipartUploadStream:
        """Create an upload stream writing to ``bucket``/``key`` through this client.

        Args:
            bucket: Destination bucket (or container) name
            key: Destination object key
            parallelism: Maximum number of parts uploading at once
            chunk_size: Size of every part except the last
            abort_on_failure: Abort the remote upload when a part fails
            progress_callback: Optional callback invoked as parts complete

        Returns:
            A new, unstarted upload stream

        Example::

            async with client.open_stream("backups", "db.dump") as stream:
                async for block in dump():
                    await stream.write(block)
        """
        from multipart_stream.stream import MultipartUploadStream, StreamConfig

        return MultipartUploadStream(
            self,
            config=StreamConfig(
                bucket=bucket,
                key=key,
                parallelism=parallelism,
                chunk_size=chunk_size,
                abort_on_failure=abort_on_failure,
                progress_callback=progress_callback,
            ),
        )
