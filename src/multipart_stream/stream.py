"""Streaming writer that uploads through a store's multipart protocol."""

from __future__ import annotations

import asyncio
import logging
import operator
from collections.abc import AsyncIterable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from multipart_stream.base import AbortableMultipartClient, MultipartClient
from multipart_stream.chunking import ChunkAccumulator
from multipart_stream.dispatch import UploadDispatcher
from multipart_stream.exceptions import ConfigurationError, PartUploadError, StreamClosedError
from multipart_stream.faults import FaultMonitor
from multipart_stream.tracker import CompletionTracker
from multipart_stream.types import DEFAULT_CHUNK_SIZE, UploadSummary

if TYPE_CHECKING:
    from types import TracebackType

    from multipart_stream.types import ProgressCallback

__all__ = ("MultipartUploadStream", "StreamConfig", "upload_stream")

logger = logging.getLogger(__name__)

BytesLike = bytes | bytearray | memoryview


@dataclass
class StreamConfig:
    """Configuration for an upload stream.

    Attributes:
        bucket: Destination bucket (or container) name
        key: Destination object key
        parallelism: Maximum number of parts uploading at once. Together with
            chunk_size this bounds memory to roughly (parallelism + 1) chunks.
        chunk_size: Size of every part except the last
        abort_on_failure: Abort the remote multipart upload when the stream fails
        progress_callback: Optional callback invoked each time a part finishes
    """

    bucket: str
    key: str
    parallelism: int = 4
    chunk_size: int = DEFAULT_CHUNK_SIZE
    abort_on_failure: bool = True
    progress_callback: ProgressCallback | None = None


def _as_view(data: BytesLike, offset: int, length: int | None) -> memoryview:
    if data is None:
        raise TypeError("data must be a bytes-like object, not None")
    if isinstance(data, str):
        raise TypeError("data must be a bytes-like object, not str")
    try:
        view = memoryview(data).cast("B")
    except TypeError as e:
        raise TypeError(f"data must be a contiguous bytes-like object, not {type(data).__name__}") from e

    size = len(view)
    if length is None:
        length = size - offset
    if offset < 0 or length < 0 or offset + length > size:
        raise ValueError(f"offset {offset} and length {length} out of range for {size} bytes")
    return view[offset : offset + length]


class MultipartUploadStream:
    """Async writer that uploads an unbounded byte stream as a multipart object.

    Writes are collected into ``chunk_size`` parts. Each full part is uploaded
    in the background while the caller keeps writing; at most ``parallelism``
    parts are in flight, and a write that would start one more waits for a
    slot. :meth:`close` uploads the final partial part, waits for every part
    in order and completes the object.

    If any part fails, the stream is faulted for good: the next write or
    close cancels the remaining parts, aborts the upload and raises
    :class:`~multipart_stream.exceptions.PartUploadError` chained to the store
    error. The destination object is never completed from a partial set of
    parts.

    Example:
        >>> client = S3MultipartClient(config=S3Config(region="us-east-1"))
        >>> async with MultipartUploadStream(
        ...     client,
        ...     config=StreamConfig(bucket="exports", key="events.jsonl.gz", parallelism=8),
        ... ) as stream:
        ...     async for record in records():
        ...         await stream.write(record)
        >>> stream.summary.part_count
        12

    Note:
        A stream belongs to a single producer. Concurrent writes from several
        tasks would interleave bytes and are not supported.
    """

    def __init__(self, client: MultipartClient, config: StreamConfig) -> None:
        """Initialize MultipartUploadStream.

        Args:
            client: Store client performing the multipart calls
            config: Destination and tuning for this upload

        Raises:
            ConfigurationError: If the configuration or client is invalid
        """
        if not config.bucket:
            raise ConfigurationError("Destination bucket name is required")
        if not config.key:
            raise ConfigurationError("Destination key is required")
        if config.parallelism < 1:
            raise ConfigurationError(f"parallelism must be at least 1, got {config.parallelism}")
        if config.chunk_size < 1:
            raise ConfigurationError(f"chunk_size must be at least 1 byte, got {config.chunk_size}")
        if not isinstance(client, MultipartClient):
            raise ConfigurationError(
                f"{type(client).__name__} does not implement begin_multipart, upload_part and complete_multipart"
            )

        self.client = client
        self.config = config
        self._buffer = ChunkAccumulator(config.chunk_size)
        self._faults = FaultMonitor()
        self._tracker = CompletionTracker()
        self._dispatcher = UploadDispatcher(
            client,
            config.bucket,
            config.key,
            parallelism=config.parallelism,
            faults=self._faults,
            tracker=self._tracker,
            progress_callback=config.progress_callback,
        )
        self._closed = False
        self._aborted = False
        self._failure: tuple[int, BaseException] | None = None
        self._summary: UploadSummary | None = None

    async def __aenter__(self) -> MultipartUploadStream:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            if not self._closed:
                await self.close()
            return

        # The body failed: nothing written so far may become visible.
        self._closed = True
        self._tracker.cancel_all()
        await self._abort()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def faulted(self) -> bool:
        return self._faults.faulted

    @property
    def bytes_written(self) -> int:
        """Number of bytes accepted by :meth:`write` and :meth:`write_byte`."""
        return self._buffer.total

    @property
    def parts_dispatched(self) -> int:
        return self._dispatcher.parts_dispatched

    @property
    def summary(self) -> UploadSummary | None:
        """Result of a successful :meth:`close`, None before that."""
        return self._summary

    async def write(self, data: BytesLike, offset: int = 0, length: int | None = None) -> None:
        """Write bytes to the stream.

        Writes of any size are accepted; data spanning a chunk boundary is
        split across parts. The call waits whenever a full chunk has to
        wait for a free upload slot.

        Args:
            data: Bytes-like object to write
            offset: Index of the first byte of ``data`` to write
            length: Number of bytes to write (defaults to the rest of ``data``)

        Raises:
            TypeError: If data is not a bytes-like object
            ValueError: If offset/length fall outside data
            StreamClosedError: If the stream was closed
            PartUploadError: If a part upload has failed
        """
        await self._check_writable()
        view = _as_view(data, offset, length)

        while view:
            taken = self._buffer.fill(view)
            view = view[taken:]
            if self._buffer.full:
                await self._emit()

    async def write_byte(self, value: int) -> None:
        """Write a single byte.

        Args:
            value: Byte value in range 0-255

        Raises:
            ValueError: If value is outside 0-255
            StreamClosedError: If the stream was closed
            PartUploadError: If a part upload has failed
        """
        await self._check_writable()
        value = operator.index(value)
        if not 0 <= value <= 255:  # noqa: PLR2004
            raise ValueError(f"byte must be in range(0, 256), got {value}")

        if self._buffer.full:
            await self._emit()
        self._buffer.append(value)
        if self._buffer.full:
            await self._emit()

    async def close(self) -> UploadSummary:
        """Upload the last partial chunk and complete the object.

        Waits for every part in part number order. A stream that never
        received a byte closes without any call to the store.

        Returns:
            UploadSummary describing the completed object

        Raises:
            StreamClosedError: If the stream was already closed
            PartUploadError: If a part upload has failed
            StoreError: If starting or completing the upload fails
        """
        await self._surface_fault()
        if self._closed:
            raise StreamClosedError(self.config.key)

        if self._buffer:
            await self._emit()
        self._closed = True

        session = self._dispatcher.session
        if session is None or not self._tracker:
            await self._abort()
            logger.debug("Closed empty stream for %s/%s", self.config.bucket, self.config.key)
            self._summary = UploadSummary(bucket=self.config.bucket, key=self.config.key)
            return self._summary

        try:
            parts = await self._tracker.resolve()
        except asyncio.CancelledError:
            self._tracker.cancel_all()
            await self._abort()
            raise
        except Exception:
            self._tracker.cancel_all()
            await self._surface_fault()
            await self._abort()
            raise

        try:
            await self.client.complete_multipart(session.bucket, session.key, session.upload_id, parts)
        except BaseException:
            await self._abort()
            raise

        self._summary = UploadSummary(
            bucket=session.bucket,
            key=session.key,
            upload_id=session.upload_id,
            parts=tuple(parts),
            size=self._buffer.total,
        )
        logger.info(
            "Completed multipart upload %s for %s/%s (%d parts, %d bytes)",
            session.upload_id,
            session.bucket,
            session.key,
            len(parts),
            self._summary.size,
        )
        return self._summary

    async def _check_writable(self) -> None:
        await self._surface_fault()
        if self._closed:
            raise StreamClosedError(self.config.key)

    async def _emit(self) -> None:
        await self._surface_fault()
        # The buffer is drained only after the session exists and a worker slot is held.
        await self._dispatcher.dispatch(self._buffer)

    async def _surface_fault(self) -> None:
        if not self._faults.faulted:
            return

        if self._failure is None:
            # Prefer the lowest numbered failed part over whichever failed first in time.
            self._failure = self._tracker.first_failure() or self._faults.failure
            self._tracker.cancel_all()
            await self._abort()

        part_number, cause = self._failure  # type: ignore[misc]
        raise PartUploadError(self.config.key, part_number) from cause

    async def _abort(self) -> None:
        if self._aborted:
            return
        self._aborted = True

        session = self._dispatcher.session
        if session is None or not self.config.abort_on_failure:
            return
        if not isinstance(self.client, AbortableMultipartClient):
            return

        try:
            await self.client.abort_multipart(session.bucket, session.key, session.upload_id)
        except Exception:
            logger.exception("Failed to abort multipart upload %s for %s", session.upload_id, session.key)
        else:
            logger.info("Aborted multipart upload %s for %s/%s", session.upload_id, session.bucket, session.key)


async def upload_stream(
    client: MultipartClient,
    config: StreamConfig,
    source: BytesLike | Iterable[BytesLike] | AsyncIterable[BytesLike],
) -> UploadSummary:
    """Upload everything ``source`` produces and complete the object.

    Args:
        client: Store client performing the multipart calls
        config: Destination and tuning for this upload
        source: Bytes, or a sync or async iterable of bytes-like blocks

    Returns:
        UploadSummary describing the completed object

    Example::

        summary = await upload_stream(
            client,
            StreamConfig(bucket="media", key="video.mp4"),
            response.content.iter_chunked(64 * 1024),
        )
    """
    stream = MultipartUploadStream(client, config=config)
    async with stream:
        if isinstance(source, (bytes, bytearray, memoryview)):
            await stream.write(source)
        elif isinstance(source, AsyncIterable):
            async for block in source:
                await stream.write(block)
        else:
            for block in source:
                await stream.write(block)

    assert stream.summary is not None  # noqa: S101
    return stream.summary
