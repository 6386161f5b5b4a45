"""Streaming Litestar request bodies into a multipart store."""

from __future__ import annotations

from typing import TYPE_CHECKING

from multipart_stream.stream import StreamConfig, upload_stream
from multipart_stream.types import DEFAULT_CHUNK_SIZE

if TYPE_CHECKING:
    from litestar import Request

    from multipart_stream.base import MultipartClient
    from multipart_stream.types import ProgressCallback, UploadSummary

__all__ = ["stream_request_body"]


async def stream_request_body(
    request: Request,
    client: MultipartClient,
    bucket: str,
    key: str,
    *,
    parallelism: int = 4,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress_callback: ProgressCallback | None = None,
) -> UploadSummary:
    """Upload the raw body of ``request`` to ``bucket``/``key`` as it arrives.

    The body is never held in memory as a whole: it is read with
    ``request.stream()`` and written straight into a
    :class:`~multipart_stream.stream.MultipartUploadStream`.

    Args:
        request: The incoming Litestar request
        client: Store client performing the multipart calls
        bucket: Destination bucket (or container) name
        key: Destination object key
        parallelism: Maximum number of parts uploading at once
        chunk_size: Size of every part except the last
        progress_callback: Optional callback invoked as parts complete

    Returns:
        UploadSummary describing the completed object

    Raises:
        PartUploadError: If a part upload fails
        StoreError: If starting or completing the upload fails
    """
    config = StreamConfig(
        bucket=bucket,
        key=key,
        parallelism=parallelism,
        chunk_size=chunk_size,
        progress_callback=progress_callback,
    )
    return await upload_stream(client, config, request.stream())
