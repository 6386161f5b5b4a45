"""Type definitions for multipart-stream."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

__all__ = (
    "DEFAULT_CHUNK_SIZE",
    "Part",
    "ProgressCallback",
    "ProgressInfo",
    "UploadSession",
    "UploadSummary",
)

DEFAULT_CHUNK_SIZE = 5 * 1024 * 1024  # 5MB, the smallest non-final part S3 accepts


@dataclass(frozen=True)
class Part:
    """A numbered chunk of the stream handed to the store.

    Attributes:
        part_number: Position of the part in the object (1-indexed)
        data: The chunk bytes
    """

    part_number: int
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        """Number of bytes in the part."""
        return len(self.data)


@dataclass(frozen=True)
class UploadSession:
    """An in-progress multipart upload of one destination object.

    Attributes:
        bucket: Destination bucket (or container) name
        key: Destination object key
        upload_id: Identifier returned by the store when the upload began
    """

    bucket: str
    key: str
    upload_id: str


@dataclass(frozen=True)
class UploadSummary:
    """Result of closing an upload stream.

    Attributes:
        bucket: Destination bucket (or container) name
        key: Destination object key
        upload_id: Multipart upload identifier, None if nothing was written
        parts: Ordered (part_number, part identifier) pairs sent to the store
        size: Total number of bytes written
    """

    bucket: str
    key: str
    upload_id: str | None = None
    parts: tuple[tuple[int, str], ...] = ()
    size: int = 0

    @property
    def part_count(self) -> int:
        """Number of parts the object was assembled from."""
        return len(self.parts)


@dataclass
class ProgressInfo:
    """Information about upload progress.

    Attributes:
        bytes_transferred: Number of bytes uploaded so far
        total_bytes: Total number of bytes to transfer (None if unknown)
        operation: Type of operation (always "upload" for streams)
        key: Destination key being uploaded
        part_number: Part whose completion triggered this report
    """

    bytes_transferred: int
    total_bytes: int | None
    operation: str
    key: str
    part_number: int | None = None

    @property
    def percentage(self) -> float | None:
        """Calculate percentage complete."""
        if self.total_bytes is None or self.total_bytes == 0:
            return None
        return (self.bytes_transferred / self.total_bytes) * 100


class ProgressCallback(Protocol):
    """Protocol for progress callback functions.

    Progress callbacks are called each time a part finishes uploading.
    Parts complete in any order, so ``bytes_transferred`` only ever grows but
    ``part_number`` does not.

    Example::

        def my_progress(info: ProgressInfo) -> None:
            print(f"{info.key}: {info.bytes_transferred} bytes (part {info.part_number})")
    """

    def __call__(self, info: ProgressInfo) -> None:
        """Called with progress information.

        Args:
            info: Current progress information
        """
        ...
