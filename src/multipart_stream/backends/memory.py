"""In-memory multipart store for testing and development."""

from __future__ import annotations

import hashlib
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field

from multipart_stream.base import BaseMultipartClient
from multipart_stream.exceptions import StoreError

__all__ = ("MemoryConfig", "MemoryMultipartClient")


def _generate_etag(data: bytes) -> str:
    """Generate an ETag from part data using MD5 hash."""
    return f'"{hashlib.md5(data, usedforsecurity=False).hexdigest()}"'


@dataclass
class MemoryConfig:
    """Configuration for the in-memory store.

    The defaults accept anything; set the limits to reproduce S3's rules.

    Attributes:
        min_part_size: Minimum size of every part except the last
        max_parts: Maximum part number accepted
    """

    min_part_size: int = 0
    max_parts: int = 10_000


@dataclass
class _Upload:
    bucket: str
    key: str
    parts: dict[int, tuple[str, bytes]] = field(default_factory=dict)


class MemoryMultipartClient(BaseMultipartClient):
    """In-memory multipart store for testing and development.

    Uploaded parts are held per upload id until the upload is completed or
    aborted; completed objects are kept in a dictionary keyed by
    ``(bucket, key)``. Not suitable for production use as data is lost on
    restart and consumes RAM.

    Example:
        >>> client = MemoryMultipartClient()
        >>> async with client.open_stream("bucket", "report.csv", chunk_size=1024) as stream:
        ...     await stream.write(b"a,b,c\\n" * 1000)
        >>> len(client.get_object("bucket", "report.csv"))
        6000
    """

    def __init__(self, config: MemoryConfig | None = None) -> None:
        """Initialize MemoryMultipartClient.

        Args:
            config: Configuration for the store (optional)
        """
        self.config = config or MemoryConfig()
        self._uploads: dict[str, _Upload] = {}
        self._objects: dict[tuple[str, str], bytes] = {}

    @property
    def active_uploads(self) -> list[str]:
        """Upload ids that were started but neither completed nor aborted."""
        return list(self._uploads)

    def exists(self, bucket: str, key: str) -> bool:
        return (bucket, key) in self._objects

    def get_object(self, bucket: str, key: str) -> bytes:
        """Return the content of a completed object.

        Raises:
            StoreError: If no object was completed at bucket/key
        """
        try:
            return self._objects[(bucket, key)]
        except KeyError:
            raise StoreError(f"Object not found: {bucket}/{key}") from None

    def _get_upload(self, upload_id: str, bucket: str, key: str) -> _Upload:
        upload = self._uploads.get(upload_id)
        if upload is None or (upload.bucket, upload.key) != (bucket, key):
            raise StoreError(f"No such upload {upload_id} for {bucket}/{key}")
        return upload

    async def begin_multipart(self, bucket: str, key: str) -> str:
        upload_id = uuid.uuid4().hex
        self._uploads[upload_id] = _Upload(bucket=bucket, key=key)
        return upload_id

    async def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> str:
        """Store one part, replacing any earlier upload of the same number.

        Raises:
            StoreError: If the upload is unknown or the part number is out of range
        """
        upload = self._get_upload(upload_id, bucket, key)
        if not 1 <= part_number <= self.config.max_parts:
            raise StoreError(f"Part number {part_number} out of range 1-{self.config.max_parts}")

        etag = _generate_etag(data)
        upload.parts[part_number] = (etag, bytes(data))
        return etag

    async def complete_multipart(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[tuple[int, str]],
    ) -> None:
        """Concatenate the listed parts into the destination object.

        Raises:
            StoreError: If parts are missing, out of order, mismatched or too small
        """
        upload = self._get_upload(upload_id, bucket, key)
        if not parts:
            raise StoreError(f"Cannot complete upload {upload_id} without parts")

        chunks: list[bytes] = []
        previous = 0
        for index, (part_number, etag) in enumerate(parts):
            if part_number <= previous:
                raise StoreError(f"Parts must be in ascending order, got {part_number} after {previous}")
            previous = part_number

            stored = upload.parts.get(part_number)
            if stored is None or stored[0] != etag:
                raise StoreError(f"Invalid part {part_number} for upload {upload_id}")

            data = stored[1]
            is_last = index == len(parts) - 1
            if not is_last and len(data) < self.config.min_part_size:
                raise StoreError(
                    f"Part {part_number} is {len(data)} bytes, smaller than the minimum {self.config.min_part_size}"
                )
            chunks.append(data)

        self._objects[(bucket, key)] = b"".join(chunks)
        del self._uploads[upload_id]

    async def abort_multipart(self, bucket: str, key: str, upload_id: str) -> None:
        self._get_upload(upload_id, bucket, key)
        del self._uploads[upload_id]
