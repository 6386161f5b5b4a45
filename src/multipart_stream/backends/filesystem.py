"""Local filesystem multipart store."""

from __future__ import annotations

import hashlib
import os
import shutil
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from multipart_stream.base import BaseMultipartClient
from multipart_stream.exceptions import ConfigurationError, StoreError

__all__ = ("FileSystemConfig", "FileSystemMultipartClient")

_STAGING_DIR = ".multipart"


def _sanitize(name: str) -> str:
    """Prevent directory traversal attacks.

    Normalizes separators, drops leading slashes and resolves ``.`` and
    ``..`` components so the result always stays below the root.
    """
    parts: list[str] = []
    for part in name.replace("\\", "/").split("/"):
        if part == "..":
            if parts:
                parts.pop()
        elif part and part != ".":
            parts.append(part)
    return "/".join(parts)


@dataclass
class FileSystemConfig:
    """Configuration for the filesystem store.

    Buckets map to directories below ``path``; parts are staged in
    ``path/.multipart/<upload_id>/`` until the upload completes.

    Attributes:
        path: Root directory of the store
        create_dirs: Create the root directory if it does not exist
        permissions: Permissions of completed objects (octal, default 0o644)
    """

    path: Path
    create_dirs: bool = True
    permissions: int = 0o644


class FileSystemMultipartClient(BaseMultipartClient):
    """Multipart store writing to a local directory.

    Uses aiofiles for async file I/O. Completed objects appear at their final
    path only once every part has been copied into place, via an atomic rename.

    Example:
        >>> client = FileSystemMultipartClient(config=FileSystemConfig(path=Path("/var/exports")))
        >>> async with client.open_stream("nightly", "2024-01-01/events.bin") as stream:
        ...     await stream.write(payload)
        # Written to /var/exports/nightly/2024-01-01/events.bin
    """

    def __init__(self, config: FileSystemConfig) -> None:
        """Initialize FileSystemMultipartClient.

        Args:
            config: Configuration for the store

        Raises:
            ConfigurationError: If the root path is missing and create_dirs is False
        """
        self.config = config

        if config.create_dirs:
            config.path.mkdir(parents=True, exist_ok=True)
        elif not config.path.exists():
            raise ConfigurationError(f"Store path does not exist: {config.path}")

    def object_path(self, bucket: str, key: str) -> Path:
        """Get the filesystem path of a completed object."""
        return self.config.path / _sanitize(bucket) / _sanitize(key)

    def _staging_path(self, upload_id: str) -> Path:
        return self.config.path / _STAGING_DIR / _sanitize(upload_id)

    def _part_path(self, upload_id: str, part_number: int) -> Path:
        return self._staging_path(upload_id) / f"{part_number:05d}.part"

    def _require_upload(self, upload_id: str) -> Path:
        staging = self._staging_path(upload_id)
        if not staging.is_dir():
            raise StoreError(f"No such upload: {upload_id}")
        return staging

    @staticmethod
    def _import_aiofiles():  # noqa: ANN205
        try:
            import aiofiles
        except ImportError as e:
            raise ConfigurationError(
                "aiofiles is required for FileSystemMultipartClient. Install it with: pip install aiofiles"
            ) from e
        return aiofiles

    async def begin_multipart(self, bucket: str, key: str) -> str:
        if not _sanitize(bucket) or not _sanitize(key):
            raise StoreError(f"Invalid destination: {bucket!r}/{key!r}")

        upload_id = uuid.uuid4().hex
        try:
            self._staging_path(upload_id).mkdir(parents=True)
        except OSError as e:
            raise StoreError(f"Failed to start upload for {key}: {e}") from e
        return upload_id

    async def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> str:
        """Write one part to the staging directory.

        Returns:
            MD5 hex digest of the part, used as its identifier
        """
        aiofiles = self._import_aiofiles()
        self._require_upload(upload_id)

        try:
            async with aiofiles.open(self._part_path(upload_id, part_number), "wb") as f:
                await f.write(data)
        except OSError as e:
            raise StoreError(f"Failed to upload part {part_number} for {key}: {e}") from e

        return hashlib.md5(data, usedforsecurity=False).hexdigest()

    async def complete_multipart(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[tuple[int, str]],
    ) -> None:
        """Concatenate the listed parts, in order, into the destination file."""
        aiofiles = self._import_aiofiles()
        staging = self._require_upload(upload_id)
        if not parts:
            raise StoreError(f"Cannot complete upload {upload_id} without parts")

        destination = self.object_path(bucket, key)
        temp_path = staging / "object.tmp"

        try:
            async with aiofiles.open(temp_path, "wb") as out:
                for part_number, etag in parts:
                    async with aiofiles.open(self._part_path(upload_id, part_number), "rb") as part:
                        data = await part.read()
                    if hashlib.md5(data, usedforsecurity=False).hexdigest() != etag:
                        raise StoreError(f"Invalid part {part_number} for upload {upload_id}")
                    await out.write(data)

            temp_path.chmod(self.config.permissions)
            destination.parent.mkdir(parents=True, exist_ok=True)
            os.replace(temp_path, destination)
        except OSError as e:
            raise StoreError(f"Failed to complete upload for {key}: {e}") from e

        shutil.rmtree(staging, ignore_errors=True)

    async def abort_multipart(self, bucket: str, key: str, upload_id: str) -> None:
        """Delete the staged parts of an upload."""
        staging = self._require_upload(upload_id)
        shutil.rmtree(staging, ignore_errors=True)
