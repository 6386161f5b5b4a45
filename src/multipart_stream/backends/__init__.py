"""Store clients for multipart-stream."""

from __future__ import annotations

from multipart_stream.backends.azure import AzureConfig, AzureMultipartClient
from multipart_stream.backends.filesystem import (
    FileSystemConfig,
    FileSystemMultipartClient,
)
from multipart_stream.backends.memory import MemoryConfig, MemoryMultipartClient
from multipart_stream.backends.s3 import S3Config, S3MultipartClient

__all__ = (
    "AzureConfig",
    "AzureMultipartClient",
    "FileSystemConfig",
    "FileSystemMultipartClient",
    "MemoryConfig",
    "MemoryMultipartClient",
    "S3Config",
    "S3MultipartClient",
)
