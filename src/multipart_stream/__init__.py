"""multipart-stream - Async streaming writer for multipart object uploads."""

from __future__ import annotations

from multipart_stream.__metadata__ import __project__, __version__
from multipart_stream.backends import (
    AzureConfig,
    AzureMultipartClient,
    FileSystemConfig,
    FileSystemMultipartClient,
    MemoryConfig,
    MemoryMultipartClient,
    S3Config,
    S3MultipartClient,
)
from multipart_stream.base import AbortableMultipartClient, BaseMultipartClient, MultipartClient
from multipart_stream.exceptions import (
    ConfigurationError,
    PartUploadError,
    StoreConnectionError,
    StoreError,
    StreamClosedError,
    StreamError,
    StreamInterruptedError,
    StreamUsageError,
)
from multipart_stream.retry import RetryConfig, with_retry
from multipart_stream.stream import MultipartUploadStream, StreamConfig, upload_stream
from multipart_stream.types import (
    DEFAULT_CHUNK_SIZE,
    Part,
    ProgressCallback,
    ProgressInfo,
    UploadSession,
    UploadSummary,
)

__all__ = (
    # Metadata
    "__project__",
    "__version__",
    # Stream
    "DEFAULT_CHUNK_SIZE",
    "MultipartUploadStream",
    "StreamConfig",
    "upload_stream",
    # Protocols and base class
    "AbortableMultipartClient",
    "BaseMultipartClient",
    "MultipartClient",
    # Backends
    "AzureConfig",
    "AzureMultipartClient",
    "FileSystemConfig",
    "FileSystemMultipartClient",
    "MemoryConfig",
    "MemoryMultipartClient",
    "S3Config",
    "S3MultipartClient",
    # Retry
    "RetryConfig",
    "with_retry",
    # Exceptions
    "ConfigurationError",
    "PartUploadError",
    "StoreConnectionError",
    "StoreError",
    "StreamClosedError",
    "StreamError",
    "StreamInterruptedError",
    "StreamUsageError",
    # Types
    "Part",
    "ProgressCallback",
    "ProgressInfo",
    "UploadSession",
    "UploadSummary",
)
