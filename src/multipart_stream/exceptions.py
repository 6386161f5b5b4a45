"""Exception hierarchy for multipart-stream."""

from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "PartUploadError",
    "StoreConnectionError",
    "StoreError",
    "StreamClosedError",
    "StreamError",
    "StreamInterruptedError",
    "StreamUsageError",
]


class StreamError(Exception):
    """Base exception for all multipart-stream errors.

    Store clients and the upload stream raise exceptions derived from this
    class so callers can handle every failure of an upload in one place.
    """


class ConfigurationError(StreamError):
    """Raised when stream or store client configuration is invalid.

    This typically occurs when:
    - Required configuration parameters are missing
    - Numeric limits (parallelism, chunk size) are out of range
    - An optional dependency needed by a backend is not installed
    """


class StoreError(StreamError):
    """Raised when an operation against the object store fails.

    Backends wrap SDK specific errors in this class, chaining the original
    exception as ``__cause__``.
    """


class StoreConnectionError(StoreError):
    """Raised when unable to connect to the object store.

    This typically occurs when:
    - Network connectivity issues prevent access
    - The store endpoint is unavailable
    - Invalid endpoint configuration
    """


class StreamUsageError(StreamError):
    """Raised when stream operations are called out of lifecycle order."""


class StreamClosedError(StreamUsageError):
    """Raised when writing to, or closing, a stream that is already closed.

    Attributes:
        key: Destination key of the closed stream
    """

    def __init__(self, key: str) -> None:
        """Initialize StreamClosedError.

        Args:
            key: Destination key of the closed stream
        """
        self.key = key
        super().__init__(f"Upload stream already closed: {key}")


class PartUploadError(StreamError):
    """Raised when a part upload failed and the stream can no longer complete.

    The original store error is chained as ``__cause__`` and exposed as
    :attr:`cause`. Once raised, every later write or close on the same stream
    raises a new ``PartUploadError`` carrying the same cause.

    Attributes:
        key: Destination key of the failed stream
        part_number: Number of the part whose upload failed
    """

    def __init__(self, key: str, part_number: int) -> None:
        """Initialize PartUploadError.

        Args:
            key: Destination key of the failed stream
            part_number: Number of the part whose upload failed
        """
        self.key = key
        self.part_number = part_number
        super().__init__(f"Upload of part {part_number} failed for {key}")

    @property
    def cause(self) -> BaseException | None:
        """The store error that failed the part upload."""
        return self.__cause__


class StreamInterruptedError(StreamError):
    """Raised when waiting on a part result is interrupted unexpectedly.

    A part task only gets cancelled after a fault was recorded, so seeing a
    cancelled task while resolving results indicates a bug rather than a
    store failure.
    """
