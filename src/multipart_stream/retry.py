"""Retry with exponential backoff for store client calls.

Upload streams never retry on their own; store clients opt in by wrapping
their SDK calls with :func:`with_retry`.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from multipart_stream.exceptions import StoreConnectionError

__all__ = ("RetryConfig", "with_retry")

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_retries: Maximum number of retry attempts (0 = no retries)
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential backoff calculation
        jitter: Whether to add random jitter to delays
        retryable_exceptions: Exception types that should trigger a retry
    """

    max_retries: int = 3
    base_delay: float = 0.5
    max_delay: float = 20.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: tuple[type[Exception], ...] = field(
        default_factory=lambda: (StoreConnectionError, TimeoutError, ConnectionError)
    )

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for a given attempt number.

        Args:
            attempt: The attempt number (0-indexed)

        Returns:
            Delay in seconds before the next retry
        """
        delay = min(self.base_delay * (self.exponential_base**attempt), self.max_delay)
        if self.jitter:
            # Up to 25% either way
            delay *= 0.75 + random.random() * 0.5  # noqa: S311
        return delay


async def with_retry(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    operation: str = "store call",
) -> T:
    """Run an async call, retrying retryable failures with backoff.

    Args:
        func: Zero-argument async callable to execute
        config: Retry configuration. If None, uses default RetryConfig.
        operation: Description used in log messages

    Returns:
        Result of the first successful call

    Raises:
        Exception: The last retryable error once retries are exhausted, or
            any non-retryable error immediately

    Example::

        etag = await with_retry(
            lambda: client.upload_part(bucket, key, upload_id, 3, data),
            RetryConfig(max_retries=5),
            operation="upload part 3",
        )
    """
    if config is None:
        config = RetryConfig()

    attempt = 0
    while True:
        try:
            return await func()
        except config.retryable_exceptions as e:
            if attempt >= config.max_retries:
                logger.error("All %d retries exhausted for %s: %s", config.max_retries, operation, e)
                raise

            delay = config.calculate_delay(attempt)
            attempt += 1
            logger.warning(
                "Retry attempt %d/%d for %s after %.2fs: %s",
                attempt,
                config.max_retries,
                operation,
                delay,
                e,
            )
            await asyncio.sleep(delay)
