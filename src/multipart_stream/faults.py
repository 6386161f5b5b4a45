"""Fault tracking for part uploads."""

from __future__ import annotations

import logging
import threading
from enum import Enum

__all__ = ("FaultMonitor", "FaultState")

logger = logging.getLogger(__name__)


class FaultState(str, Enum):
    """Health of an upload stream. ``FAULTED`` is terminal."""

    HEALTHY = "healthy"
    FAULTED = "faulted"


class FaultMonitor:
    """Records the first failed part upload of a stream.

    Part tasks call :meth:`record` when their upload raises; the producer reads
    :attr:`faulted` before accepting more bytes. The first recorded failure
    wins and is kept for the lifetime of the stream.
    """

    __slots__ = ("_failure", "_lock")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._failure: tuple[int, BaseException] | None = None

    @property
    def state(self) -> FaultState:
        return FaultState.HEALTHY if self._failure is None else FaultState.FAULTED

    @property
    def faulted(self) -> bool:
        return self._failure is not None

    @property
    def failure(self) -> tuple[int, BaseException] | None:
        """(part_number, exception) of the failure that faulted the stream."""
        return self._failure

    @property
    def part_number(self) -> int | None:
        return None if self._failure is None else self._failure[0]

    @property
    def cause(self) -> BaseException | None:
        return None if self._failure is None else self._failure[1]

    def record(self, part_number: int, exc: BaseException) -> bool:
        """Mark the stream as faulted by ``exc``.

        Args:
            part_number: Number of the failed part
            exc: The exception raised by the part upload

        Returns:
            True if this call faulted the stream, False if it already was
        """
        with self._lock:
            if self._failure is not None:
                return False
            self._failure = (part_number, exc)

        logger.warning("Part %d upload failed, stream faulted: %s", part_number, exc)
        return True
