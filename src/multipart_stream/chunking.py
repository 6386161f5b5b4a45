"""Fixed-size chunk accumulation for upload streams."""

from __future__ import annotations

__all__ = ("ChunkAccumulator",)


class ChunkAccumulator:
    """Collects arbitrarily sized writes into chunks of ``chunk_size`` bytes.

    The accumulator never emits on its own: the stream fills it, checks
    :attr:`full` and calls :meth:`drain` to take the chunk. A drained chunk is
    a fresh ``bytes`` object, so nothing the accumulator does afterwards can
    change it.

    Example:
        >>> acc = ChunkAccumulator(4)
        >>> acc.fill(memoryview(b"abcdef"))
        4
        >>> acc.drain()
        b'abcd'
    """

    __slots__ = ("_buffer", "_total", "chunk_size")

    def __init__(self, chunk_size: int) -> None:
        self.chunk_size = chunk_size
        self._buffer = bytearray()
        self._total = 0

    def __len__(self) -> int:
        return len(self._buffer)

    def __bool__(self) -> bool:
        return bool(self._buffer)

    @property
    def remaining(self) -> int:
        """Bytes that still fit before the chunk is full."""
        return self.chunk_size - len(self._buffer)

    @property
    def full(self) -> bool:
        """True once the buffer holds exactly ``chunk_size`` bytes."""
        return len(self._buffer) >= self.chunk_size

    @property
    def total(self) -> int:
        """Number of bytes accepted since creation."""
        return self._total

    def fill(self, data: memoryview) -> int:
        """Append as much of ``data`` as fits in the current chunk.

        Args:
            data: Bytes to append

        Returns:
            Number of bytes taken from the front of ``data``
        """
        taken = min(self.remaining, len(data))
        if taken:
            self._buffer += data[:taken]
            self._total += taken
        return taken

    def append(self, value: int) -> None:
        """Append a single byte. The caller must drain a full buffer first."""
        self._buffer.append(value)
        self._total += 1

    def drain(self) -> bytes:
        """Return the buffered bytes as a chunk and reset to empty."""
        chunk = bytes(self._buffer)
        self._buffer.clear()
        return chunk
