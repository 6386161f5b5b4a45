"""Ordered tracking of in-flight part uploads."""

from __future__ import annotations

import asyncio

from multipart_stream.exceptions import StreamInterruptedError

__all__ = ("CompletionTracker",)


def _mark_retrieved(task: asyncio.Task[str]) -> None:
    # Failures surface through the stream, not through asyncio's unretrieved-exception log.
    if not task.cancelled():
        task.exception()


class CompletionTracker:
    """Holds one upload task per dispatched part, in part number order.

    Tasks finish in any order, but :meth:`resolve` always walks them by part
    number so the identifiers handed to the store match the byte layout of
    the stream.
    """

    __slots__ = ("_tasks",)

    def __init__(self) -> None:
        self._tasks: list[tuple[int, asyncio.Task[str]]] = []

    def __len__(self) -> int:
        return len(self._tasks)

    def __bool__(self) -> bool:
        return bool(self._tasks)

    @property
    def pending(self) -> int:
        """Number of part uploads that have not finished."""
        return sum(1 for _, task in self._tasks if not task.done())

    def add(self, part_number: int, task: asyncio.Task[str]) -> None:
        """Track the upload task of ``part_number``.

        Args:
            part_number: Part number the task uploads; must follow the last one added
            task: Task resolving to the part identifier
        """
        if self._tasks and part_number != self._tasks[-1][0] + 1:
            msg = f"Part {part_number} added out of order after part {self._tasks[-1][0]}"
            raise ValueError(msg)
        task.add_done_callback(_mark_retrieved)
        self._tasks.append((part_number, task))

    def first_failure(self) -> tuple[int, BaseException] | None:
        """Return the lowest numbered finished part that failed.

        Unfinished and cancelled tasks are skipped.

        Returns:
            (part_number, exception) or None if no finished part failed
        """
        for part_number, task in self._tasks:
            if task.done() and not task.cancelled():
                exc = task.exception()
                if exc is not None:
                    return part_number, exc
        return None

    def cancel_all(self) -> int:
        """Request cancellation of every unfinished part upload.

        Cancellation is advisory: a request already on the wire may still
        reach the store, but its result is never used.

        Returns:
            Number of tasks that were asked to cancel
        """
        cancelled = 0
        for _, task in self._tasks:
            if not task.done():
                task.cancel()
                cancelled += 1
        return cancelled

    async def resolve(self) -> list[tuple[int, str]]:
        """Wait for every part in part number order and collect identifiers.

        Returns:
            (part_number, part identifier) pairs ordered by part number

        Raises:
            StreamInterruptedError: If a part task was cancelled while being waited on
            Exception: The error of the first failed part reached in order
        """
        parts: list[tuple[int, str]] = []
        for part_number, task in self._tasks:
            await asyncio.wait((task,))
            if task.cancelled():
                raise StreamInterruptedError(f"Upload of part {part_number} was cancelled before it finished")
            parts.append((part_number, task.result()))
        return parts
