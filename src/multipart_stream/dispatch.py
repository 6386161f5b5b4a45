"""Bounded-concurrency dispatch of parts to the store."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from multipart_stream.chunking import ChunkAccumulator
from multipart_stream.types import Part, ProgressInfo, UploadSession

if TYPE_CHECKING:
    from multipart_stream.base import MultipartClient
    from multipart_stream.faults import FaultMonitor
    from multipart_stream.tracker import CompletionTracker
    from multipart_stream.types import ProgressCallback

__all__ = ("UploadDispatcher",)

logger = logging.getLogger(__name__)


class UploadDispatcher:
    """Hands chunks to at most ``parallelism`` concurrent upload tasks.

    The dispatcher owns part numbering and the lazily started upload session.
    :meth:`dispatch` waits for a free worker slot before starting a task, so a
    producer writing faster than the store accepts parts is held back instead
    of buffering chunks without bound.
    """

    def __init__(
        self,
        client: MultipartClient,
        bucket: str,
        key: str,
        *,
        parallelism: int,
        faults: FaultMonitor,
        tracker: CompletionTracker,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.client = client
        self.bucket = bucket
        self.key = key
        self.parallelism = parallelism
        self._faults = faults
        self._tracker = tracker
        self._progress_callback = progress_callback
        self._slots = asyncio.Semaphore(parallelism)
        self._session_lock = asyncio.Lock()
        self._session: UploadSession | None = None
        self._next_part = 1
        self._bytes_uploaded = 0

    @property
    def session(self) -> UploadSession | None:
        """The upload session, None until the first chunk is dispatched."""
        return self._session

    @property
    def parts_dispatched(self) -> int:
        return self._next_part - 1

    @property
    def bytes_uploaded(self) -> int:
        """Bytes of parts whose upload has finished successfully."""
        return self._bytes_uploaded

    async def ensure_session(self) -> UploadSession:
        """Start the multipart upload on first use and return it.

        Raises:
            Exception: Whatever the client raises from ``begin_multipart``
        """
        if self._session is not None:
            return self._session

        async with self._session_lock:
            if self._session is None:
                upload_id = await self.client.begin_multipart(self.bucket, self.key)
                self._session = UploadSession(bucket=self.bucket, key=self.key, upload_id=upload_id)
                logger.debug("Started multipart upload %s for %s/%s", upload_id, self.bucket, self.key)

        return self._session

    async def dispatch(self, chunk: bytes | ChunkAccumulator) -> int:
        """Start uploading ``chunk`` as the next part.

        Blocks while ``parallelism`` uploads are already running. An
        accumulator is drained only once a worker slot is held, so a caller
        cancelled while waiting keeps its bytes buffered.

        Args:
            chunk: The part bytes, or an accumulator to drain into the part

        Returns:
            The part number assigned to the chunk
        """
        session = await self.ensure_session()
        await self._slots.acquire()

        try:
            data = chunk.drain() if isinstance(chunk, ChunkAccumulator) else chunk
            part = Part(part_number=self._next_part, data=data)
            task = asyncio.create_task(self._upload(session, part), name=f"upload-part-{part.part_number}")
        except BaseException:
            self._slots.release()
            raise

        self._next_part += 1
        task.add_done_callback(self._release_slot)
        self._tracker.add(part.part_number, task)

        logger.debug("Dispatched part %d (%d bytes) of %s", part.part_number, part.size, self.key)
        return part.part_number

    def _release_slot(self, _task: asyncio.Task[str]) -> None:
        self._slots.release()

    async def _upload(self, session: UploadSession, part: Part) -> str:
        try:
            etag = await self.client.upload_part(
                session.bucket,
                session.key,
                session.upload_id,
                part.part_number,
                part.data,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._faults.record(part.part_number, e)
            raise

        self._bytes_uploaded += part.size
        logger.debug("Uploaded part %d of %s", part.part_number, self.key)

        if self._progress_callback:
            try:
                self._progress_callback(
                    ProgressInfo(
                        bytes_transferred=self._bytes_uploaded,
                        total_bytes=None,
                        operation="upload",
                        key=self.key,
                        part_number=part.part_number,
                    )
                )
            except Exception:
                # The part is already stored, so its identifier is kept.
                logger.exception("Progress callback failed for part %d of %s", part.part_number, self.key)

        return etag
