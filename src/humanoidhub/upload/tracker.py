"""Per-file upload tracking."""

import asyncio
import logging
from typing import AsyncIterator

from humanoidhub.backend.base import ObjectStoreCapability
from humanoidhub.core.result import Err
from humanoidhub.upload.session import UploadEvent, UploadFile, UploadStatus

logger = logging.getLogger(__name__)

_DONE = object()


def object_key(prefix: str, upload_file: UploadFile) -> str:
    """Object-store key of ``upload_file`` inside the session folder."""
    return f"{prefix}/{upload_file.object_path}"


def percent_of(sent: int, total: int) -> int:
    if total <= 0:
        return 100
    return max(0, min(100, sent * 100 // total))


class FileUploadTracker:
    """Uploads one file and reports its progress as a stream of events.

    The tracker never touches the session; callers fold the events in.
    There is no automatic retry.
    """

    def __init__(self, object_store: ObjectStoreCapability):
        self.object_store = object_store

    async def upload(self, upload_file: UploadFile, prefix: str) -> AsyncIterator[UploadEvent]:
        """Upload ``upload_file`` under ``prefix``.

        Yields ``uploading`` at 0, then one ``uploading`` event per progress
        step, then exactly one terminal event: ``completed`` at 100, or
        ``error`` with the message and the last reported progress.
        """
        key = object_key(prefix, upload_file)
        yield UploadEvent(upload_file.id, UploadStatus.UPLOADING, 0)

        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()

        def on_progress(sent: int, total: int) -> None:
            percent = percent_of(sent, total)
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            # Thread-backed stores report from a worker thread
            if running is loop:
                queue.put_nowait(percent)
            else:
                loop.call_soon_threadsafe(queue.put_nowait, percent)

        async def put():
            try:
                return await self.object_store.put_object(
                    key,
                    upload_file.payload,
                    on_progress=on_progress,
                    content_type=upload_file.content_type,
                )
            finally:
                loop.call_soon(queue.put_nowait, _DONE)

        task = asyncio.create_task(put())

        last = 0
        while True:
            item = await queue.get()
            if item is _DONE:
                break
            if item > last and item < 100:
                last = item
                yield UploadEvent(upload_file.id, UploadStatus.UPLOADING, last)

        try:
            result = await task
        except Exception as e:
            logger.error(
                "Object store raised during upload",
                extra={"key": key, "error": str(e)},
                exc_info=True,
            )
            yield UploadEvent(upload_file.id, UploadStatus.ERROR, last, str(e) or type(e).__name__)
            return

        if isinstance(result, Err):
            logger.warning(
                "File upload failed",
                extra={"key": key, "error_kind": result.kind.value, "error": result.message},
            )
            yield UploadEvent(upload_file.id, UploadStatus.ERROR, last, result.message)
            return

        logger.info("File uploaded", extra={"key": key, "size_bytes": upload_file.size})
        yield UploadEvent(upload_file.id, UploadStatus.COMPLETED, 100)
