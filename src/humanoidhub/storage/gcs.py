"""Google Cloud Storage object store."""

import asyncio
import logging
from typing import Optional

from google.api_core.exceptions import NotFound
from google.cloud import storage

from humanoidhub.backend.base import ObjectEntry, ObjectStoreCapability, ProgressCallback
from humanoidhub.core.config import settings
from humanoidhub.core.exceptions import BackendConfigurationError
from humanoidhub.core.result import Err, ErrorKind, Ok, Result

logger = logging.getLogger(__name__)

# Resumable uploads require chunk sizes in multiples of 256KB
GCS_CHUNK_MULTIPLE = 256 * 1024


class GCSObjectStore(ObjectStoreCapability):
    """Google Cloud Storage object store."""

    def __init__(self, bucket_name: Optional[str] = None, project_id: Optional[str] = None):
        self.bucket_name = bucket_name
        self.project_id = project_id
        self._client: Optional[storage.Client] = None
        self._bucket: Optional[storage.Bucket] = None

    def _get_bucket(self) -> storage.Bucket:
        """Lazy-load and cache GCS bucket."""
        if self._bucket is None:
            bucket_name = self.bucket_name or settings.GCS_BUCKET_NAME
            if not bucket_name:
                raise BackendConfigurationError("GCS_BUCKET_NAME not configured")

            self._client = storage.Client(project=self.project_id or settings.GCP_PROJECT_ID or None)
            self._bucket = self._client.bucket(bucket_name)

        return self._bucket

    @staticmethod
    def _chunk_size() -> int:
        size = max(settings.upload_chunk_size_bytes, GCS_CHUNK_MULTIPLE)
        return size - (size % GCS_CHUNK_MULTIPLE)

    def _write_blob(
        self,
        key: str,
        payload: bytes,
        content_type: str,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        blob = self._get_bucket().blob(key)
        blob.content_type = content_type
        chunk_size = self._chunk_size()
        total = len(payload)

        sent = 0
        with blob.open("wb", chunk_size=chunk_size, content_type=content_type) as f:
            for start in range(0, total, chunk_size):
                chunk = payload[start:start + chunk_size]
                f.write(chunk)
                sent += len(chunk)
                if on_progress:
                    on_progress(sent, total)

    async def put_object(
        self,
        key: str,
        payload: bytes,
        on_progress: Optional[ProgressCallback] = None,
        content_type: str = "application/octet-stream",
    ) -> Result[str]:
        try:
            # Blocking client, run in thread pool
            await asyncio.to_thread(self._write_blob, key, payload, content_type, on_progress)
        except BackendConfigurationError:
            raise
        except Exception as e:
            logger.error(
                "Failed to upload object to GCS",
                extra={"key": key, "bucket": self.bucket_name, "error": str(e)},
                exc_info=True,
            )
            return Err(ErrorKind.TRANSPORT, f"Failed to upload {key}: {e}")

        return Ok(key)

    async def list_objects(self, prefix: str) -> Result[list[ObjectEntry]]:
        bucket = self._get_bucket()
        try:
            blobs = await asyncio.to_thread(lambda: list(bucket.list_blobs(prefix=f"{prefix}/")))
        except Exception as e:
            logger.error("Failed to list GCS objects", extra={"prefix": prefix, "error": str(e)})
            return Err(ErrorKind.TRANSPORT, f"Failed to list {prefix}: {e}")
        return Ok([ObjectEntry(key=blob.name, size=blob.size or 0) for blob in blobs])

    async def get_object(self, key: str) -> Result[bytes]:
        blob = self._get_bucket().blob(key)
        try:
            data = await asyncio.to_thread(blob.download_as_bytes)
        except NotFound:
            return Err(ErrorKind.NOT_FOUND, f"Object not found: {key}")
        except Exception as e:
            logger.error("Failed to download GCS object", extra={"key": key, "error": str(e)})
            return Err(ErrorKind.TRANSPORT, f"Failed to download {key}: {e}")
        return Ok(data)

    def get_backend_name(self) -> str:
        return "gcs"
