"""Object store backed by the Supabase storage API."""

import logging
from typing import AsyncIterator, Optional
from urllib.parse import quote

import httpx

from humanoidhub.backend.base import ObjectEntry, ObjectStoreCapability, ProgressCallback
from humanoidhub.backend.supabase import SupabaseClient, error_from_response, json_body, read_retry
from humanoidhub.core.result import Err, ErrorKind, Ok, Result

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 1000


class SupabaseObjectStore(ObjectStoreCapability):
    """Bucket in the hosted storage API; keys are paths inside the bucket."""

    def __init__(self, client: SupabaseClient, bucket: str, chunk_size: int = 256 * 1024):
        self.client = client
        self.bucket = bucket
        self.chunk_size = chunk_size

    def _object_path(self, key: str) -> str:
        return f"/storage/v1/object/{self.bucket}/{quote(key, safe='/')}"

    async def _chunks(self, payload: bytes, on_progress: Optional[ProgressCallback]) -> AsyncIterator[bytes]:
        total = len(payload)
        sent = 0
        for start in range(0, total, self.chunk_size):
            chunk = payload[start:start + self.chunk_size]
            yield chunk
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
            response = await self.client.http.post(
                self._object_path(key),
                content=self._chunks(payload, on_progress),
                headers={
                    "Content-Type": content_type,
                    "Content-Length": str(len(payload)),
                    # Same relative path twice in one folder overwrites
                    "x-upsert": "true",
                },
            )
        except httpx.HTTPError as e:
            logger.error("Object upload failed", extra={"key": key, "error": str(e)})
            return Err(ErrorKind.TRANSPORT, f"Failed to upload {key}: {e}")

        if response.status_code not in (200, 201):
            return error_from_response(response)
        return Ok(key)

    @read_retry
    async def _list_page(self, prefix: str, offset: int) -> httpx.Response:
        return await self.client.http.post(
            f"/storage/v1/object/list/{self.bucket}",
            json={"prefix": prefix, "limit": LIST_PAGE_SIZE, "offset": offset},
        )

    async def _list_folder(self, prefix: str, entries: list[ObjectEntry]) -> Optional[Err]:
        offset = 0
        while True:
            response = await self._list_page(prefix, offset)
            if response.status_code != 200:
                return error_from_response(response)
            decoded = json_body(response, f"listing of {prefix}")
            if isinstance(decoded, Err):
                return decoded
            page = decoded.value
            for item in page:
                name = f"{prefix}/{item['name']}"
                # Folders come back without an id
                if item.get("id") is None:
                    failure = await self._list_folder(name, entries)
                    if failure is not None:
                        return failure
                else:
                    size = (item.get("metadata") or {}).get("size", 0)
                    entries.append(ObjectEntry(key=name, size=int(size or 0)))
            if len(page) < LIST_PAGE_SIZE:
                return None
            offset += LIST_PAGE_SIZE

    async def list_objects(self, prefix: str) -> Result[list[ObjectEntry]]:
        entries: list[ObjectEntry] = []
        try:
            failure = await self._list_folder(prefix.rstrip("/"), entries)
        except httpx.HTTPError as e:
            logger.error("Object listing failed", extra={"prefix": prefix, "error": str(e)})
            return Err(ErrorKind.TRANSPORT, f"Failed to list {prefix}: {e}")
        if failure is not None:
            return failure
        return Ok(sorted(entries, key=lambda entry: entry.key))

    @read_retry
    async def _download(self, key: str) -> httpx.Response:
        return await self.client.http.get(self._object_path(key))

    async def get_object(self, key: str) -> Result[bytes]:
        try:
            response = await self._download(key)
        except httpx.HTTPError as e:
            logger.error("Object download failed", extra={"key": key, "error": str(e)})
            return Err(ErrorKind.TRANSPORT, f"Failed to download {key}: {e}")
        if response.status_code != 200:
            return error_from_response(response)
        return Ok(response.content)

    def get_backend_name(self) -> str:
        return "supabase"
