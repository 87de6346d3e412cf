"""Local filesystem object store."""

import logging
from pathlib import Path
from typing import Optional

from humanoidhub.backend.base import ObjectEntry, ObjectStoreCapability, ProgressCallback
from humanoidhub.core.result import Err, ErrorKind, Ok, Result

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536  # 64KB chunks


class LocalObjectStore(ObjectStoreCapability):
    """Object store writing keys as paths below a base directory."""

    def __init__(self, base_path: str | Path = "data/objects", chunk_size: int = CHUNK_SIZE):
        self.base_path = Path(base_path)
        self.chunk_size = chunk_size

    def _path_for(self, key: str) -> Path:
        """Resolve a key below the base path, refusing traversal outside it."""
        parts = [part for part in key.replace("\\", "/").split("/") if part not in ("", ".")]
        if any(part == ".." for part in parts):
            raise ValueError(f"Object key escapes the store: {key}")
        return self.base_path.joinpath(*parts)

    async def put_object(
        self,
        key: str,
        payload: bytes,
        on_progress: Optional[ProgressCallback] = None,
        content_type: str = "application/octet-stream",
    ) -> Result[str]:
        try:
            target_path = self._path_for(key)
            target_path.parent.mkdir(parents=True, exist_ok=True)

            total = len(payload)
            sent = 0
            with open(target_path, "wb") as f:
                for start in range(0, total, self.chunk_size):
                    chunk = payload[start:start + self.chunk_size]
                    f.write(chunk)
                    sent += len(chunk)
                    if on_progress:
                        on_progress(sent, total)
            if total == 0 and on_progress:
                on_progress(0, 0)
        except (OSError, ValueError) as e:
            logger.error("Failed to write object", extra={"key": key, "error": str(e)})
            return Err(ErrorKind.TRANSPORT, f"Failed to write {key}: {e}")

        return Ok(key)

    async def list_objects(self, prefix: str) -> Result[list[ObjectEntry]]:
        try:
            root = self._path_for(prefix)
        except ValueError as e:
            return Err(ErrorKind.VALIDATION, str(e))
        if not root.is_dir():
            return Ok([])

        entries = []
        for path in sorted(root.rglob("*")):
            if path.is_file():
                relative = path.relative_to(self.base_path).as_posix()
                entries.append(ObjectEntry(key=relative, size=path.stat().st_size))
        return Ok(entries)

    async def get_object(self, key: str) -> Result[bytes]:
        try:
            path = self._path_for(key)
        except ValueError as e:
            return Err(ErrorKind.VALIDATION, str(e))
        if not path.is_file():
            return Err(ErrorKind.NOT_FOUND, f"Object not found: {key}")
        try:
            return Ok(path.read_bytes())
        except OSError as e:
            return Err(ErrorKind.TRANSPORT, f"Failed to read {key}: {e}")

    def get_backend_name(self) -> str:
        return "local"
