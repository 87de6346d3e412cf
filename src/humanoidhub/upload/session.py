"""Upload session state: queued files, metadata and status events."""

import logging
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional
from uuid import uuid4

from humanoidhub.core.exceptions import SessionStateError
from humanoidhub.core.result import Err
from humanoidhub.models.catalog import License

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class UploadStatus(str, Enum):
    """Upload status of one file."""

    PENDING = "pending"  # Queued, not started
    UPLOADING = "uploading"  # Bytes in flight
    COMPLETED = "completed"  # Stored in the object store
    ERROR = "error"  # Transport failure, waits for the user

    @property
    def is_terminal(self) -> bool:
        return self in (UploadStatus.COMPLETED, UploadStatus.ERROR)


class SessionState(str, Enum):
    EDITABLE = "editable"
    VALIDATING = "validating"
    UPLOADING = "uploading"
    REGISTERING = "registering"
    DONE = "done"
    FAILED = "failed"


@dataclass
class UploadFile:
    """One file queued for upload."""

    file_name: str
    payload: bytes
    relative_path: Optional[str] = None
    content_type: str = DEFAULT_CONTENT_TYPE
    id: str = field(default_factory=lambda: str(uuid4()))
    progress: int = 0
    status: UploadStatus = UploadStatus.PENDING
    error: Optional[str] = None

    @property
    def object_path(self) -> str:
        """Path of the file inside the session folder."""
        return self.relative_path or self.file_name

    @property
    def size(self) -> int:
        return len(self.payload)


@dataclass(frozen=True)
class UploadEvent:
    """Progress or status change emitted by an upload task."""

    file_id: str
    status: UploadStatus
    progress: int
    error: Optional[str] = None


def normalize_relative_path(path: str) -> str:
    """Clean a caller-supplied path inside the session folder.

    Backslashes become slashes and empty or ``.`` segments are dropped, so
    ``a\\./b`` is ``a/b``.

    Raises:
        ValueError: The path is empty or would leave the model folder
    """
    cleaned = path.replace("\\", "/")
    if cleaned.startswith("/"):
        raise ValueError(f"Absolute paths are not allowed: {path}")
    parts = PurePosixPath(cleaned).parts
    if ".." in parts:
        raise ValueError(f"Path escapes the model folder: {path}")
    if not parts:
        raise ValueError("Path is empty")
    return PurePosixPath(*parts).as_posix()


def guess_content_type(file_name: str) -> str:
    content_type, _ = mimetypes.guess_type(file_name)
    return content_type or DEFAULT_CONTENT_TYPE


class UploadSession:
    """Aggregate state of one upload attempt.

    Files and metadata can change only while the session is ``editable``.
    File progress and status change only through ``apply``, which the
    coordinator calls with events emitted by the upload tasks.
    """

    def __init__(
        self,
        name: str = "",
        description: str = "",
        tags: Iterable[str] = (),
        license: License | str = License.MIT,
    ):
        self.name = name
        self.description = description
        self.license = License(license)
        self._tags: list[str] = []
        for tag in tags:
            self.add_tag(tag)
        self.folder_prefix: Optional[str] = None
        self.last_error: Optional[Err] = None
        self.state = SessionState.EDITABLE
        self._files: list[UploadFile] = []

    @property
    def files(self) -> tuple[UploadFile, ...]:
        return tuple(self._files)

    @property
    def tags(self) -> list[str]:
        return list(self._tags)

    @property
    def failed_files(self) -> list[UploadFile]:
        return [f for f in self._files if f.status == UploadStatus.ERROR]

    @property
    def all_completed(self) -> bool:
        return bool(self._files) and all(f.status == UploadStatus.COMPLETED for f in self._files)

    def _require_editable(self, action: str) -> None:
        if self.state != SessionState.EDITABLE:
            raise SessionStateError(f"Cannot {action} while session is {self.state.value}")

    def update_metadata(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        license: License | str | None = None,
    ) -> None:
        self._require_editable("edit metadata")
        if name is not None:
            self.name = name
        if description is not None:
            self.description = description
        if license is not None:
            self.license = License(license)

    def add_tag(self, tag: str) -> bool:
        """Add a trimmed tag; duplicates and blanks are ignored."""
        tag = tag.strip()
        if not tag or tag in self._tags:
            return False
        self._tags.append(tag)
        return True

    def remove_tag(self, tag: str) -> None:
        self._tags = [t for t in self._tags if t != tag]

    def add_file(
        self,
        file_name: str,
        payload: bytes,
        relative_path: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> UploadFile:
        """Queue one file (drag-and-drop or file picker).

        Raises:
            ValueError: ``relative_path`` (or ``file_name`` when no path is
                given) is empty or would leave the model folder
        """
        self._require_editable("add files")
        path = normalize_relative_path(relative_path if relative_path is not None else file_name)
        if relative_path is None and path == file_name:
            path = None
        upload_file = UploadFile(
            file_name=file_name,
            payload=payload,
            relative_path=path,
            content_type=content_type or guess_content_type(file_name),
        )
        self._files.append(upload_file)
        return upload_file

    def add_directory(self, directory: str | Path) -> list[UploadFile]:
        """Queue every file below ``directory`` (folder picker).

        Relative paths start with the directory's own name, so the folder
        structure is preserved inside the session folder.
        """
        self._require_editable("add files")
        root = Path(directory)
        if not root.is_dir():
            raise NotADirectoryError(str(root))

        added = []
        for path in sorted(root.rglob("*")):
            if not path.is_file():
                continue
            relative = PurePosixPath(root.name, *path.relative_to(root).parts).as_posix()
            added.append(self.add_file(path.name, path.read_bytes(), relative_path=relative))

        logger.debug("Queued directory", extra={"directory": str(root), "files": len(added)})
        return added

    def remove_file(self, file_id: str) -> bool:
        """Drop a queued file.

        Only files that are not uploading or completed can be removed;
        anything else is left in place and False is returned.
        """
        if self.state != SessionState.EDITABLE:
            return False
        for index, upload_file in enumerate(self._files):
            if upload_file.id == file_id:
                if upload_file.status in (UploadStatus.UPLOADING, UploadStatus.COMPLETED):
                    return False
                del self._files[index]
                return True
        return False

    def apply(self, event: UploadEvent) -> None:
        """Fold an upload event into the matching file."""
        for upload_file in self._files:
            if upload_file.id == event.file_id:
                upload_file.status = event.status
                upload_file.progress = event.progress
                upload_file.error = event.error
                return
        logger.warning("Event for unknown file", extra={"file_id": event.file_id})
