"""Multi-file upload orchestration."""

from humanoidhub.upload.coordinator import UploadSessionCoordinator, folder_prefix
from humanoidhub.upload.session import (
    SessionState,
    UploadEvent,
    UploadFile,
    UploadSession,
    UploadStatus,
    normalize_relative_path,
)
from humanoidhub.upload.tracker import FileUploadTracker, object_key

__all__ = [
    "FileUploadTracker",
    "SessionState",
    "UploadEvent",
    "UploadFile",
    "UploadSession",
    "UploadSessionCoordinator",
    "UploadStatus",
    "folder_prefix",
    "normalize_relative_path",
    "object_key",
]
