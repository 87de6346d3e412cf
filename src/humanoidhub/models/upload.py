"""Upload data models."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from humanoidhub.models.catalog import License


class RegisterModelRequest(BaseModel):
    """Request body for registering an already uploaded model folder."""

    name: str = Field(..., min_length=1, max_length=128)
    description: str = Field("", max_length=4096)
    tags: list[str] = Field(default_factory=list)
    license: License = License.MIT
    folder_path: str = Field(..., min_length=1)


class ApiEnvelope(BaseModel):
    """Uniform response envelope of the upload routes."""

    code: int
    message: str
    data: Optional[Any] = None


def envelope(code: int, message: str, data: Any = None) -> dict[str, Any]:
    """Build an envelope payload, omitting ``data`` when there is none."""
    body = ApiEnvelope(code=code, message=message, data=data)
    return body.model_dump(mode="json", exclude_none=True)


class UploadFileResult(BaseModel):
    """Final state of one file of an orchestrated upload."""

    relative_path: str
    status: str
    progress: int
    error: Optional[str] = None


class UploadSessionResult(BaseModel):
    """Outcome of an orchestrated upload, returned in the envelope data."""

    folder_path: Optional[str] = None
    model: Optional[dict[str, Any]] = None
    files: list[UploadFileResult]
    failed_paths: list[str] = Field(default_factory=list)
