"""Upload API routes.

Both routes answer with the ``{code, message, data?}`` envelope. The HTTP
status is always 200; the outcome is carried in ``code``.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from pydantic import ValidationError

from humanoidhub.api.deps import get_bearer_token, get_profile_repository, get_repository
from humanoidhub.api.errors import status_for
from humanoidhub.backend.base import AuthCapability, ObjectStoreCapability
from humanoidhub.backend.factory import get_auth, get_object_store
from humanoidhub.catalog.profile import ProfileRepository
from humanoidhub.catalog.repository import ModelRepository
from humanoidhub.core.config import settings
from humanoidhub.core.result import Err, ErrorKind
from humanoidhub.models.catalog import License
from humanoidhub.models.upload import (
    RegisterModelRequest,
    UploadFileResult,
    UploadSessionResult,
    envelope,
)
from humanoidhub.upload.coordinator import UploadSessionCoordinator
from humanoidhub.upload.session import UploadSession

router = APIRouter(prefix="/api", tags=["upload"])
v1_router = APIRouter(prefix="/api/v1", tags=["upload"])
logger = logging.getLogger(__name__)


@router.post("/upload")
async def register_model(
    request: Request,
    token: Optional[str] = Depends(get_bearer_token),
    auth: AuthCapability = Depends(get_auth),
    repository: ModelRepository = Depends(get_repository),
) -> dict:
    """Register the metadata of a model whose files are already uploaded.

    Envelope codes: 200 registered, 401 missing or invalid credential,
    405 malformed body, 500 backend failure.
    """
    if token is None:
        logger.warning("Upload registration without credential")
        return envelope(401, "Unauthorized")

    user = await auth.get_current_user(token)
    if user is None:
        logger.warning("Upload registration with invalid credential")
        return envelope(401, "Unauthorized")

    try:
        body = RegisterModelRequest.model_validate_json(await request.body())
    except ValidationError as e:
        logger.warning(
            "Malformed upload registration body",
            extra={"user_id": user.id, "errors": e.error_count()},
        )
        return envelope(405, "Invalid request body")

    try:
        result = await repository.register(
            owner=user,
            name=body.name,
            description=body.description,
            tags=body.tags,
            license=body.license.value,
            folder_path=body.folder_path,
        )
    except Exception as e:
        logger.error(f"Unexpected error during model registration: {e}", exc_info=True)
        return envelope(500, "create model failed")

    if isinstance(result, Err):
        return envelope(500, "create model failed")

    return envelope(200, "success", result.value.model_dump(mode="json"))


def _split_tags(raw_tags: list[str]) -> list[str]:
    # Accepts repeated fields and comma-joined values
    tags = []
    for raw in raw_tags:
        tags.extend(raw.split(","))
    return tags


def _session_result(session: UploadSession, failed_paths: tuple[str, ...] = (), model=None) -> dict:
    return UploadSessionResult(
        folder_path=session.folder_prefix,
        model=model,
        files=[
            UploadFileResult(
                relative_path=f.object_path,
                status=f.status.value,
                progress=f.progress,
                error=f.error,
            )
            for f in session.files
        ],
        failed_paths=list(failed_paths),
    ).model_dump(mode="json", exclude_none=True)


@v1_router.post("/uploads")
async def upload_model(
    name: str = Form(""),
    description: str = Form(""),
    tags: list[str] = Form([]),
    license: str = Form(License.MIT.value),
    files: Optional[list[UploadFile]] = File(None),
    paths: list[str] = Form([]),
    token: Optional[str] = Depends(get_bearer_token),
    auth: AuthCapability = Depends(get_auth),
    object_store: ObjectStoreCapability = Depends(get_object_store),
    repository: ModelRepository = Depends(get_repository),
    profiles: ProfileRepository = Depends(get_profile_repository),
) -> dict:
    """Upload every file of a model and register it in one request.

    ``paths``, when given, holds one folder-relative path per entry of
    ``files`` and preserves the folder structure of a selected directory.
    Absolute paths and paths with ``..`` segments are refused with 405.
    """
    files = files or []
    if paths and len(paths) != len(files):
        return envelope(405, "paths must match files one to one")

    try:
        model_license = License(license)
    except ValueError:
        return envelope(405, f"Unsupported license: {license}")

    session = UploadSession(name=name.strip(), description=description, tags=_split_tags(tags), license=model_license)

    total_bytes = 0
    for index, upload in enumerate(files):
        payload = await upload.read()
        total_bytes += len(payload)
        if total_bytes > settings.max_upload_bytes:
            return envelope(
                413,
                f"Upload exceeds maximum allowed size of {settings.MAX_UPLOAD_MB}MB",
            )
        try:
            session.add_file(
                upload.filename or f"file-{index}",
                payload,
                relative_path=paths[index] if paths else None,
                content_type=upload.content_type,
            )
        except ValueError as e:
            logger.warning("Rejected upload path", extra={"index": index, "error": str(e)})
            return envelope(405, str(e))

    coordinator = UploadSessionCoordinator(auth, object_store, repository, credential=token, profiles=profiles)
    try:
        result = await coordinator.submit(session)
    except Exception as e:
        logger.error(f"Unexpected error during upload session: {e}", exc_info=True)
        return envelope(500, "Internal server error")

    if isinstance(result, Err):
        failed_paths = result.details if result.kind == ErrorKind.PARTIAL_UPLOAD_FAILURE else ()
        return envelope(status_for(result), result.message, _session_result(session, failed_paths))

    return envelope(200, "success", _session_result(session, model=result.value.model_dump(mode="json")))
