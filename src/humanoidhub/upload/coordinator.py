"""Upload session coordinator.

Drives one ``UploadSession`` through validation, concurrent file uploads and
model registration::

    editable -> validating -> uploading -> registering -> done
                    |             |              |
                    +-------------+--------------+--> failed -> editable

Upload tasks never mutate the session. They put ``UploadEvent`` messages on a
queue and the coordinator is the only writer that applies them.
"""

import asyncio
import logging
import time
from dataclasses import replace
from typing import Callable, Optional

from humanoidhub.backend.base import AuthCapability, CurrentUser, ObjectStoreCapability
from humanoidhub.catalog.profile import ProfileRepository
from humanoidhub.catalog.repository import ModelRepository, qualified_name
from humanoidhub.catalog.validation import validate_model_name
from humanoidhub.core.logging import upload_prefix_context
from humanoidhub.core.result import Err, ErrorKind, Ok, Result
from humanoidhub.models.catalog import ModelRecord
from humanoidhub.upload.session import (
    SessionState,
    UploadEvent,
    UploadFile,
    UploadSession,
    UploadStatus,
)
from humanoidhub.upload.tracker import FileUploadTracker

logger = logging.getLogger(__name__)

_TASK_FINISHED = object()


def epoch_millis() -> int:
    return int(time.time() * 1000)


def folder_prefix(owner_id: str, model_name: str, timestamp_ms: int) -> str:
    """Destination folder of a session, e.g. ``u1/robo-walk-2-1700000000000``."""
    return f"{owner_id}/{model_name}-{timestamp_ms}"


class UploadSessionCoordinator:
    """Submits upload sessions on behalf of one caller.

    Args:
        auth: Resolves ``credential`` to the current user at submission time
        object_store: Destination of the uploaded files
        repository: Where the model record is registered
        credential: Bearer token of the caller
        clock: Millisecond timestamp source for the folder prefix
        profiles: Source of the owner's display name used in the model name
    """

    def __init__(
        self,
        auth: AuthCapability,
        object_store: ObjectStoreCapability,
        repository: ModelRepository,
        credential: Optional[str] = None,
        clock: Optional[Callable[[], int]] = None,
        profiles: Optional[ProfileRepository] = None,
    ):
        self.auth = auth
        self.repository = repository
        self.credential = credential
        self.clock = clock or epoch_millis
        self.profiles = profiles
        self.tracker = FileUploadTracker(object_store)

    async def submit(self, session: UploadSession) -> Result[ModelRecord]:
        """Validate, upload every unfinished file and register the model.

        Returns:
            Ok with the registered record, or Err with kind ``validation``,
            ``unauthenticated``, ``empty_session``,
            ``partial_upload_failure`` (details hold the failed relative
            paths) or the record store's error. On any Err the session is
            editable again and keeps its metadata, files and folder prefix.
        """
        if session.state != SessionState.EDITABLE:
            return Err(ErrorKind.INVALID_STATE, f"Session is {session.state.value}")

        session.state = SessionState.VALIDATING
        try:
            return await self._run(session)
        except Exception as e:
            logger.error(f"Unexpected error during upload session: {e}", exc_info=True)
            for upload_file in session.files:
                if upload_file.status == UploadStatus.UPLOADING:
                    session.apply(
                        UploadEvent(upload_file.id, UploadStatus.ERROR, upload_file.progress, "Upload interrupted")
                    )
            return self._fail(session, Err(ErrorKind.BACKEND, str(e) or type(e).__name__))

    async def _run(self, session: UploadSession) -> Result[ModelRecord]:
        name_check = validate_model_name(session.name)
        if not name_check.ok:
            return self._fail(session, Err(ErrorKind.VALIDATION, name_check.message, ("name",)))

        user = await self.auth.get_current_user(self.credential)
        if user is None:
            return self._fail(session, Err(ErrorKind.UNAUTHENTICATED, "Sign in to upload models"))

        if not session.files:
            return self._fail(session, Err(ErrorKind.EMPTY_SESSION, "Add at least one file to upload"))

        session.state = SessionState.UPLOADING
        if session.folder_prefix is None:
            session.folder_prefix = folder_prefix(user.id, session.name, self.clock())
        prefix = session.folder_prefix

        token = upload_prefix_context.set(prefix)
        try:
            await self._upload_unfinished(session, prefix)

            session.state = SessionState.REGISTERING
            failed = session.failed_files
            if failed:
                paths = tuple(f.object_path for f in failed)
                return self._fail(
                    session,
                    Err(
                        ErrorKind.PARTIAL_UPLOAD_FAILURE,
                        f"{len(failed)} of {len(session.files)} files failed to upload",
                        paths,
                    ),
                )

            result = await self.repository.register(
                owner=user,
                name=qualified_name(await self._owner(user), session.name),
                description=session.description,
                tags=session.tags,
                license=session.license.value,
                folder_path=prefix,
            )
            if isinstance(result, Err):
                return self._fail(session, result)

            session.state = SessionState.DONE
            logger.info(
                "Upload session completed",
                extra={"model_name": result.value.name, "files": len(session.files)},
            )
            return Ok(result.value)
        finally:
            upload_prefix_context.reset(token)

    async def _owner(self, user: CurrentUser) -> CurrentUser:
        """``user`` carrying the display name stored in its profile, when set."""
        if self.profiles is None:
            return user
        profile = await self.profiles.get_or_create(user)
        if isinstance(profile, Err):
            logger.warning(
                "Profile lookup failed, qualifying the model name with the auth identity",
                extra={"user_id": user.id, "error": profile.message},
            )
            return user
        if profile.value.display_name:
            return replace(user, display_name=profile.value.display_name)
        return user

    async def _upload_unfinished(self, session: UploadSession, prefix: str) -> None:
        """Upload every file not yet completed, concurrently, applying events in order."""
        unfinished = [f for f in session.files if f.status != UploadStatus.COMPLETED]
        for upload_file in unfinished:
            session.apply(UploadEvent(upload_file.id, UploadStatus.PENDING, 0))

        logger.info(
            "Uploading files",
            extra={"files": len(unfinished), "skipped": len(session.files) - len(unfinished)},
        )

        events: asyncio.Queue = asyncio.Queue()

        async def run(upload_file: UploadFile) -> None:
            try:
                async for event in self.tracker.upload(upload_file, prefix):
                    await events.put(event)
            finally:
                await events.put(_TASK_FINISHED)

        tasks = [asyncio.create_task(run(f)) for f in unfinished]
        running = len(tasks)
        while running:
            event = await events.get()
            if event is _TASK_FINISHED:
                running -= 1
                continue
            session.apply(event)

        await asyncio.gather(*tasks)

    def _fail(self, session: UploadSession, error: Err) -> Err:
        session.state = SessionState.FAILED
        logger.warning(
            "Upload session failed",
            extra={
                "model_name": session.name,
                "error_kind": error.kind.value,
                "error": error.message,
                "details": list(error.details),
            },
        )
        session.last_error = error
        session.state = SessionState.EDITABLE
        return error
