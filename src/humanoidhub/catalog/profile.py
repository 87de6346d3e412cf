"""User profiles in the record store."""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from humanoidhub.backend.base import CurrentUser, Filter, FilterOp, PageRange, RecordStoreCapability
from humanoidhub.core.config import settings
from humanoidhub.core.result import Err, ErrorKind, Ok, Result
from humanoidhub.models.catalog import UserProfile

logger = logging.getLogger(__name__)


def _to_profile(row: dict[str, Any]) -> Result[UserProfile]:
    try:
        return Ok(UserProfile.from_row(row))
    except ValidationError as e:
        return Err(ErrorKind.BACKEND, f"Malformed user row: {e}")


class ProfileRepository:
    """Reads and writes rows of the users table, keyed by the auth user id."""

    def __init__(self, record_store: RecordStoreCapability, table: Optional[str] = None):
        self.record_store = record_store
        self.table = table or settings.USERS_TABLE

    async def _find(self, user_id: str) -> Result[Optional[UserProfile]]:
        result = await self.record_store.query(
            self.table,
            (Filter("id", FilterOp.EQ, user_id),),
            page_range=PageRange(offset=0, limit=1),
        )
        if isinstance(result, Err):
            return result
        if not result.value:
            return Ok(None)
        return _to_profile(result.value[0])

    async def get_or_create(self, user: CurrentUser) -> Result[UserProfile]:
        """Profile of ``user``, inserting an empty one on first access."""
        found = await self._find(user.id)
        if isinstance(found, Err) or found.value is not None:
            return found

        created = await self.record_store.insert(
            self.table,
            {"id": user.id, "email": user.email, "display_name": None},
        )
        if isinstance(created, Err):
            if created.kind != ErrorKind.CONFLICT:
                logger.error(
                    "Profile creation failed",
                    extra={"user_id": user.id, "error": created.message},
                )
                return created
            # Created concurrently by another request
            found = await self._find(user.id)
            if isinstance(found, Err):
                return found
            if found.value is None:
                return Err(ErrorKind.BACKEND, f"Profile of {user.id} vanished after conflict")
            return Ok(found.value)

        logger.info("Profile created", extra={"user_id": user.id})
        return _to_profile(created.value)

    async def update_display_name(self, user: CurrentUser, display_name: Optional[str]) -> Result[UserProfile]:
        profile = await self.get_or_create(user)
        if isinstance(profile, Err):
            return profile

        result = await self.record_store.update(
            self.table,
            (Filter("id", FilterOp.EQ, user.id),),
            {"display_name": display_name},
        )
        if isinstance(result, Err):
            logger.error(
                "Display name update failed",
                extra={"user_id": user.id, "error": result.message},
            )
            return result

        logger.info("Display name updated", extra={"user_id": user.id})
        if not result.value:
            return Ok(profile.value.model_copy(update={"display_name": display_name}))
        return _to_profile(result.value[0])
