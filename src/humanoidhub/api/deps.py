"""FastAPI dependencies wiring routes to the configured backends."""

from typing import Optional

from fastapi import Depends, Header

from humanoidhub.backend.base import AuthCapability, CurrentUser, RecordStoreCapability
from humanoidhub.backend.factory import get_auth, get_record_store
from humanoidhub.catalog.profile import ProfileRepository
from humanoidhub.catalog.query import CatalogQueryComposer
from humanoidhub.catalog.repository import ModelRepository


def get_bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Extract the credential from ``Authorization: Bearer <token>``.

    A header without the scheme is taken as the raw token.
    """
    if not authorization or not authorization.strip():
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() == "bearer":
        return token.strip() or None
    return authorization.strip()


async def get_optional_user(
    token: Optional[str] = Depends(get_bearer_token),
    auth: AuthCapability = Depends(get_auth),
) -> Optional[CurrentUser]:
    if token is None:
        return None
    return await auth.get_current_user(token)


def get_repository(record_store: RecordStoreCapability = Depends(get_record_store)) -> ModelRepository:
    return ModelRepository(record_store)


def get_catalog_composer(
    record_store: RecordStoreCapability = Depends(get_record_store),
) -> CatalogQueryComposer:
    return CatalogQueryComposer(record_store)


def get_profile_repository(
    record_store: RecordStoreCapability = Depends(get_record_store),
) -> ProfileRepository:
    return ProfileRepository(record_store)
