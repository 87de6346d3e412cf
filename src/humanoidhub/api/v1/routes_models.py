"""Catalog API routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from humanoidhub.api.deps import (
    get_catalog_composer,
    get_optional_user,
    get_profile_repository,
    get_repository,
)
from humanoidhub.api.errors import http_error
from humanoidhub.backend.base import CurrentUser, ObjectStoreCapability
from humanoidhub.backend.factory import get_object_store
from humanoidhub.catalog.download import download_model
from humanoidhub.catalog.profile import ProfileRepository
from humanoidhub.catalog.query import CatalogQuery, CatalogQueryComposer
from humanoidhub.catalog.repository import ModelRepository
from humanoidhub.core.result import Err
from humanoidhub.models.catalog import (
    TASK_CATEGORIES,
    CatalogOptions,
    CatalogPage,
    License,
    ModelRecord,
    ProfileSummary,
    SortKey,
    UpdateProfileRequest,
    UserProfile,
)

router = APIRouter(prefix="/api", tags=["models"])
logger = logging.getLogger(__name__)


@router.get("/models", response_model=CatalogPage)
async def list_models(
    tags: list[str] = Query(default=[]),
    licenses: list[str] = Query(default=[]),
    q: str = "",
    sort: SortKey = SortKey.TRENDING,
    page: int = Query(1, ge=1),
    composer: CatalogQueryComposer = Depends(get_catalog_composer),
) -> CatalogPage:
    """One page of public models.

    Backend failures come back as an empty page with ``error`` set.
    """
    query = CatalogQuery.create(tags=tags, licenses=licenses, search=q, sort=sort, page=page)
    return await composer.fetch(query)


@router.get("/models/tasks", response_model=CatalogOptions)
async def list_catalog_options() -> CatalogOptions:
    """Task taxonomy, licenses and sort keys offered as catalog filters."""
    return CatalogOptions(
        task_categories=TASK_CATEGORIES,
        licenses=[license.value for license in License],
        sort_keys=[key.value for key in SortKey],
    )


@router.get("/models/{owner}/{model}", response_model=ModelRecord)
async def get_model(
    owner: str,
    model: str,
    repository: ModelRepository = Depends(get_repository),
) -> ModelRecord:
    name = f"{owner}/{model}"
    result = await repository.get_by_name(name)
    if isinstance(result, Err):
        raise http_error(result)
    if not result.value.is_public:
        raise HTTPException(status_code=404, detail=f"Model not found: {name}")
    return result.value


@router.get("/models/{owner}/{model}/download")
async def download_model_bundle(
    owner: str,
    model: str,
    repository: ModelRepository = Depends(get_repository),
    object_store: ObjectStoreCapability = Depends(get_object_store),
) -> Response:
    """Zip archive of every file of the model; counts one download."""
    result = await download_model(repository, object_store, f"{owner}/{model}")
    if isinstance(result, Err):
        raise http_error(result)

    bundle = result.value
    return Response(
        content=bundle.content,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{bundle.filename}"'},
    )


@router.get("/profile/models", response_model=ProfileSummary)
async def get_profile_models(
    user: Optional[CurrentUser] = Depends(get_optional_user),
    repository: ModelRepository = Depends(get_repository),
) -> ProfileSummary:
    """Models owned by the caller, newest first, with totals."""
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    result = await repository.owner_summary(user)
    if isinstance(result, Err):
        logger.error(
            "Failed to load profile models",
            extra={"user_id": user.id, "error_kind": result.kind.value, "error": result.message},
        )
        raise http_error(result)
    return result.value


@router.get("/profile", response_model=UserProfile)
async def get_profile(
    user: Optional[CurrentUser] = Depends(get_optional_user),
    profiles: ProfileRepository = Depends(get_profile_repository),
) -> UserProfile:
    """Profile of the caller; created with an empty display name on first access."""
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    result = await profiles.get_or_create(user)
    if isinstance(result, Err):
        raise http_error(result)
    return result.value


@router.put("/profile", response_model=UserProfile)
async def update_profile(
    body: UpdateProfileRequest,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    profiles: ProfileRepository = Depends(get_profile_repository),
) -> UserProfile:
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    result = await profiles.update_display_name(user, body.display_name)
    if isinstance(result, Err):
        logger.error(
            "Failed to update profile",
            extra={"user_id": user.id, "error_kind": result.kind.value, "error": result.message},
        )
        raise http_error(result)
    return result.value
