"""Pydantic models shared by the API and the core flows."""

from humanoidhub.models.catalog import (
    TASK_CATEGORIES,
    CatalogOptions,
    CatalogPage,
    License,
    ModelRecord,
    ProfileStats,
    ProfileSummary,
    SortKey,
)
from humanoidhub.models.upload import (
    ApiEnvelope,
    RegisterModelRequest,
    UploadFileResult,
    UploadSessionResult,
    envelope,
)

__all__ = [
    "TASK_CATEGORIES",
    "ApiEnvelope",
    "CatalogOptions",
    "CatalogPage",
    "License",
    "ModelRecord",
    "ProfileStats",
    "ProfileSummary",
    "RegisterModelRequest",
    "SortKey",
    "UploadFileResult",
    "UploadSessionResult",
    "envelope",
]
