"""Model catalog: name validation, query pipeline, records, profiles and downloads."""

from humanoidhub.catalog.profile import ProfileRepository
from humanoidhub.catalog.query import (
    PAGE_SIZE,
    BackendQuerySpec,
    CatalogQuery,
    CatalogQueryComposer,
    build_query,
    total_pages,
)
from humanoidhub.catalog.repository import ModelRepository, qualified_name
from humanoidhub.catalog.validation import NameIssue, ValidationResult, validate_model_name

__all__ = [
    "PAGE_SIZE",
    "BackendQuerySpec",
    "CatalogQuery",
    "CatalogQueryComposer",
    "ModelRepository",
    "NameIssue",
    "ProfileRepository",
    "ValidationResult",
    "build_query",
    "qualified_name",
    "total_pages",
    "validate_model_name",
]
