"""Catalog data models."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class License(str, Enum):
    """Licenses a model can be published under."""

    MIT = "MIT"
    APACHE_2 = "Apache 2.0"
    BSD = "BSD"
    GPL = "GPL"
    CREATIVE_COMMONS = "Creative Commons"


class SortKey(str, Enum):
    """Catalog orderings offered to the user.

    ``TRENDING`` and ``MOST_DOWNLOADED`` are separate labels for the same
    ordering.
    """

    TRENDING = "trending"
    MOST_DOWNLOADED = "most-downloaded"
    RECENTLY_ADDED = "recently-added"
    ALPHABETICAL = "alphabetical"


# Task taxonomy shown in the catalog sidebar, category -> tags
TASK_CATEGORIES: dict[str, list[str]] = {
    "Locomotion": ["Walking", "Running", "Jumping", "Balance"],
    "Manipulation": ["Grasping", "Pushing", "Pulling", "Lifting"],
    "Perception": ["Object Detection", "Pose Estimation", "Scene Understanding"],
    "Planning": ["Path Planning", "Motion Planning", "Task Planning"],
}


class ModelRecord(BaseModel):
    """One published model as stored in the record store."""

    id: str
    name: str
    description: str = ""
    license: str = License.MIT.value
    tags: list[str] = Field(default_factory=list)
    folder_path: str = ""
    is_public: bool = True
    downloads: int = 0
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("description", mode="before")
    @classmethod
    def _null_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("downloads", mode="before")
    @classmethod
    def _null_downloads(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: Any) -> Any:
        # Older rows store tags as one comma-joined string
        if value is None:
            return []
        if isinstance(value, str):
            return [tag.strip() for tag in value.split(",") if tag.strip()]
        return value

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ModelRecord":
        """Build a record from a raw record-store row."""
        data = dict(row)
        if "folder_path" not in data and "model_folder_path" in data:
            data["folder_path"] = data["model_folder_path"]
        data["id"] = str(data.get("id", ""))
        return cls.model_validate(data)


class CatalogPage(BaseModel):
    """One page of catalog results."""

    items: list[ModelRecord]
    total_count: int
    total_pages: int
    page: int
    page_size: int
    loading: bool = False
    error: Optional[str] = None


class CatalogOptions(BaseModel):
    """Filter choices offered by the catalog."""

    task_categories: dict[str, list[str]]
    licenses: list[str]
    sort_keys: list[str]


class ProfileStats(BaseModel):
    """Aggregates over one owner's models."""

    total_uploads: int
    total_downloads: int
    public_models: int


class ProfileSummary(BaseModel):
    """Models owned by the current user and their aggregates."""

    user_id: str
    email: Optional[str] = None
    models: list[ModelRecord]
    stats: ProfileStats


class UserProfile(BaseModel):
    """Row of the users table."""

    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "UserProfile":
        data = dict(row)
        data["id"] = str(data.get("id", ""))
        return cls.model_validate(data)


class UpdateProfileRequest(BaseModel):
    """Body of ``PUT /api/profile``. A blank name clears the display name."""

    display_name: Optional[str] = Field(None, max_length=100)

    @field_validator("display_name")
    @classmethod
    def normalize_display_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if "/" in value:
            raise ValueError("display_name must not contain '/'")
        return value or None
