"""Model records in the record store."""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from humanoidhub.backend.base import CurrentUser, Filter, FilterOp, Order, RecordStoreCapability
from humanoidhub.core.config import settings
from humanoidhub.core.result import Err, ErrorKind, Ok, Result
from humanoidhub.models.catalog import ModelRecord, ProfileStats, ProfileSummary

logger = logging.getLogger(__name__)


def qualified_name(owner: CurrentUser, model_name: str) -> str:
    """Owner-qualified model name, e.g. ``alice/my-model``."""
    return f"{owner.owner_name}/{model_name}"


def _to_record(row: dict[str, Any]) -> Result[ModelRecord]:
    try:
        return Ok(ModelRecord.from_row(row))
    except ValidationError as e:
        return Err(ErrorKind.BACKEND, f"Malformed model row: {e}")


class ModelRepository:
    """Reads and writes model records."""

    def __init__(self, record_store: RecordStoreCapability, table: Optional[str] = None):
        self.record_store = record_store
        self.table = table or settings.MODELS_TABLE

    async def register(
        self,
        owner: CurrentUser,
        name: str,
        description: str,
        tags: list[str],
        license: str,
        folder_path: str,
        is_public: Optional[bool] = None,
    ) -> Result[ModelRecord]:
        """Insert the metadata record of a fully uploaded model folder.

        Args:
            owner: Authenticated user publishing the model
            name: Owner-qualified model name
            description: Free-form description
            tags: Tag labels, in display order
            license: License label
            folder_path: Object-store prefix holding every file of the model
            is_public: Visibility, defaults to DEFAULT_MODEL_VISIBILITY_PUBLIC

        Returns:
            Ok with the stored record, or the store's Err (``conflict`` when
            the name is taken)
        """
        fields = {
            "name": name,
            "description": description,
            "tags": list(tags),
            "license": license,
            "folder_path": folder_path,
            "user_id": owner.id,
            "is_public": settings.DEFAULT_MODEL_VISIBILITY_PUBLIC if is_public is None else is_public,
            "downloads": 0,
        }
        result = await self.record_store.insert(self.table, fields)
        if isinstance(result, Err):
            logger.error(
                "Model registration failed",
                extra={"model_name": name, "folder_path": folder_path, "error": result.message},
            )
            return result

        logger.info(
            "Model registered",
            extra={"model_name": name, "folder_path": folder_path, "user_id": owner.id},
        )
        return _to_record(result.value)

    async def get_by_name(self, name: str) -> Result[ModelRecord]:
        result = await self.record_store.query(self.table, (Filter("name", FilterOp.EQ, name),))
        if isinstance(result, Err):
            return result
        if not result.value:
            return Err(ErrorKind.NOT_FOUND, f"Model not found: {name}")
        return _to_record(result.value[0])

    async def increment_downloads(self, record: ModelRecord) -> Result[ModelRecord]:
        """Bump the download counter by one (read-modify-write on ``record``)."""
        result = await self.record_store.update(
            self.table,
            (Filter("id", FilterOp.EQ, record.id),),
            {"downloads": record.downloads + 1},
        )
        if isinstance(result, Err):
            return result
        if not result.value:
            return Ok(record.model_copy(update={"downloads": record.downloads + 1}))
        return _to_record(result.value[0])

    async def owner_summary(self, owner: CurrentUser) -> Result[ProfileSummary]:
        """Models owned by ``owner``, newest first, with aggregates."""
        result = await self.record_store.query(
            self.table,
            (Filter("user_id", FilterOp.EQ, owner.id),),
            Order("created_at", ascending=False),
        )
        if isinstance(result, Err):
            return result

        models = []
        for row in result.value:
            record = _to_record(row)
            if isinstance(record, Err):
                logger.warning("Skipping malformed model row", extra={"error": record.message})
                continue
            models.append(record.value)

        stats = ProfileStats(
            total_uploads=len(models),
            total_downloads=sum(m.downloads for m in models),
            public_models=sum(1 for m in models if m.is_public),
        )
        return Ok(ProfileSummary(user_id=owner.id, email=owner.email, models=models, stats=stats))
