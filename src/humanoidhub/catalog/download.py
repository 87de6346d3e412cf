"""Bundle a model folder into a zip archive for download."""

import io
import logging
import zipfile
from dataclasses import dataclass

from humanoidhub.backend.base import ObjectStoreCapability
from humanoidhub.catalog.repository import ModelRepository
from humanoidhub.core.result import Err, ErrorKind, Ok, Result
from humanoidhub.models.catalog import ModelRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelBundle:
    filename: str
    content: bytes
    file_count: int


def bundle_filename(record: ModelRecord) -> str:
    return f"{record.name.replace('/', '_')}.zip"


async def build_bundle(object_store: ObjectStoreCapability, record: ModelRecord) -> Result[ModelBundle]:
    """Zip every object under the record's folder, paths relative to the folder."""
    prefix = record.folder_path.rstrip("/")
    if not prefix:
        return Err(ErrorKind.NOT_FOUND, f"Model {record.name} has no files")

    listing = await object_store.list_objects(prefix)
    if isinstance(listing, Err):
        return listing
    if not listing.value:
        return Err(ErrorKind.NOT_FOUND, f"No files stored under {prefix}")

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for entry in listing.value:
            content = await object_store.get_object(entry.key)
            if isinstance(content, Err):
                logger.error(
                    "Failed to fetch object for bundle",
                    extra={"key": entry.key, "error": content.message},
                )
                return Err(content.kind, f"{entry.key}: {content.message}", (entry.key,))
            archive.writestr(entry.key[len(prefix) + 1:], content.value)

    return Ok(ModelBundle(bundle_filename(record), buffer.getvalue(), len(listing.value)))


async def download_model(
    repository: ModelRepository,
    object_store: ObjectStoreCapability,
    name: str,
) -> Result[ModelBundle]:
    """Look up a public model by name, bundle its files and count the download."""
    record = await repository.get_by_name(name)
    if isinstance(record, Err):
        return record
    if not record.value.is_public:
        return Err(ErrorKind.NOT_FOUND, f"Model not found: {name}")

    bundle = await build_bundle(object_store, record.value)
    if isinstance(bundle, Err):
        return bundle

    counted = await repository.increment_downloads(record.value)
    if isinstance(counted, Err):
        # Archive is returned even when the counter update fails
        logger.warning(
            "Failed to increment download counter",
            extra={"model_name": name, "error": counted.message},
        )

    logger.info("Model bundled for download", extra={"model_name": name, "files": bundle.value.file_count})
    return bundle
