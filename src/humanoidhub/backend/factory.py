"""Select backend implementations from configuration."""

import logging
from typing import Optional

from humanoidhub.backend.base import AuthCapability, ObjectStoreCapability, RecordStoreCapability
from humanoidhub.backend.memory import InMemoryAuth, InMemoryRecordStore
from humanoidhub.backend.supabase import SupabaseAuth, SupabaseClient, SupabaseRecordStore
from humanoidhub.core.config import settings
from humanoidhub.core.exceptions import BackendConfigurationError

logger = logging.getLogger(__name__)

_client: Optional[SupabaseClient] = None
_auth: Optional[AuthCapability] = None
_record_store: Optional[RecordStoreCapability] = None
_object_store: Optional[ObjectStoreCapability] = None


def get_supabase_client() -> SupabaseClient:
    global _client
    if _client is None:
        if not settings.supabase_configured:
            raise BackendConfigurationError("SUPABASE_URL and SUPABASE_SECRET_KEY must be set")
        _client = SupabaseClient(
            settings.SUPABASE_URL,
            settings.SUPABASE_SECRET_KEY,
            timeout=settings.REQUEST_TIMEOUT,
        )
    return _client


def get_auth() -> AuthCapability:
    """Return the configured auth capability."""
    global _auth
    if _auth is None:
        if settings.RECORD_BACKEND == "supabase":
            _auth = SupabaseAuth(get_supabase_client())
        elif settings.RECORD_BACKEND == "memory":
            _auth = InMemoryAuth()
        else:
            raise BackendConfigurationError(f"Unknown RECORD_BACKEND={settings.RECORD_BACKEND}")
    return _auth


def get_record_store() -> RecordStoreCapability:
    """Return the configured record store."""
    global _record_store
    if _record_store is None:
        if settings.RECORD_BACKEND == "supabase":
            _record_store = SupabaseRecordStore(get_supabase_client())
        elif settings.RECORD_BACKEND == "memory":
            _record_store = InMemoryRecordStore(unique_columns={settings.MODELS_TABLE: ("name",)})
        else:
            raise BackendConfigurationError(f"Unknown RECORD_BACKEND={settings.RECORD_BACKEND}")
        logger.info("Record store selected", extra={"backend": _record_store.get_backend_name()})
    return _record_store


def get_object_store() -> ObjectStoreCapability:
    """Return the configured object store."""
    global _object_store
    if _object_store is None:
        if settings.STORAGE_BACKEND == "local":
            from humanoidhub.storage.local import LocalObjectStore

            _object_store = LocalObjectStore(settings.LOCAL_STORAGE_PATH)
        elif settings.STORAGE_BACKEND == "gcs":
            from humanoidhub.storage.gcs import GCSObjectStore

            _object_store = GCSObjectStore(settings.GCS_BUCKET_NAME, settings.GCP_PROJECT_ID)
        elif settings.STORAGE_BACKEND == "supabase":
            from humanoidhub.storage.supabase import SupabaseObjectStore

            _object_store = SupabaseObjectStore(
                get_supabase_client(),
                settings.SUPABASE_STORAGE_BUCKET,
                chunk_size=settings.upload_chunk_size_bytes,
            )
        else:
            raise BackendConfigurationError(f"Unknown STORAGE_BACKEND={settings.STORAGE_BACKEND}")
        logger.info("Object store selected", extra={"backend": _object_store.get_backend_name()})
    return _object_store


def reset_backends() -> None:
    """Forget cached backend instances (configuration changed)."""
    global _client, _auth, _record_store, _object_store
    _client = None
    _auth = None
    _record_store = None
    _object_store = None


async def close_backends() -> None:
    """Close the shared HTTP client and forget every cached backend."""
    if _client is not None:
        await _client.aclose()
        logger.info("Backend HTTP client closed")
    reset_backends()
