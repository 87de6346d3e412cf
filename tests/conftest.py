"""Pytest configuration and shared fixtures."""

from typing import Optional

import pytest
from fastapi.testclient import TestClient

from humanoidhub.backend.base import CurrentUser, ObjectEntry, ObjectStoreCapability, ProgressCallback
from humanoidhub.backend.factory import get_auth, get_object_store, get_record_store
from humanoidhub.backend.memory import InMemoryAuth, InMemoryRecordStore
from humanoidhub.core.result import Err, ErrorKind, Ok, Result
from humanoidhub.main import app

TOKEN = "token-u1"


class RecordingObjectStore(ObjectStoreCapability):
    """In-process object store recording every write.

    Keys listed in ``failing_keys`` fail with a transport error after
    reporting half of their bytes.
    """

    def __init__(self, failing_keys: Optional[set[str]] = None):
        self.objects: dict[str, bytes] = {}
        self.put_calls: list[str] = []
        self.failing_keys = set(failing_keys or ())

    async def put_object(
        self,
        key: str,
        payload: bytes,
        on_progress: Optional[ProgressCallback] = None,
        content_type: str = "application/octet-stream",
    ) -> Result[str]:
        self.put_calls.append(key)
        total = len(payload)
        if on_progress:
            on_progress(total // 2, total)
        if key in self.failing_keys:
            return Err(ErrorKind.TRANSPORT, f"connection reset while uploading {key}")
        self.objects[key] = payload
        if on_progress:
            on_progress(total, total)
        return Ok(key)

    async def list_objects(self, prefix: str) -> Result[list[ObjectEntry]]:
        return Ok(
            [
                ObjectEntry(key=key, size=len(data))
                for key, data in sorted(self.objects.items())
                if key.startswith(f"{prefix}/")
            ]
        )

    async def get_object(self, key: str) -> Result[bytes]:
        if key not in self.objects:
            return Err(ErrorKind.NOT_FOUND, f"Object not found: {key}")
        return Ok(self.objects[key])

    def get_backend_name(self) -> str:
        return "recording"


@pytest.fixture
def user():
    """Authenticated owner ``u1``."""
    return CurrentUser(id="u1", email="u1@example.com")


@pytest.fixture
def auth(user):
    return InMemoryAuth({TOKEN: user})


@pytest.fixture
def record_store():
    return InMemoryRecordStore(unique_columns={"models": ("name",)})


@pytest.fixture
def object_store():
    return RecordingObjectStore()


@pytest.fixture
def client(auth, record_store, object_store):
    """Test client with in-memory backends injected."""
    app.dependency_overrides[get_auth] = lambda: auth
    app.dependency_overrides[get_record_store] = lambda: record_store
    app.dependency_overrides[get_object_store] = lambda: object_store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {TOKEN}"}


@pytest.fixture
def object_store_factory():
    """Build recording object stores with chosen failing keys."""
    return RecordingObjectStore
