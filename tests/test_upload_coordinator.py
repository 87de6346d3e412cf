"""Tests for the upload session coordinator."""

from unittest.mock import AsyncMock

import pytest

from humanoidhub.catalog.profile import ProfileRepository
from humanoidhub.catalog.repository import ModelRepository
from humanoidhub.core.logging import upload_prefix_context
from humanoidhub.core.result import Err, ErrorKind, Ok
from humanoidhub.models.catalog import ModelRecord
from humanoidhub.upload.coordinator import UploadSessionCoordinator, folder_prefix
from humanoidhub.upload.session import SessionState, UploadSession, UploadStatus

TIMESTAMP = 1700000000000


@pytest.fixture
def repository(record_store):
    return ModelRepository(record_store)


@pytest.fixture
def make_coordinator(auth, object_store, repository):
    def make(store=None, credential="token-u1", repo=None):
        return UploadSessionCoordinator(
            auth,
            store or object_store,
            repo or repository,
            credential=credential,
            clock=lambda: TIMESTAMP,
        )

    return make


def three_file_session():
    session = UploadSession(name="walker", tags=["Walking"])
    for name in ("one.bin", "two.bin", "three.bin"):
        session.add_file(name, name.encode())
    return session


def test_folder_prefix():
    assert folder_prefix("u1", "robo-walk-2", 42) == "u1/robo-walk-2-42"


class TestUploadSessionCoordinator:
    """Tests for session submission."""

    @pytest.mark.asyncio
    async def test_end_to_end(self, make_coordinator, object_store, record_store):
        session = UploadSession(
            name="robo-walk-2",
            description="bipedal walking policy",
            tags=["Walking", "Balance"],
            license="MIT",
        )
        session.add_file("weights.bin", b"\x00" * 64)
        session.add_file("config.yaml", b"lr: 0.001")
        record_store.insert = AsyncMock(wraps=record_store.insert)

        result = await make_coordinator().submit(session)

        prefix = f"u1/robo-walk-2-{TIMESTAMP}"
        assert result.ok
        assert sorted(object_store.put_calls) == sorted([f"{prefix}/weights.bin", f"{prefix}/config.yaml"])
        assert record_store.insert.await_count == 1
        table, fields = record_store.insert.await_args.args
        assert table == "models"
        assert fields["name"] == "u1/robo-walk-2"
        assert fields["tags"] == ["Walking", "Balance"]
        assert fields["license"] == "MIT"
        assert fields["folder_path"] == prefix
        assert fields["user_id"] == "u1"
        assert result.value.folder_path == prefix
        assert session.state == SessionState.DONE
        assert session.folder_prefix == prefix
        assert all(f.status == UploadStatus.COMPLETED and f.progress == 100 for f in session.files)

    @pytest.mark.asyncio
    async def test_all_completed_registers_once(self, make_coordinator, object_store):
        repo = AsyncMock()
        repo.register.return_value = Ok(ModelRecord(id="1", name="u1/walker"))
        session = three_file_session()

        result = await make_coordinator(repo=repo).submit(session)

        assert result.ok
        assert repo.register.await_count == 1
        folder_path = repo.register.await_args.kwargs["folder_path"]
        assert len(object_store.put_calls) == 3
        assert all(key.startswith(f"{folder_path}/") for key in object_store.put_calls)

    @pytest.mark.asyncio
    async def test_partial_failure_registers_nothing(self, make_coordinator, object_store_factory):
        prefix = f"u1/walker-{TIMESTAMP}"
        store = object_store_factory(failing_keys={f"{prefix}/two.bin"})
        repo = AsyncMock()
        session = three_file_session()

        result = await make_coordinator(store=store, repo=repo).submit(session)

        assert isinstance(result, Err)
        assert result.kind == ErrorKind.PARTIAL_UPLOAD_FAILURE
        assert result.details == ("two.bin",)
        repo.register.assert_not_awaited()
        statuses = {f.file_name: f.status for f in session.files}
        assert statuses == {
            "one.bin": UploadStatus.COMPLETED,
            "two.bin": UploadStatus.ERROR,
            "three.bin": UploadStatus.COMPLETED,
        }
        assert session.state == SessionState.EDITABLE
        assert session.last_error == result

    @pytest.mark.asyncio
    async def test_resubmit_uploads_only_unfinished(self, make_coordinator, object_store_factory):
        prefix = f"u1/walker-{TIMESTAMP}"
        store = object_store_factory(failing_keys={f"{prefix}/two.bin"})
        coordinator = make_coordinator(store=store)
        session = three_file_session()
        await coordinator.submit(session)

        store.failing_keys.clear()
        store.put_calls.clear()
        coordinator.clock = lambda: TIMESTAMP + 5000
        result = await coordinator.submit(session)

        assert result.ok
        assert store.put_calls == [f"{prefix}/two.bin"]
        assert result.value.folder_path == prefix

    @pytest.mark.asyncio
    async def test_invalid_name_stops_before_auth(self, object_store, repository):
        auth = AsyncMock()
        coordinator = UploadSessionCoordinator(auth, object_store, repository, credential="token-u1")
        session = UploadSession(name="bad name")
        session.add_file("a.bin", b"a")

        result = await coordinator.submit(session)

        assert result.kind == ErrorKind.VALIDATION
        assert result.details == ("name",)
        auth.get_current_user.assert_not_awaited()
        assert object_store.put_calls == []
        assert session.state == SessionState.EDITABLE

    @pytest.mark.asyncio
    async def test_unauthenticated_uploads_nothing(self, make_coordinator, object_store, record_store):
        session = three_file_session()

        result = await make_coordinator(credential="wrong").submit(session)

        assert result.kind == ErrorKind.UNAUTHENTICATED
        assert object_store.put_calls == []
        assert (await record_store.count("models")).value == 0
        assert session.folder_prefix is None

    @pytest.mark.asyncio
    async def test_empty_session(self, make_coordinator):
        result = await make_coordinator().submit(UploadSession(name="walker"))
        assert result.kind == ErrorKind.EMPTY_SESSION

    @pytest.mark.asyncio
    async def test_registration_conflict(self, make_coordinator, repository, user):
        await repository.register(user, "u1/walker", "", [], "MIT", "u1/walker-0")
        session = three_file_session()

        result = await make_coordinator().submit(session)

        assert result.kind == ErrorKind.CONFLICT
        assert session.state == SessionState.EDITABLE
        assert session.all_completed

    @pytest.mark.asyncio
    async def test_submit_outside_editable(self, make_coordinator):
        session = three_file_session()
        session.state = SessionState.DONE

        result = await make_coordinator().submit(session)

        assert result.kind == ErrorKind.INVALID_STATE

    @pytest.mark.asyncio
    async def test_prefix_context_set_during_upload(self, auth, repository):
        seen = []

        async def put_object(key, payload, on_progress=None, content_type=None):
            seen.append(upload_prefix_context.get())
            return Ok(key)

        store = AsyncMock()
        store.put_object.side_effect = put_object
        coordinator = UploadSessionCoordinator(
            auth, store, repository, credential="token-u1", clock=lambda: TIMESTAMP
        )
        session = three_file_session()

        await coordinator.submit(session)

        assert seen == [f"u1/walker-{TIMESTAMP}"] * 3
        assert upload_prefix_context.get() is None

    @pytest.mark.asyncio
    async def test_auth_exception_leaves_session_editable(self, object_store, repository, user):
        auth = AsyncMock()
        auth.get_current_user.side_effect = RuntimeError("auth provider unreachable")
        coordinator = UploadSessionCoordinator(
            auth, object_store, repository, credential="token-u1", clock=lambda: TIMESTAMP
        )
        session = three_file_session()

        result = await coordinator.submit(session)

        assert result.kind == ErrorKind.BACKEND
        assert "auth provider unreachable" in result.message
        assert session.state == SessionState.EDITABLE
        assert session.last_error is result
        assert object_store.put_calls == []

        auth.get_current_user.side_effect = None
        auth.get_current_user.return_value = user
        retry = await coordinator.submit(session)

        assert retry.ok
        assert retry.value.name == "u1/walker"
        assert session.state == SessionState.DONE

    @pytest.mark.asyncio
    async def test_registration_exception_keeps_uploaded_files(self, make_coordinator, object_store):
        repo = AsyncMock()
        repo.register.side_effect = ConnectionError("socket closed")
        session = three_file_session()

        result = await make_coordinator(repo=repo).submit(session)

        assert result.kind == ErrorKind.BACKEND
        assert session.state == SessionState.EDITABLE
        assert session.all_completed
        assert session.folder_prefix == f"u1/walker-{TIMESTAMP}"

    @pytest.mark.asyncio
    async def test_profile_display_name_qualifies_model_name(self, auth, object_store, repository, record_store, user):
        profiles = ProfileRepository(record_store)
        await profiles.update_display_name(user, "alice")
        coordinator = UploadSessionCoordinator(
            auth,
            object_store,
            repository,
            credential="token-u1",
            clock=lambda: TIMESTAMP,
            profiles=profiles,
        )

        result = await coordinator.submit(three_file_session())

        assert result.value.name == "alice/walker"
        assert result.value.folder_path == f"u1/walker-{TIMESTAMP}"

    @pytest.mark.asyncio
    async def test_profile_without_display_name_falls_back_to_user_id(
        self, auth, object_store, repository, record_store
    ):
        profiles = ProfileRepository(record_store)
        coordinator = UploadSessionCoordinator(
            auth, object_store, repository, credential="token-u1", clock=lambda: TIMESTAMP, profiles=profiles
        )

        result = await coordinator.submit(three_file_session())

        assert result.value.name == "u1/walker"
        assert (await record_store.count("users")).value == 1

    @pytest.mark.asyncio
    async def test_profile_lookup_failure_does_not_block_registration(self, auth, object_store, repository):
        profiles = AsyncMock()
        profiles.get_or_create.return_value = Err(ErrorKind.TRANSPORT, "users table unreachable")
        coordinator = UploadSessionCoordinator(
            auth, object_store, repository, credential="token-u1", clock=lambda: TIMESTAMP, profiles=profiles
        )

        result = await coordinator.submit(three_file_session())

        assert result.value.name == "u1/walker"
