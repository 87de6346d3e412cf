"""Tests for user profiles."""

from unittest.mock import AsyncMock

import pytest

from humanoidhub.catalog.profile import ProfileRepository
from humanoidhub.core.result import Err, ErrorKind, Ok


class TestProfileRepository:
    """Tests for the profile repository."""

    @pytest.mark.asyncio
    async def test_get_or_create_inserts_once(self, record_store, user):
        profiles = ProfileRepository(record_store)

        first = await profiles.get_or_create(user)
        second = await profiles.get_or_create(user)

        assert first.value.id == "u1"
        assert first.value.email == "u1@example.com"
        assert first.value.display_name is None
        assert second.value == first.value
        assert (await record_store.count("users")).value == 1

    @pytest.mark.asyncio
    async def test_update_display_name(self, record_store, user):
        profiles = ProfileRepository(record_store)

        updated = await profiles.update_display_name(user, "alice")

        assert updated.value.display_name == "alice"
        assert (await profiles.get_or_create(user)).value.display_name == "alice"

    @pytest.mark.asyncio
    async def test_concurrent_creation_reads_existing_row(self, user):
        store = AsyncMock()
        store.query.side_effect = [Ok([]), Ok([{"id": "u1", "email": "u1@example.com", "display_name": "alice"}])]
        store.insert.return_value = Err(ErrorKind.CONFLICT, "users.id 'u1' already exists")

        result = await ProfileRepository(store).get_or_create(user)

        assert result.value.display_name == "alice"
        assert store.query.await_count == 2

    @pytest.mark.asyncio
    async def test_lookup_failure_propagates(self, user):
        store = AsyncMock()
        store.query.return_value = Err(ErrorKind.TRANSPORT, "unreachable")

        result = await ProfileRepository(store).update_display_name(user, "alice")

        assert result.kind == ErrorKind.TRANSPORT
        store.insert.assert_not_awaited()
        store.update.assert_not_awaited()
