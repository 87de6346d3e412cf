"""Tests for object store backends."""

from unittest.mock import MagicMock, patch

import pytest
from google.api_core.exceptions import NotFound

from humanoidhub.core.exceptions import BackendConfigurationError
from humanoidhub.core.result import ErrorKind
from humanoidhub.storage.gcs import GCS_CHUNK_MULTIPLE, GCSObjectStore
from humanoidhub.storage.local import LocalObjectStore


class TestLocalObjectStore:
    """Tests for the local filesystem object store."""

    @pytest.mark.asyncio
    async def test_put_and_get(self, tmp_path):
        store = LocalObjectStore(tmp_path)
        progress = []

        result = await store.put_object("u1/walker-1/w.bin", b"abcdef", on_progress=lambda s, t: progress.append((s, t)))

        assert result.ok
        assert (tmp_path / "u1" / "walker-1" / "w.bin").read_bytes() == b"abcdef"
        assert progress[-1] == (6, 6)
        assert (await store.get_object("u1/walker-1/w.bin")).value == b"abcdef"

    @pytest.mark.asyncio
    async def test_progress_per_chunk(self, tmp_path):
        store = LocalObjectStore(tmp_path, chunk_size=2)
        progress = []

        await store.put_object("k/f", b"12345", on_progress=lambda s, t: progress.append(s))

        assert progress == [2, 4, 5]

    @pytest.mark.asyncio
    async def test_empty_payload_reports_completion(self, tmp_path):
        store = LocalObjectStore(tmp_path)
        progress = []

        await store.put_object("k/empty", b"", on_progress=lambda s, t: progress.append((s, t)))

        assert progress == [(0, 0)]
        assert (tmp_path / "k" / "empty").read_bytes() == b""

    @pytest.mark.asyncio
    async def test_list_objects_under_prefix(self, tmp_path):
        store = LocalObjectStore(tmp_path)
        await store.put_object("u1/a-1/w.bin", b"12")
        await store.put_object("u1/a-1/cfg/c.yaml", b"1")
        await store.put_object("u1/a-10/other.bin", b"1")

        listing = (await store.list_objects("u1/a-1")).value

        assert [(e.key, e.size) for e in listing] == [("u1/a-1/cfg/c.yaml", 1), ("u1/a-1/w.bin", 2)]
        assert (await store.list_objects("missing")).value == []

    @pytest.mark.asyncio
    async def test_traversal_rejected(self, tmp_path):
        store = LocalObjectStore(tmp_path / "objects")

        result = await store.put_object("../escape.bin", b"x")

        assert result.kind == ErrorKind.TRANSPORT
        assert not (tmp_path / "escape.bin").exists()
        assert (await store.get_object("../escape.bin")).kind == ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_get_missing(self, tmp_path):
        result = await LocalObjectStore(tmp_path).get_object("nope")
        assert result.kind == ErrorKind.NOT_FOUND

    def test_get_backend_name(self, tmp_path):
        assert LocalObjectStore(tmp_path).get_backend_name() == "local"


@pytest.fixture
def mock_storage_client():
    """Mock Google Cloud Storage client."""
    with patch("humanoidhub.storage.gcs.storage.Client") as mock_client_class:
        mock_client = MagicMock()
        mock_bucket = MagicMock()
        mock_client_class.return_value = mock_client
        mock_client.bucket.return_value = mock_bucket
        yield mock_client_class


class TestGCSObjectStore:
    """Tests for the GCS object store."""

    @pytest.mark.asyncio
    async def test_put_object_streams_chunks(self, mock_storage_client):
        mock_bucket = mock_storage_client.return_value.bucket.return_value
        mock_blob = MagicMock()
        mock_bucket.blob.return_value = mock_blob
        writer = mock_blob.open.return_value.__enter__.return_value
        store = GCSObjectStore(bucket_name="test-bucket", project_id="test-project")
        payload = b"x" * (GCS_CHUNK_MULTIPLE + 10)
        progress = []

        result = await store.put_object(
            "u1/walker-1/w.bin",
            payload,
            on_progress=lambda s, t: progress.append(s),
            content_type="application/octet-stream",
        )

        assert result.ok
        mock_storage_client.assert_called_once_with(project="test-project")
        mock_bucket.blob.assert_called_once_with("u1/walker-1/w.bin")
        assert mock_blob.open.call_args.args == ("wb",)
        assert mock_blob.open.call_args.kwargs["chunk_size"] % GCS_CHUNK_MULTIPLE == 0
        assert b"".join(call.args[0] for call in writer.write.call_args_list) == payload
        assert progress[-1] == len(payload)

    @pytest.mark.asyncio
    async def test_put_object_failure_is_transport_error(self, mock_storage_client):
        mock_bucket = mock_storage_client.return_value.bucket.return_value
        mock_bucket.blob.return_value.open.side_effect = ConnectionError("reset")
        store = GCSObjectStore(bucket_name="test-bucket")

        result = await store.put_object("k/w.bin", b"x")

        assert result.kind == ErrorKind.TRANSPORT
        assert "reset" in result.message

    @pytest.mark.asyncio
    async def test_list_objects(self, mock_storage_client):
        mock_bucket = mock_storage_client.return_value.bucket.return_value
        blob = MagicMock()
        blob.name = "u1/walker-1/w.bin"
        blob.size = 3
        mock_bucket.list_blobs.return_value = [blob]
        store = GCSObjectStore(bucket_name="test-bucket")

        listing = await store.list_objects("u1/walker-1")

        mock_bucket.list_blobs.assert_called_once_with(prefix="u1/walker-1/")
        assert [(e.key, e.size) for e in listing.value] == [("u1/walker-1/w.bin", 3)]

    @pytest.mark.asyncio
    async def test_get_object_not_found(self, mock_storage_client):
        mock_bucket = mock_storage_client.return_value.bucket.return_value
        mock_bucket.blob.return_value.download_as_bytes.side_effect = NotFound("missing")
        store = GCSObjectStore(bucket_name="test-bucket")

        result = await store.get_object("k/none")

        assert result.kind == ErrorKind.NOT_FOUND

    def test_missing_bucket_config(self):
        with patch("humanoidhub.storage.gcs.settings") as mock_settings:
            mock_settings.GCS_BUCKET_NAME = ""
            store = GCSObjectStore()

            with pytest.raises(BackendConfigurationError, match="GCS_BUCKET_NAME not configured"):
                store._get_bucket()

    def test_get_backend_name(self):
        assert GCSObjectStore(bucket_name="b").get_backend_name() == "gcs"
