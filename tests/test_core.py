"""Tests for logging, middleware, configuration and results."""

import json
import logging
import sys

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from humanoidhub.api.deps import get_bearer_token
from humanoidhub.core.config import Settings
from humanoidhub.core.exceptions import BackendConfigurationError, HubError, SessionStateError
from humanoidhub.core.logging import CloudLoggingFormatter, upload_prefix_context
from humanoidhub.core.middleware import HTTPErrorLoggingMiddleware
from humanoidhub.core.result import Err, ErrorKind, Ok
from humanoidhub.models.upload import envelope


def make_record(msg="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("humanoidhub.test", level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCloudLoggingFormatter:
    """Tests for JSON log formatting."""

    def test_formats_extra_fields(self):
        line = CloudLoggingFormatter().format(make_record(key="u1/a-1/w.bin", size_bytes=3))

        payload = json.loads(line)
        assert payload["message"] == "hello"
        assert payload["severity"] == "INFO"
        assert payload["key"] == "u1/a-1/w.bin"
        assert payload["size_bytes"] == 3

    def test_includes_upload_prefix(self):
        token = upload_prefix_context.set("u1/a-1")
        try:
            payload = json.loads(CloudLoggingFormatter().format(make_record()))
        finally:
            upload_prefix_context.reset(token)

        assert payload["upload_prefix"] == "u1/a-1"

    def test_includes_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("t", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

        payload = json.loads(CloudLoggingFormatter().format(record))
        assert "RuntimeError" in payload["exception"]


def test_middleware_logs_client_errors(caplog):
    app = FastAPI()
    app.add_middleware(HTTPErrorLoggingMiddleware)

    @app.get("/missing")
    async def missing():
        raise HTTPException(status_code=404, detail="nope")

    with caplog.at_level(logging.WARNING, logger="humanoidhub.core.middleware"):
        TestClient(app).get("/missing")

    records = [r for r in caplog.records if r.name == "humanoidhub.core.middleware"]
    assert records[0].levelno == logging.WARNING
    assert records[0].http_status == 404
    assert records[0].path == "/missing"


def test_settings_derived_values():
    settings = Settings(MAX_UPLOAD_MB=2, UPLOAD_CHUNK_SIZE_KB=512, SUPABASE_URL="", SUPABASE_SECRET_KEY="")
    assert settings.max_upload_bytes == 2 * 1024 * 1024
    assert settings.upload_chunk_size_bytes == 512 * 1024
    assert not settings.supabase_configured


def test_bearer_token_parsing():
    assert get_bearer_token("Bearer abc") == "abc"
    assert get_bearer_token("bearer  abc ") == "abc"
    assert get_bearer_token("abc") == "abc"
    assert get_bearer_token("Bearer ") is None
    assert get_bearer_token(None) is None


def test_results_and_envelope():
    assert Ok(3).ok
    err = Err(ErrorKind.PARTIAL_UPLOAD_FAILURE, "1 of 3 files failed", ("b.bin",))
    assert not err.ok
    assert err.details == ("b.bin",)
    assert envelope(401, "Unauthorized") == {"code": 401, "message": "Unauthorized"}
    assert envelope(200, "success", {"id": 1}) == {"code": 200, "message": "success", "data": {"id": 1}}


def test_exception_hierarchy():
    assert issubclass(BackendConfigurationError, HubError)
    assert issubclass(SessionStateError, HubError)
