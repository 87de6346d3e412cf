"""Mapping of tagged errors to HTTP status codes."""

from fastapi import HTTPException

from humanoidhub.core.result import Err, ErrorKind

ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.EMPTY_SESSION: 400,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.TRANSPORT: 502,
    ErrorKind.PARTIAL_UPLOAD_FAILURE: 502,
    ErrorKind.BACKEND: 500,
}


def status_for(error: Err) -> int:
    return ERROR_STATUS.get(error.kind, 500)


def http_error(error: Err) -> HTTPException:
    """HTTPException for ``error``; server-side failures get a generic detail."""
    status = status_for(error)
    detail = error.message if status < 500 else "Backend request failed"
    return HTTPException(status_code=status, detail=detail)
