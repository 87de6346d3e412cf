"""Tagged results returned by backend capabilities.

Every call that crosses into an external backend answers with either
``Ok(value)`` or ``Err(kind, message)``, so callers branch on the tag instead
of inspecting loosely shaped response payloads.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Failure categories shared by every capability."""

    VALIDATION = "validation"
    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    TRANSPORT = "transport"
    BACKEND = "backend"
    PARTIAL_UPLOAD_FAILURE = "partial_upload_failure"
    EMPTY_SESSION = "empty_session"
    INVALID_STATE = "invalid_state"


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result."""

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed result.

    ``details`` carries the items the failure applies to (for example the
    relative paths of files that failed to upload) so the caller can retry
    just those.
    """

    kind: ErrorKind
    message: str
    details: tuple[str, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]
